"""Server status monitor — periodic HTTP reachability checks with bounded history."""

__version__ = "0.1.0"
