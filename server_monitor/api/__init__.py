"""HTTP API for the server monitor."""
