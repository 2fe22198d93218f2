from server_monitor.registry.registry import (
    ServerRegistry,
    server_from_dict,
    server_to_dict,
)
from server_monitor.registry.store import BlobStore, load_auto_check, save_auto_check

__all__ = [
    "BlobStore",
    "ServerRegistry",
    "load_auto_check",
    "save_auto_check",
    "server_from_dict",
    "server_to_dict",
]
