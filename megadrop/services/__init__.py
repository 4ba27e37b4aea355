"""Services for megadrop.

The megapy-backed store lives in megadrop.services.mega_store and is
imported only where a real MEGA connection is built (server, CLI).
"""
from .devices import DeviceRegistry
from .folders import FolderCache, FolderSet, find_or_create_folder
from .session import Session, SessionManager

__all__ = [
    "DeviceRegistry",
    "FolderCache",
    "FolderSet",
    "find_or_create_folder",
    "Session",
    "SessionManager",
]
