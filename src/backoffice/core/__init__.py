"""Core package - Configuration, exceptions, security, and permissions."""
from .config import Settings, get_settings

__all__ = [
    "Settings",
    "get_settings",
]
