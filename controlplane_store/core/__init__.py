"""Cross-cutting concerns of the store: configuration, logging and errors."""

from .config import Settings, StoreDefaults, settings
from .errors import ControlPlaneStoreError, StorageBackendError
from .logging_config import get_logger, setup_logging

__all__ = [
    "ControlPlaneStoreError",
    "Settings",
    "StorageBackendError",
    "StoreDefaults",
    "get_logger",
    "settings",
    "setup_logging",
]
