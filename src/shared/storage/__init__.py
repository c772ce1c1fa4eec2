"""Local storage factory.

Provides get_storage() / set_storage() / reset_storage():
- FileStorage when CART_STORAGE_DIR points at a directory
- MemoryStorage otherwise (nothing survives the process)
"""

import os

from shared.storage.port import LocalStorage

_current_storage: LocalStorage | None = None


def get_storage() -> LocalStorage:
    """Return the configured storage (singleton)."""
    global _current_storage
    if _current_storage is None:
        directory = os.environ.get("CART_STORAGE_DIR")
        if directory:
            from shared.storage.file_adapter import FileStorage

            _current_storage = FileStorage(directory)
        else:
            from shared.storage.memory_adapter import MemoryStorage

            _current_storage = MemoryStorage()
    return _current_storage


def set_storage(storage: LocalStorage) -> None:
    """Override the active storage (useful for tests)."""
    global _current_storage
    _current_storage = storage


def reset_storage() -> None:
    """Reset to the environment-configured storage."""
    global _current_storage
    _current_storage = None
