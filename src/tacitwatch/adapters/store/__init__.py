"""Key-value store adapters."""

from .filesystem import FileStore
from .memory import MemoryStore

__all__ = ["FileStore", "MemoryStore"]
