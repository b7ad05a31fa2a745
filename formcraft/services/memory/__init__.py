"""Form memory storage."""

from formcraft.services.memory.store import MemoryStore
from formcraft.services.memory.types import FormRecord

__all__ = ["MemoryStore", "FormRecord"]
