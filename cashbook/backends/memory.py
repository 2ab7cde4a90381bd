# cashbook/backends/memory.py
from typing import Dict, Optional

from cashbook.backends.base import BaseBackend


class MemoryBackend(BaseBackend):
    """Process-local storage, used for tests and throwaway sessions."""

    def __init__(self, config=None):
        self.slots: Dict[str, str] = {}

    def load(self, key: str) -> Optional[str]:
        return self.slots.get(key)

    def save(self, key: str, text: str) -> None:
        self.slots[key] = text

    def remove(self, key: str) -> None:
        self.slots.pop(key, None)
