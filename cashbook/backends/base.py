# cashbook/backends/base.py
from abc import ABC, abstractmethod
from typing import Optional


class BaseBackend(ABC):
    """Key/value slot storage for serialised ledger snapshots.

    Implementations raise :class:`cashbook.errors.PersistenceError` when the
    underlying medium cannot be read or written.
    """

    @abstractmethod
    def load(self, key: str) -> Optional[str]:
        """Return the text stored under ``key`` or None if the slot is empty."""
        pass

    @abstractmethod
    def save(self, key: str, text: str) -> None:
        """Replace the content of ``key`` with ``text``."""
        pass

    @abstractmethod
    def remove(self, key: str) -> None:
        """Empty the slot; removing an empty slot is not an error."""
        pass
