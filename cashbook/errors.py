# cashbook/errors.py


class LedgerError(Exception):
    """Base class for errors the CLI reports to the user."""


class ValidationError(LedgerError, ValueError):
    """A malformed entry, patch or import payload."""


class EmptyScopeError(LedgerError):
    """A report was requested over a period without entries."""


class PersistenceError(LedgerError):
    """The storage backend could not be read or written."""
