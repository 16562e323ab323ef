"""
PhishNet - Error taxonomy for the case engine.

Per-item errors (NotFound, TransactionFailure, ConcurrentModification) are
caught at the bulk boundary and turned into failure entries. Only
StorageUnavailableError is allowed to escape a batch.
"""


class PhishNetError(Exception):
    """Base class for case engine errors."""

    kind = "ERROR"

    def __init__(self, message: str = ""):
        super().__init__(message)
        self.message = message


class NotFoundError(PhishNetError):
    """Target record is not (or no longer) in the active table."""

    kind = "NOT_FOUND"


class ValidationError(PhishNetError):
    """Input rejected before touching storage."""

    kind = "VALIDATION"


class ConstraintViolationError(PhishNetError):
    """Storage-level constraint rejected the write (e.g. duplicate identifier)."""

    kind = "CONSTRAINT_VIOLATION"


class TransactionFailureError(PhishNetError):
    """A multi-statement transaction failed and was rolled back in full."""

    kind = "TRANSACTION_FAILURE"


class ConcurrentModificationError(PhishNetError):
    """Active row changed since it was archived; restore refused."""

    kind = "CONCURRENT_MODIFICATION"


class StorageUnavailableError(PhishNetError):
    """No database connection could be obtained."""

    kind = "STORAGE_UNAVAILABLE"
