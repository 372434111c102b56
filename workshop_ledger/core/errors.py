"""
Error types for the workshop ledger.

Every failure surfaced to callers derives from LedgerError so the CLI and
the scheduled refresh can handle them in one place.
"""


class LedgerError(Exception):
    """Base class for all ledger failures."""


class ValidationError(LedgerError):
    """Raised when input is malformed and is rejected before touching the store.

    Covers negative amounts, malformed dates, unknown periods and invalid names.
    """


class NotFoundError(LedgerError):
    """Raised when a referenced workshop or daily entry does not exist."""


class StoreUnavailableError(LedgerError):
    """Raised when the ledger store cannot be reached or a query fails."""
