"""
Error taxonomy for the quotation pricing engine.

ValidationError   bad input; the caller can fix it and resend
NotFoundError     something expected to exist does not
StorageError      the database could not durably complete a read/write; retryable
"""


class QuotationError(Exception):
    """Base class for all pricing engine errors."""


class ValidationError(QuotationError):
    """Malformed or semantically invalid quotation request."""

    def __init__(self, field: str, reason: str):
        self.field = field
        self.reason = reason
        super().__init__(f"{field}: {reason}")


class NotFoundError(QuotationError):
    """A requested record does not exist."""


class CatalogEntryMissing(NotFoundError):
    """The rate catalog has no entry for a supported (sport, size_tier) pair.

    This is a server-side configuration fault, not a user error.
    """

    def __init__(self, sport: str, size_tier: str):
        self.sport = sport
        self.size_tier = size_tier
        super().__init__(f"No rate entry configured for {sport}/{size_tier}")


class StorageError(QuotationError):
    """The store was unreachable or a write did not durably succeed."""

    retryable = True


class ImmutableRecordError(QuotationError):
    """Attempt to change a price-bearing field of an issued quotation."""
