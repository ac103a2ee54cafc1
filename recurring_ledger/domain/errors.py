"""
Error taxonomy for the recurring ledger.

Validation and not-found errors fail the requested operation before any write.
GenerationFailure is contained inside GenerationEngine.generate(): it is logged
and counted as skipped, never raised to the caller.

Bounded-search exhaustion is deliberately NOT an exception: the occurrence
search returns None and the catch-up walk stops at its cap (silent truncation).
"""


class RecurringLedgerError(Exception):
    pass


class SeriesValidationError(RecurringLedgerError, ValueError):
    """Malformed date, unknown scope/field, effective date outside the series window."""


class SeriesNotFoundError(RecurringLedgerError, LookupError):
    pass


class MissingReferenceError(SeriesValidationError):
    """A referenced category or owner vanished between validation and write."""


class GenerationFailure(RecurringLedgerError):
    """One occurrence could not be materialized during catch-up."""

    def __init__(self, series_id: int, occurrence_date, reason: str):
        self.series_id = series_id
        self.occurrence_date = occurrence_date
        self.reason = reason
        super().__init__(f"series #{series_id} on {occurrence_date}: {reason}")
