"""Error types raised by the pricing and revenue engine."""


class PricingError(Exception):
    """Base class for engine errors."""


class InvalidInput(PricingError, ValueError):
    """
    A required input is missing or malformed.

    Raised for unknown rooms, a missing pricing model, an empty or inverted
    date range, or an edit the breakdown rules forbid. No partial result is
    produced.
    """

    def __init__(self, message: str, entity: str = ''):
        super().__init__(message)
        self.entity = entity


class SignalUnavailable(PricingError):
    """An occupancy signal could not be produced for a date."""


class ReconciliationInconsistency(PricingError):
    """A breakdown set does not sum to 100% and cannot be corrected."""


class PersistenceFailure(PricingError, RuntimeError):
    """The store failed mid-write; the transaction has been rolled back."""
