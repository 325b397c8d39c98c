"""Error types raised by the billing ledger."""


class BillingError(Exception):
    """Base class for ledger failures."""

    error_type = "billing_error"


class NotFoundError(BillingError):
    """A project, client, invoice or expense does not exist."""

    error_type = "not_found"


class InvalidInputError(BillingError, ValueError):
    """Malformed identifiers, dates, year-months or field values."""

    error_type = "invalid_input"


class InvalidAmountError(InvalidInputError):
    """Payment amount is not strictly positive."""


class NoCreditSupportError(BillingError):
    """Payment cannot be exactly absorbed by one-time balance plus whole invoices.

    ``auto_one_time`` records whether the one-time portion was chosen
    automatically, which decides the wording shown to the caller.
    """

    error_type = "no_credit_support"

    AUTO_MESSAGE = (
        "No credit support: remaining amount cannot be stored. Use an amount "
        "that matches the unpaid monthly bills after one-time is auto-applied."
    )
    EXPLICIT_MESSAGE = (
        "No credit support: payment must exactly cover full months and/or "
        "one-time allocation. Adjust the amount or one-time allocation."
    )

    def __init__(self, auto_one_time: bool, leftover: float = 0.0):
        self.auto_one_time = auto_one_time
        self.leftover = leftover
        super().__init__(self.AUTO_MESSAGE if auto_one_time else self.EXPLICIT_MESSAGE)


class ConflictError(BillingError):
    """Concurrent modification detected by the store; safe to retry."""

    error_type = "conflict"


class InvariantViolationError(BillingError):
    """Ledger invariant broken; the transaction is aborted."""

    error_type = "invariant_violation"
