"""Error taxonomy for ledger and listing operations.

Any of these raised inside a unit of work aborts the whole unit. Each class
carries the HTTP status the API answers with.
"""

from typing import Any, Optional


class MarketplaceError(Exception):
    status_code: int = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(MarketplaceError):
    """Malformed input: missing or non-positive amounts, bad identifiers."""

    status_code = 400


class NotFoundError(MarketplaceError):
    status_code = 404


class AuthorizationError(MarketplaceError):
    """Wrong seller, registry-listing mutation, self-transfer."""

    status_code = 403


class InsufficientFundsError(MarketplaceError):
    status_code = 400


class InsufficientCreditsError(InsufficientFundsError):
    """Available (unlocked) balance is smaller than the requested amount."""


class InsufficientInventoryError(InsufficientFundsError):
    """A listing has fewer credits available than requested."""


class InsufficientLockedCreditsError(InsufficientFundsError):
    """A seller's lock does not cover a fill. Indicates ledger corruption."""


class ConflictError(MarketplaceError):
    status_code = 409


class NoValidChangesError(ConflictError):
    pass


class InvalidLockStateError(ConflictError):
    pass


class DuplicateSettlementError(MarketplaceError):
    """The payment reference was already settled. Not a failure: callers
    treat it as success and report the prior result."""

    status_code = 200

    def __init__(self, payment_reference: str, prior: Optional[Any] = None) -> None:
        super().__init__(f"Payment {payment_reference} already settled")
        self.payment_reference = payment_reference
        self.prior = prior


class SignatureError(MarketplaceError):
    """Webhook signature header missing, malformed, stale or not matching."""

    status_code = 400
