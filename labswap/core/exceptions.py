"""Custom exceptions for the LabSwap application."""


class LabSwapException(Exception):
    """Base exception for LabSwap application."""

    pass


class ConfigurationError(LabSwapException):
    """Raised when configuration is invalid."""

    pass


class AuthenticationError(LabSwapException):
    """Raised when the caller identity cannot be resolved."""

    pass


class ExchangeError(LabSwapException):
    """Base for exchange negotiation failures.

    ``code`` is stable and machine-readable; ``constraint`` names the rule
    that was violated so callers can map each failure to its own message.
    """

    code = "exchange_error"

    def __init__(self, message: str, constraint: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.constraint = constraint


class InvalidOfferError(ExchangeError):
    """Raised when the offered item or custom offer fails validation."""

    code = "invalid_offer"


class InvalidPayloadError(ExchangeError):
    """Raised when a request payload is malformed (quantities, reasons, lengths)."""

    code = "invalid_payload"


class InvalidTransitionError(ExchangeError):
    """Raised when a disallowed (status, action) combination is attempted."""

    code = "invalid_transition"


class AlreadyFinalizedError(InvalidTransitionError):
    """Raised when acting on a request that already reached a terminal status."""

    code = "already_finalized"


class UnauthorizedActionError(ExchangeError):
    """Raised when a party attempts a transition reserved for the other role."""

    code = "unauthorized_action"


class InsufficientQuantityError(ExchangeError):
    """Raised when an item cannot cover the requested quantity."""

    code = "insufficient_quantity"


class SelfTargetError(ExchangeError):
    """Raised when an initiator targets an item they own."""

    code = "self_target"


class NotFoundError(ExchangeError):
    """Raised when a resource is not found."""

    code = "not_found"


class ForbiddenError(ExchangeError):
    """Raised when the viewer is neither party of a request."""

    code = "forbidden"
