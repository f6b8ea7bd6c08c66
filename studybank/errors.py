"""Exception types raised by the bank services."""


class BankError(Exception):
    """Base class for study bank errors."""


class PackValidationError(BankError, ValueError):
    """Envelope is malformed; nothing has been written."""


class ResolutionError(BankError):
    """A single pack item cannot be resolved against the local bank."""


class NotFoundError(BankError, LookupError):
    """Write path targets an entity that does not exist."""


class ImmutableFieldError(BankError, ValueError):
    """Attempt to change a field that is fixed after creation."""
