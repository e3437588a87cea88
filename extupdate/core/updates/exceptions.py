"""Exception classes for the update subsystem"""


class UpdateError(Exception):
    """Base exception for all recoverable update errors"""
    pass


class IOFailure(UpdateError):
    """Raised when a local filesystem operation fails (mkdir, rename, write)"""
    pass


class TransportFailure(UpdateError):
    """Raised when the network transfer fails or the server answers with an error"""
    pass


class Cancelled(UpdateError):
    """Raised when cooperative cancellation is observed"""
    pass


class ValidationFailure(UpdateError):
    """Raised when a downloaded artifact or its resolved name is not acceptable"""
    pass


class InstallationError(UpdateError):
    """Raised when an artifact cannot be registered for installation"""
    pass


class ActionLogError(UpdateError):
    """Raised when the deferred action script cannot be written or replayed"""
    pass


class ContractViolation(AssertionError):
    """Raised when a caller drives an update plan outside its state machine.

    Derives from AssertionError so it is never caught as an UpdateError.
    """
    pass
