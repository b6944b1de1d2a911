"""
Exception types for the billing engine.

All errors are detected locally and leave stored state untouched.
"""


class BillingError(Exception):
    """Base class for errors surfaced to callers of the billing engine."""
    http_status = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(BillingError):
    """Raised for malformed or missing input (flow volume, status value)."""
    http_status = 400


class NotFoundError(BillingError):
    """Raised when a dispenser id is unknown."""
    http_status = 404


class ConflictError(BillingError):
    """Raised when an open/close transition violates the tap state machine."""
    # Conflicts are reported as 400 on the wire for client compatibility.
    http_status = 400
