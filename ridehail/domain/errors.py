"""
Domain error taxonomy.

Every error carries a machine-readable ``error`` code and the HTTP status
the API layer maps it to.  The engine raises; callers decide how to show it.
"""


class RideError(Exception):
    """Base class for all lifecycle / directory failures."""

    error = "ride_error"
    status_code = 400


class NotFound(RideError):
    error = "not_found"
    status_code = 404


class Unauthorized(RideError):
    error = "unauthorized"
    status_code = 403


class Conflict(RideError):
    """Lost an acceptance race, or a duplicate active ride / unique field."""

    error = "conflict"
    status_code = 409


class InvalidTransition(RideError):
    """Operation is not legal from the ride's current status."""

    error = "invalid_transition"
    status_code = 409


class InvalidState(RideError):
    """A collaborator (e.g. the driver) is not in the state the operation needs."""

    error = "invalid_state"
    status_code = 422


class ValidationError(RideError):
    error = "validation_error"
    status_code = 422


class LockTimeout(RideError):
    error = "lock_timeout"
    status_code = 503
