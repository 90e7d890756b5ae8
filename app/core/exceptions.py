"""
Platform-wide exception hierarchy for the forms engine.

Services raise these types; the forms blueprint maps them to HTTP status
codes in one place.  A version conflict is not an exception:
it is the ``FormConflict`` result value returned by the orchestrators.

Usage:
    from app.core.exceptions import InvalidArgumentError, StorageFailureError

    raise InvalidArgumentError("Invalid access_id", details={"access_id": 0})
    raise StorageFailureError("Could not lock form version", operation="lock")
"""


class InvalidArgumentError(Exception):
    """Raised when a request is rejected before (or during) dispatch.

    Covers non-positive scope ids, a missing actor token, an unknown
    (form_key, crud) combination and malformed payloads.  Never partially
    applied: the transaction is rolled back before this propagates.

    Maps to HTTP 422 in the blueprint error handler.

    Args:
        message: Human-readable explanation of what failed.
        details: Optional field-level breakdown for structured API responses.
    """

    def __init__(self, message: str, details: dict | None = None) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(message)


class StorageFailureError(Exception):
    """Raised when the relational store fails during a write.

    Lock timeout, connection loss and constraint violations all surface
    here.  The enclosing transaction (mutation + audit entry + version
    bump) has been rolled back in full by the time callers see it.

    Maps to HTTP 503.

    Args:
        message: Human-readable explanation.
        operation: Optional short tag of the step that failed (lock, write, commit).
    """

    def __init__(self, message: str, operation: str | None = None) -> None:
        self.message = message
        self.operation = operation
        super().__init__(message)
