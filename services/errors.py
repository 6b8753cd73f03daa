"""
Error taxonomy for the booking core.
Services raise these; the Flask error handler in app.py turns them into
{"status": "error", "message": ..., "code": ...} with the class's HTTP status.
"""


class CoachingError(Exception):
    status_code = 400
    code = "error"

    def __init__(self, message: str, code: str = None):
        self.message = message
        if code:
            self.code = code
        super().__init__(message)

    def to_dict(self) -> dict:
        return {"status": "error", "message": self.message, "code": self.code}


class NotFound(CoachingError):
    """A coach, slot, booking or payment id does not resolve."""
    status_code = 404
    code = "not_found"


class PreconditionFailed(CoachingError):
    """Coach not approved, slot not available, cutoff passed, capacity exhausted."""
    status_code = 400
    code = "precondition_failed"


class Conflict(PreconditionFailed):
    """The slot was taken or closed between reading it and claiming it."""
    code = "conflict"


class InvalidTransition(CoachingError):
    status_code = 400
    code = "invalid_transition"

    def __init__(self, from_state: str, to_state: str, kind: str = "booking"):
        self.from_state = from_state
        self.to_state = to_state
        self.kind = kind
        super().__init__(f"Cannot change {kind} status from '{from_state}' to '{to_state}'")


class Forbidden(CoachingError):
    status_code = 403
    code = "forbidden"


class ValidationError(CoachingError):
    status_code = 400
    code = "validation_error"


class GatewayError(CoachingError):
    """The payment gateway call failed or answered with an unexpected state."""
    status_code = 502
    code = "gateway_error"


class InvalidSignature(CoachingError):
    status_code = 400
    code = "invalid_signature"
