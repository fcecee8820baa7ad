"""Error taxonomy shared by the booking, lifecycle and session layers.

Each error carries a stable ``code`` and the HTTP status the API maps it to.
``expected`` separates outcomes that recur in normal operation (bad input,
double-booking races, wrong password) from authorization or programmer
misuse, so the two can be logged at different levels.
"""

from typing import Optional


class CareBookError(Exception):
    """Base class for all domain errors"""

    code = "CAREBOOK_ERROR"
    status_code = 400
    expected = False

    def __init__(self, message: str = "", **context):
        super().__init__(message or self.__class__.__name__)
        self.message = message or self.__class__.__name__
        self.context = context

    def to_dict(self) -> dict:
        payload = {"code": self.code, "message": self.message}
        payload.update(self.context)
        return payload


class ValidationError(CareBookError):
    """Field-level input problem; the user corrects the input, nothing changes"""

    code = "VALIDATION_FAILED"
    status_code = 422
    expected = True

    def __init__(self, field_errors: dict[str, str], message: str = "Validation failed"):
        super().__init__(message)
        self.field_errors = dict(field_errors)

    def to_dict(self) -> dict:
        return {"code": self.code, "message": self.message, "errors": self.field_errors}


class InvalidCredentials(CareBookError):
    code = "INVALID_CREDENTIALS"
    status_code = 401
    expected = True


class Forbidden(CareBookError):
    """Role or ownership mismatch - never retried automatically"""

    code = "ACCESS_DENIED"
    status_code = 403


class InvalidTransition(CareBookError):
    code = "INVALID_TRANSITION"
    status_code = 400

    def __init__(self, from_status: str, to_status: str, message: Optional[str] = None):
        super().__init__(
            message or f"Cannot move appointment from '{from_status}' to '{to_status}'",
            from_status=from_status,
            to_status=to_status,
        )


class StaleState(CareBookError):
    """The stored status no longer matches what the writer read"""

    code = "STALE_STATE"
    status_code = 409
    expected = True


class Conflict(CareBookError):
    """The requested time is already taken; pick a different slot"""

    code = "TIME_SLOT_BOOKED"
    status_code = 409
    expected = True

    def __init__(self, message: str = "Time slot is already booked", **context):
        context.setdefault("next", "select_slot")
        super().__init__(message, **context)


class NotFound(CareBookError):
    code = "NOT_FOUND"
    status_code = 404


class NotAuthenticated(CareBookError):
    """No principal; the caller must log in first"""

    code = "AUTH_REQUIRED"
    status_code = 401
