from typing import Any, Dict, Optional

from pydantic import BaseModel, Field

from .error_codes import USER_MESSAGES, ErrorCodes, FirestoreErrorKind, classify_firestore_error


class StandardResponse(BaseModel):
    """Envelope returned by every one-shot operation. Store errors never escape as exceptions."""

    status: bool
    code: int = 200
    message: str = ""
    data: Any = None
    error_message: Optional[str] = None
    field_errors: Dict[str, str] = Field(default_factory=dict)

    @classmethod
    def success(cls, data: Any = None, message: str = "Success") -> "StandardResponse":
        return cls(status=True, code=200, message=message, data=data)

    @classmethod
    def failure(cls, code: int, error_message: str, data: Any = None) -> "StandardResponse":
        return cls(status=False, code=int(code), message=error_message, error_message=error_message, data=data)

    @classmethod
    def bad_request(cls, error_message: str) -> "StandardResponse":
        return cls.failure(ErrorCodes.BAD_REQUEST, error_message)

    @classmethod
    def not_found(cls, error_message: str) -> "StandardResponse":
        return cls.failure(ErrorCodes.NOT_FOUND, error_message)

    @classmethod
    def forbidden(cls, error_message: str) -> "StandardResponse":
        return cls.failure(ErrorCodes.FORBIDDEN, error_message)

    @classmethod
    def internal_error(cls, error_message: str) -> "StandardResponse":
        return cls.failure(ErrorCodes.INTERNAL_SERVER_ERROR, error_message)

    @classmethod
    def validation_error(cls, field_errors: Dict[str, str], error_message: str = "Please fix the errors in the form.") -> "StandardResponse":
        response = cls.failure(ErrorCodes.BAD_REQUEST, error_message)
        response.field_errors = dict(field_errors)
        return response

    @classmethod
    def from_exception(cls, error: Exception) -> "StandardResponse":
        """Failure envelope carrying the user-facing message for the error's taxonomy kind."""
        kind = classify_firestore_error(error)
        message = USER_MESSAGES[kind] if kind is not FirestoreErrorKind.UNKNOWN else (str(error) or USER_MESSAGES[kind])
        return cls.failure(ErrorCodes.get_http_status_code(error), message)

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump()
