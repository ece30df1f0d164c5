import re
from enum import Enum, IntEnum
from typing import Optional

from google.api_core import exceptions as gcp_exceptions

INDEX_URL_PATTERN = re.compile(r"https?://\S+")


class ErrorCodes(IntEnum):
    BAD_REQUEST = 400
    UNAUTHORIZED = 401
    FORBIDDEN = 403
    NOT_FOUND = 404
    CONFLICT = 409
    FAILED_PRECONDITION = 412
    INTERNAL_SERVER_ERROR = 500
    SERVICE_UNAVAILABLE = 503

    @staticmethod
    def get_http_status_code(error: Exception) -> "ErrorCodes":
        kind = classify_firestore_error(error)
        if kind is FirestoreErrorKind.PERMISSION_DENIED:
            return ErrorCodes.FORBIDDEN
        if kind is FirestoreErrorKind.MISSING_INDEX:
            return ErrorCodes.FAILED_PRECONDITION
        if kind is FirestoreErrorKind.UNAVAILABLE:
            return ErrorCodes.SERVICE_UNAVAILABLE
        if kind is FirestoreErrorKind.VALIDATION:
            return ErrorCodes.BAD_REQUEST
        if isinstance(error, gcp_exceptions.NotFound):
            return ErrorCodes.NOT_FOUND
        if isinstance(error, (gcp_exceptions.Conflict, gcp_exceptions.Aborted)):
            return ErrorCodes.CONFLICT
        return ErrorCodes.INTERNAL_SERVER_ERROR


class FirestoreErrorKind(str, Enum):
    PERMISSION_DENIED = "permission-denied"
    MISSING_INDEX = "missing-index"
    UNAVAILABLE = "unavailable"
    VALIDATION = "validation"
    UNKNOWN = "unknown"


USER_MESSAGES = {
    FirestoreErrorKind.PERMISSION_DENIED: "You do not have permission to access this data. Please contact support if this persists.",
    FirestoreErrorKind.MISSING_INDEX: "A database index is required. Please try again in a moment.",
    FirestoreErrorKind.UNAVAILABLE: "Unable to connect to the server. Please check your internet connection and try again.",
    FirestoreErrorKind.VALIDATION: "Some of the submitted values are invalid.",
    FirestoreErrorKind.UNKNOWN: "An unexpected error occurred. Please try again.",
}


def _mentions_index(error: Exception) -> bool:
    return "index" in str(error).lower()


def classify_firestore_error(error: Exception) -> FirestoreErrorKind:
    """Map a store exception onto the error taxonomy used by every query and write helper."""
    if isinstance(error, gcp_exceptions.PermissionDenied):
        return FirestoreErrorKind.PERMISSION_DENIED
    if isinstance(error, gcp_exceptions.FailedPrecondition):
        # FAILED_PRECONDITION is also raised for write preconditions, only index messages are retryable
        return FirestoreErrorKind.MISSING_INDEX if _mentions_index(error) else FirestoreErrorKind.UNKNOWN
    if isinstance(error, (gcp_exceptions.ServiceUnavailable, gcp_exceptions.DeadlineExceeded, gcp_exceptions.RetryError)):
        return FirestoreErrorKind.UNAVAILABLE
    if isinstance(error, (gcp_exceptions.InvalidArgument, ValueError)):
        return FirestoreErrorKind.VALIDATION
    if "requires an index" in str(error).lower() or "composite index" in str(error).lower():
        return FirestoreErrorKind.MISSING_INDEX
    return FirestoreErrorKind.UNKNOWN


def extract_index_url(error: Exception) -> Optional[str]:
    match = INDEX_URL_PATTERN.search(str(error))
    return match.group(0) if match else None


class CustomError(Exception):
    def __init__(self, code: ErrorCodes, message: str):
        super().__init__(message)
        self.code = code
        self.message = message
