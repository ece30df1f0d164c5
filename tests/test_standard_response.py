from google.api_core import exceptions as gcp_exceptions

from homemarket_firestoredb.utils.error_codes import (
    USER_MESSAGES,
    ErrorCodes,
    FirestoreErrorKind,
    classify_firestore_error,
    extract_index_url,
)
from homemarket_firestoredb.utils.standard_response import StandardResponse


def test_error_taxonomy():
    assert classify_firestore_error(gcp_exceptions.PermissionDenied("no")) is FirestoreErrorKind.PERMISSION_DENIED
    assert classify_firestore_error(gcp_exceptions.FailedPrecondition("The query requires an index.")) is FirestoreErrorKind.MISSING_INDEX
    assert classify_firestore_error(gcp_exceptions.FailedPrecondition("version mismatch")) is FirestoreErrorKind.UNKNOWN
    assert classify_firestore_error(gcp_exceptions.ServiceUnavailable("down")) is FirestoreErrorKind.UNAVAILABLE
    assert classify_firestore_error(ValueError("bad")) is FirestoreErrorKind.VALIDATION
    assert classify_firestore_error(RuntimeError("boom")) is FirestoreErrorKind.UNKNOWN


def test_index_url_is_extracted():
    error = gcp_exceptions.FailedPrecondition("needs an index: https://console.firebase.google.com/v1/r/project/x/firestore/indexes?create_composite=abc")
    assert extract_index_url(error).endswith("create_composite=abc")
    assert extract_index_url(RuntimeError("no url")) is None


def test_from_exception_maps_codes_and_messages():
    denied = StandardResponse.from_exception(gcp_exceptions.PermissionDenied("Missing or insufficient permissions."))
    assert (denied.status, denied.code) == (False, ErrorCodes.FORBIDDEN)
    assert denied.message == USER_MESSAGES[FirestoreErrorKind.PERMISSION_DENIED]

    missing = StandardResponse.from_exception(gcp_exceptions.NotFound("gone"))
    assert missing.code == ErrorCodes.NOT_FOUND

    unknown = StandardResponse.from_exception(RuntimeError("disk on fire"))
    assert unknown.code == ErrorCodes.INTERNAL_SERVER_ERROR
    assert unknown.message == "disk on fire"


def test_envelope_constructors():
    assert StandardResponse.success(data=[1]).to_dict()["data"] == [1]
    assert StandardResponse.internal_error("oops").code == 500
    invalid = StandardResponse.validation_error({"budget": "Budget must be a valid positive number"})
    assert invalid.code == 400
    assert invalid.to_dict()["field_errors"] == {"budget": "Budget must be a valid positive number"}
