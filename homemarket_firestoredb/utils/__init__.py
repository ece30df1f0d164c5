"""
Shared utilities.

This module contains the ambient helpers used by every database class including:
- Logger and configuration
- Error codes, error classification and the StandardResponse envelope
- In-memory filtering and ordering of records
- The collection access manifest derived from the security rules
"""

from .access_rules import AccessManifest, is_collection_allowed, load_access_manifest
from .error_codes import CustomError, ErrorCodes, FirestoreErrorKind, classify_firestore_error
from .logger import logger
from .standard_response import StandardResponse
from .time_now import TimeManager

__all__ = [
    "AccessManifest",
    "CustomError",
    "ErrorCodes",
    "FirestoreErrorKind",
    "StandardResponse",
    "TimeManager",
    "classify_firestore_error",
    "is_collection_allowed",
    "load_access_manifest",
    "logger",
]
