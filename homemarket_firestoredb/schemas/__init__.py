"""
Record schemas and data structures.

This module contains the canonical shapes every document is normalized into, including:
- Collection names and provider/request kinds
- Pydantic record models and the session context
- The project status workflow table
- Request, property and review form validation models
"""

from .collection_names import DatabaseCollectionNames, ProviderKind, RequestKind
from .keys import FireStoreKeys
from .records import (
    Alert,
    ChatMessage,
    ChatRecord,
    NotificationRecord,
    NotificationType,
    ProjectRecord,
    ProjectUpdateRecord,
    PropertyRecord,
    ProviderProfile,
    ReviewRecord,
    ReviewTarget,
    UserRecord,
    UserRole,
)
from .requests import (
    PROPERTY_STATUSES,
    ConstructionRequestCreate,
    PropertyCreate,
    RenovationRequestCreate,
    RequestValidationError,
    ReviewCreate,
    ServiceRequestCreate,
    parse_property_form,
    parse_review_form,
    parse_service_request,
)
from .session import SessionContext
from .status import ALLOWED_TRANSITIONS, ProjectStatus, allowed_next_statuses, is_transition_allowed

__all__ = [
    "ALLOWED_TRANSITIONS",
    "PROPERTY_STATUSES",
    "Alert",
    "ChatMessage",
    "ChatRecord",
    "ConstructionRequestCreate",
    "DatabaseCollectionNames",
    "FireStoreKeys",
    "NotificationRecord",
    "NotificationType",
    "ProjectRecord",
    "ProjectStatus",
    "ProjectUpdateRecord",
    "PropertyCreate",
    "PropertyRecord",
    "ProviderKind",
    "ProviderProfile",
    "RenovationRequestCreate",
    "RequestKind",
    "RequestValidationError",
    "ReviewCreate",
    "ReviewRecord",
    "ReviewTarget",
    "ServiceRequestCreate",
    "SessionContext",
    "UserRecord",
    "UserRole",
    "allowed_next_statuses",
    "is_transition_allowed",
    "parse_property_form",
    "parse_review_form",
    "parse_service_request",
]
