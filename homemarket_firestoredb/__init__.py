"""
Client-side data layer for the HomeMarket real-estate and services marketplace.

This package contains:
- Firestore operations with index-fallback queries and shared live subscriptions
- Record schemas normalized at the read boundary
- Object storage path and upload-limit helpers
- Logging, configuration and error utilities
"""

__version__ = "0.1.0"

from .firestore import (
    FallbackQueryRunner,
    FirestoreAdminDB,
    FirestoreChatsDB,
    FirestoreClient,
    FirestoreNotificationsDB,
    FirestoreProjectsDB,
    FirestorePropertiesDB,
    FirestoreProvidersDB,
    FirestoreReviewsDB,
    FirestoreUsersDB,
    ForeignKeyResolver,
    LiveQuery,
    NotificationDiffer,
    PropertyFilters,
    QueryResult,
    QuerySpec,
    QueryStage,
    SubscriptionManager,
    ViewScope,
    execute_query,
)
from .schemas import ProjectStatus, ProviderKind, RequestKind, SessionContext, allowed_next_statuses
from .utils import StandardResponse, is_collection_allowed

__all__ = [
    "FallbackQueryRunner",
    "FirestoreAdminDB",
    "FirestoreChatsDB",
    "FirestoreClient",
    "FirestoreNotificationsDB",
    "FirestoreProjectsDB",
    "FirestorePropertiesDB",
    "FirestoreProvidersDB",
    "FirestoreReviewsDB",
    "FirestoreUsersDB",
    "ForeignKeyResolver",
    "LiveQuery",
    "NotificationDiffer",
    "PropertyFilters",
    "ProjectStatus",
    "ProviderKind",
    "QueryResult",
    "QuerySpec",
    "QueryStage",
    "RequestKind",
    "SessionContext",
    "StandardResponse",
    "SubscriptionManager",
    "ViewScope",
    "__version__",
    "allowed_next_statuses",
    "execute_query",
    "is_collection_allowed",
]
