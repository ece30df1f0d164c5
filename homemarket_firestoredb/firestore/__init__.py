"""
Firestore database operations module.

This module contains everything that talks to the document store including:
- Client initialization and credential discovery
- The index-fallback query cascade and live subscriptions
- Reference-counted subscription sharing and view-scoped ownership
- Cross-collection label resolution and notification alert diffing
- CRUD and workflow operations per collection, admin aggregates included
"""

from .admin import FirestoreAdminDB
from .chats import FirestoreChatsDB, get_other_participant
from .client import FirestoreClient
from .live_query import LiveQuery
from .notification_differ import NotificationDiffer
from .notifications import FirestoreNotificationsDB
from .projects import FirestoreProjectsDB
from .properties import FirestorePropertiesDB, PropertyFilters
from .providers import FirestoreProvidersDB
from .query_fallback import FallbackQueryRunner, QueryResult, QuerySpec, QueryStage, execute_query
from .resolver import ForeignKeyResolver, property_resolver, provider_resolver, user_resolver
from .reviews import FirestoreReviewsDB
from .subscriptions import Subscription, SubscriptionManager, ViewScope
from .users import FirestoreUsersDB

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
    "QueryResult",
    "QuerySpec",
    "QueryStage",
    "Subscription",
    "SubscriptionManager",
    "ViewScope",
    "execute_query",
    "get_other_participant",
    "property_resolver",
    "provider_resolver",
    "user_resolver",
]
