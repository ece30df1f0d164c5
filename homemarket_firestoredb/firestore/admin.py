from typing import Dict, List, Optional, Tuple

from google.cloud.firestore_v1.base_query import FieldFilter

from ..schemas.collection_names import DatabaseCollectionNames, ProviderKind, RequestKind
from ..schemas.keys import FireStoreKeys
from ..schemas.requests import PROPERTY_SUSPENDED
from ..utils.access_rules import is_collection_allowed
from ..utils.logger import logger
from ..utils.standard_response import StandardResponse
from .client import FirestoreClient
from .query_fallback import Filter

PROPERTIES_COLLECTION_NAME = DatabaseCollectionNames.PROPERTIES_COLLECTION_NAME.value

# Stat name -> (collection, filters)
DASHBOARD_COUNTS: Dict[str, Tuple[str, Tuple[Filter, ...]]] = {
    "totalUsers": (DatabaseCollectionNames.USERS_COLLECTION_NAME.value, ()),
    "totalProperties": (PROPERTIES_COLLECTION_NAME, ()),
    "totalServiceProviders": (ProviderKind.SERVICE.collection_name, ()),
    "totalConstructionProviders": (ProviderKind.CONSTRUCTION.collection_name, ()),
    "totalRentalRequests": (RequestKind.RENTAL.collection_name, ()),
    "totalBuySellRequests": (RequestKind.BUY_SELL.collection_name, ()),
    "totalConstructionProjects": (RequestKind.CONSTRUCTION.collection_name, ()),
    "totalRenovationProjects": (RequestKind.RENOVATION.collection_name, ()),
    "pendingProperties": (PROPERTIES_COLLECTION_NAME, ((FireStoreKeys.status, "==", "pending"),)),
    "suspendedProperties": (PROPERTIES_COLLECTION_NAME, ((FireStoreKeys.status, "==", PROPERTY_SUSPENDED),)),
}


class FirestoreAdminDB:
    """Read-only aggregates for the admin panel. Admin writes live with the collection they touch."""

    _instance = None

    def __init__(self, client=None):
        self.client = client or FirestoreClient.shared()

    @classmethod
    def shared(cls):
        if not cls._instance:
            cls._instance = cls()
        return cls._instance

    async def _count(self, collection: str, filters: Tuple[Filter, ...]) -> Optional[int]:
        if not is_collection_allowed(collection):
            return None
        query = self.client.collection(collection)
        for field_path, op, value in filters:
            query = query.where(filter=FieldFilter(field_path, op, value))
        results = await query.count(alias="all").get()
        return int(results[0][0].value)

    async def _safe_count(self, name: str, collection: str, filters: Tuple[Filter, ...], unavailable: List[str]) -> int:
        try:
            value = await self._count(collection, filters)
        except Exception as e:
            logger.warning(f"⚠️ Dashboard count '{name}' on '{collection}' failed: {e}")
            value = None
        if value is None:
            unavailable.append(name)
        return value or 0

    async def get_dashboard_stats(self) -> StandardResponse:
        """
        Server-side counts per collection.

        A count that fails (or targets a collection the reader may not see) is reported as 0
        and listed under `unavailable`, so one broken collection does not blank the dashboard.
        """
        unavailable: List[str] = []
        stats: Dict[str, int] = {}
        for name, (collection, filters) in DASHBOARD_COUNTS.items():
            stats[name] = await self._safe_count(name, collection, filters, unavailable)

        # Older profiles carry no "rejected" field, so pending is unapproved minus rejected
        pending = 0
        for kind in ProviderKind:
            name = f"pending{kind.value.title()}Providers"
            unapproved = await self._safe_count(name, kind.collection_name, ((FireStoreKeys.approved, "==", False),), unavailable)
            rejected = await self._safe_count(name, kind.collection_name, (("rejected", "==", True),), unavailable)
            stats[name] = max(unapproved - rejected, 0)
            pending += stats[name]

        stats["totalProviders"] = stats["totalServiceProviders"] + stats["totalConstructionProviders"]
        stats["pendingProviders"] = pending
        return StandardResponse.success(data={**stats, "unavailable": sorted(set(unavailable))}, message="Dashboard stats retrieved")
