"""
Property listings.

Browsing pushes the equality filters (status, listing type, city, amenity flags) to the store
and runs through the index-fallback cascade. Range filters (price, bedrooms, bathrooms, area)
are always applied in memory, since the store serves only one inequality field per query.
"""

import uuid
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from google.cloud import firestore

from ..schemas.collection_names import DatabaseCollectionNames
from ..schemas.keys import FireStoreKeys
from ..schemas.normalization import normalize_property
from ..schemas.records import PropertyRecord
from ..schemas.requests import PROPERTY_STATUSES, PROPERTY_SUSPENDED, RequestValidationError, parse_property_form
from ..utils.logger import logger
from ..utils.standard_response import StandardResponse
from .client import FirestoreClient
from .query_fallback import FallbackQueryRunner, Filter, QuerySpec

PROPERTIES_COLLECTION_NAME = DatabaseCollectionNames.PROPERTIES_COLLECTION_NAME.value

# Fields an owner may not rewrite through update()
_PROTECTED_FIELDS = {"id", FireStoreKeys.ownerId, FireStoreKeys.createdAt, "views", "favoritesCount"}
_NUMERIC_FIELDS = {"price": float, "bedrooms": int, "bathrooms": int, "areaSqFt": float}
_FLAG_FIELDS = ("furnished", "parking", "featured")


def _property_from_record(record: Dict[str, Any]) -> PropertyRecord:
    return normalize_property(record["id"], record)


@dataclass(frozen=True)
class PropertyFilters:
    status: Optional[str] = None
    listing_type: Optional[str] = None
    city: Optional[str] = None
    owner_id: Optional[str] = None
    furnished: Optional[bool] = None
    parking: Optional[bool] = None
    featured: Optional[bool] = None
    min_price: Optional[float] = None
    max_price: Optional[float] = None
    min_bedrooms: Optional[int] = None
    min_bathrooms: Optional[int] = None
    min_area: Optional[float] = None

    def server_filters(self) -> Tuple[Filter, ...]:
        filters: List[Filter] = []
        if self.status:
            filters.append((FireStoreKeys.status, "==", self.status))
        if self.listing_type:
            filters.append(("listingType", "==", self.listing_type.strip().lower()))
        if self.city and self.city.strip():
            filters.append(("address.city", "==", self.city.strip()))
        if self.owner_id:
            filters.append((FireStoreKeys.ownerId, "==", self.owner_id))
        for flag in _FLAG_FIELDS:
            value = getattr(self, flag)
            if value is not None:
                filters.append((flag, "==", bool(value)))
        return tuple(filters)

    def matches(self, listing: PropertyRecord) -> bool:
        price = listing.price or 0
        if self.min_price is not None and price < self.min_price:
            return False
        if self.max_price is not None and price > self.max_price:
            return False
        if self.min_bedrooms is not None and listing.bedrooms < self.min_bedrooms:
            return False
        if self.min_bathrooms is not None and listing.bathrooms < self.min_bathrooms:
            return False
        if self.min_area is not None and listing.area_sq_ft < self.min_area:
            return False
        return True


class FirestorePropertiesDB:
    _instance = None

    def __init__(self, client=None, storage=None):
        self.client = client or FirestoreClient.shared()
        self.properties_collection = self.client.collection(PROPERTIES_COLLECTION_NAME)
        self.runner = FallbackQueryRunner(self.client)
        self.storage = storage

    @classmethod
    def shared(cls):
        if not cls._instance:
            cls._instance = cls()
        return cls._instance

    def _handle_error(self, error: Exception, operation: str) -> StandardResponse:
        logger.error(f"❌ Error {operation}: {str(error)}")
        return StandardResponse.from_exception(error)

    # ------------------------------------------------------------------ #
    #  ─── Browsing ─────────────── #
    # ------------------------------------------------------------------ #
    def listing_spec(
        self,
        filters: Optional[PropertyFilters] = None,
        sort_by: str = FireStoreKeys.createdAt,
        direction: str = FireStoreKeys.DESCENDING,
        limit: Optional[int] = None,
    ) -> QuerySpec:
        filters = filters or PropertyFilters()
        return QuerySpec(
            collection=PROPERTIES_COLLECTION_NAME,
            filters=filters.server_filters(),
            order_by=sort_by,
            direction=direction,
            limit=limit,
        )

    async def list_properties(
        self,
        filters: Optional[PropertyFilters] = None,
        sort_by: str = FireStoreKeys.createdAt,
        direction: str = FireStoreKeys.DESCENDING,
        limit: Optional[int] = None,
    ) -> StandardResponse:
        filters = filters or PropertyFilters()
        result = await self.runner.run(self.listing_spec(filters, sort_by, direction, limit), _property_from_record)
        listings = [listing for listing in result.records if filters.matches(listing)]
        if result.approximate:
            logger.info(f"🔄 Property listing served from {result.stage.value}, page may be incomplete")
        return StandardResponse.success(data=listings, message="Properties retrieved successfully")

    async def list_by_owner(self, owner_id: str) -> StandardResponse:
        if not owner_id:
            return StandardResponse.bad_request("Owner ID is required")
        return await self.list_properties(PropertyFilters(owner_id=owner_id))

    async def search(self, term: str, filters: Optional[PropertyFilters] = None) -> StandardResponse:
        """Case-insensitive substring match over title, description, address and type."""
        response = await self.list_properties(filters)
        needle = (term or "").strip().lower()
        if not needle:
            return response
        matches = [listing for listing in response.data if needle in listing.searchable_text()]
        return StandardResponse.success(data=matches, message=f"{len(matches)} properties match '{term.strip()}'")

    # ------------------------------------------------------------------ #
    #  ─── Single listing ─────────────── #
    # ------------------------------------------------------------------ #
    async def get(self, property_id: str, count_view: bool = False) -> StandardResponse:
        try:
            if not property_id:
                return StandardResponse.bad_request("Property ID is required")
            doc_ref = self.properties_collection.document(property_id)
            doc = await doc_ref.get()
            if not doc.exists:
                return StandardResponse.not_found(f"Property '{property_id}' not found")
            listing = normalize_property(doc.id, doc.to_dict() or {})
        except Exception as e:
            return self._handle_error(e, f"fetching property '{property_id}'")

        if count_view:
            try:
                await doc_ref.update({"views": firestore.Increment(1)})
            except Exception as e:
                logger.warning(f"⚠️ Could not count view on property {property_id}: {e}")
        return StandardResponse.success(data=listing)

    async def create(self, owner_id: str, payload: Dict[str, Any]) -> StandardResponse:
        if payload.get(FireStoreKeys.ownerId) not in (None, "", owner_id):
            return StandardResponse.forbidden("Owner ID must match the signed-in user")
        try:
            form = parse_property_form({**payload, FireStoreKeys.ownerId: owner_id})
        except RequestValidationError as e:
            logger.info(f"⚠️ Property rejected before submission: {e.field_errors}")
            return StandardResponse.validation_error(e.field_errors)

        try:
            data = form.to_firestore()
            photos = [str(url) for url in payload.get("photos") or []]
            data.update(
                {
                    "photos": photos,
                    "coverImage": photos[0] if photos else None,
                    "views": 0,
                    "favoritesCount": 0,
                    FireStoreKeys.createdAt: firestore.SERVER_TIMESTAMP,
                    FireStoreKeys.updatedAt: firestore.SERVER_TIMESTAMP,
                }
            )
            doc_ref = self.properties_collection.document(str(uuid.uuid4()))
            await doc_ref.set(data)
            logger.info(f"✅ Property {doc_ref.id} created by {owner_id} ({form.status})")
            return StandardResponse.success(data={"id": doc_ref.id}, message="Property created successfully")
        except Exception as e:
            return self._handle_error(e, "creating property")

    async def _owned(self, property_id: str, owner_id: str) -> StandardResponse:
        response = await self.get(property_id)
        if not response.status:
            return response
        listing: PropertyRecord = response.data
        if listing.owner_id and listing.owner_id != owner_id:
            return StandardResponse.forbidden("You can only change your own properties")
        return response

    async def update(self, property_id: str, owner_id: str, updates: Dict[str, Any]) -> StandardResponse:
        try:
            response = await self._owned(property_id, owner_id)
            if not response.status:
                return response
            listing: PropertyRecord = response.data

            data = {key: value for key, value in (updates or {}).items() if key not in _PROTECTED_FIELDS}
            for key, cast in _NUMERIC_FIELDS.items():
                if key in data:
                    try:
                        data[key] = cast(data[key])
                    except (TypeError, ValueError):
                        return StandardResponse.validation_error({key: f"{key} must be a number"})
            for key in _FLAG_FIELDS:
                if key in data:
                    data[key] = bool(data[key])
            if isinstance(data.get("address"), dict):
                data["address"] = {**listing.address, **data["address"]}
            if "status" in data and data["status"] not in PROPERTY_STATUSES:
                return StandardResponse.validation_error({"status": f"Status must be one of: {', '.join(PROPERTY_STATUSES)}"})
            if not data:
                return StandardResponse.bad_request("Nothing to update")

            data[FireStoreKeys.updatedAt] = firestore.SERVER_TIMESTAMP
            await self.properties_collection.document(property_id).update(data)
            logger.info(f"✅ Property {property_id} updated ({', '.join(sorted(data))})")
            return StandardResponse.success(data={"id": property_id}, message="Property updated successfully")
        except Exception as e:
            return self._handle_error(e, f"updating property '{property_id}'")

    async def update_status(self, property_id: str, owner_id: str, status: str) -> StandardResponse:
        status = (status or "").strip().lower()
        if status not in PROPERTY_STATUSES:
            return StandardResponse.bad_request(f"Invalid status. Must be one of: {', '.join(PROPERTY_STATUSES)}")
        return await self.update(property_id, owner_id, {FireStoreKeys.status: status})

    async def suspend(self, property_id: str) -> StandardResponse:
        """Admin action: hide a listing regardless of who owns it."""
        try:
            if not property_id:
                return StandardResponse.bad_request("Property ID is required")
            doc_ref = self.properties_collection.document(property_id)
            if not (await doc_ref.get()).exists:
                return StandardResponse.not_found(f"Property '{property_id}' not found")
            await doc_ref.update({FireStoreKeys.status: PROPERTY_SUSPENDED, FireStoreKeys.updatedAt: firestore.SERVER_TIMESTAMP})
            logger.info(f"✅ Property {property_id} suspended")
            return StandardResponse.success(data={"id": property_id, "status": PROPERTY_SUSPENDED}, message="Property suspended")
        except Exception as e:
            return self._handle_error(e, f"suspending property '{property_id}'")

    async def adjust_favorites_count(self, property_id: str, favorited: bool) -> StandardResponse:
        try:
            await self.properties_collection.document(property_id).update(
                {"favoritesCount": firestore.Increment(1 if favorited else -1), FireStoreKeys.updatedAt: firestore.SERVER_TIMESTAMP}
            )
            return StandardResponse.success(data={"id": property_id})
        except Exception as e:
            return self._handle_error(e, f"counting favorite on property '{property_id}'")

    async def delete(self, property_id: str, owner_id: str) -> StandardResponse:
        try:
            response = await self._owned(property_id, owner_id)
            if not response.status:
                return response
            listing: PropertyRecord = response.data

            await self.properties_collection.document(property_id).delete()
            logger.info(f"✅ Property {property_id} deleted by owner")
        except Exception as e:
            return self._handle_error(e, f"deleting property '{property_id}'")

        if self.storage is not None:
            for url in listing.photos:
                self.storage.delete(url)
        return StandardResponse.success(message="Property deleted")
