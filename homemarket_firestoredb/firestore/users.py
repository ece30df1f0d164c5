from typing import Dict, List, Optional

from google.cloud import firestore
from google.cloud.firestore_v1.base_query import FieldFilter

from ..schemas.collection_names import DatabaseCollectionNames
from ..schemas.keys import FireStoreKeys
from ..schemas.normalization import normalize_user
from ..schemas.records import UserRecord, UserRole
from ..schemas.session import SessionContext
from ..utils.logger import logger
from ..utils.standard_response import StandardResponse
from .client import FirestoreClient
from .query_fallback import FallbackQueryRunner, QuerySpec

USERS_COLLECTION_NAME = DatabaseCollectionNames.USERS_COLLECTION_NAME.value


class FirestoreUsersDB:
    _shared = None

    def __init__(self, client=None):
        self.client = client or FirestoreClient.shared()
        self.users_collection = self.client.collection(USERS_COLLECTION_NAME)

    @classmethod
    def shared(cls):
        if cls._shared is None:
            cls._shared = cls()
        return cls._shared

    async def _handle_firestore_error(self, operation: str, error: Exception) -> StandardResponse:
        logger.error(f"❌ Firestore Error ({operation}): {str(error)}")
        return StandardResponse.from_exception(error)

    async def get_user(self, user_id: str) -> StandardResponse:
        try:
            if not user_id:
                return StandardResponse.bad_request("User ID is required")
            doc = await self.users_collection.document(user_id).get()
            if not doc.exists:
                return StandardResponse.not_found(f"User '{user_id}' not found")
            return StandardResponse.success(data=normalize_user(doc.id, doc.to_dict() or {}))
        except Exception as e:
            return await self._handle_firestore_error("get_user", e)

    async def get_display_name(self, user_id: str, default: str = "User") -> str:
        response = await self.get_user(user_id)
        if response.status and response.data.display_name:
            return response.data.display_name
        return default

    async def toggle_favorite(self, user_id: str, property_id: str) -> StandardResponse:
        """Add the property to the user's favorites, or remove it if already there."""
        try:
            if not user_id or not property_id:
                return StandardResponse.bad_request("User ID and property ID are required")
            response = await self.get_user(user_id)
            if not response.status:
                return response
            user: UserRecord = response.data

            favorited = property_id not in user.favorites
            change = firestore.ArrayUnion([property_id]) if favorited else firestore.ArrayRemove([property_id])
            await self.users_collection.document(user_id).update(
                {"favorites": change, FireStoreKeys.updatedAt: firestore.SERVER_TIMESTAMP}
            )
            return StandardResponse.success(
                data={"propertyId": property_id, "favorited": favorited},
                message="Added to favorites" if favorited else "Removed from favorites",
            )
        except Exception as e:
            return await self._handle_firestore_error("toggle_favorite", e)

    async def update_notification_preferences(self, user_id: str, preferences: Dict[str, bool]) -> StandardResponse:
        try:
            if not user_id:
                return StandardResponse.bad_request("User ID is required")
            cleaned = {str(key): bool(value) for key, value in (preferences or {}).items()}
            await self.users_collection.document(user_id).set(
                {"notificationPreferences": cleaned, FireStoreKeys.updatedAt: firestore.SERVER_TIMESTAMP}, merge=True
            )
            return StandardResponse.success(data=cleaned, message="Notification preferences updated")
        except Exception as e:
            return await self._handle_firestore_error("update_notification_preferences", e)

    async def list_users(self, role: Optional[UserRole] = None, limit: Optional[int] = None) -> StandardResponse:
        # No ordering: the store drops documents missing the order field, and older accounts have no createdAt
        filters = ((FireStoreKeys.role, "==", UserRole(role).value),) if role else ()
        result = await FallbackQueryRunner(self.client).run(
            QuerySpec(USERS_COLLECTION_NAME, filters, limit=limit),
            lambda record: normalize_user(record["id"], record),
        )
        return StandardResponse.success(data=result.records, message="Users retrieved successfully")

    async def update_role(self, user_id: str, new_role) -> StandardResponse:
        try:
            if not user_id:
                return StandardResponse.bad_request("User ID is required")
            try:
                role = new_role if isinstance(new_role, UserRole) else UserRole(str(new_role).strip().lower())
            except ValueError:
                return StandardResponse.bad_request(f"Unknown role '{new_role}'")

            doc_ref = self.users_collection.document(user_id)
            if not (await doc_ref.get()).exists:
                return StandardResponse.not_found(f"User '{user_id}' not found")
            await doc_ref.update({FireStoreKeys.role: role.value, FireStoreKeys.updatedAt: firestore.SERVER_TIMESTAMP})
            logger.info(f"✅ User {user_id} is now {role.value}")
            return StandardResponse.success(data={"id": user_id, "role": role.value}, message="User role updated")
        except Exception as e:
            return await self._handle_firestore_error("update_role", e)

    async def list_admin_ids(self) -> List[str]:
        try:
            docs = await self.users_collection.where(filter=FieldFilter(FireStoreKeys.role, "==", UserRole.ADMIN.value)).get()
            return [doc.id for doc in docs]
        except Exception as e:
            logger.warning(f"⚠️ Could not list admins: {e}")
            return []

    async def build_session_context(self, user_id: str, email_verified: bool = False, admin_claim: bool = False) -> SessionContext:
        """
        Build the read-only context for the signed-in user.

        A missing or unreadable profile still yields a context (plain user role, no profile).
        An admin custom claim wins over whatever role the profile document stores.
        """
        profile: Optional[UserRecord] = None
        response = await self.get_user(user_id)
        if response.status:
            profile = response.data
        else:
            logger.warning(f"⚠️ No readable profile for user {user_id}: {response.message}")

        role = UserRole.ADMIN if admin_claim else (profile.role if profile else UserRole.USER)
        return SessionContext(id=user_id, role=role, email_verified=email_verified, profile=profile)
