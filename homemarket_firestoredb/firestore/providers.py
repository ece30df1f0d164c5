from typing import Any, Dict, Optional

from google.cloud import firestore

from ..schemas.collection_names import ProviderKind
from ..schemas.keys import FireStoreKeys
from ..schemas.normalization import normalize_provider
from ..schemas.records import NotificationType, ProviderProfile
from ..utils.error_codes import ErrorCodes
from ..utils.logger import logger
from ..utils.standard_response import StandardResponse
from .client import FirestoreClient
from .notifications import FirestoreNotificationsDB
from .query_fallback import FallbackQueryRunner, QuerySpec


class FirestoreProvidersDB:
    """Service and construction provider profiles. A profile's document id is its owner's uid."""

    _instance = None

    def __init__(self, client=None, notifications: Optional[FirestoreNotificationsDB] = None):
        self.client = client or FirestoreClient.shared()
        self.notifications = notifications or FirestoreNotificationsDB(self.client)

    @classmethod
    def shared(cls):
        if not cls._instance:
            cls._instance = cls()
        return cls._instance

    def _collection(self, kind: ProviderKind):
        return self.client.collection(ProviderKind(kind).collection_name)

    def _handle_error(self, error: Exception, operation: str) -> StandardResponse:
        logger.error(f"❌ Error {operation}: {str(error)}")
        return StandardResponse.from_exception(error)

    async def register(self, kind: ProviderKind, owner_id: str, profile: Dict[str, Any]) -> StandardResponse:
        try:
            kind = ProviderKind(kind)
            if not owner_id:
                return StandardResponse.bad_request("Owner ID is required")
            candidate = normalize_provider(kind, owner_id, {**profile, FireStoreKeys.userId: owner_id})
            if not candidate.name.strip():
                return StandardResponse.bad_request("Provider name is required")

            doc_ref = self._collection(kind).document(owner_id)
            if (await doc_ref.get()).exists:
                return StandardResponse.failure(ErrorCodes.CONFLICT, "A provider profile already exists for this user")

            data = candidate.to_firestore()
            data.pop("kind", None)
            data.update(
                {
                    FireStoreKeys.approved: False,
                    "isActive": True,
                    FireStoreKeys.createdAt: firestore.SERVER_TIMESTAMP,
                    FireStoreKeys.updatedAt: firestore.SERVER_TIMESTAMP,
                }
            )
            await doc_ref.set(data)
            logger.info(f"✅ {kind.value} provider profile registered for user {owner_id}")
            await self.notifications.notify_admins(
                "New Provider Application",
                f"{candidate.name} applied to become a {kind.value} provider",
                link=f"/admin/providers/{owner_id}",
            )
            return StandardResponse.success(data={"id": owner_id}, message="Provider profile submitted for approval")
        except Exception as e:
            return self._handle_error(e, f"registering {kind} provider '{owner_id}'")

    async def get(self, kind: ProviderKind, provider_id: str) -> StandardResponse:
        try:
            if not provider_id:
                return StandardResponse.bad_request("Provider ID is required")
            doc = await self._collection(kind).document(provider_id).get()
            if not doc.exists:
                return StandardResponse.not_found(f"Provider '{provider_id}' not found")
            return StandardResponse.success(data=normalize_provider(ProviderKind(kind), doc.id, doc.to_dict() or {}))
        except Exception as e:
            return self._handle_error(e, f"fetching provider '{provider_id}'")

    async def is_approved(self, kind: ProviderKind, provider_id: str) -> bool:
        response = await self.get(kind, provider_id)
        return bool(response.status and response.data.approved and response.data.is_active)

    async def approve(self, kind: ProviderKind, provider_id: str, approved: bool = True, reason: str = "") -> StandardResponse:
        """Admin decision on an application. A rejection is recorded, so the profile leaves the pending queue."""
        try:
            response = await self.get(kind, provider_id)
            if not response.status:
                return response
            profile: ProviderProfile = response.data

            changes = {
                FireStoreKeys.approved: approved,
                "isApproved": approved,
                "rejected": not approved,
                FireStoreKeys.updatedAt: firestore.SERVER_TIMESTAMP,
            }
            if not approved:
                changes["rejectionReason"] = reason.strip()
            await self._collection(kind).document(provider_id).update(changes)
            logger.info(f"✅ Provider {provider_id} {'approved' if approved else 'rejected'}")

            message = "Your provider profile is now live." if approved else "Your provider application was not approved."
            if not approved and reason.strip():
                message = f"{message} Reason: {reason.strip()}"
            await self.notifications.create(
                profile.user_id,
                "Provider Application Approved" if approved else "Provider Application Update",
                message,
                NotificationType.SUCCESS.value if approved else NotificationType.WARNING.value,
                "/dashboard",
            )
            return StandardResponse.success(data={"id": provider_id, "approved": approved}, message="Provider updated")
        except Exception as e:
            return self._handle_error(e, f"approving provider '{provider_id}'")

    async def reject(self, kind: ProviderKind, provider_id: str, reason: str = "") -> StandardResponse:
        return await self.approve(kind, provider_id, approved=False, reason=reason)

    async def list_pending(self, kind: ProviderKind) -> StandardResponse:
        """Applications still waiting for an admin decision, oldest first."""
        kind = ProviderKind(kind)
        result = await FallbackQueryRunner(self.client).run(
            QuerySpec(
                collection=kind.collection_name,
                filters=((FireStoreKeys.approved, "==", False),),
                order_by=FireStoreKeys.createdAt,
                direction=FireStoreKeys.ASCENDING,
            ),
            lambda record: normalize_provider(kind, record["id"], record),
        )
        pending = [provider for provider in result.records if provider.is_pending]
        return StandardResponse.success(data=pending, message="Pending providers retrieved successfully")

    def approved_spec(self, kind: ProviderKind, limit: Optional[int] = None) -> QuerySpec:
        return QuerySpec(
            collection=ProviderKind(kind).collection_name,
            filters=((FireStoreKeys.approved, "==", True),),
            order_by=FireStoreKeys.createdAt,
            direction=FireStoreKeys.DESCENDING,
            limit=limit,
        )

    async def list_approved(self, kind: ProviderKind, limit: Optional[int] = None) -> StandardResponse:
        kind = ProviderKind(kind)
        result = await FallbackQueryRunner(self.client).run(
            self.approved_spec(kind, limit), lambda record: normalize_provider(kind, record["id"], record)
        )
        providers = [provider for provider in result.records if provider.is_active]
        return StandardResponse.success(data=providers, message="Providers retrieved successfully")

    async def delete(self, kind: ProviderKind, provider_id: str, owner_id: str) -> StandardResponse:
        try:
            response = await self.get(kind, provider_id)
            if not response.status:
                return response
            if response.data.user_id != owner_id:
                return StandardResponse.forbidden("Only the owner can delete this provider profile")
            await self._collection(kind).document(provider_id).delete()
            logger.info(f"✅ Provider profile {provider_id} deleted by owner")
            return StandardResponse.success(message="Provider profile deleted")
        except Exception as e:
            return self._handle_error(e, f"deleting provider '{provider_id}'")
