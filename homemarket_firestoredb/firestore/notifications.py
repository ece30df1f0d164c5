import uuid
from typing import Any, Dict, List, Optional

from google.cloud import firestore
from google.cloud.firestore_v1.base_query import FieldFilter

from ..schemas.collection_names import DatabaseCollectionNames, RequestKind
from ..schemas.keys import FireStoreKeys
from ..schemas.normalization import normalize_notification
from ..schemas.records import NotificationRecord, NotificationType
from ..schemas.status import ProjectStatus
from ..utils.logger import logger
from ..utils.standard_response import StandardResponse
from .client import FirestoreClient
from .query_fallback import FallbackQueryRunner, QuerySpec

NOTIFICATIONS_COLLECTION_NAME = DatabaseCollectionNames.NOTIFICATIONS_COLLECTION_NAME.value
USERS_COLLECTION_NAME = DatabaseCollectionNames.USERS_COLLECTION_NAME.value

# Firestore caps a write batch at 500 operations
BATCH_LIMIT = 500
CHAT_PREVIEW_LENGTH = 50

REQUEST_TYPE_LABELS = {
    RequestKind.RENTAL: "Rental booking",
    RequestKind.CONSTRUCTION: "Construction request",
    RequestKind.RENOVATION: "Renovation request",
    RequestKind.BUY_SELL: "Buy/Sell request",
}

STATUS_PHRASES = {
    ProjectStatus.PENDING: "is pending review",
    ProjectStatus.IN_PROGRESS: "is now in progress",
    ProjectStatus.COMPLETED: "has been completed",
    ProjectStatus.CANCELLED: "has been cancelled",
}


def request_link(kind: RequestKind, request_id: str) -> str:
    links = {
        RequestKind.RENTAL: f"/rental/booking/{request_id}",
        RequestKind.CONSTRUCTION: f"/construction/my-requests/{request_id}",
        RequestKind.RENOVATION: f"/renovation/my-renovations/{request_id}",
        RequestKind.BUY_SELL: f"/buy-sell/listing/{request_id}",
    }
    return links.get(kind, "/dashboard")


def chat_preview(sender_name: str, preview: Optional[str]) -> str:
    if not preview:
        return f"{sender_name} sent you a message"
    suffix = "..." if len(preview) > CHAT_PREVIEW_LENGTH else ""
    return f"{sender_name}: {preview[:CHAT_PREVIEW_LENGTH]}{suffix}"


class FirestoreNotificationsDB:
    _instance = None

    def __init__(self, client=None):
        self.client = client or FirestoreClient.shared()
        self.notifications_collection = self.client.collection(NOTIFICATIONS_COLLECTION_NAME)
        self.users_collection = self.client.collection(USERS_COLLECTION_NAME)

    @classmethod
    def shared(cls):
        if not cls._instance:
            cls._instance = cls()
        return cls._instance

    def _handle_error(self, error: Exception, operation: str) -> StandardResponse:
        logger.error(f"❌ Error {operation}: {str(error)}")
        return StandardResponse.from_exception(error)

    @staticmethod
    def _notification_data(user_id: str, title: str, message: str, type: str, link: Optional[str], is_broadcast: bool = False) -> Dict[str, Any]:
        valid_types = {item.value for item in NotificationType}
        return {
            FireStoreKeys.userId: user_id,
            "title": title,
            "message": message,
            "type": type if type in valid_types else NotificationType.INFO.value,
            "link": link,
            FireStoreKeys.read: False,
            "isBroadcast": is_broadcast,
            FireStoreKeys.createdAt: firestore.SERVER_TIMESTAMP,
        }

    async def _commit_in_batches(self, refs: List[Any], apply) -> int:
        count = 0
        for start in range(0, len(refs), BATCH_LIMIT):
            batch = self.client.batch()
            for ref in refs[start : start + BATCH_LIMIT]:
                apply(batch, ref)
                count += 1
            await batch.commit()
        return count

    def live_spec(self, user_id: str, limit: Optional[int] = None) -> QuerySpec:
        """Newest-first notifications for one user, for a live subscription."""
        return QuerySpec(
            collection=NOTIFICATIONS_COLLECTION_NAME,
            filters=((FireStoreKeys.userId, "==", user_id),),
            order_by=FireStoreKeys.createdAt,
            direction=FireStoreKeys.DESCENDING,
            limit=limit,
        )

    @staticmethod
    def normalize(record: Dict[str, Any]) -> NotificationRecord:
        return normalize_notification(record["id"], record)

    async def create(self, user_id: str, title: str, message: str, type: str = "info", link: Optional[str] = None) -> StandardResponse:
        try:
            if not user_id:
                return StandardResponse.bad_request("User ID is required")
            if not title or not message:
                return StandardResponse.bad_request("Title and message are required")

            doc_ref = self.notifications_collection.document(str(uuid.uuid4()))
            await doc_ref.set(self._notification_data(user_id, title, message, type, link))
            logger.info(f"✅ Notification {doc_ref.id} created for user {user_id}")
            return StandardResponse.success(data={"id": doc_ref.id}, message="Notification created successfully")
        except Exception as e:
            return self._handle_error(e, f"creating notification for user '{user_id}'")

    async def list_for_user(self, user_id: str, limit: Optional[int] = None) -> StandardResponse:
        if not user_id:
            return StandardResponse.bad_request("User ID is required")
        result = await FallbackQueryRunner(self.client).run(self.live_spec(user_id, limit), self.normalize)
        if not result.ok:
            # Listing failures degrade to an empty list, never an error
            return StandardResponse.success(data=[], message="Notifications unavailable")
        return StandardResponse.success(data=result.records, message="Notifications retrieved successfully")

    async def mark_as_read(self, notification_id: str) -> StandardResponse:
        try:
            if not notification_id:
                return StandardResponse.bad_request("Notification ID is required")
            await self.notifications_collection.document(notification_id).update(
                {FireStoreKeys.read: True, FireStoreKeys.readAt: firestore.SERVER_TIMESTAMP}
            )
            return StandardResponse.success(message="Notification marked as read")
        except Exception as e:
            return self._handle_error(e, f"marking notification '{notification_id}' as read")

    async def mark_all_as_read(self, user_id: str) -> StandardResponse:
        try:
            if not user_id:
                return StandardResponse.bad_request("User ID is required")
            docs = await (
                self.notifications_collection.where(filter=FieldFilter(FireStoreKeys.userId, "==", user_id))
                .where(filter=FieldFilter(FireStoreKeys.read, "==", False))
                .get()
            )
            count = await self._commit_in_batches(
                [doc.reference for doc in docs],
                lambda batch, ref: batch.update(ref, {FireStoreKeys.read: True, FireStoreKeys.readAt: firestore.SERVER_TIMESTAMP}),
            )
            logger.info(f"✅ Marked {count} notifications as read for user {user_id}")
            return StandardResponse.success(data={"updated": count}, message="All notifications marked as read")
        except Exception as e:
            return self._handle_error(e, f"marking all notifications as read for user '{user_id}'")

    async def delete(self, notification_id: str) -> StandardResponse:
        try:
            if not notification_id:
                return StandardResponse.bad_request("Notification ID is required")
            await self.notifications_collection.document(notification_id).delete()
            return StandardResponse.success(message="Notification deleted successfully")
        except Exception as e:
            return self._handle_error(e, f"deleting notification '{notification_id}'")

    async def clear_all(self, user_id: str) -> StandardResponse:
        try:
            if not user_id:
                return StandardResponse.bad_request("User ID is required")
            docs = await self.notifications_collection.where(filter=FieldFilter(FireStoreKeys.userId, "==", user_id)).get()
            count = await self._commit_in_batches([doc.reference for doc in docs], lambda batch, ref: batch.delete(ref))
            logger.info(f"✅ Cleared {count} notifications for user {user_id}")
            return StandardResponse.success(data={"deleted": count}, message="Notifications cleared")
        except Exception as e:
            return self._handle_error(e, f"clearing notifications for user '{user_id}'")

    async def get_unread_count(self, user_id: str) -> int:
        if not user_id:
            return 0
        try:
            docs = await (
                self.notifications_collection.where(filter=FieldFilter(FireStoreKeys.userId, "==", user_id))
                .where(filter=FieldFilter(FireStoreKeys.read, "==", False))
                .get()
            )
            return len(docs)
        except Exception as e:
            logger.warning(f"⚠️ Could not count unread notifications for user {user_id}: {e}")
            return 0

    async def broadcast(self, title: str, message: str, type: str = "info", link: Optional[str] = None) -> StandardResponse:
        try:
            if not title or not message:
                return StandardResponse.bad_request("Title and message are required")
            users = await self.users_collection.get()
            user_ids = [doc.id for doc in users]
            if not user_ids:
                logger.warning("⚠️ No users found to broadcast to")
                return StandardResponse.success(data={"sent": 0}, message="No users to notify")

            count = await self._commit_in_batches(
                user_ids,
                lambda batch, uid: batch.set(
                    self.notifications_collection.document(str(uuid.uuid4())),
                    self._notification_data(uid, title, message, type, link, is_broadcast=True),
                ),
            )
            logger.info(f"✅ Broadcast notification sent to {count} users")
            return StandardResponse.success(data={"sent": count}, message="Broadcast sent")
        except Exception as e:
            return self._handle_error(e, "broadcasting notification")

    async def notify_admins(self, title: str, message: str, link: Optional[str] = None, type: str = "admin") -> int:
        """Notify every admin. Never raises; returns how many notifications were written."""
        try:
            admins = await self.users_collection.where(filter=FieldFilter(FireStoreKeys.role, "==", "admin")).get()
        except Exception as e:
            logger.warning(f"⚠️ Could not look up admins to notify: {e}")
            return 0

        sent = 0
        for admin in admins:
            response = await self.create(admin.id, title, message, type, link)
            sent += 1 if response.status else 0
        if not sent:
            logger.warning("⚠️ No admin users found to notify")
        return sent

    async def send_status_update(
        self, user_id: str, kind: RequestKind, status: ProjectStatus, request_id: str, title: Optional[str] = None
    ) -> StandardResponse:
        label = REQUEST_TYPE_LABELS.get(kind, "Booking")
        phrase = STATUS_PHRASES.get(ProjectStatus.parse(status), "has been updated")
        message = f"Your {label} {phrase}" + (f": {title}" if title else "")
        return await self.create(user_id, f"{label} Update", message, NotificationType.STATUS_UPDATE.value, request_link(kind, request_id))

    async def send_chat_message(self, user_id: str, sender_name: str, chat_id: str, preview: Optional[str] = None) -> StandardResponse:
        return await self.create(user_id, "New Message", chat_preview(sender_name, preview), NotificationType.INFO.value, f"/chat?chatId={chat_id}")

    async def send_provider_decision(
        self, user_id: str, kind: RequestKind, provider_name: str, request_id: str, approved: bool
    ) -> StandardResponse:
        label = REQUEST_TYPE_LABELS.get(kind, "Request")
        title = f"{label} {'Approved' if approved else 'Declined'}"
        message = f"{provider_name} has {'accepted' if approved else 'declined'} your {label}"
        type = NotificationType.SUCCESS.value if approved else NotificationType.WARNING.value
        return await self.create(user_id, title, message, type, request_link(kind, request_id))

    async def send_service_request(self, provider_user_id: str, kind: RequestKind, request_id: str, requester_name: str) -> StandardResponse:
        label = REQUEST_TYPE_LABELS.get(kind, "Request")
        return await self.create(
            provider_user_id,
            f"New {label}",
            f"{requester_name} submitted a new {label.lower()}",
            NotificationType.SERVICE_REQUEST.value,
            request_link(kind, request_id),
        )

