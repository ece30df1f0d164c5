import uuid
from typing import Any, Dict, List, Optional

from google.cloud import firestore
from google.cloud.firestore_v1.base_query import FieldFilter

from ..schemas.collection_names import DatabaseCollectionNames
from ..schemas.keys import FireStoreKeys
from ..schemas.normalization import display_name_of, normalize_chat, normalize_message, normalize_role
from ..schemas.records import ChatRecord, UserRole
from ..utils.logger import logger
from ..utils.standard_response import StandardResponse
from .client import FirestoreClient
from .notifications import FirestoreNotificationsDB
from .query_fallback import FallbackQueryRunner, QuerySpec

CHATS_COLLECTION_NAME = DatabaseCollectionNames.CHATS_COLLECTION_NAME.value
MESSAGES_SUBCOLLECTION_NAME = DatabaseCollectionNames.MESSAGES_SUBCOLLECTION_NAME.value
USERS_COLLECTION_NAME = DatabaseCollectionNames.USERS_COLLECTION_NAME.value

# Constructors are shown to the other party as contractors
CHAT_ROLE_LABELS = {UserRole.CONSTRUCTOR: "contractor"}


def get_other_participant(chat: ChatRecord, user_id: str) -> Optional[str]:
    return chat.other_participant(user_id)


class FirestoreChatsDB:
    _instance = None

    def __init__(self, client=None, notifications: Optional[FirestoreNotificationsDB] = None):
        self.client = client or FirestoreClient.shared()
        self.chats_collection = self.client.collection(CHATS_COLLECTION_NAME)
        self.users_collection = self.client.collection(USERS_COLLECTION_NAME)
        self.notifications = notifications or FirestoreNotificationsDB(self.client)

    @classmethod
    def shared(cls):
        if not cls._instance:
            cls._instance = cls()
        return cls._instance

    def _handle_error(self, error: Exception, operation: str) -> StandardResponse:
        logger.error(f"❌ Error {operation}: {str(error)}")
        return StandardResponse.from_exception(error)

    async def _participant_details(self, user_id: str) -> Dict[str, str]:
        try:
            doc = await self.users_collection.document(user_id).get()
            data = (doc.to_dict() or {}) if doc.exists else {}
        except Exception as e:
            logger.warning(f"⚠️ Could not load chat participant {user_id}: {e}")
            data = {}
        role = normalize_role(data.get(FireStoreKeys.role))
        return {"name": display_name_of(data), "role": CHAT_ROLE_LABELS.get(role, role.value)}

    async def find_or_create_conversation(self, current_uid: str, other_uid: str) -> StandardResponse:
        """Return the two-person chat between the users, creating it on first contact."""
        try:
            if not current_uid or not other_uid:
                return StandardResponse.bad_request("Both participants are required")
            if current_uid == other_uid:
                return StandardResponse.bad_request("You cannot start a chat with yourself")

            existing = await self.chats_collection.where(
                filter=FieldFilter(FireStoreKeys.participants, "array_contains", current_uid)
            ).get()
            for doc in existing:
                participants = (doc.to_dict() or {}).get(FireStoreKeys.participants) or []
                if len(participants) == 2 and set(participants) == {current_uid, other_uid}:
                    return StandardResponse.success(data={"id": doc.id, "created": False}, message="Chat found")

            participants = sorted([current_uid, other_uid])
            details = {uid: await self._participant_details(uid) for uid in participants}
            doc_ref = self.chats_collection.document(str(uuid.uuid4()))
            await doc_ref.set(
                {
                    FireStoreKeys.participants: participants,
                    "participantDetails": details,
                    "lastMessage": "",
                    "unreadFor": {uid: False for uid in participants},
                    FireStoreKeys.createdAt: firestore.SERVER_TIMESTAMP,
                    FireStoreKeys.updatedAt: firestore.SERVER_TIMESTAMP,
                }
            )
            logger.info(f"✅ Chat {doc_ref.id} created between {participants[0]} and {participants[1]}")
            return StandardResponse.success(data={"id": doc_ref.id, "created": True}, message="Chat created")
        except Exception as e:
            return self._handle_error(e, f"opening chat between '{current_uid}' and '{other_uid}'")

    async def get_chat(self, chat_id: str) -> StandardResponse:
        try:
            doc = await self.chats_collection.document(chat_id).get()
            if not doc.exists:
                return StandardResponse.not_found(f"Chat '{chat_id}' not found")
            return StandardResponse.success(data=normalize_chat(doc.id, doc.to_dict() or {}))
        except Exception as e:
            return self._handle_error(e, f"fetching chat '{chat_id}'")

    async def send_message(self, chat_id: str, sender_id: str, text: str) -> StandardResponse:
        text = (text or "").strip()
        if not text:
            return StandardResponse.bad_request("Message text is required")
        try:
            response = await self.get_chat(chat_id)
            if not response.status:
                return response
            chat: ChatRecord = response.data
            if sender_id not in chat.participants:
                return StandardResponse.forbidden("Only chat participants can send messages")
            recipient = chat.other_participant(sender_id)

            chat_ref = self.chats_collection.document(chat_id)
            message_ref = chat_ref.collection(MESSAGES_SUBCOLLECTION_NAME).document(str(uuid.uuid4()))
            await message_ref.set({"senderId": sender_id, "text": text, FireStoreKeys.createdAt: firestore.SERVER_TIMESTAMP})

            update: Dict[str, Any] = {"lastMessage": text, FireStoreKeys.updatedAt: firestore.SERVER_TIMESTAMP}
            if recipient:
                update[f"unreadFor.{recipient}"] = True
            await chat_ref.update(update)
        except Exception as e:
            return self._handle_error(e, f"sending message in chat '{chat_id}'")

        if recipient:
            sender = chat.participant_details.get(sender_id)
            await self.notifications.send_chat_message(recipient, sender.name if sender else "Someone", chat_id, text)
        return StandardResponse.success(data={"id": message_ref.id}, message="Message sent")

    async def mark_read(self, chat_id: str, user_id: str) -> StandardResponse:
        try:
            await self.chats_collection.document(chat_id).update({f"unreadFor.{user_id}": False})
            return StandardResponse.success(message="Chat marked as read")
        except Exception as e:
            return self._handle_error(e, f"marking chat '{chat_id}' read")

    def conversations_spec(self, user_id: str) -> QuerySpec:
        return QuerySpec(
            CHATS_COLLECTION_NAME,
            ((FireStoreKeys.participants, "array_contains", user_id),),
            order_by=FireStoreKeys.updatedAt,
        )

    def messages_spec(self, chat_id: str, limit: Optional[int] = None) -> QuerySpec:
        return QuerySpec(
            f"{CHATS_COLLECTION_NAME}/{chat_id}/{MESSAGES_SUBCOLLECTION_NAME}",
            order_by=FireStoreKeys.createdAt,
            direction=FireStoreKeys.ASCENDING,
            limit=limit,
        )

    async def list_conversations(self, user_id: str) -> List[ChatRecord]:
        result = await FallbackQueryRunner(self.client).run(
            self.conversations_spec(user_id), lambda record: normalize_chat(record["id"], record)
        )
        return result.records

    async def list_messages(self, chat_id: str, limit: Optional[int] = None) -> List[Any]:
        result = await FallbackQueryRunner(self.client).run(
            self.messages_spec(chat_id, limit), lambda record: normalize_message(record["id"], record)
        )
        return result.records
