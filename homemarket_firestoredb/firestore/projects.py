import uuid
from typing import Any, Dict, List, Optional

from google.api_core import exceptions as gcp_exceptions
from google.cloud import firestore

from ..schemas.collection_names import DatabaseCollectionNames, RequestKind
from ..schemas.keys import FireStoreKeys
from ..schemas.normalization import normalize_project, normalize_project_update
from ..schemas.records import ProjectRecord
from ..schemas.requests import RequestValidationError, parse_service_request
from ..schemas.status import ProjectStatus, allowed_next_statuses, is_transition_allowed
from ..utils.config import STATUS_WRITE_PRECONDITION
from ..utils.error_codes import ErrorCodes
from ..utils.logger import logger
from ..utils.record_query import sort_records
from ..utils.standard_response import StandardResponse
from .client import FirestoreClient
from .notifications import FirestoreNotificationsDB
from .providers import FirestoreProvidersDB
from .query_fallback import FallbackQueryRunner, Normalizer, QuerySpec

UPDATES_SUBCOLLECTION_NAME = DatabaseCollectionNames.UPDATES_SUBCOLLECTION_NAME.value

_NORMALIZERS: Dict[RequestKind, Normalizer] = {}

__all__ = ["FirestoreProjectsDB", "allowed_next_statuses"]


def _normalize_update(record: Dict[str, Any]):
    return normalize_project_update(record["id"], record)


class FirestoreProjectsDB:
    """
    Construction / renovation projects and rental / buy-sell requests.

    Status moves forward only (Pending -> In Progress -> Completed, Cancelled from either
    of the first two). A transition is one document update of the status plus a server
    timestamp; the prior status stays authoritative if that write fails.
    """

    _instance = None

    def __init__(
        self,
        client=None,
        notifications: Optional[FirestoreNotificationsDB] = None,
        providers: Optional[FirestoreProvidersDB] = None,
    ):
        self.client = client or FirestoreClient.shared()
        self.notifications = notifications or FirestoreNotificationsDB(self.client)
        self.providers = providers or FirestoreProvidersDB(self.client, self.notifications)
        self.runner = FallbackQueryRunner(self.client)

    @classmethod
    def shared(cls):
        if not cls._instance:
            cls._instance = cls()
        return cls._instance

    def _collection(self, kind: RequestKind):
        return self.client.collection(RequestKind(kind).collection_name)

    def _handle_error(self, error: Exception, operation: str) -> StandardResponse:
        logger.error(f"❌ Error {operation}: {str(error)}")
        return StandardResponse.from_exception(error)

    @staticmethod
    def normalizer(kind: RequestKind) -> Normalizer:
        """One normalizer per kind, so live subscriptions on the same query share a watch."""
        kind = RequestKind(kind)
        if kind not in _NORMALIZERS:
            _NORMALIZERS[kind] = lambda record: normalize_project(kind, record["id"], record)
        return _NORMALIZERS[kind]

    # ------------------------------------------------------------------ #
    #  ─── Creation ─────────────── #
    # ------------------------------------------------------------------ #
    async def create_request(self, kind: RequestKind, payload: Dict[str, Any]) -> StandardResponse:
        kind = RequestKind(kind)
        try:
            form = parse_service_request(payload, kind)
        except RequestValidationError as e:
            logger.info(f"⚠️ {kind.value} request rejected before submission: {e.field_errors}")
            return StandardResponse.validation_error(e.field_errors)

        try:
            provider_kind = kind.provider_kind
            if form.provider_id and not await self.providers.is_approved(provider_kind, form.provider_id):
                return StandardResponse.validation_error({"providerId": "Selected provider is not available"})

            data = form.to_firestore(kind)
            data.update(
                {
                    FireStoreKeys.status: ProjectStatus.PENDING.value,
                    FireStoreKeys.createdAt: firestore.SERVER_TIMESTAMP,
                    FireStoreKeys.updatedAt: firestore.SERVER_TIMESTAMP,
                }
            )
            doc_ref = self._collection(kind).document(str(uuid.uuid4()))
            await doc_ref.set(data)
            logger.info(f"✅ {kind.value} request {doc_ref.id} created by {form.user_id}")
        except Exception as e:
            return self._handle_error(e, f"creating {kind.value} request")

        await self._notify_new_request(kind, doc_ref.id, form.user_id, form.provider_id)
        return StandardResponse.success(data={"id": doc_ref.id}, message="Request submitted successfully")

    async def _notify_new_request(self, kind: RequestKind, request_id: str, requester_id: str, provider_id: Optional[str]) -> None:
        try:
            await self.notifications.send_status_update(requester_id, kind, ProjectStatus.PENDING, request_id)
            if provider_id:
                targets = [provider_id]
            else:
                approved = await self.providers.list_approved(kind.provider_kind)
                targets = [provider.user_id for provider in approved.data or []]
            for target in targets:
                await self.notifications.send_service_request(target, kind, request_id, "A customer")
        except Exception as e:
            logger.warning(f"⚠️ Request {request_id} saved but notifications failed: {e}")

    # ------------------------------------------------------------------ #
    #  ─── Reads ─────────────── #
    # ------------------------------------------------------------------ #
    async def get_request(self, kind: RequestKind, request_id: str) -> StandardResponse:
        try:
            if not request_id:
                return StandardResponse.bad_request("Request ID is required")
            doc = await self._collection(kind).document(request_id).get()
            if not doc.exists:
                return StandardResponse.not_found(f"Request '{request_id}' not found")
            return StandardResponse.success(data=normalize_project(RequestKind(kind), doc.id, doc.to_dict() or {}))
        except Exception as e:
            return self._handle_error(e, f"fetching request '{request_id}'")

    def requester_spec(self, kind: RequestKind, user_id: str, limit: Optional[int] = None) -> QuerySpec:
        return QuerySpec(
            collection=RequestKind(kind).collection_name,
            filters=((FireStoreKeys.userId, "==", user_id),),
            order_by=FireStoreKeys.createdAt,
            direction=FireStoreKeys.DESCENDING,
            limit=limit,
        )

    async def list_for_requester(self, kind: RequestKind, user_id: str) -> StandardResponse:
        if not user_id:
            return StandardResponse.bad_request("User ID is required")
        kind = RequestKind(kind)
        result = await self.runner.run(self.requester_spec(kind, user_id), self.normalizer(kind))
        return StandardResponse.success(data=result.records, message="Requests retrieved successfully")

    async def list_for_provider(self, kind: RequestKind, provider_id: str) -> StandardResponse:
        """Requests assigned to the provider plus unassigned Pending ones it may pick up, newest first."""
        if not provider_id:
            return StandardResponse.bad_request("Provider ID is required")
        kind = RequestKind(kind)
        collection = kind.collection_name
        assigned = await self.runner.run(
            QuerySpec(collection, ((FireStoreKeys.providerId, "==", provider_id),), FireStoreKeys.createdAt)
        )
        open_requests = await self.runner.run(
            QuerySpec(collection, ((FireStoreKeys.status, "==", ProjectStatus.PENDING.value),), FireStoreKeys.createdAt)
        )

        merged: Dict[str, Dict[str, Any]] = {record["id"]: record for record in assigned.records}
        for record in open_requests.records:
            if not record.get(FireStoreKeys.providerId):
                merged.setdefault(record["id"], record)
        records = sort_records(merged.values(), FireStoreKeys.createdAt, descending=True)
        return StandardResponse.success(
            data=[normalize_project(kind, record["id"], record) for record in records],
            message="Requests retrieved successfully",
        )

    async def list_all(self, kind: RequestKind) -> StandardResponse:
        kind = RequestKind(kind)
        result = await self.runner.run(
            QuerySpec(kind.collection_name, order_by=FireStoreKeys.createdAt), self.normalizer(kind)
        )
        return StandardResponse.success(data=result.records, message="Requests retrieved successfully")

    async def list_updates(self, kind: RequestKind, request_id: str) -> List[Any]:
        spec = QuerySpec(
            f"{RequestKind(kind).collection_name}/{request_id}/{UPDATES_SUBCOLLECTION_NAME}",
            order_by=FireStoreKeys.createdAt,
            direction=FireStoreKeys.ASCENDING,
        )
        result = await self.runner.run(spec, _normalize_update)
        return result.records

    async def delete_request(self, kind: RequestKind, request_id: str, user_id: Optional[str] = None) -> StandardResponse:
        try:
            response = await self.get_request(kind, request_id)
            if not response.status:
                return response
            if user_id is not None and response.data.user_id != user_id:
                return StandardResponse.forbidden("Only the requester can delete this request")
            await self._collection(kind).document(request_id).delete()
            logger.info(f"✅ Request {request_id} deleted")
            return StandardResponse.success(message="Request deleted successfully")
        except Exception as e:
            return self._handle_error(e, f"deleting request '{request_id}'")

    # ------------------------------------------------------------------ #
    #  ─── Workflow ─────────────── #
    # ------------------------------------------------------------------ #
    @staticmethod
    def allowed_next_statuses(status) -> List[ProjectStatus]:
        return allowed_next_statuses(status)

    async def update_status(
        self,
        kind: RequestKind,
        request_id: str,
        new_status,
        updated_by: str,
        note: str = "",
        guard_concurrent: Optional[bool] = None,
    ) -> StandardResponse:
        kind = RequestKind(kind)
        try:
            target = ProjectStatus.parse(new_status)
        except ValueError as e:
            return StandardResponse.bad_request(str(e))

        doc_ref = self._collection(kind).document(request_id)
        try:
            snapshot = await doc_ref.get()
        except Exception as e:
            return self._handle_error(e, f"reading request '{request_id}'")
        if not snapshot.exists:
            return StandardResponse.not_found(f"Request '{request_id}' not found")

        project: ProjectRecord = normalize_project(kind, snapshot.id, snapshot.to_dict() or {})
        current = project.status
        if not is_transition_allowed(current, target):
            logger.warning(f"⚠️ Rejected status change {current.value} -> {target.value} on {request_id}")
            return StandardResponse.bad_request(f"Cannot change status from {current.value} to {target.value}")
        if target is current:
            return StandardResponse.success(data={"id": request_id, "status": current.value}, message="Status unchanged")

        guard = STATUS_WRITE_PRECONDITION if guard_concurrent is None else guard_concurrent
        update = {FireStoreKeys.status: target.value, FireStoreKeys.updatedAt: firestore.SERVER_TIMESTAMP}
        try:
            if guard:
                await doc_ref.update(update, option=self.client.write_option(last_update_time=snapshot.update_time))
            else:
                await doc_ref.update(update)
        except gcp_exceptions.FailedPrecondition as e:
            if not guard:
                return self._handle_error(e, f"updating status of '{request_id}'")
            logger.warning(f"⚠️ Concurrent status change on {request_id}, keeping the stored status")
            return StandardResponse.failure(ErrorCodes.CONFLICT, "This request was updated by someone else. Please reload and try again.")
        except Exception as e:
            return self._handle_error(e, f"updating status of '{request_id}'")

        logger.info(f"✅ {kind.value} request {request_id}: {current.value} -> {target.value}")
        await self._record_update(kind, request_id, target, updated_by, note)
        await self.notifications.send_status_update(project.user_id, kind, target, request_id)
        return StandardResponse.success(
            data={"id": request_id, "status": target.value, "previousStatus": current.value},
            message="Status updated successfully",
        )

    async def _record_update(self, kind: RequestKind, request_id: str, status: ProjectStatus, updated_by: str, note: str) -> None:
        try:
            updates = self._collection(kind).document(request_id).collection(UPDATES_SUBCOLLECTION_NAME)
            await updates.document(str(uuid.uuid4())).set(
                {
                    FireStoreKeys.status: status.value,
                    "updatedBy": updated_by,
                    "note": note,
                    FireStoreKeys.createdAt: firestore.SERVER_TIMESTAMP,
                }
            )
        except Exception as e:
            logger.warning(f"⚠️ Status of {request_id} changed but the update log entry failed: {e}")

    async def assign_provider(self, kind: RequestKind, request_id: str, provider_id: str) -> StandardResponse:
        kind = RequestKind(kind)
        try:
            if not await self.providers.is_approved(kind.provider_kind, provider_id):
                return StandardResponse.forbidden("Only approved providers can be assigned to a request")
            response = await self.get_request(kind, request_id)
            if not response.status:
                return response
            await self._collection(kind).document(request_id).update(
                {FireStoreKeys.providerId: provider_id, FireStoreKeys.updatedAt: firestore.SERVER_TIMESTAMP}
            )
            logger.info(f"✅ Provider {provider_id} assigned to {request_id}")
            return StandardResponse.success(data={"id": request_id, "providerId": provider_id}, message="Provider assigned")
        except Exception as e:
            return self._handle_error(e, f"assigning provider to '{request_id}'")
