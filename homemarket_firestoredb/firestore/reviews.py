from typing import Any, Dict, Optional

from google.cloud import firestore

from ..schemas.collection_names import DatabaseCollectionNames
from ..schemas.keys import FireStoreKeys
from ..schemas.normalization import normalize_review
from ..schemas.records import ReviewRecord, ReviewTarget
from ..schemas.requests import RequestValidationError, parse_review_form
from ..utils.error_codes import ErrorCodes
from ..utils.logger import logger
from ..utils.standard_response import StandardResponse
from .client import FirestoreClient
from .query_fallback import FallbackQueryRunner, QuerySpec

REVIEWS_COLLECTION_NAME = DatabaseCollectionNames.REVIEWS_COLLECTION_NAME.value


def _review_from_record(record: Dict[str, Any]) -> ReviewRecord:
    return normalize_review(record["id"], record)


class FirestoreReviewsDB:
    """Ratings left on properties, providers and finished projects. One review per reviewer and target."""

    _instance = None

    def __init__(self, client=None):
        self.client = client or FirestoreClient.shared()
        self.reviews_collection = self.client.collection(REVIEWS_COLLECTION_NAME)
        self.runner = FallbackQueryRunner(self.client)

    @classmethod
    def shared(cls):
        if not cls._instance:
            cls._instance = cls()
        return cls._instance

    def _handle_error(self, error: Exception, operation: str) -> StandardResponse:
        logger.error(f"❌ Error {operation}: {str(error)}")
        return StandardResponse.from_exception(error)

    def target_spec(self, target_id: str, target_type: ReviewTarget) -> QuerySpec:
        return QuerySpec(
            collection=REVIEWS_COLLECTION_NAME,
            filters=(("targetId", "==", target_id), ("targetType", "==", ReviewTarget(target_type).value)),
            order_by=FireStoreKeys.createdAt,
            direction=FireStoreKeys.DESCENDING,
        )

    async def create(self, reviewer_id: str, target_id: str, target_type, rating, comment: str) -> StandardResponse:
        try:
            form = parse_review_form(
                {"reviewerId": reviewer_id, "targetId": target_id, "targetType": target_type, "rating": rating, "comment": comment}
            )
        except RequestValidationError as e:
            logger.info(f"⚠️ Review rejected before submission: {e.field_errors}")
            return StandardResponse.validation_error(e.field_errors)

        existing = await self.get_user_review(form.reviewer_id, form.target_id, form.target_type)
        if existing is not None:
            return StandardResponse.failure(ErrorCodes.CONFLICT, "You have already reviewed this item")

        try:
            data = form.model_dump(by_alias=True)
            data["targetType"] = form.target_type.value
            data[FireStoreKeys.createdAt] = firestore.SERVER_TIMESTAMP
            data[FireStoreKeys.updatedAt] = firestore.SERVER_TIMESTAMP
            doc_ref = self.reviews_collection.document()
            await doc_ref.set(data)
            logger.info(f"✅ Review {doc_ref.id} left by {form.reviewer_id} on {form.target_type.value} {form.target_id}")
            return StandardResponse.success(data={"id": doc_ref.id}, message="Review submitted")
        except Exception as e:
            return self._handle_error(e, "creating review")

    async def list_for_target(self, target_id: str, target_type) -> StandardResponse:
        if not target_id or not target_type:
            return StandardResponse.bad_request("Target ID and target type are required")
        try:
            spec = self.target_spec(target_id, target_type)
        except ValueError:
            return StandardResponse.bad_request(f"Unknown review target '{target_type}'")
        result = await self.runner.run(spec, _review_from_record)
        return StandardResponse.success(data=result.records, message="Reviews retrieved successfully")

    async def get_user_review(self, reviewer_id: str, target_id: str, target_type) -> Optional[ReviewRecord]:
        """The reviewer's existing review of the target, or None (also when the lookup fails)."""
        try:
            target_type = ReviewTarget(target_type)
        except ValueError:
            return None
        spec = QuerySpec(
            collection=REVIEWS_COLLECTION_NAME,
            filters=(
                ("reviewerId", "==", reviewer_id),
                ("targetId", "==", target_id),
                ("targetType", "==", target_type.value),
            ),
        )
        result = await self.runner.run(spec, _review_from_record)
        return result.records[0] if result.records else None

    async def get_average_rating(self, target_id: str, target_type) -> Dict[str, Any]:
        response = await self.list_for_target(target_id, target_type)
        ratings = [review.rating for review in response.data or []]
        if not ratings:
            return {"average": 0, "count": 0}
        return {"average": round(sum(ratings) / len(ratings), 1), "count": len(ratings)}

    async def delete(self, review_id: str, reviewer_id: str) -> StandardResponse:
        try:
            if not review_id:
                return StandardResponse.bad_request("Review ID is required")
            doc_ref = self.reviews_collection.document(review_id)
            doc = await doc_ref.get()
            if not doc.exists:
                return StandardResponse.not_found(f"Review '{review_id}' not found")
            if normalize_review(doc.id, doc.to_dict() or {}).reviewer_id != reviewer_id:
                return StandardResponse.forbidden("You can only delete your own reviews")
            await doc_ref.delete()
            logger.info(f"✅ Review {review_id} deleted")
            return StandardResponse.success(message="Review deleted")
        except Exception as e:
            return self._handle_error(e, f"deleting review '{review_id}'")
