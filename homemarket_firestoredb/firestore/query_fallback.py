"""
Index-fallback query execution.

The store refuses a combined filter + order_by query until the matching composite index
exists. Rather than failing the caller, a query walks a strictly linear cascade:

    PRIMARY              filters + order_by, served by the store
    FALLBACK_ORDERLESS   filters only, ordered in memory
    FALLBACK_UNFILTERED  no filters or ordering, both applied in memory (approximate)
    GAVE_UP              empty result, diagnostics logged

Only a missing-index failure advances to the next stage. Any other failure gives up at once.
`FallbackQueryRunner.run` never raises.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple

from google.cloud import firestore
from google.cloud.firestore_v1.base_query import FieldFilter

from ..utils.access_rules import is_collection_allowed
from ..utils.config import DEFAULT_QUERY_LIMIT
from ..utils.error_codes import FirestoreErrorKind, classify_firestore_error, extract_index_url
from ..utils.logger import logger
from ..utils.record_query import apply_filters, normalize_operator, sort_records
from .client import FirestoreClient

Filter = Tuple[str, str, Any]
Normalizer = Callable[[Dict[str, Any]], Any]

_DIRECTIONS = {
    "DESCENDING": "DESCENDING",
    "DESC": "DESCENDING",
    "ASCENDING": "ASCENDING",
    "ASC": "ASCENDING",
}


class QueryStage(str, Enum):
    PRIMARY = "primary"
    FALLBACK_ORDERLESS = "fallback-orderless"
    FALLBACK_UNFILTERED = "fallback-unfiltered"
    GAVE_UP = "gave-up"


def _freeze(value: Any) -> Any:
    if isinstance(value, (list, tuple, set, frozenset)):
        return tuple(_freeze(item) for item in value)
    if isinstance(value, dict):
        return tuple(sorted((key, _freeze(item)) for key, item in value.items()))
    return value


@dataclass(frozen=True)
class QuerySpec:
    """One logical query: collection, equality/range filters, optional ordering and a server-side limit."""

    collection: str
    filters: Tuple[Filter, ...] = ()
    order_by: Optional[str] = None
    direction: str = "DESCENDING"
    limit: Optional[int] = None

    def __post_init__(self):
        object.__setattr__(self, "filters", tuple((f, normalize_operator(op), value) for f, op, value in self.filters))
        direction = _DIRECTIONS.get(str(self.direction).upper())
        if direction is None:
            raise ValueError(f"Unsupported order direction: {self.direction}")
        object.__setattr__(self, "direction", direction)
        if self.limit is None:
            object.__setattr__(self, "limit", DEFAULT_QUERY_LIMIT)

    @property
    def descending(self) -> bool:
        return self.direction == "DESCENDING"

    @property
    def key(self) -> tuple:
        """Identity of the query, independent of filter order."""
        return (
            self.collection,
            frozenset((f, op, _freeze(value)) for f, op, value in self.filters),
            self.order_by,
            self.direction,
            self.limit,
        )

    def stages(self) -> List[QueryStage]:
        """Stages worth attempting; a stage identical to the previous one is skipped."""
        plan = [QueryStage.PRIMARY]
        if self.order_by:
            plan.append(QueryStage.FALLBACK_ORDERLESS)
        if self.filters:
            plan.append(QueryStage.FALLBACK_UNFILTERED)
        return plan

    def build(self, collection_ref, stage: QueryStage = QueryStage.PRIMARY):
        query = collection_ref
        if stage is not QueryStage.FALLBACK_UNFILTERED:
            for field_path, op, value in self.filters:
                query = query.where(filter=FieldFilter(field_path, op, value))
        if stage is QueryStage.PRIMARY and self.order_by:
            direction = firestore.Query.DESCENDING if self.descending else firestore.Query.ASCENDING
            query = query.order_by(self.order_by, direction=direction)
        if self.limit:
            query = query.limit(self.limit)
        return query

    def post_process(self, records: List[Dict[str, Any]], stage: QueryStage) -> List[Dict[str, Any]]:
        """Bring a degraded stage's raw records back to what the primary query returns."""
        if stage is QueryStage.FALLBACK_UNFILTERED and self.filters:
            records = apply_filters(records, self.filters)
        if stage in (QueryStage.FALLBACK_ORDERLESS, QueryStage.FALLBACK_UNFILTERED) and self.order_by:
            records = sort_records(records, self.order_by, descending=self.descending)
        return records

    def is_approximate(self, stage: QueryStage, fetched: int) -> bool:
        # A limited page fetched without the server-side ordering (or filters) may not be the true top-N
        if stage is QueryStage.FALLBACK_UNFILTERED:
            return True
        if stage is QueryStage.FALLBACK_ORDERLESS:
            return bool(self.limit) and fetched >= self.limit
        return False


@dataclass
class QueryResult:
    records: List[Any] = field(default_factory=list)
    stage: QueryStage = QueryStage.PRIMARY
    approximate: bool = False
    error: Optional[FirestoreErrorKind] = None

    @property
    def used_fallback(self) -> bool:
        return self.stage in (QueryStage.FALLBACK_ORDERLESS, QueryStage.FALLBACK_UNFILTERED)

    @property
    def ok(self) -> bool:
        return self.stage is not QueryStage.GAVE_UP


def snapshot_records(docs) -> List[Dict[str, Any]]:
    return [{"id": doc.id, **(doc.to_dict() or {})} for doc in docs]


def log_index_hint(spec: QuerySpec, error: Exception) -> None:
    index_url = extract_index_url(error)
    if index_url:
        logger.warning(f"📊 INDEX REQUIRED for '{spec.collection}' - composite index creation URL: {index_url}")
    else:
        logger.warning(f"📊 INDEX REQUIRED for '{spec.collection}' - check the console for index creation prompts")


class FallbackQueryRunner:
    def __init__(self, client=None):
        self.client = client or FirestoreClient.shared()

    async def _fetch(self, spec: QuerySpec, stage: QueryStage) -> List[Dict[str, Any]]:
        docs = await spec.build(self.client.collection(spec.collection), stage).get()
        return snapshot_records(docs)

    async def run(self, spec: QuerySpec, normalize: Optional[Normalizer] = None) -> QueryResult:
        if not is_collection_allowed(spec.collection):
            logger.warning(f"🔒 Collection '{spec.collection}' is not readable under the security rules - returning empty result")
            return QueryResult(stage=QueryStage.GAVE_UP, error=FirestoreErrorKind.PERMISSION_DENIED)

        stages = spec.stages()
        for position, stage in enumerate(stages):
            try:
                raw = await self._fetch(spec, stage)
            except Exception as e:
                kind = classify_firestore_error(e)
                has_next = position + 1 < len(stages)
                if kind is FirestoreErrorKind.MISSING_INDEX and has_next:
                    if stage is QueryStage.PRIMARY:
                        log_index_hint(spec, e)
                    logger.info(f"🔄 Querying '{spec.collection}' as {stages[position + 1].value} after {stage.value} needed an index")
                    continue
                self._log_give_up(spec, stage, kind, e)
                return QueryResult(stage=QueryStage.GAVE_UP, error=kind)

            records = spec.post_process(raw, stage)
            if normalize is not None:
                try:
                    records = [normalize(record) for record in records]
                except Exception as e:
                    logger.error(f"❌ Failed to normalize '{spec.collection}' records: {e}")
                    return QueryResult(stage=QueryStage.GAVE_UP, error=FirestoreErrorKind.UNKNOWN)
            if stage is not QueryStage.PRIMARY:
                logger.info(f"✅ {stage.value} query on '{spec.collection}' returned {len(records)} documents")
            return QueryResult(records=records, stage=stage, approximate=spec.is_approximate(stage, len(raw)))

        return QueryResult(stage=QueryStage.GAVE_UP, error=FirestoreErrorKind.UNKNOWN)

    @staticmethod
    def _log_give_up(spec: QuerySpec, stage: QueryStage, kind: FirestoreErrorKind, error: Exception) -> None:
        if kind is FirestoreErrorKind.PERMISSION_DENIED:
            logger.warning(f"🔒 Permission denied querying '{spec.collection}' - returning empty result")
        elif kind is FirestoreErrorKind.MISSING_INDEX:
            log_index_hint(spec, error)
            logger.error(f"❌ Every fallback for '{spec.collection}' needed an index - returning empty result")
        else:
            logger.error(f"❌ {stage.value} query on '{spec.collection}' failed ({kind.value}): {error}")


async def execute_query(
    collection: str,
    filters: Tuple[Filter, ...] = (),
    order_by: Optional[str] = None,
    direction: str = "DESCENDING",
    limit: Optional[int] = None,
    normalize: Optional[Normalizer] = None,
    client=None,
) -> QueryResult:
    spec = QuerySpec(collection=collection, filters=tuple(filters), order_by=order_by, direction=direction, limit=limit)
    return await FallbackQueryRunner(client).run(spec, normalize)
