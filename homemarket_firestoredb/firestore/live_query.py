import asyncio
import threading
from typing import Any, Callable, List, Optional

from ..utils.error_codes import FirestoreErrorKind, classify_firestore_error
from ..utils.logger import logger
from .client import FirestoreClient
from .query_fallback import FallbackQueryRunner, Normalizer, QueryResult, QuerySpec, QueryStage, snapshot_records

RecordsListener = Callable[[List[Any]], None]


class LiveQuery:
    """
    Push subscription over one QuerySpec.

    `start()` first runs the fallback cascade once to find the stage the store can serve,
    then opens an `on_snapshot` watch at that stage. Every snapshot is post-processed the
    same way the one-shot query was (in-memory filters and ordering for degraded stages)
    and the full current result set is handed to `on_records`. Deliveries are marshalled
    onto the event loop that called `start()`.

    A collection the reader may not see delivers one empty list and opens no watch.
    """

    def __init__(
        self,
        spec: QuerySpec,
        on_records: RecordsListener,
        normalize: Optional[Normalizer] = None,
        client=None,
        sync_client=None,
    ):
        self.spec = spec
        self.on_records = on_records
        self.normalize = normalize
        self._client = client
        self._sync_client = sync_client
        self._watch = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._lock = threading.Lock()
        self.closed = False
        self.stage: Optional[QueryStage] = None
        self.error: Optional[FirestoreErrorKind] = None
        self.approximate = False
        self.latest: Optional[List[Any]] = None

    @property
    def watching(self) -> bool:
        return self._watch is not None

    def _give_up(self, error: Exception, action: str) -> QueryResult:
        kind = classify_firestore_error(error)
        logger.error(f"❌ Failed to {action} live query on '{self.spec.collection}' ({kind.value}): {error}")
        self.stage = QueryStage.GAVE_UP
        self.error = kind
        self._deliver([])
        return QueryResult(stage=QueryStage.GAVE_UP, error=kind)

    async def start(self) -> QueryResult:
        self._loop = asyncio.get_running_loop()
        try:
            runner = FallbackQueryRunner(self._client or FirestoreClient.shared())
        except Exception as e:
            return self._give_up(e, "connect")
        first_read = await runner.run(self.spec, self.normalize)

        if self.closed:
            return first_read

        self.stage = first_read.stage
        self.error = first_read.error
        self.approximate = first_read.approximate
        self._deliver(first_read.records)

        if not first_read.ok:
            if first_read.error is FirestoreErrorKind.PERMISSION_DENIED:
                logger.warning(f"⚠️ Live query on '{self.spec.collection}' stopped: permission denied")
            else:
                logger.warning(f"⚠️ Live query on '{self.spec.collection}' not opened ({first_read.error.value if first_read.error else 'unknown'})")
            return first_read

        try:
            sync_client = self._sync_client or FirestoreClient.shared_sync()
            query = self.spec.build(sync_client.collection(self.spec.collection), first_read.stage)
            watch = query.on_snapshot(self._on_snapshot)
        except Exception as e:
            # The one-shot result already delivered stays current, it just won't be refreshed
            kind = classify_firestore_error(e)
            self.error = kind
            logger.error(f"❌ Failed to open live query on '{self.spec.collection}' ({kind.value}): {e}")
            return QueryResult(records=first_read.records, stage=first_read.stage, approximate=first_read.approximate, error=kind)

        with self._lock:
            if self.closed:
                watch.unsubscribe()
            else:
                self._watch = watch
        if first_read.stage is not QueryStage.PRIMARY:
            logger.info(f"🔄 Live query on '{self.spec.collection}' running at {first_read.stage.value}")
        return first_read

    def _on_snapshot(self, docs, changes, read_time) -> None:
        # Runs on the watch thread
        try:
            records = self.spec.post_process(snapshot_records(docs), self.stage)
            if self.normalize is not None:
                records = [self.normalize(record) for record in records]
        except Exception as e:
            logger.error(f"❌ Failed to process snapshot for '{self.spec.collection}': {e}")
            return

        loop = self._loop
        if loop is None or loop.is_closed():
            return
        try:
            loop.call_soon_threadsafe(self._deliver, records)
        except RuntimeError:
            # Loop shut down between the check and the call
            logger.debug(f"Dropped snapshot for '{self.spec.collection}': event loop closed")

    def _deliver(self, records: List[Any]) -> None:
        if self.closed:
            return
        self.latest = records
        self.on_records(records)

    def close(self) -> None:
        with self._lock:
            if self.closed:
                return
            self.closed = True
            watch, self._watch = self._watch, None
        if watch is not None:
            try:
                watch.unsubscribe()
            except Exception as e:
                logger.warning(f"⚠️ Error closing live query on '{self.spec.collection}': {e}")
        logger.debug(f"Live query on '{self.spec.collection}' closed")
