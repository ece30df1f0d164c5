"""
In-memory stand-in for the parts of the Firestore client surface the package uses.

One FakeStore holds the data; FakeAsyncClient and FakeSyncClient are the two facades
(coroutines vs. plain calls, `on_snapshot` on the sync one). Server-side ordering here
ranks a missing order field lowest and breaks ties on document id in the ordering
direction, which is the ordering the in-memory fallback is expected to reproduce.
"""

import copy
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional, Tuple

from google.api_core import exceptions as gcp_exceptions
from google.cloud import firestore

INDEX_ERROR_MESSAGE = (
    "The query requires an index. You can create it here: "
    "https://console.firebase.google.com/v1/r/project/homemarket/firestore/indexes?create_composite=Cl9wcm9qZWN0cy"
)

_EPOCH = datetime(2025, 1, 1, tzinfo=timezone.utc)


class FakeStore:
    def __init__(self):
        self.collections: Dict[str, Dict[str, Dict[str, Any]]] = {}
        self.queries: List[Dict[str, Any]] = []
        self.doc_reads: List[str] = []
        self.writes: List[Tuple[str, str, str]] = []
        self.watches: List["FakeWatch"] = []
        self.failure_rules: List[Callable[["FakeQuery"], Optional[Exception]]] = []
        self.after_get_hooks: List[Callable[[str, str], None]] = []
        self._clock = 0

    # ---- clock / seeding ------------------------------------------------
    def now(self) -> datetime:
        self._clock += 1
        return _EPOCH + timedelta(seconds=self._clock)

    def seed(self, path: str, doc_id: str, data: Dict[str, Any]) -> None:
        """Insert a document without counting it as a write or notifying watches."""
        self.collections.setdefault(path, {})[doc_id] = {"data": copy.deepcopy(data), "update_time": self.now()}

    def docs(self, path: str) -> Dict[str, Dict[str, Any]]:
        return {doc_id: entry["data"] for doc_id, entry in self.collections.get(path, {}).items()}

    def write_count(self) -> int:
        return len(self.writes)

    # ---- failure injection ----------------------------------------------
    def require_index(self, path: str, for_filters: bool = False) -> None:
        """Queries combining filters with order_by fail; with `for_filters`, any filtered query fails."""

        def rule(query: "FakeQuery") -> Optional[Exception]:
            if query.path != path:
                return None
            if query.filters and (query.order or for_filters):
                return gcp_exceptions.FailedPrecondition(INDEX_ERROR_MESSAGE)
            return None

        self.failure_rules.append(rule)

    def fail_everything(self, path: str, error: Exception) -> None:
        self.failure_rules.append(lambda query: error if query.path == path else None)

    def deny(self, path: str) -> None:
        self.fail_everything(path, gcp_exceptions.PermissionDenied("Missing or insufficient permissions."))

    # ---- execution ------------------------------------------------------
    def run_query(self, query: "FakeQuery", record: bool = True) -> List["FakeSnapshot"]:
        if record:
            self.queries.append({"path": query.path, "filters": list(query.filters), "order": query.order, "limit": query.limit_count})
        for rule in self.failure_rules:
            error = rule(query)
            if error is not None:
                raise error

        entries = self.collections.get(query.path, {})
        matched = [(doc_id, entry) for doc_id, entry in entries.items() if all(_matches(entry["data"], f) for f in query.filters)]
        if query.order:
            field_path, direction = query.order
            descending = direction == firestore.Query.DESCENDING
            matched.sort(key=lambda item: (_server_rank(_lookup(item[1]["data"], field_path)), item[0]), reverse=descending)
        else:
            matched.sort(key=lambda item: item[0])
        if query.limit_count:
            matched = matched[: query.limit_count]
        return [FakeSnapshot(query.path, doc_id, copy.deepcopy(entry["data"]), entry["update_time"], query.client) for doc_id, entry in matched]

    def get_document(self, path: str, doc_id: str, client) -> "FakeSnapshot":
        self.doc_reads.append(f"{path}/{doc_id}")
        for rule in self.failure_rules:
            error = rule(FakeQuery(client, path))
            if error is not None:
                raise error
        entry = self.collections.get(path, {}).get(doc_id)
        snapshot = (
            FakeSnapshot(path, doc_id, copy.deepcopy(entry["data"]), entry["update_time"], client)
            if entry
            else FakeSnapshot(path, doc_id, None, None, client)
        )
        for hook in list(self.after_get_hooks):
            hook(path, doc_id)
        return snapshot

    def apply_write(self, kind: str, path: str, doc_id: str, data: Optional[Dict[str, Any]] = None, merge: bool = False, option=None) -> None:
        collection = self.collections.setdefault(path, {})
        existing = collection.get(doc_id)
        timestamp = self.now()

        if kind == "set":
            base = copy.deepcopy(existing["data"]) if (existing and merge) else {}
            for key, value in (data or {}).items():
                _assign(base, key.split(".") if merge else [key], value, timestamp)
            collection[doc_id] = {"data": base, "update_time": timestamp}
        elif kind == "update":
            if existing is None:
                raise gcp_exceptions.NotFound(f"No document to update: {path}/{doc_id}")
            if option is not None and option.last_update_time != existing["update_time"]:
                raise gcp_exceptions.FailedPrecondition("the stored version does not match the required base version")
            base = copy.deepcopy(existing["data"])
            for key, value in (data or {}).items():
                _assign(base, key.split("."), value, timestamp)
            collection[doc_id] = {"data": base, "update_time": timestamp}
        elif kind == "delete":
            collection.pop(doc_id, None)

        self.writes.append((kind, path, doc_id))
        self._notify(path)

    def _notify(self, path: str) -> None:
        for watch in list(self.watches):
            if watch.query.path == path:
                watch.fire()


def _lookup(data: Dict[str, Any], field_path: str, default: Any = None) -> Any:
    value: Any = data
    for part in field_path.split("."):
        if not isinstance(value, dict) or part not in value:
            return default
        value = value[part]
    return value


_ABSENT = object()


def _server_rank(value: Any) -> Tuple[int, Any]:
    if value is None or value is _ABSENT:
        return (0, 0)
    if isinstance(value, datetime):
        return (1, value.timestamp())
    if isinstance(value, (int, float)):
        return (1, float(value))
    return (2, str(value))


def _matches(data: Dict[str, Any], field_filter) -> bool:
    actual = _lookup(data, field_filter.field_path, _ABSENT)
    op, value = field_filter.op_string, field_filter.value
    if actual is _ABSENT:
        return False
    if op == "==":
        return actual == value
    if op == "!=":
        return actual != value
    if op == "in":
        return actual in value
    if op == "not-in":
        return actual not in value
    if op == "array_contains":
        return isinstance(actual, list) and value in actual
    if op == "array_contains_any":
        return isinstance(actual, list) and any(item in actual for item in value)
    comparisons = {"<": lambda a, b: a < b, "<=": lambda a, b: a <= b, ">": lambda a, b: a > b, ">=": lambda a, b: a >= b}
    try:
        return comparisons[op](actual, value)
    except TypeError:
        return False


def _assign(target: Dict[str, Any], parts: List[str], value: Any, timestamp: datetime) -> None:
    for part in parts[:-1]:
        target = target.setdefault(part, {})
    key = parts[-1]
    if value is firestore.SERVER_TIMESTAMP:
        target[key] = timestamp
    elif isinstance(value, firestore.ArrayUnion):
        current = list(target.get(key) or [])
        target[key] = current + [item for item in value.values if item not in current]
    elif isinstance(value, firestore.ArrayRemove):
        target[key] = [item for item in target.get(key) or [] if item not in value.values]
    elif isinstance(value, firestore.Increment):
        target[key] = (target.get(key) or 0) + value.value
    elif isinstance(value, dict):
        nested: Dict[str, Any] = {}
        for nested_key, nested_value in value.items():
            _assign(nested, [nested_key], nested_value, timestamp)
        target[key] = nested
    else:
        target[key] = copy.deepcopy(value)


async def _resolved(value):
    return value


class FakeSnapshot:
    def __init__(self, path: str, doc_id: str, data: Optional[Dict[str, Any]], update_time, client):
        self.id = doc_id
        self._data = data
        self.exists = data is not None
        self.update_time = update_time
        self.reference = FakeDocumentRef(client, path, doc_id)

    def to_dict(self) -> Optional[Dict[str, Any]]:
        return copy.deepcopy(self._data) if self._data is not None else None


class FakeWatch:
    def __init__(self, store: FakeStore, query: "FakeQuery", callback):
        self.store = store
        self.query = query
        self.callback = callback
        self.active = True

    def fire(self) -> None:
        if self.active:
            self.callback(self.store.run_query(self.query, record=False), [], datetime.now(timezone.utc))

    def unsubscribe(self) -> None:
        self.active = False
        if self in self.store.watches:
            self.store.watches.remove(self)


class FakeQuery:
    def __init__(self, client, path: str, filters=None, order=None, limit_count: Optional[int] = None):
        self.client = client
        self.path = path
        self.filters = list(filters or [])
        self.order = order
        self.limit_count = limit_count

    def _copy(self, **changes) -> "FakeQuery":
        state = {"filters": self.filters, "order": self.order, "limit_count": self.limit_count, **changes}
        return FakeQuery(self.client, self.path, **state)

    def where(self, filter=None):
        return self._copy(filters=self.filters + [filter])

    def order_by(self, field_path: str, direction: str = firestore.Query.ASCENDING):
        return self._copy(order=(field_path, direction))

    def limit(self, count: int):
        return self._copy(limit_count=count)

    def get(self):
        if self.client.is_async:

            async def run():
                return self.client.store.run_query(self)

            return run()
        return self.client.store.run_query(self)

    def count(self, alias=None) -> "FakeAggregation":
        return FakeAggregation(self)

    def on_snapshot(self, callback) -> FakeWatch:
        if self.client.is_async:
            raise AttributeError("on_snapshot is only available on the sync client")
        watch = FakeWatch(self.client.store, self, callback)
        self.client.store.watches.append(watch)
        watch.fire()
        return watch


class FakeAggregationResult:
    def __init__(self, value: int):
        self.alias = "count"
        self.value = value


class FakeAggregation:
    """`query.count().get()` returns one row holding one result."""

    def __init__(self, query: FakeQuery):
        self.query = query

    def _run(self):
        return [[FakeAggregationResult(len(self.query.client.store.run_query(self.query)))]]

    def get(self):
        if self.query.client.is_async:
            return _resolved(self._run())
        return self._run()


class FakeCollection(FakeQuery):
    def __init__(self, client, path: str):
        super().__init__(client, path)

    @property
    def id(self) -> str:
        return self.path.split("/")[-1]

    def document(self, doc_id: Optional[str] = None) -> "FakeDocumentRef":
        return FakeDocumentRef(self.client, self.path, doc_id or uuid.uuid4().hex)


class FakeDocumentRef:
    def __init__(self, client, path: str, doc_id: str):
        self.client = client
        self.path = path
        self.id = doc_id

    def collection(self, name: str) -> FakeCollection:
        return FakeCollection(self.client, f"{self.path}/{self.id}/{name}")

    def _call(self, fn, *args, **kwargs):
        if self.client.is_async:

            async def run():
                return fn(*args, **kwargs)

            return run()
        return fn(*args, **kwargs)

    def get(self):
        return self._call(self.client.store.get_document, self.path, self.id, self.client)

    def set(self, data: Dict[str, Any], merge: bool = False):
        return self._call(self.client.store.apply_write, "set", self.path, self.id, data, merge)

    def update(self, data: Dict[str, Any], option=None):
        return self._call(self.client.store.apply_write, "update", self.path, self.id, data, False, option)

    def delete(self):
        return self._call(self.client.store.apply_write, "delete", self.path, self.id)

    def __eq__(self, other) -> bool:
        return isinstance(other, FakeDocumentRef) and (other.path, other.id) == (self.path, self.id)

    def __hash__(self) -> int:
        return hash((self.path, self.id))


class FakeWriteOption:
    def __init__(self, last_update_time):
        self.last_update_time = last_update_time


class FakeBatch:
    def __init__(self, client):
        self.client = client
        self.operations: List[Tuple] = []

    def set(self, ref: FakeDocumentRef, data: Dict[str, Any], merge: bool = False):
        self.operations.append(("set", ref, data, merge))

    def update(self, ref: FakeDocumentRef, data: Dict[str, Any]):
        self.operations.append(("update", ref, data, False))

    def delete(self, ref: FakeDocumentRef):
        self.operations.append(("delete", ref, None, False))

    def _commit(self):
        for kind, ref, data, merge in self.operations:
            self.client.store.apply_write(kind, ref.path, ref.id, data, merge)
        return list(self.operations)

    def commit(self):
        if self.client.is_async:
            return _resolved(self._commit())
        return self._commit()


class _FakeClientBase:
    is_async = False

    def __init__(self, store: Optional[FakeStore] = None):
        self.store = store or FakeStore()

    def collection(self, path: str) -> FakeCollection:
        return FakeCollection(self, path.strip("/"))

    def batch(self) -> FakeBatch:
        return FakeBatch(self)

    @staticmethod
    def write_option(last_update_time=None) -> FakeWriteOption:
        return FakeWriteOption(last_update_time)


class FakeAsyncClient(_FakeClientBase):
    is_async = True


class FakeSyncClient(_FakeClientBase):
    is_async = False


def make_clients(store: Optional[FakeStore] = None) -> Tuple[FakeStore, FakeAsyncClient, FakeSyncClient]:
    store = store or FakeStore()
    return store, FakeAsyncClient(store), FakeSyncClient(store)
