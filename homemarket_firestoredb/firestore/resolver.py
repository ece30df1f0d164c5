import asyncio
from typing import Any, Callable, Dict, Iterable, List, Optional, Set

from async_lru import alru_cache

from ..schemas.collection_names import DatabaseCollectionNames
from ..schemas.normalization import display_name_of, property_label, provider_label
from ..utils.logger import logger
from .client import FirestoreClient

LOADING_LABEL = "Loading..."

LabelPatch = Callable[[str, str], None]


class ForeignKeyResolver:
    """
    Resolves foreign ids held by records (owner, property, provider) to display labels.

    One point lookup per distinct id for the lifetime of the resolver: concurrent requests
    for the same id share the in-flight lookup, and found or missing labels stay cached.
    A failed lookup is not cached, it resolves to `error_label` and is retried next time.
    Owned by a view; after `close()` in-flight lookups finish into a discarded cache and
    no further patches are delivered.
    """

    def __init__(
        self,
        collection: str,
        label_of: Callable[[Dict[str, Any]], str],
        not_found_label: str = "Not Found",
        error_label: str = "Error Loading",
        client=None,
    ):
        self.collection = collection
        self.label_of = label_of
        self.not_found_label = not_found_label
        self.error_label = error_label
        self.client = client or FirestoreClient.shared()
        self.lookups = 0
        self.closed = False
        self._labels: Dict[str, str] = {}
        self._tasks: Set[asyncio.Task] = set()
        self._cached_lookup = alru_cache(maxsize=None)(self._lookup_label)

    async def _lookup_label(self, doc_id: str) -> str:
        self.lookups += 1
        doc = await self.client.collection(self.collection).document(doc_id).get()
        if not doc.exists:
            return self.not_found_label
        return self.label_of(doc.to_dict() or {})

    async def resolve(self, doc_id: Optional[str]) -> str:
        if not doc_id:
            return self.not_found_label
        try:
            label = await self._cached_lookup(doc_id)
        except Exception as e:
            logger.warning(f"⚠️ Could not resolve '{self.collection}/{doc_id}': {e}")
            return self.error_label
        if not self.closed:
            self._labels[doc_id] = label
        return label

    async def resolve_many(self, doc_ids: Iterable[Optional[str]]) -> Dict[str, str]:
        unique = list(dict.fromkeys(doc_id for doc_id in doc_ids if doc_id))
        labels = await asyncio.gather(*(self.resolve(doc_id) for doc_id in unique))
        return dict(zip(unique, labels))

    def label_now(self, doc_id: Optional[str]) -> str:
        """Label to render immediately: the cached one, or a placeholder."""
        if not doc_id:
            return self.not_found_label
        return self._labels.get(doc_id, LOADING_LABEL)

    def resolve_in_background(self, doc_ids: Iterable[Optional[str]], on_patch: LabelPatch) -> Dict[str, str]:
        """
        Return labels to render right away and schedule lookups for the unresolved ids.

        `on_patch(doc_id, label)` is called on the event loop as each label arrives,
        unless the resolver has been closed in the meantime.
        """
        labels = {}
        pending: List[str] = []
        for doc_id in dict.fromkeys(doc_id for doc_id in doc_ids if doc_id):
            labels[doc_id] = self.label_now(doc_id)
            if doc_id not in self._labels:
                pending.append(doc_id)

        for doc_id in pending:
            task = asyncio.ensure_future(self._patch(doc_id, on_patch))
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)
        return labels

    async def _patch(self, doc_id: str, on_patch: LabelPatch) -> None:
        label = await self.resolve(doc_id)
        if self.closed:
            return
        try:
            on_patch(doc_id, label)
        except Exception as e:
            logger.error(f"❌ Label patch for '{self.collection}/{doc_id}' failed: {e}")

    async def wait_idle(self) -> None:
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def close(self) -> None:
        self.closed = True
        self._labels = {}
        self._cached_lookup.cache_clear()


def user_resolver(client=None) -> ForeignKeyResolver:
    return ForeignKeyResolver(
        DatabaseCollectionNames.USERS_COLLECTION_NAME.value,
        display_name_of,
        not_found_label="User Not Found",
        error_label="Error Loading User",
        client=client,
    )


def property_resolver(client=None) -> ForeignKeyResolver:
    return ForeignKeyResolver(
        DatabaseCollectionNames.PROPERTIES_COLLECTION_NAME.value,
        property_label,
        not_found_label="Property Not Found",
        error_label="Error Loading Property",
        client=client,
    )


def provider_resolver(collection: str, client=None) -> ForeignKeyResolver:
    return ForeignKeyResolver(
        collection,
        provider_label,
        not_found_label="Provider Not Found",
        error_label="Error Loading Provider",
        client=client,
    )
