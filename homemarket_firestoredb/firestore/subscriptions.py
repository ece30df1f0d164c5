"""
Reference-counted live subscriptions and view-scoped ownership.

Views never open watches directly. They ask a ViewScope, which asks the shared
SubscriptionManager: identical queries share one watch, and the watch is closed when the
last view depending on it is torn down. Closing a ViewScope releases everything it opened,
so a subscription cannot outlive the view that owns it.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from ..utils.logger import logger
from .live_query import LiveQuery, RecordsListener
from .query_fallback import Normalizer, QuerySpec


@dataclass
class _SharedQuery:
    spec: QuerySpec
    listeners: List[RecordsListener] = field(default_factory=list)
    live: Optional[LiveQuery] = None
    latest: Optional[List[Any]] = None


class Subscription:
    def __init__(self, manager: "SubscriptionManager", key: tuple, listener: RecordsListener, entry: _SharedQuery):
        self._manager = manager
        self.key = key
        self._listener = listener
        self._entry = entry
        self.active = True

    def unsubscribe(self) -> None:
        if not self.active:
            return
        self.active = False
        self._manager._release(self.key, self._listener, self._entry)


class SubscriptionManager:
    _shared = None

    def __init__(self, client=None, sync_client=None):
        self._client = client
        self._sync_client = sync_client
        self._entries: Dict[tuple, _SharedQuery] = {}

    @classmethod
    def shared(cls):
        if cls._shared is None:
            cls._shared = cls()
        return cls._shared

    @staticmethod
    def _key(spec: QuerySpec, normalize: Optional[Normalizer]) -> tuple:
        return (spec.key, normalize)

    async def subscribe(self, spec: QuerySpec, listener: RecordsListener, normalize: Optional[Normalizer] = None) -> Subscription:
        key = self._key(spec, normalize)
        entry = self._entries.get(key)

        if entry is not None:
            entry.listeners.append(listener)
            if entry.latest is not None:
                self._notify(entry, listener, entry.latest)
            logger.debug(f"Joined live query on '{spec.collection}' ({len(entry.listeners)} listeners)")
            return Subscription(self, key, listener, entry)

        entry = _SharedQuery(spec=spec, listeners=[listener])
        self._entries[key] = entry
        entry.live = LiveQuery(
            spec,
            lambda records: self._fan_out(entry, records),
            normalize=normalize,
            client=self._client,
            sync_client=self._sync_client,
        )
        try:
            await entry.live.start()
        except Exception as e:
            logger.error(f"❌ Live query on '{spec.collection}' failed to start: {e}")
            entry.live.close()
            self._fan_out(entry, [])

        if not entry.live.watching:
            # Nothing will refresh this entry, the next subscribe reads the store again
            self._drop(key, entry)
        return Subscription(self, key, listener, entry)

    def _drop(self, key: tuple, entry: _SharedQuery) -> None:
        if self._entries.get(key) is entry:
            del self._entries[key]
        if entry.live is not None:
            entry.live.close()

    def _fan_out(self, entry: _SharedQuery, records: List[Any]) -> None:
        entry.latest = records
        for listener in list(entry.listeners):
            self._notify(entry, listener, records)

    @staticmethod
    def _notify(entry: _SharedQuery, listener: RecordsListener, records: List[Any]) -> None:
        try:
            listener(list(records))
        except Exception as e:
            logger.error(f"❌ Listener for '{entry.spec.collection}' failed: {e}")

    def _release(self, key: tuple, listener: RecordsListener, entry: _SharedQuery) -> None:
        if listener in entry.listeners:
            entry.listeners.remove(listener)
        if entry.listeners:
            return
        self._drop(key, entry)
        logger.debug(f"Closed live query on '{entry.spec.collection}' (no listeners left)")

    def refcount(self, spec: QuerySpec, normalize: Optional[Normalizer] = None) -> int:
        entry = self._entries.get(self._key(spec, normalize))
        return len(entry.listeners) if entry else 0

    @property
    def active_count(self) -> int:
        return len(self._entries)

    def close_all(self) -> None:
        entries, self._entries = list(self._entries.values()), {}
        for entry in entries:
            entry.listeners.clear()
            if entry.live is not None:
                entry.live.close()


class ViewScope:
    """Owns every subscription and resolver a single view opens; `close()` tears them all down."""

    def __init__(self, manager: Optional[SubscriptionManager] = None, name: str = "view"):
        self.manager = manager or SubscriptionManager.shared()
        self.name = name
        self._subscriptions: List[Subscription] = []
        self._closables: List[Any] = []
        self.closed = False

    async def subscribe(self, spec: QuerySpec, listener: RecordsListener, normalize: Optional[Normalizer] = None) -> Subscription:
        if self.closed:
            raise RuntimeError(f"View scope '{self.name}' is closed")
        subscription = await self.manager.subscribe(spec, listener, normalize)
        if self.closed:
            # The view went away while the watch was opening
            subscription.unsubscribe()
        else:
            self._subscriptions.append(subscription)
        return subscription

    def own(self, closable):
        """Tie any object with a `close()` method (a resolver, a differ's source) to this view."""
        if self.closed:
            closable.close()
        else:
            self._closables.append(closable)
        return closable

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        for subscription in self._subscriptions:
            subscription.unsubscribe()
        for closable in self._closables:
            closable.close()
        self._subscriptions.clear()
        self._closables.clear()
        logger.debug(f"View scope '{self.name}' closed")

    async def __aenter__(self) -> "ViewScope":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.close()

    def __enter__(self) -> "ViewScope":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
