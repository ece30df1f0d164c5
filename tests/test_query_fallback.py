import asyncio
from datetime import datetime, timedelta, timezone

from google.api_core import exceptions as gcp_exceptions

from fakes import make_clients
from homemarket_firestoredb.firestore.query_fallback import FallbackQueryRunner, QuerySpec, QueryStage, execute_query
from homemarket_firestoredb.utils.error_codes import FirestoreErrorKind

BASE = datetime(2025, 2, 1, tzinfo=timezone.utc)


def _seed_notifications(store):
    store.seed("notifications", "n1", {"userId": "u1", "title": "a", "createdAt": BASE})
    store.seed("notifications", "n2", {"userId": "u1", "title": "b", "createdAt": BASE + timedelta(hours=2)})
    store.seed("notifications", "n3", {"userId": "u1", "title": "c"})
    store.seed("notifications", "n4", {"userId": "u1", "title": "d", "createdAt": BASE + timedelta(hours=2)})
    store.seed("notifications", "n5", {"userId": "u2", "title": "e", "createdAt": BASE + timedelta(hours=5)})


def _spec(**overrides):
    params = {
        "collection": "notifications",
        "filters": (("userId", "==", "u1"),),
        "order_by": "createdAt",
        "direction": "DESCENDING",
    }
    params.update(overrides)
    return QuerySpec(**params)


def _run(store, spec, normalize=None):
    _, async_client, _ = make_clients(store)
    return asyncio.run(FallbackQueryRunner(async_client).run(spec, normalize))


def test_primary_query_issues_exactly_one_request():
    store, _, _ = make_clients()
    _seed_notifications(store)

    result = _run(store, _spec())

    assert result.stage is QueryStage.PRIMARY
    assert result.ok and not result.used_fallback and not result.approximate
    assert [r["id"] for r in result.records] == ["n4", "n2", "n1", "n3"]
    assert len(store.queries) == 1
    assert store.queries[0]["limit"] == 100


def test_orderless_fallback_matches_primary_order():
    primary_store, _, _ = make_clients()
    _seed_notifications(primary_store)
    fallback_store, _, _ = make_clients()
    _seed_notifications(fallback_store)
    fallback_store.require_index("notifications")

    for direction in ("DESCENDING", "ASCENDING"):
        expected = _run(primary_store, _spec(direction=direction))
        degraded = _run(fallback_store, _spec(direction=direction))

        assert degraded.stage is QueryStage.FALLBACK_ORDERLESS
        assert not degraded.approximate
        assert [r["id"] for r in degraded.records] == [r["id"] for r in expected.records]


def test_orderless_page_at_limit_is_flagged_approximate():
    store, _, _ = make_clients()
    _seed_notifications(store)
    store.require_index("notifications")

    result = _run(store, _spec(limit=2))

    assert result.stage is QueryStage.FALLBACK_ORDERLESS
    assert result.approximate
    assert len(result.records) == 2


def test_unfiltered_fallback_filters_in_memory():
    store, _, _ = make_clients()
    _seed_notifications(store)
    store.require_index("notifications", for_filters=True)

    result = _run(store, _spec())

    assert result.stage is QueryStage.FALLBACK_UNFILTERED
    assert result.used_fallback and result.approximate
    assert [r["id"] for r in result.records] == ["n4", "n2", "n1", "n3"]
    assert [q["filters"] for q in store.queries][-1] == []
    assert len(store.queries) == 3


def test_permission_denied_gives_up_without_fallbacks():
    store, _, _ = make_clients()
    _seed_notifications(store)
    store.deny("notifications")

    result = _run(store, _spec())

    assert result.records == []
    assert result.stage is QueryStage.GAVE_UP
    assert result.error is FirestoreErrorKind.PERMISSION_DENIED
    assert len(store.queries) == 1


def test_other_failures_are_not_retried():
    store, _, _ = make_clients()
    store.fail_everything("notifications", gcp_exceptions.ServiceUnavailable("backend down"))

    result = _run(store, _spec())

    assert result.stage is QueryStage.GAVE_UP
    assert result.error is FirestoreErrorKind.UNAVAILABLE
    assert len(store.queries) == 1


def test_write_precondition_failure_is_not_an_index_failure():
    store, _, _ = make_clients()
    store.fail_everything("notifications", gcp_exceptions.FailedPrecondition("stored version mismatch"))

    result = _run(store, _spec())

    assert result.stage is QueryStage.GAVE_UP
    assert len(store.queries) == 1


def test_every_stage_needing_an_index_gives_up():
    store, _, _ = make_clients()
    store.fail_everything("notifications", gcp_exceptions.FailedPrecondition("The query requires an index."))

    result = _run(store, _spec())

    assert result.stage is QueryStage.GAVE_UP
    assert result.error is FirestoreErrorKind.MISSING_INDEX
    assert len(store.queries) == 3


def test_blocked_collection_is_never_queried():
    store, _, _ = make_clients()
    store.seed("projectUpdates", "x", {"status": "Pending"})

    result = _run(store, QuerySpec("projectUpdates", order_by="createdAt"))

    assert result.stage is QueryStage.GAVE_UP
    assert result.error is FirestoreErrorKind.PERMISSION_DENIED
    assert store.queries == []


def test_stages_skip_identical_retries():
    assert QuerySpec("notifications").stages() == [QueryStage.PRIMARY]
    assert QuerySpec("notifications", order_by="createdAt").stages() == [QueryStage.PRIMARY, QueryStage.FALLBACK_ORDERLESS]
    assert QuerySpec("notifications", (("read", "==", False),)).stages() == [QueryStage.PRIMARY, QueryStage.FALLBACK_UNFILTERED]


def test_orderless_only_query_gives_up_when_index_missing():
    store, _, _ = make_clients()
    store.fail_everything("notifications", gcp_exceptions.FailedPrecondition("The query requires an index."))

    result = _run(store, QuerySpec("notifications"))

    assert result.stage is QueryStage.GAVE_UP
    assert len(store.queries) == 1


def test_spec_key_ignores_filter_order():
    first = QuerySpec("notifications", (("userId", "==", "u1"), ("read", "==", False)), order_by="createdAt")
    second = QuerySpec("notifications", (("read", "==", False), ("userId", "==", "u1")), order_by="createdAt")
    assert first.key == second.key
    assert first.key != QuerySpec("notifications", (("userId", "==", "u1"),), order_by="createdAt").key


def test_normalizer_failure_gives_up():
    store, _, _ = make_clients()
    _seed_notifications(store)

    def broken(record):
        raise KeyError("title")

    result = _run(store, _spec(), normalize=broken)

    assert result.stage is QueryStage.GAVE_UP
    assert result.error is FirestoreErrorKind.UNKNOWN


def test_execute_query_helper_applies_normalizer():
    store, async_client, _ = make_clients()
    _seed_notifications(store)

    result = asyncio.run(
        execute_query(
            "notifications",
            filters=(("userId", "==", "u2"),),
            order_by="createdAt",
            normalize=lambda record: record["title"],
            client=async_client,
        )
    )

    assert result.records == ["e"]
