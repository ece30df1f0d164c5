import asyncio

from fakes import make_clients
from homemarket_firestoredb.firestore.resolver import LOADING_LABEL, property_resolver, user_resolver


def _setup():
    store, async_client, _ = make_clients()
    store.seed("properties", "p1", {"title": "Nile View Villa"})
    store.seed("properties", "p2", {"name": "Garden Flat"})
    store.seed("users", "u1", {"fullName": "Mona Adel"})
    return store, async_client


def test_same_id_is_fetched_once():
    store, async_client = _setup()
    resolver = property_resolver(client=async_client)

    async def main():
        first = await resolver.resolve("p1")
        second = await resolver.resolve("p1")
        return first, second

    assert asyncio.run(main()) == ("Nile View Villa", "Nile View Villa")
    assert resolver.lookups == 1
    assert store.doc_reads == ["properties/p1"]


def test_concurrent_requests_share_one_lookup():
    _, async_client = _setup()
    resolver = property_resolver(client=async_client)

    async def main():
        return await asyncio.gather(*(resolver.resolve("p2") for _ in range(5)))

    assert asyncio.run(main()) == ["Garden Flat"] * 5
    assert resolver.lookups == 1


def test_missing_and_empty_ids_resolve_to_not_found():
    _, async_client = _setup()
    resolver = property_resolver(client=async_client)

    async def main():
        return await resolver.resolve_many(["p1", "ghost", None, "ghost"])

    labels = asyncio.run(main())

    assert labels == {"p1": "Nile View Villa", "ghost": "Property Not Found"}
    assert resolver.lookups == 2


def test_lookup_failures_are_not_cached():
    store, async_client = _setup()
    store.deny("properties")
    resolver = property_resolver(client=async_client)

    async def main():
        return [await resolver.resolve("p1"), await resolver.resolve("p1")]

    assert asyncio.run(main()) == ["Error Loading Property", "Error Loading Property"]
    assert resolver.lookups == 2


def test_user_labels_use_legacy_name_fields():
    _, async_client = _setup()
    resolver = user_resolver(client=async_client)

    async def main():
        return await resolver.resolve_many(["u1", "u9"])

    assert asyncio.run(main()) == {"u1": "Mona Adel", "u9": "User Not Found"}


def test_background_resolution_patches_placeholders():
    _, async_client = _setup()
    resolver = property_resolver(client=async_client)
    patches = []

    async def main():
        labels = resolver.resolve_in_background(["p1", "p1", None], lambda doc_id, label: patches.append((doc_id, label)))
        await resolver.wait_idle()
        return labels

    labels = asyncio.run(main())

    assert labels == {"p1": LOADING_LABEL}
    assert patches == [("p1", "Nile View Villa")]
    assert resolver.label_now("p1") == "Nile View Villa"


def test_no_patches_after_close():
    _, async_client = _setup()
    resolver = property_resolver(client=async_client)
    patches = []

    async def main():
        resolver.resolve_in_background(["p1", "p2"], lambda doc_id, label: patches.append(doc_id))
        resolver.close()
        await resolver.wait_idle()

    asyncio.run(main())

    assert patches == []
    assert resolver.label_now("p1") == LOADING_LABEL
