import asyncio

from fakes import make_clients
from homemarket_firestoredb.firestore.admin import FirestoreAdminDB


def _setup():
    store, async_client, _ = make_clients()
    for uid in ("u1", "u2", "a1"):
        store.seed("users", uid, {"name": uid})
    store.seed("properties", "p1", {"status": "published"})
    store.seed("properties", "p2", {"status": "pending"})
    store.seed("properties", "p3", {"status": "suspended"})
    store.seed("serviceProviders", "s1", {"approved": True})
    store.seed("serviceProviders", "s2", {"approved": False})
    store.seed("serviceProviders", "s3", {"approved": False, "rejected": True})
    store.seed("constructionProviders", "c1", {"approved": False, "rejected": False})
    store.seed("constructionProjects", "cp1", {"status": "Pending"})
    store.seed("rentalRequests", "rr1", {"status": "pending"})
    return store, FirestoreAdminDB(async_client)


def test_dashboard_counts_each_collection():
    _, admin = _setup()

    stats = asyncio.run(admin.get_dashboard_stats()).data

    assert stats["totalUsers"] == 3
    assert stats["totalProperties"] == 3
    assert stats["pendingProperties"] == 1
    assert stats["suspendedProperties"] == 1
    assert stats["totalProviders"] == 4
    assert stats["pendingServiceProviders"] == 1
    assert stats["pendingConstructionProviders"] == 1
    assert stats["pendingProviders"] == 2
    assert stats["totalConstructionProjects"] == 1
    assert stats["totalRenovationProjects"] == 0
    assert stats["unavailable"] == []


def test_unreadable_collection_does_not_blank_the_dashboard():
    store, admin = _setup()
    store.deny("rentalRequests")

    response = asyncio.run(admin.get_dashboard_stats())

    assert response.status
    assert response.data["totalRentalRequests"] == 0
    assert response.data["totalUsers"] == 3
    assert response.data["unavailable"] == ["totalRentalRequests"]
