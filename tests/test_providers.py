import asyncio

from fakes import make_clients
from homemarket_firestoredb.firestore.providers import FirestoreProvidersDB
from homemarket_firestoredb.schemas.collection_names import ProviderKind


def _setup():
    store, async_client, _ = make_clients()
    store.seed("users", "admin1", {"role": "admin"})
    return store, FirestoreProvidersDB(async_client)


def test_register_starts_unapproved_and_alerts_admins():
    store, providers = _setup()

    async def main():
        response = await providers.register(ProviderKind.SERVICE, "u7", {"fullName": "Sara Plumbing", "skills": "plumbing"})
        duplicate = await providers.register(ProviderKind.SERVICE, "u7", {"name": "Again"})
        approved = await providers.is_approved(ProviderKind.SERVICE, "u7")
        return response, duplicate, approved

    response, duplicate, approved = asyncio.run(main())

    assert response.status and response.data == {"id": "u7"}
    assert duplicate.code == 409
    assert approved is False
    stored = store.docs("serviceProviders")["u7"]
    assert stored["name"] == "Sara Plumbing"
    assert stored["approved"] is False
    assert [n["userId"] for n in store.docs("notifications").values()] == ["admin1"]


def test_register_falls_back_to_default_name():
    store, providers = _setup()

    response = asyncio.run(providers.register(ProviderKind.CONSTRUCTION, "u8", {"phone": "0100"}))

    assert response.status
    assert store.docs("constructionProviders")["u8"]["name"] == "Construction Provider"


def test_approve_notifies_owner():
    store, providers = _setup()
    store.seed("constructionProviders", "c1", {"userId": "c1", "name": "Nile Builders", "approved": False})

    async def main():
        response = await providers.approve(ProviderKind.CONSTRUCTION, "c1")
        return response, await providers.is_approved(ProviderKind.CONSTRUCTION, "c1")

    response, approved = asyncio.run(main())

    assert response.data == {"id": "c1", "approved": True}
    assert approved
    (sent,) = store.docs("notifications").values()
    assert sent["userId"] == "c1" and sent["type"] == "success"


def test_list_approved_hides_inactive_profiles():
    store, providers = _setup()
    store.seed("serviceProviders", "s1", {"name": "Active", "approved": True})
    store.seed("serviceProviders", "s2", {"name": "Paused", "approved": True, "isActive": False})
    store.seed("serviceProviders", "s3", {"name": "Waiting", "approved": False})

    response = asyncio.run(providers.list_approved(ProviderKind.SERVICE))

    assert [p.name for p in response.data] == ["Active"]


def test_only_owner_can_delete_profile():
    store, providers = _setup()
    store.seed("serviceProviders", "s1", {"userId": "s1", "name": "Active", "approved": True})

    async def main():
        return (
            await providers.delete(ProviderKind.SERVICE, "s1", owner_id="intruder"),
            await providers.delete(ProviderKind.SERVICE, "s1", owner_id="s1"),
        )

    forbidden, deleted = asyncio.run(main())

    assert forbidden.code == 403
    assert deleted.status
    assert store.docs("serviceProviders") == {}


def test_rejection_leaves_the_pending_queue_and_tells_the_applicant():
    store, providers = _setup()
    store.seed("serviceProviders", "s1", {"userId": "s1", "name": "Early", "approved": False, "createdAt": 1})
    store.seed("serviceProviders", "s2", {"userId": "s2", "name": "Late", "approved": False, "createdAt": 2})
    store.seed("serviceProviders", "s3", {"userId": "s3", "name": "Live", "approved": True, "createdAt": 3})

    async def main():
        before = await providers.list_pending(ProviderKind.SERVICE)
        rejected = await providers.reject(ProviderKind.SERVICE, "s1", reason="  Missing licence ")
        after = await providers.list_pending(ProviderKind.SERVICE)
        return before, rejected, after

    before, rejected, after = asyncio.run(main())

    assert [p.name for p in before.data] == ["Early", "Late"]
    assert rejected.data == {"id": "s1", "approved": False}
    assert [p.name for p in after.data] == ["Late"]
    stored = store.docs("serviceProviders")["s1"]
    assert stored["rejected"] is True and stored["rejectionReason"] == "Missing licence"
    (sent,) = store.docs("notifications").values()
    assert sent["userId"] == "s1" and sent["type"] == "warning"
    assert sent["message"].endswith("Reason: Missing licence")
