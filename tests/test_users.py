import asyncio

from fakes import make_clients
from homemarket_firestoredb.firestore.users import FirestoreUsersDB
from homemarket_firestoredb.schemas.records import UserRole


def _setup():
    store, async_client, _ = make_clients()
    store.seed("users", "u1", {"fullName": "Laila Hassan", "role": "customer", "favorites": ["p1"]})
    store.seed("users", "u2", {"name": "Karim", "savedProperties": ["p9"]})
    store.seed("users", "a1", {"email": "boss@homemarket.app", "role": "admin"})
    store.seed("users", "r1", {"name": "Fix It", "role": "provider"})
    return store, FirestoreUsersDB(async_client)


def test_profile_is_normalized_from_legacy_fields():
    _, users = _setup()

    async def main():
        return await users.get_user("u1"), await users.get_user("u2")

    current, legacy = asyncio.run(main())

    assert current.data.display_name == "Laila Hassan"
    assert current.data.role is UserRole.USER
    assert legacy.data.favorites == ["p9"]


def test_session_context_roles():
    _, users = _setup()

    async def main():
        return (
            await users.build_session_context("u1", email_verified=True),
            await users.build_session_context("u1", admin_claim=True),
            await users.build_session_context("r1"),
            await users.build_session_context("ghost"),
        )

    plain, claimed, provider, missing = asyncio.run(main())

    assert not plain.is_admin and plain.email_verified
    assert claimed.is_admin
    assert provider.is_provider and provider.role is UserRole.RENOVATOR
    assert missing.role is UserRole.USER and missing.profile is None
    assert missing.display_name == "User"


def test_display_name_falls_back_to_email_prefix():
    _, users = _setup()

    async def main():
        return await users.get_display_name("a1"), await users.get_display_name("ghost", default="Someone")

    assert asyncio.run(main()) == ("boss", "Someone")


def test_toggle_favorite_adds_then_removes():
    store, users = _setup()

    async def main():
        return await users.toggle_favorite("u1", "p2"), await users.toggle_favorite("u1", "p1")

    added, removed = asyncio.run(main())

    assert added.data == {"propertyId": "p2", "favorited": True}
    assert removed.data == {"propertyId": "p1", "favorited": False}
    assert store.docs("users")["u1"]["favorites"] == ["p2"]


def test_notification_preferences_merge_into_profile():
    store, users = _setup()

    response = asyncio.run(users.update_notification_preferences("u1", {"email": 1, "push": False}))

    assert response.data == {"email": True, "push": False}
    stored = store.docs("users")["u1"]
    assert stored["notificationPreferences"] == {"email": True, "push": False}
    assert stored["fullName"] == "Laila Hassan"


def test_list_admin_ids():
    _, users = _setup()

    assert asyncio.run(users.list_admin_ids()) == ["a1"]


def test_admin_changes_a_user_role():
    store, users = _setup()

    async def main():
        return (
            await users.update_role("u1", " Constructor "),
            await users.update_role("u1", "overlord"),
            await users.update_role("ghost", UserRole.ADMIN),
        )

    changed, unknown, missing = asyncio.run(main())

    assert changed.data == {"id": "u1", "role": "constructor"}
    assert store.docs("users")["u1"]["role"] == "constructor"
    assert unknown.code == 400
    assert missing.code == 404


def test_list_users_by_role():
    _, users = _setup()

    async def main():
        return await users.list_users(), await users.list_users(UserRole.ADMIN)

    everyone, admins = asyncio.run(main())

    assert sorted(user.id for user in everyone.data) == ["a1", "r1", "u1", "u2"]
    assert [user.id for user in admins.data] == ["a1"]
