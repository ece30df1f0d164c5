import os
import sys

import pytest

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from fakes import make_clients  # noqa: E402
from homemarket_firestoredb.firestore.client import FirestoreClient  # noqa: E402
from homemarket_firestoredb.firestore.subscriptions import SubscriptionManager  # noqa: E402


@pytest.fixture(autouse=True)
def _isolated_clients():
    FirestoreClient.reset()
    SubscriptionManager._shared = None
    yield
    FirestoreClient.reset()
    SubscriptionManager._shared = None


@pytest.fixture
def fake_clients():
    store, async_client, sync_client = make_clients()
    FirestoreClient.use(async_client, sync_client)
    return store, async_client, sync_client
