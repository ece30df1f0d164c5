import os
import shutil
import subprocess
from typing import Any, Optional

from google.auth import default
from google.cloud import firestore
from google.oauth2 import service_account
from google.oauth2.credentials import Credentials

from ..utils.config import GOOGLE_CLOUD_PROJECT_ID, LOCAL_ENV, TESTING
from ..utils.error_codes import CustomError, ErrorCodes
from ..utils.logger import logger


class FirestoreClient:
    """
    Process-wide store connection.

    Holds one `AsyncClient` for one-shot reads and writes and one sync `Client` for
    `on_snapshot` watches (the Python SDK only exposes listeners on the sync surface).
    Both are built from the same credentials.
    """

    is_initialized = None
    _injected_async: Optional[Any] = None
    _injected_sync: Optional[Any] = None

    def __init__(self):
        if TESTING:
            raise CustomError(ErrorCodes.SERVICE_UNAVAILABLE, "🧪 TESTING is set - inject a client with FirestoreClient.use()")

        try:
            credentials = self._discover_credentials()
            self.client = firestore.AsyncClient(project=GOOGLE_CLOUD_PROJECT_ID, credentials=credentials)
            self.sync_client = firestore.Client(project=GOOGLE_CLOUD_PROJECT_ID, credentials=credentials)
            logger.info("✅ Firestore clients initialized")
        except CustomError:
            raise
        except Exception as e:
            logger.error(f"❌ FIRESTORE CLIENT Failed to authenticate: {e}")
            raise CustomError(ErrorCodes.SERVICE_UNAVAILABLE, f"Failed to authenticate with Firestore: {e}") from e

    @staticmethod
    def _discover_credentials():
        if LOCAL_ENV:
            gcloud_cmd = shutil.which("gcloud")
            if not gcloud_cmd:
                raise FileNotFoundError("❌ gcloud command not found. Ensure Google Cloud SDK is installed and added to PATH.")
            access_token = subprocess.check_output([gcloud_cmd, "auth", "print-access-token"]).decode("utf-8").strip()
            return Credentials(access_token)

        try:
            credentials, _ = default()
            logger.info("✅ Using Application Default Credentials (ADC).")
            return credentials
        except Exception as adc_error:
            logger.warning(f"⚠️ ADC not available: {adc_error}")

        service_account_files = [
            path for path in (os.getenv("GOOGLE_APPLICATION_CREDENTIALS"), os.getenv("FIREBASE_SERVICE_ACCOUNT_JSON"), "firebase_cred.json") if path
        ]
        for sa_file in service_account_files:
            if not os.path.exists(sa_file):
                continue
            try:
                credentials = service_account.Credentials.from_service_account_file(
                    sa_file, scopes=["https://www.googleapis.com/auth/cloud-platform"]
                )
                logger.info(f"✅ Using service account file: {sa_file}")
                return credentials
            except Exception as sa_error:
                logger.warning(f"⚠️ Failed to load {sa_file}: {sa_error}")

        raise CustomError(
            ErrorCodes.UNAUTHORIZED,
            "❌ No valid authentication method found. Please ensure either ADC is set up or a valid service account file is available.",
        )

    @classmethod
    def use(cls, async_client: Any = None, sync_client: Any = None) -> None:
        """Install pre-built clients (emulator connections, fakes). Passing nothing clears them."""
        cls._injected_async = async_client
        cls._injected_sync = sync_client

    @classmethod
    def reset(cls) -> None:
        cls.is_initialized = None
        cls.use()

    @classmethod
    def shared(cls):
        if cls._injected_async is not None:
            return cls._injected_async
        if cls.is_initialized is None:
            cls.is_initialized = FirestoreClient()
        return cls.is_initialized.client

    @classmethod
    def shared_sync(cls):
        if cls._injected_sync is not None:
            return cls._injected_sync
        if cls.is_initialized is None:
            cls.is_initialized = FirestoreClient()
        return cls.is_initialized.sync_client
