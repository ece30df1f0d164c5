"""
Object-storage helpers for profile photos, portfolio images and license documents.

Objects live at `<entityType>/<ownerId>/<category>/<filename>`. Size and type limits are
checked client-side before upload; the bucket's own rules remain the real boundary.
"""

import re
from enum import Enum
from typing import Optional
from urllib.parse import quote, unquote, urlparse

from google.api_core import exceptions as gcp_exceptions
from google.cloud import storage

from ..utils.config import GOOGLE_CLOUD_PROJECT_ID, STORAGE_BUCKET
from ..utils.error_codes import CustomError, ErrorCodes
from ..utils.logger import logger
from ..utils.standard_response import StandardResponse

MB = 1024 * 1024
_UNSAFE_SEGMENT_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


class UploadKind(str, Enum):
    IMAGE = "image"
    DOCUMENT = "document"
    CERTIFICATION = "certification"


MAX_UPLOAD_BYTES = {
    UploadKind.IMAGE: 5 * MB,
    UploadKind.DOCUMENT: 10 * MB,
    UploadKind.CERTIFICATION: 10 * MB,
}


def _sanitize_segment(segment: str) -> str:
    cleaned = _UNSAFE_SEGMENT_CHARS.sub("_", str(segment or "").strip()).strip("._")
    if not cleaned:
        raise ValueError(f"Invalid storage path segment: {segment!r}")
    return cleaned


def build_storage_path(entity_type: str, owner_id: str, category: str, filename: str) -> str:
    return "/".join(_sanitize_segment(part) for part in (entity_type, owner_id, category, filename))


def validate_upload(kind: UploadKind, content_type: Optional[str], size_bytes: int) -> Optional[StandardResponse]:
    """Return a failure response when the file breaks the limits for its kind, else None."""
    kind = UploadKind(kind)
    content_type = (content_type or "").lower()
    limit = MAX_UPLOAD_BYTES[kind]

    if size_bytes <= 0:
        return StandardResponse.bad_request("File is empty")
    if size_bytes > limit:
        return StandardResponse.bad_request(f"File is too large. Maximum size is {limit // MB}MB")
    if kind is UploadKind.IMAGE and not content_type.startswith("image/"):
        return StandardResponse.bad_request("Only image files are allowed")
    if kind is UploadKind.CERTIFICATION and not (content_type.startswith("image/") or content_type == "application/pdf"):
        return StandardResponse.bad_request("Certifications must be an image or a PDF")
    return None


class ObjectStorage:
    _instance = None

    def __init__(self, bucket_name: Optional[str] = None, client=None):
        self.bucket_name = bucket_name or STORAGE_BUCKET
        if not self.bucket_name:
            raise CustomError(ErrorCodes.BAD_REQUEST, "STORAGE_BUCKET is not configured")
        self.client = client or storage.Client(project=GOOGLE_CLOUD_PROJECT_ID)
        self.bucket = self.client.bucket(self.bucket_name)

    @classmethod
    def shared(cls):
        if not cls._instance:
            cls._instance = cls()
        return cls._instance

    def public_url(self, path: str) -> str:
        return f"https://storage.googleapis.com/{self.bucket_name}/{quote(path)}"

    def path_from_url(self, url_or_path: str) -> str:
        """Accept a bare object path, a gs:// URI, a public URL or a Firebase download URL."""
        value = (url_or_path or "").strip()
        if value.startswith("gs://"):
            return value[len("gs://") :].split("/", 1)[-1]
        if not value.startswith(("http://", "https://")):
            return value.lstrip("/")

        parsed = urlparse(value)
        if "/o/" in parsed.path:
            # https://firebasestorage.googleapis.com/v0/b/<bucket>/o/<encoded path>?alt=media
            return unquote(parsed.path.split("/o/", 1)[1])
        prefix = f"/{self.bucket_name}/"
        if parsed.path.startswith(prefix):
            return unquote(parsed.path[len(prefix) :])
        return unquote(parsed.path.lstrip("/"))

    def upload(
        self,
        data: bytes,
        kind: UploadKind,
        entity_type: str,
        owner_id: str,
        category: str,
        filename: str,
        content_type: Optional[str] = None,
    ) -> StandardResponse:
        validation_error = validate_upload(kind, content_type, len(data or b""))
        if validation_error is not None:
            return validation_error
        try:
            path = build_storage_path(entity_type, owner_id, category, filename)
        except ValueError as e:
            return StandardResponse.bad_request(str(e))

        try:
            blob = self.bucket.blob(path)
            blob.upload_from_string(data, content_type=content_type)
            logger.info(f"✅ Uploaded {path} ({len(data)} bytes)")
            return StandardResponse.success(data={"path": path, "url": self.public_url(path)}, message="File uploaded")
        except Exception as e:
            logger.error(f"❌ Error uploading {path}: {e}")
            return StandardResponse.from_exception(e)

    def delete(self, url_or_path: str) -> StandardResponse:
        if not url_or_path:
            return StandardResponse.bad_request("No file URL provided")
        path = self.path_from_url(url_or_path)
        try:
            self.bucket.blob(path).delete()
            logger.info(f"✅ Deleted {path}")
            return StandardResponse.success(message="File deleted")
        except gcp_exceptions.NotFound:
            logger.warning(f"⚠️ File not found in storage: {path}")
            return StandardResponse.success(message="File already removed")
        except Exception as e:
            logger.error(f"❌ Error deleting {path}: {e}")
            return StandardResponse.from_exception(e)
