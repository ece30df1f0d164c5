"""
Object storage module.

Path convention, client-side upload limits and a thin bucket wrapper.
"""

from .object_storage import MAX_UPLOAD_BYTES, ObjectStorage, UploadKind, build_storage_path, validate_upload

__all__ = [
    "MAX_UPLOAD_BYTES",
    "ObjectStorage",
    "UploadKind",
    "build_storage_path",
    "validate_upload",
]
