"""
Blob store for complaint photos.

Photos go to S3 when it is enabled and to UPLOADS_DIR otherwise. Either way the
caller gets back an opaque reference that is stored on the complaint as-is.
"""
import uuid
from datetime import datetime
from io import BytesIO
from pathlib import Path
from typing import Optional

from core.logger import logger
from core.validators import sanitize_filename
from storage.s3_client import S3Client
import config

LOCAL_URL_PREFIX = "/uploads"


def complaint_photo_key(filename: str, now: Optional[datetime] = None) -> str:
    """complaints/2025/03/<uuid>_<name>"""
    now = now or datetime.utcnow()
    return f"{config.S3_COMPLAINTS_PREFIX}/{now:%Y/%m}/{uuid.uuid4().hex}_{sanitize_filename(filename)}"


class LocalBlobStore:
    """Stores uploads on local disk, served under /uploads."""

    def __init__(self, root: Path):
        self.root = Path(root)

    def put(self, data: bytes, filename: str, content_type: Optional[str] = None) -> str:
        key = complaint_photo_key(filename)
        path = self.root / key
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)
        logger.info(f"Stored upload locally: {path}")
        return f"{LOCAL_URL_PREFIX}/{key}"

    def viewable_url(self, reference: Optional[str]) -> Optional[str]:
        return reference


class S3BlobStore:
    """Stores uploads in S3; references are s3:// paths, presigned on read."""

    def __init__(self, client: S3Client, expires_in: int = 3600):
        self.client = client
        self.expires_in = expires_in

    def put(self, data: bytes, filename: str, content_type: Optional[str] = None) -> str:
        return self.client.upload_fileobj(BytesIO(data), complaint_photo_key(filename), content_type=content_type)

    def viewable_url(self, reference: Optional[str]) -> Optional[str]:
        """Presigned HTTPS URL for s3:// references; other references pass through."""
        if reference and reference.startswith("s3://"):
            return self.client.get_presigned_url(reference, expires_in=self.expires_in) or reference
        return reference


def get_blob_store():
    """Blob store initialised at start-up, or a local one under UPLOADS_DIR."""
    if config.blob_store is None:
        config.blob_store = LocalBlobStore(config.UPLOADS_DIR)
    return config.blob_store


def viewable_url(reference: Optional[str]) -> Optional[str]:
    if not reference:
        return None
    return get_blob_store().viewable_url(reference)
