from __future__ import annotations

import base64
import binascii
import logging
import re
import secrets
import time
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from app.config import get_settings

logger = logging.getLogger(__name__)

BUCKET_COVER_IMAGES = "cover-images"
BUCKET_USER_PHOTOS = "user-photos"
BUCKET_PITCH_VIDEOS = "pitch-videos"
BUCKET_PITCH_PHOTOS = "pitch-photos"

CACHE_CONTROL = "max-age=3600"

_DATA_URL_RE = re.compile(r"^data:(?P<mime>[\w.+-]+/[\w.+-]+)?(?P<params>(;[^,;]+)*?);base64,(?P<data>.*)$", re.S)


class StorageError(Exception):
    pass


@dataclass
class UploadResult:
    url: Optional[str] = None
    path: Optional[str] = None
    error: Optional[str] = None


def safe_ext(name: str) -> str:
    parts = (name or "").split(".")
    ext = parts[-1] if len(parts) > 1 else ""
    return re.sub(r"[^a-zA-Z0-9]", "", ext)[:10]


def make_object_path(user_id: str, original_name: str, folder: str = "") -> str:
    """<folder>/<user_id>/<millis>-<random>.<ext>"""
    ext = safe_ext(original_name)
    base = f"{int(time.time() * 1000)}-{secrets.token_hex(6)}{'.' + ext if ext else ''}"
    prefix = f"{folder.strip('/')}/" if folder.strip("/") else ""
    return f"{prefix}{user_id}/{base}"


def decode_data_url(data_url: str) -> tuple[bytes, str]:
    """data:image/png;base64,xxxx -> (bytes, mime). Raises StorageError on anything else."""
    m = _DATA_URL_RE.match((data_url or "").strip())
    if not m:
        raise StorageError("Not a base64 data URL")
    try:
        data = base64.b64decode(m.group("data"), validate=False)
    except (binascii.Error, ValueError) as e:
        raise StorageError(f"Invalid base64 payload: {e}") from e
    return data, m.group("mime") or "application/octet-stream"


class BlobStorage:
    """
    Thin wrapper around S3-compatible storage with one bucket per media kind.

    The client is created on first upload so an unconfigured deployment only loses
    its uploads, which the registration pipeline treats as non-fatal.
    """

    def __init__(self) -> None:
        self.settings = get_settings()
        self._client = None

    @property
    def client(self):
        if self._client is None:
            s = self.settings
            if not s.storage_endpoint or not s.storage_access_key or not s.storage_secret_key:
                raise StorageError("STORAGE_ENDPOINT, STORAGE_ACCESS_KEY and STORAGE_SECRET_KEY are required")
            session = boto3.session.Session()
            self._client = session.client(
                "s3",
                endpoint_url=s.storage_endpoint,
                aws_access_key_id=s.storage_access_key,
                aws_secret_access_key=s.storage_secret_key,
                region_name=s.storage_region or "us-east-1",
                config=Config(s3={"addressing_style": "path"}, signature_version="s3v4"),
            )
        return self._client

    def public_url(self, bucket: str, key: str) -> str:
        base = (self.settings.storage_public_base_url or self.settings.storage_endpoint).rstrip("/")
        return f"{base}/{bucket}/{key}"

    def upload(
        self,
        bucket: str,
        data: bytes,
        filename: str,
        user_id: str,
        content_type: Optional[str] = None,
        folder: str = "",
    ) -> UploadResult:
        """Upload one object. Storage and S3 client failures come back with error set."""
        key = make_object_path(user_id, filename, folder)
        kwargs = {"Bucket": bucket, "Key": key, "Body": data, "CacheControl": CACHE_CONTROL}
        if content_type:
            kwargs["ContentType"] = content_type
        try:
            self.client.put_object(**kwargs)
        except (StorageError, ClientError, BotoCoreError) as exc:
            logger.warning("[Storage] Upload failed bucket=%s file=%s: %s", bucket, filename, exc)
            return UploadResult(error=str(exc))
        return UploadResult(url=self.public_url(bucket, key), path=key)


@lru_cache
def get_storage() -> BlobStorage:
    return BlobStorage()
