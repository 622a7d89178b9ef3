# bills/storage.py
"""
Object storage for uploaded bill files (S3-compatible, via boto3).
"""
import logging
import re
import time
from dataclasses import dataclass
from os.path import splitext
from typing import Optional

import requests
from botocore.exceptions import BotoCoreError, ClientError

from common.exceptions import ClientInputError, UpstreamError

from .utils import is_supported_content_type

logger = logging.getLogger(__name__)


class StorageError(UpstreamError):
    pass


@dataclass(frozen=True)
class StoredObject:
    key: str
    public_url: str


@dataclass(frozen=True)
class RetrievedObject:
    content: bytes
    content_type: str = ""


def safe_filename(filename: str) -> str:
    """Keep the original name readable while dropping path and unsafe characters."""
    name = (filename or "").replace("\\", "/").split("/")[-1]
    stem, ext = splitext(name)
    stem = re.sub(r"[^A-Za-z0-9_.-]+", "_", stem).strip("._")[:100] or "bill"
    ext = re.sub(r"[^A-Za-z0-9.]+", "", ext)[:10].lower()
    return f"{stem}{ext}"


class StorageGateway:
    """
    store():    single put_object, key <owner>/<epoch millis>_<filename>, no retry.
    retrieve(): public URL first, authenticated get_object second.
    """

    def __init__(self, client, bucket: str, public_base_url: str, http=None, fetch_timeout: int = 15):
        self.client = client
        self.bucket = bucket
        self.public_base_url = (public_base_url or "").rstrip("/")
        self.http = http or requests.Session()
        self.fetch_timeout = fetch_timeout

    def build_key(self, owner_id: str, filename: str, now_ms: Optional[int] = None) -> str:
        stamp = now_ms if now_ms is not None else int(time.time() * 1000)
        return f"{owner_id}/{stamp}_{safe_filename(filename)}"

    def public_url(self, key: str) -> str:
        return f"{self.public_base_url}/{key}"

    def key_from_public_url(self, url: str) -> Optional[str]:
        """Legacy rows only stored the public URL; recover the key from it."""
        prefix = f"{self.public_base_url}/"
        if url and url.startswith(prefix):
            return url[len(prefix):].split("?")[0]
        return None

    def store(self, payload: bytes, content_type: str, owner_id: str, filename: str) -> StoredObject:
        if not is_supported_content_type(content_type):
            raise ClientInputError("Only image files and PDFs are allowed")

        key = self.build_key(owner_id, filename)
        logger.info(f"Uploading {len(payload)} bytes to storage key {key} ({content_type})")
        try:
            self.client.put_object(
                Bucket=self.bucket,
                Key=key,
                Body=payload,
                ContentType=content_type,
            )
        except (BotoCoreError, ClientError) as e:
            raise StorageError(f"Error uploading file to storage: {e}") from e

        return StoredObject(key=key, public_url=self.public_url(key))

    def retrieve(self, key: Optional[str], public_url: Optional[str] = None) -> RetrievedObject:
        if public_url:
            try:
                response = self.http.get(public_url, timeout=self.fetch_timeout)
                response.raise_for_status()
                return RetrievedObject(
                    content=response.content,
                    content_type=response.headers.get("Content-Type", ""),
                )
            except requests.exceptions.RequestException as e:
                logger.warning(f"Public fetch failed for {public_url}, falling back to storage API: {e}")

        key = key or self.key_from_public_url(public_url)
        if not key:
            raise StorageError(f"Cannot resolve storage key for {public_url!r}")

        try:
            obj = self.client.get_object(Bucket=self.bucket, Key=key)
            return RetrievedObject(
                content=obj["Body"].read(),
                content_type=obj.get("ContentType") or "",
            )
        except (BotoCoreError, ClientError) as e:
            raise StorageError(f"Error downloading {key} from storage: {e}") from e
