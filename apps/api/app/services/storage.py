# app/services/storage.py
from __future__ import annotations

import logging
import re
from typing import List, Optional, Protocol, Sequence
from urllib.parse import urlparse

from supabase import Client, create_client

from app.core.config import Settings
from app.core.errors import Misconfigured, StorageDeleteFailure, StorageWriteFailure

logger = logging.getLogger(__name__)


class ImageStorage(Protocol):
    def upload(self, path: str, data: bytes, content_type: str) -> None: ...

    def remove(self, paths: Sequence[str]) -> None: ...

    def public_url(self, path: str) -> str: ...

    def path_from_url(self, url: str) -> Optional[str]: ...


class SupabaseImageStorage:
    """
    One Supabase Storage bucket.

    Public URLs are deterministic:
        <SUPABASE_URL>/storage/v1/object/public/<bucket>/<path>
    """

    def __init__(self, client: Client, base_url: str, bucket: str) -> None:
        self.client = client
        self.bucket = bucket
        self.public_base = f"{base_url.rstrip('/')}/storage/v1/object/public"
        self._path_re = re.compile(rf"/{re.escape(bucket)}/(.+)")

    @classmethod
    def from_settings(cls, settings: Settings) -> "SupabaseImageStorage":
        if not settings.SUPABASE_URL or not settings.SUPABASE_KEY:
            raise Misconfigured("Supabase storage is not configured")
        client = create_client(settings.SUPABASE_URL, settings.SUPABASE_KEY)
        return cls(client, settings.SUPABASE_URL, settings.STORAGE_BUCKET)

    def upload(self, path: str, data: bytes, content_type: str) -> None:
        try:
            self.client.storage.from_(self.bucket).upload(
                path,
                data,
                {"content-type": content_type},
            )
        except Exception as e:
            raise StorageWriteFailure(f"Failed to upload image: {e}") from e

    def remove(self, paths: Sequence[str]) -> None:
        if not paths:
            return
        try:
            self.client.storage.from_(self.bucket).remove(list(paths))
        except Exception as e:
            raise StorageDeleteFailure(f"Failed to delete images: {e}") from e

    def public_url(self, path: str) -> str:
        return f"{self.public_base}/{self.bucket}/{path}"

    def path_from_url(self, url: str) -> Optional[str]:
        try:
            pathname = urlparse(url).path
        except ValueError:
            return None
        m = self._path_re.search(pathname)
        return m.group(1) if m else None


def storage_paths(storage: ImageStorage, urls: Sequence[str]) -> List[str]:
    """Object paths for the given public URLs; URLs from elsewhere are dropped."""
    paths: List[str] = []
    for url in urls:
        path = storage.path_from_url(url)
        if path:
            paths.append(path)
        else:
            logger.warning("Not a storage URL, skipping: %s", url)
    return paths
