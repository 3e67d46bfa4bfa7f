# app/services/images.py
"""
Image ingestion: data URIs from the admin form -> objects in storage -> public URLs.

Malformed entries are skipped with a warning. A failed upload aborts the whole
call (after removing what this call already uploaded).
"""

from __future__ import annotations

import base64
import binascii
import logging
import re
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence, Tuple

from app.core.errors import NoValidImages, StorageDeleteFailure, StorageWriteFailure
from app.services.storage import ImageStorage

logger = logging.getLogger(__name__)

DATA_URI_PREFIX = "data:image/"
DEFAULT_EXTENSION = "jpeg"

_MIME_EXT_RE = re.compile(r"^data:image/([a-zA-Z0-9]+);")


@dataclass(frozen=True)
class DecodedImage:
    index: int
    data: bytes
    extension: str

    @property
    def content_type(self) -> str:
        return f"image/{self.extension}"


def decode_data_uri(value: object, index: int) -> Optional[DecodedImage]:
    """Decode one "data:image/<ext>;base64,<payload>" entry; None if it is not one."""
    if not isinstance(value, str) or not value.startswith(DATA_URI_PREFIX):
        return None

    _, sep, payload = value.partition(",")
    if not sep:
        return None

    try:
        data = base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError):
        return None
    if not data:
        return None

    m = _MIME_EXT_RE.match(value)
    extension = m.group(1).lower() if m else DEFAULT_EXTENSION
    return DecodedImage(index=index, data=data, extension=extension)


def ingest_images(
    images: Sequence[object],
    folder: str,
    storage: ImageStorage,
    *,
    max_workers: int = 1,
    clock: Callable[[], float] = time.time,
) -> List[str]:
    """
    Upload every well-formed data URI under `folder` and return their public URLs.

    URLs come back in the relative order of the accepted inputs.

    Raises:
        NoValidImages: nothing in `images` was a usable data URI
        StorageWriteFailure: an upload failed
    """
    decoded: List[DecodedImage] = []
    for i, value in enumerate(images):
        item = decode_data_uri(value, i)
        if item is None:
            logger.warning("Skipping invalid image data at index %d", i)
            continue
        decoded.append(item)

    if not decoded:
        raise NoValidImages()

    stamp = int(clock() * 1000)
    paths = [f"{folder}/image-{stamp}-{item.index}.{item.extension}" for item in decoded]
    uploaded: List[str] = []

    def _upload(job: Tuple[DecodedImage, str]) -> str:
        item, path = job
        storage.upload(path, item.data, item.content_type)
        uploaded.append(path)
        return path

    try:
        if max_workers <= 1:
            stored = [_upload(job) for job in zip(decoded, paths)]
        else:
            with ThreadPoolExecutor(max_workers=max_workers) as pool:
                # map() yields in submission order regardless of completion order
                stored = list(pool.map(_upload, zip(decoded, paths)))
    except StorageWriteFailure:
        logger.error("Image upload failed for %s; removing %d uploaded object(s)", folder, len(uploaded))
        discard_images(storage, uploaded)
        raise

    return [storage.public_url(path) for path in stored]


def discard_images(storage: ImageStorage, paths: Sequence[str]) -> None:
    """Best-effort removal; failures are logged and ignored."""
    if not paths:
        return
    try:
        storage.remove(paths)
    except StorageDeleteFailure:
        logger.exception("Error deleting images: %s", list(paths))
