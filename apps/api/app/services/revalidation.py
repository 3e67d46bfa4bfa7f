# app/services/revalidation.py
from __future__ import annotations

import logging
from typing import Dict, Optional, Protocol

import httpx

logger = logging.getLogger(__name__)

ADMIN_CARS_PATH = "/admin/cars"


class Revalidator(Protocol):
    def revalidate_path(self, path: str) -> None: ...


class HttpRevalidator:
    """
    Tells the frontend that the cached data behind `path` is stale.

    Fire and forget: failures are logged, never raised. Without a URL the
    signal is only logged.
    """

    def __init__(self, url: Optional[str], secret: Optional[str] = None, timeout: float = 5.0) -> None:
        self.url = url
        self.secret = secret
        self.timeout = timeout

    def revalidate_path(self, path: str) -> None:
        if not self.url:
            logger.debug("Revalidation URL not configured; skipping %s", path)
            return

        headers: Dict[str, str] = {}
        if self.secret:
            headers["x-revalidate-secret"] = self.secret

        try:
            resp = httpx.post(self.url, json={"path": path}, headers=headers, timeout=self.timeout)
        except httpx.HTTPError as e:
            logger.error("Revalidation of %s failed: %s", path, e)
            return

        if resp.is_error:
            logger.error("Revalidation of %s returned HTTP %s", path, resp.status_code)
