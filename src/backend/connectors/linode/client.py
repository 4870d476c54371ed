from __future__ import annotations

import json
import logging
import time
from http.client import HTTPException
from typing import Any
from urllib.error import HTTPError, URLError
from urllib.parse import urlencode
from urllib.request import Request, urlopen

from common.compliance_engine.provider import ProviderError

from .config import LinodeConfig

logger = logging.getLogger(__name__)

RETRY_STATUSES = (429, 500, 502, 503, 504)


class LinodeHttpError(ProviderError):
    """Failed Linode API request. `status` is 0 for connection-level failures."""


def linode_get(
    config: LinodeConfig,
    path: str,
    *,
    params: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """
    Perform an authenticated GET to the Linode API.

    stdlib urllib with a per-request timeout and exponential backoff on 429/5xx
    and connection errors, resets and truncated reads included. Other HTTP
    errors are raised immediately.
    """
    retries = 0
    backoff = 0.5

    while True:
        url = _build_url(config.base_url, path, params)
        req = Request(url, method="GET")
        req.add_header("Accept", "application/json")
        req.add_header("Authorization", f"Bearer {config.api_token}")

        try:
            with urlopen(req, timeout=config.timeout_seconds) as resp:
                raw = resp.read().decode("utf-8")
                return json.loads(raw) if raw else {}
        except HTTPError as exc:
            body = exc.read().decode("utf-8") if exc.fp else None
            status = exc.code

            if status in RETRY_STATUSES and retries < config.max_retries:
                logger.warning("Linode GET %s returned %s; retrying in %.1fs", path, status, backoff)
                time.sleep(backoff)
                retries += 1
                backoff *= 2
                continue

            raise LinodeHttpError(status, str(exc.reason), body) from exc
        except (URLError, OSError, HTTPException) as exc:
            if retries < config.max_retries:
                logger.warning("Linode GET %s failed (%s); retrying in %.1fs", path, exc, backoff)
                time.sleep(backoff)
                retries += 1
                backoff *= 2
                continue
            raise LinodeHttpError(0, str(exc)) from exc


def linode_get_all(config: LinodeConfig, path: str) -> list[dict[str, Any]]:
    """Follow Linode's `page`/`pages` pagination and return every `data` item."""
    page = 1
    items: list[dict[str, Any]] = []
    while True:
        payload = linode_get(config, path, params={"page": page, "page_size": config.page_size})
        data = payload.get("data") if isinstance(payload, dict) else None
        if isinstance(data, list):
            items.extend(d for d in data if isinstance(d, dict))
        pages = payload.get("pages", 1) if isinstance(payload, dict) else 1
        if not isinstance(pages, int) or page >= pages:
            break
        page += 1
    return items


def _build_url(base_url: str, path: str, params: dict[str, Any] | None) -> str:
    normalized_path = path if path.startswith("/") else f"/{path}"
    url = f"{base_url.rstrip('/')}{normalized_path}"
    if params:
        url = f"{url}?{urlencode(params)}"
    return url
