from __future__ import annotations

import os
from dataclasses import dataclass

from dotenv import load_dotenv


load_dotenv()

DEFAULT_BASE_URL = "https://api.linode.com/v4"


@dataclass(frozen=True)
class LinodeConfig:
    base_url: str
    api_token: str
    timeout_seconds: float = 15.0
    max_retries: int = 3
    page_size: int = 500


def get_linode_config(api_token: str | None = None) -> LinodeConfig:
    """
    Load Linode API configuration from environment variables.

    Reads LINODE_API_BASE_URL, LINODE_API_TOKEN (unless `api_token` is given),
    LINODE_API_TIMEOUT_SECONDS, LINODE_API_MAX_RETRIES and LINODE_API_PAGE_SIZE.
    """
    token = (api_token or "").strip() or _require_env("LINODE_API_TOKEN")
    return LinodeConfig(
        base_url=os.getenv("LINODE_API_BASE_URL", DEFAULT_BASE_URL).strip().rstrip("/"),
        api_token=token,
        timeout_seconds=_float_env("LINODE_API_TIMEOUT_SECONDS", 15.0),
        max_retries=int(_float_env("LINODE_API_MAX_RETRIES", 3)),
        page_size=int(_float_env("LINODE_API_PAGE_SIZE", 500)),
    )


def _require_env(name: str) -> str:
    value = os.getenv(name, "").strip()
    if not value:
        raise ValueError(f"Missing required environment variable: {name}")
    return value


def _float_env(name: str, default: float) -> float:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be a number, got {raw!r}") from exc
    if value <= 0:
        raise ValueError(f"{name} must be > 0")
    return value
