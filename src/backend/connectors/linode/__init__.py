"""Linode API connector (network + credentials live here; evaluation lives in common/compliance_engine)."""

from .account import LinodeAccountProvider
from .client import LinodeHttpError, linode_get, linode_get_all
from .config import LinodeConfig, get_linode_config

__all__ = [
    "LinodeAccountProvider",
    "LinodeConfig",
    "LinodeHttpError",
    "get_linode_config",
    "linode_get",
    "linode_get_all",
]
