from __future__ import annotations

from typing import Any, Dict, List
from urllib.parse import quote

from .client import linode_get, linode_get_all
from .config import LinodeConfig


class LinodeAccountProvider:
    """Live account lookups used by the TFA, login and LKE ACL checks."""

    def __init__(self, config: LinodeConfig):
        self._config = config

    def list_users(self) -> List[Dict[str, Any]]:
        return linode_get_all(self._config, "/account/users")

    def list_logins(self) -> List[Dict[str, Any]]:
        return linode_get_all(self._config, "/account/logins")

    def get_control_plane_acl(self, cluster_id: str) -> Dict[str, Any]:
        return linode_get(self._config, f"/lke/clusters/{quote(str(cluster_id), safe='')}/control_plane_acl")
