from __future__ import annotations

from typing import Any, Dict, List, Optional, Protocol


class ProviderError(RuntimeError):
    def __init__(self, status: int, message: str, body: Optional[str] = None):
        super().__init__(f"HTTP {status}: {message}" if status else message)
        self.status = status
        self.body = body


class LiveAccountProvider(Protocol):
    """Provider calls needed by the live condition kinds.

    Implementations raise `ProviderError` on any request failure and must
    bound every call with a timeout.
    """

    def list_users(self) -> List[Dict[str, Any]]:
        ...

    def list_logins(self) -> List[Dict[str, Any]]:
        ...

    def get_control_plane_acl(self, cluster_id: str) -> Dict[str, Any]:
        ...
