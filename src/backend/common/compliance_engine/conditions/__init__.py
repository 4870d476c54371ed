from . import access, attachment, firewall, governance, live, scale, state, tagging

__all__ = [
    "access",
    "attachment",
    "firewall",
    "governance",
    "live",
    "scale",
    "state",
    "tagging",
]
