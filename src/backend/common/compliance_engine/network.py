"""Firewall rule parsing and address/port classification helpers."""

from __future__ import annotations

import ipaddress
from typing import Any, Iterable, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

ALL_PORTS = "1-65535"
WILDCARD_CIDRS = frozenset({"0.0.0.0/0", "::/0", "2000::/3"})
PRIVATE_NETWORKS = (
    ipaddress.ip_network("10.0.0.0/8"),
    ipaddress.ip_network("172.16.0.0/12"),
    ipaddress.ip_network("192.168.0.0/16"),
)
# Protocols without a port dimension.
PORTLESS_PROTOCOLS = frozenset({"ICMP", "IPENCAP"})


class RuleAddresses(BaseModel):
    model_config = ConfigDict(extra="ignore")

    ipv4: List[str] = Field(default_factory=list)
    ipv6: List[str] = Field(default_factory=list)

    @field_validator("ipv4", "ipv6", mode="before")
    @classmethod
    def _none_as_empty(cls, value: Any) -> Any:
        return [] if value is None else value


class FirewallRule(BaseModel):
    model_config = ConfigDict(extra="ignore")

    action: Optional[str] = ""
    protocol: Optional[str] = ""
    ports: Optional[str] = ""
    addresses: RuleAddresses = Field(default_factory=RuleAddresses)
    label: Optional[str] = ""
    description: Optional[str] = ""

    @field_validator("addresses", mode="before")
    @classmethod
    def _none_as_no_addresses(cls, value: Any) -> Any:
        return {} if value is None else value

    @property
    def display_label(self) -> str:
        return self.label or "unnamed"

    @property
    def normalized_action(self) -> str:
        return (self.action or "").upper()

    @property
    def normalized_protocol(self) -> str:
        return (self.protocol or "").upper()

    def is_accept(self) -> bool:
        return self.normalized_action == "ACCEPT"

    def is_tcp_or_all(self) -> bool:
        return self.normalized_protocol in ("TCP", "ALL")

    def covers_all_ports(self) -> bool:
        if self.normalized_protocol == "ALL":
            return True
        return is_all_ports(self.ports)

    def covers_port(self, port: int) -> bool:
        if self.normalized_protocol == "ALL":
            return True
        return port_in_ranges(port, self.ports)

    def is_open_to_world(self) -> bool:
        return any(cidr in WILDCARD_CIDRS for cidr in self.all_addresses())

    def all_addresses(self) -> List[str]:
        return [*self.addresses.ipv4, *self.addresses.ipv6]

    def fingerprint(self) -> str:
        ipv4 = ",".join(sorted(self.addresses.ipv4))
        ipv6 = ",".join(sorted(self.addresses.ipv6))
        return f"{self.normalized_action}|{self.normalized_protocol}|{normalize_ports(self.ports)}|{ipv4}|{ipv6}"


def parse_rules(raw: Optional[Iterable[Any]]) -> List[FirewallRule]:
    return [FirewallRule.model_validate(item) for item in (raw or [])]


def normalize_ports(ports: Optional[str]) -> str:
    """`" 22, 80 ,8000 - 8100"` becomes `"22,80,8000-8100"`."""
    parts = ("".join(part.split()) for part in (ports or "").split(","))
    return ",".join(p for p in parts if p)


def is_all_ports(ports: Optional[str]) -> bool:
    text = (ports or "").strip()
    return text == "" or text == ALL_PORTS


def port_in_ranges(port: int, ports: Optional[str]) -> bool:
    """Return True when `port` falls inside a `"22, 80, 8000-8100"` style spec.

    An empty spec means every port.
    """
    text = (ports or "").strip()
    if text == "":
        return True
    for segment in text.split(","):
        seg = segment.strip()
        if not seg:
            continue
        if "-" in seg:
            lo_raw, _, hi_raw = seg.partition("-")
            try:
                lo, hi = int(lo_raw), int(hi_raw)
            except ValueError:
                continue
            if lo <= port <= hi:
                return True
            continue
        try:
            if int(seg) == port:
                return True
        except ValueError:
            continue
    return False


def is_private_cidr(cidr: str) -> bool:
    try:
        network = ipaddress.ip_network(cidr.strip(), strict=False)
    except ValueError:
        return False
    if network.version != 4:
        return False
    return any(network.subnet_of(private) for private in PRIVATE_NETWORKS)
