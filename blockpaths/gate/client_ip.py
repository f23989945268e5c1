"""Client address extraction from forwarding headers.

``extract_client_ips()`` reads ``X-Forwarded-For`` then ``X-Real-IP``, splits
each value on commas and parses every non-empty token as an IPv4/IPv6 address.
Tokens that do not parse are reported back as ``AddressParseError`` entries;
extraction always continues with the remaining tokens.

``is_local_address()`` classifies private, loopback and link-local addresses
against the ranges below. ``ipaddress.is_private`` is NOT used: it also covers
documentation, benchmarking and other special-purpose blocks that are not
local networks.
"""

from __future__ import annotations

import ipaddress
from dataclasses import dataclass
from typing import Mapping, Optional, Union

from blockpaths.constants import FORWARDED_FOR_HEADER, REAL_IP_HEADER

IPAddress = Union[ipaddress.IPv4Address, ipaddress.IPv6Address]

# RFC 1918 private, RFC 1122 loopback, RFC 3927 link-local
_LOCAL_IPV4_NETWORKS: tuple[ipaddress.IPv4Network, ...] = (
    ipaddress.IPv4Network("10.0.0.0/8"),
    ipaddress.IPv4Network("172.16.0.0/12"),
    ipaddress.IPv4Network("192.168.0.0/16"),
    ipaddress.IPv4Network("127.0.0.0/8"),
    ipaddress.IPv4Network("169.254.0.0/16"),
)

# RFC 4193 unique-local, RFC 4291 loopback and link-local
_LOCAL_IPV6_NETWORKS: tuple[ipaddress.IPv6Network, ...] = (
    ipaddress.IPv6Network("fc00::/7"),
    ipaddress.IPv6Network("::1/128"),
    ipaddress.IPv6Network("fe80::/10"),
)


@dataclass(frozen=True)
class AddressParseError:
    """A forwarding-header token that is not a textual IP address."""

    header: str
    token: str
    reason: str


@dataclass(frozen=True)
class ClientAddresses:
    """Result of one extraction: parsed addresses in encounter order + failures."""

    addresses: tuple[IPAddress, ...] = ()
    errors: tuple[AddressParseError, ...] = ()

    def __str__(self) -> str:
        return ", ".join(str(address) for address in self.addresses)


def parse_ip(token: str) -> IPAddress:
    """Parse a single textual IPv4 or IPv6 address.

    Raises:
        ValueError: ``token`` is not an IP address.
    """
    try:
        return ipaddress.ip_address(token)
    except ValueError:
        raise ValueError(f"unable to parse IP from address [{token}]") from None


def is_local_address(address: IPAddress) -> bool:
    """Return True for private, loopback or link-local addresses (IPv4 or IPv6)."""
    if isinstance(address, ipaddress.IPv6Address):
        mapped = address.ipv4_mapped
        if mapped is not None:
            return is_local_address(mapped)
        return any(address in network for network in _LOCAL_IPV6_NETWORKS)
    return any(address in network for network in _LOCAL_IPV4_NETWORKS)


def _split_tokens(value: Optional[str]) -> list[str]:
    if not value:
        return []
    return [token.strip() for token in value.split(",") if token.strip()]


def extract_client_ips(headers: Mapping[str, str]) -> ClientAddresses:
    """Collect candidate client addresses from the forwarding headers.

    Args:
        headers: Request headers. Lookups use the canonical header names, so the
                 mapping should be case-insensitive (Starlette ``Headers`` is).

    Returns:
        ClientAddresses with every parsed address (X-Forwarded-For first, then
        X-Real-IP) and one AddressParseError per token that failed to parse.
        Both tuples are empty when neither header is present.
    """
    addresses: list[IPAddress] = []
    errors: list[AddressParseError] = []

    for header in (FORWARDED_FOR_HEADER, REAL_IP_HEADER):
        for token in _split_tokens(headers.get(header)):
            try:
                addresses.append(parse_ip(token))
            except ValueError as exc:
                errors.append(AddressParseError(header=header, token=token, reason=str(exc)))

    return ClientAddresses(addresses=tuple(addresses), errors=tuple(errors))
