"""SSRF protection for outbound image fetches.

Hostnames are resolved once per check and never cached across requests. The
fetcher resolves again when it connects, so a hostname whose DNS answer changes
between the two lookups (DNS rebinding) is not caught here. This is a
best-effort mitigation; pinning the validated address for the connection would
close the window.
"""

import asyncio
import logging
import socket
from ipaddress import IPv4Address, IPv6Address, ip_address, ip_network
from typing import Awaitable, Callable, Optional, Union
from urllib.parse import urlparse

from src.core.errors import ClientInputError, SecurityRejection

logger = logging.getLogger(__name__)

ALLOWED_SCHEMES = frozenset({"http", "https"})

BLOCKED_NETWORKS = tuple(
    ip_network(cidr)
    for cidr in (
        "10.0.0.0/8",
        "172.16.0.0/12",
        "192.168.0.0/16",
        "127.0.0.0/8",
        "169.254.0.0/16",  # link-local, cloud metadata service
        "0.0.0.0/8",
        "224.0.0.0/4",
        "240.0.0.0/4",
        "::1/128",
        "::/128",
        "fe80::/10",
        "fc00::/7",
        "ff00::/8",
    )
)

Resolver = Callable[[str], Awaitable[list[str]]]


async def resolve_host(hostname: str) -> list[str]:
    """Resolve a hostname to every IPv4 and IPv6 address it maps to."""
    loop = asyncio.get_running_loop()
    results = await loop.getaddrinfo(hostname, None, type=socket.SOCK_STREAM)
    return list(dict.fromkeys(str(sockaddr[0]) for *_, sockaddr in results))


def is_blocked_address(address: Union[IPv4Address, IPv6Address]) -> bool:
    """Check an address against the private/reserved block list."""
    if isinstance(address, IPv6Address) and address.ipv4_mapped is not None:
        address = address.ipv4_mapped
    return any(address in network for network in BLOCKED_NETWORKS)


class OriginGuard:
    """Approves or rejects candidate URLs before they are fetched."""

    def __init__(self, resolver: Optional[Resolver] = None):
        """Initialize guard with an async hostname resolver."""
        self.resolver = resolver or resolve_host

    async def check(self, url: str) -> None:
        """
        Validate a URL for fetching.

        DNS failures are not rejections; the fetch will fail on connect.

        Args:
            url: Candidate URL

        Raises:
            ClientInputError: If the URL cannot be parsed
            SecurityRejection: If the scheme is not http(s) or any resolved
                address is private, loopback, link-local or reserved
        """
        try:
            parsed = urlparse(url)
            hostname = parsed.hostname
        except ValueError as e:
            raise ClientInputError(
                f"Malformed URL {url!r}: {e}", reason="invalid URL format"
            )

        scheme = parsed.scheme.lower()
        if scheme not in ALLOWED_SCHEMES:
            raise SecurityRejection(f"Only HTTP/HTTPS protocols allowed, got {scheme!r}")

        if not hostname:
            raise SecurityRejection(f"URL has no host: {url!r}")

        try:
            addresses = await self.resolver(hostname)
        except (OSError, UnicodeError) as e:
            logger.info(f"DNS resolution failed for {hostname}, deferring to fetch: {e}")
            return

        for raw_address in addresses:
            try:
                address = ip_address(raw_address.split("%", 1)[0])
            except ValueError:
                continue

            if is_blocked_address(address):
                logger.warning(
                    f"SSRF blocked: {hostname} resolved to private address {raw_address}"
                )
                raise SecurityRejection(
                    f"Access to private IP addresses is blocked: {hostname} -> {raw_address}"
                )
