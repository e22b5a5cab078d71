"""URL safety validation (SSRF protection) for caller-supplied recipe URLs.

Checks, in order:
- the URL parses and has a hostname
- the scheme is http or https
- the hostname is not a localhost variant
- literal IP hosts are not in a private or reserved range
- domain names resolve, and none of the resolved addresses is private or reserved

The addresses resolved here are not pinned to the connection the fetcher later
makes, and redirect targets are not revalidated. Both leave a DNS-rebinding
window open; the fetcher's egress filter only covers literal IP hops.
"""

import asyncio
import ipaddress
import logging
import re
import socket
from typing import Awaitable, Callable, List, Optional, Union
from urllib.parse import urlsplit

from chomp_recipes.app.services.url_ingredients.models import UrlSafetyResult

logger = logging.getLogger(__name__)

IPAddress = Union[ipaddress.IPv4Address, ipaddress.IPv6Address]
Resolver = Callable[[str], Awaitable[List[str]]]

ALLOWED_SCHEMES = {"http", "https"}

PRIVATE_IPV4_NETWORKS = tuple(
    ipaddress.IPv4Network(cidr)
    for cidr in (
        "0.0.0.0/8",  # current network
        "10.0.0.0/8",
        "127.0.0.0/8",  # loopback
        "169.254.0.0/16",  # link-local
        "172.16.0.0/12",
        "192.168.0.0/16",
        "224.0.0.0/4",  # multicast
        "240.0.0.0/4",  # reserved, includes broadcast
    )
)

PRIVATE_IPV6_NETWORKS = tuple(
    ipaddress.IPv6Network(cidr)
    for cidr in (
        "::1/128",  # loopback
        "::/128",  # unspecified
        "fc00::/7",  # unique local
        "fe80::/10",  # link-local
        "fec0::/10",  # site-local (deprecated)
    )
)

_LOOPBACK_IPV4_RE = re.compile(r"^\[?127\.\d+\.\d+\.\d+\]?$")

INVALID_FORMAT = "Invalid URL format."
UNSUPPORTED_SCHEME = "URL must use http or https protocol."
LOCALHOST_BLOCKED = "URLs pointing to localhost are not allowed."
PRIVATE_IP_BLOCKED = "URLs pointing to private IP addresses are not allowed."
RESOLVES_TO_PRIVATE = "URL resolves to a private IP address."
UNRESOLVABLE = "Could not resolve hostname."


def is_private_ipv4(address: ipaddress.IPv4Address) -> bool:
    return any(address in network for network in PRIVATE_IPV4_NETWORKS)


def is_private_ipv6(address: ipaddress.IPv6Address) -> bool:
    mapped = address.ipv4_mapped
    if mapped is not None:
        return is_private_ipv4(mapped)
    return any(address in network for network in PRIVATE_IPV6_NETWORKS)


def is_private_address(address: Union[str, IPAddress]) -> bool:
    """Classify an address (object or text) as private/reserved.

    Text that is not an IP address at all is not private by this rule.
    """
    if isinstance(address, str):
        parsed = parse_ip_literal(address)
        if parsed is None:
            return False
        address = parsed
    if isinstance(address, ipaddress.IPv4Address):
        return is_private_ipv4(address)
    return is_private_ipv6(address)


def parse_ip_literal(host: str) -> Optional[IPAddress]:
    """Return the address a hostname denotes literally, if any."""
    candidate = host.strip()
    if candidate.startswith("[") and candidate.endswith("]"):
        candidate = candidate[1:-1]
    # Zone ids (fe80::1%eth0) do not change the range an address falls in
    candidate = candidate.split("%", 1)[0]
    try:
        return ipaddress.ip_address(candidate)
    except ValueError:
        return None


def is_localhost_hostname(hostname: str) -> bool:
    lower = hostname.lower().rstrip(".")
    return (
        lower == "localhost"
        or lower == "localhost.localdomain"
        or lower.endswith(".localhost")
        or lower in {"::1", "[::1]"}
        or bool(_LOOPBACK_IPV4_RE.match(lower))
    )


async def resolve_host(hostname: str) -> List[str]:
    """Resolve a hostname for both address families."""
    loop = asyncio.get_running_loop()
    infos = await loop.getaddrinfo(
        hostname, None, family=socket.AF_UNSPEC, type=socket.SOCK_STREAM
    )
    return [info[4][0] for info in infos]


async def validate_url(raw_url: str, resolver: Optional[Resolver] = None) -> UrlSafetyResult:
    """Classify a URL as safe to fetch or reject it with a reason."""
    try:
        parsed = urlsplit(raw_url.strip())
        hostname = parsed.hostname
        parsed.port  # raises ValueError for malformed ports
    except (ValueError, AttributeError):
        return UrlSafetyResult.reject(INVALID_FORMAT)

    scheme = (parsed.scheme or "").lower()
    if not scheme:
        return UrlSafetyResult.reject(INVALID_FORMAT)
    if scheme not in ALLOWED_SCHEMES:
        return UrlSafetyResult.reject(UNSUPPORTED_SCHEME)
    if not parsed.netloc or not hostname:
        return UrlSafetyResult.reject(INVALID_FORMAT)

    if is_localhost_hostname(hostname):
        return UrlSafetyResult.reject(LOCALHOST_BLOCKED)

    literal = parse_ip_literal(hostname)
    if literal is not None:
        if is_private_address(literal):
            return UrlSafetyResult.reject(PRIVATE_IP_BLOCKED)
        return UrlSafetyResult.accept(parsed.geturl(), hostname)

    resolve = resolver or resolve_host
    try:
        addresses = await resolve(hostname.rstrip("."))
    except (OSError, UnicodeError) as exc:
        logger.info("DNS resolution failed for host=%s: %s", hostname, exc)
        return UrlSafetyResult.reject(UNRESOLVABLE)
    if not addresses:
        return UrlSafetyResult.reject(UNRESOLVABLE)

    for address in addresses:
        parsed_address = parse_ip_literal(address)
        if parsed_address is None:
            logger.warning("Resolver returned a non-IP value for host=%s: %r", hostname, address)
            return UrlSafetyResult.reject(UNRESOLVABLE)
        if is_private_address(parsed_address):
            logger.warning("Host %s resolves to private address %s", hostname, address)
            return UrlSafetyResult.reject(RESOLVES_TO_PRIVATE)

    return UrlSafetyResult.accept(parsed.geturl(), hostname)
