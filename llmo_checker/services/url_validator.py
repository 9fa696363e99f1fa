"""
URL validation with SSRF protection.

Pure string/pattern checks: no DNS resolution happens here. A public-looking
hostname that resolves to a private address is not caught; redirect targets
are re-validated by the fetcher instead.
"""

import ipaddress
import re
from typing import Union
from urllib.parse import urlsplit, urlunsplit

from ..core.errors import RejectionKind, SecurityRejection, UrlValidationError
from ..models.schemas import ValidatedUrl

MAX_URL_LENGTH = 2048
ALLOWED_SCHEMES = ("http", "https")
DEFAULT_PORTS = {"http": 80, "https": 443}

PRIVATE_NETWORKS = [
    ipaddress.ip_network(net)
    for net in (
        "0.0.0.0/8",
        "10.0.0.0/8",
        "127.0.0.0/8",
        "169.254.0.0/16",
        "172.16.0.0/12",
        "192.168.0.0/16",
        "::1/128",
        "::/128",
        "fc00::/7",
        "fe80::/10",
    )
]

BLOCKED_HOSTNAMES = {
    "localhost",
    "metadata.google.internal",  # GCP metadata
}

# Something that looks like "scheme:" but not "host:port".
_SCHEME_RE = re.compile(r"^[a-z][a-z0-9+.\-]*:(?!\d)", re.IGNORECASE)
_NUMERIC_HOST_RE = re.compile(r"^(0x[0-9a-f]*|[0-9]+)(\.(0x[0-9a-f]*|[0-9]*))*$", re.IGNORECASE)
_HOST_LABEL_RE = re.compile(r"^[a-z0-9_]([a-z0-9_\-]*[a-z0-9_])?$", re.IGNORECASE)

IPAddress = Union[ipaddress.IPv4Address, ipaddress.IPv6Address]


def is_private_address(ip: IPAddress) -> bool:
    if isinstance(ip, ipaddress.IPv6Address) and ip.ipv4_mapped is not None:
        ip = ip.ipv4_mapped
    return any(ip.version == net.version and ip in net for net in PRIVATE_NETWORKS)


def _parse_ip(hostname: str):
    try:
        return ipaddress.ip_address(hostname)
    except ValueError:
        return None


def _with_default_scheme(raw: str) -> str:
    if "://" in raw or _SCHEME_RE.match(raw):
        return raw
    return "https://" + raw


def canonical_key(scheme: str, hostname: str, port, path: str, query: str) -> str:
    """Cache key: lowercase scheme/host, no default port, no fragment, '/' for empty path."""
    host = f"[{hostname}]" if ":" in hostname else hostname
    netloc = host if port is None or DEFAULT_PORTS.get(scheme) == port else f"{host}:{port}"
    return urlunsplit((scheme, netloc, path or "/", query, ""))


def is_private_host(hostname: str) -> bool:
    """True for private/loopback/link-local IP literals and local-only names."""
    # IPv6 zone ids ("fe80::1%eth0") are dropped before matching.
    hostname = hostname.split("%", 1)[0].rstrip(".").lower()
    ip = _parse_ip(hostname)
    if ip is not None:
        return is_private_address(ip)
    return hostname in BLOCKED_HOSTNAMES or hostname.endswith(".localhost")


def check_public_name(hostname: str) -> None:
    """Raise unless ``hostname`` is an IP literal or a dotted domain name."""
    if _parse_ip(hostname.split("%", 1)[0]) is not None:
        return

    # "127.1", "2130706433" and hex forms resolve to IPs on most resolvers.
    if _NUMERIC_HOST_RE.match(hostname):
        raise UrlValidationError(RejectionKind.MALFORMED_URL, detail=f"non-canonical numeric host {hostname}")

    try:
        ascii_name = hostname.encode("idna").decode("ascii")
    except UnicodeError as e:
        raise UrlValidationError(RejectionKind.MALFORMED_URL, detail=f"invalid domain name {hostname}") from e

    labels = ascii_name.split(".")
    if len(labels) < 2 or not all(_HOST_LABEL_RE.match(label) for label in labels):
        raise UrlValidationError(RejectionKind.MALFORMED_URL, detail=f"invalid domain name {hostname}")


def validate_url(raw: str) -> ValidatedUrl:
    """
    Parse and authorize a candidate URL.

    Args:
        raw: User-supplied URL; ``https://`` is assumed when no scheme is given

    Returns:
        ValidatedUrl whose ``url`` equals the (possibly scheme-defaulted) input

    Raises:
        SecurityRejection: hostname is private, loopback or link-local (checked
            before the scheme, so ``ftp://10.0.0.1`` is a security rejection)
        UrlValidationError: malformed input or unsupported scheme
    """
    if not isinstance(raw, str) or not raw.strip():
        raise UrlValidationError(RejectionKind.MALFORMED_URL, detail="empty url")

    candidate = _with_default_scheme(raw.strip())
    if len(candidate) > MAX_URL_LENGTH:
        raise UrlValidationError(RejectionKind.MALFORMED_URL, detail="url too long")

    try:
        parts = urlsplit(candidate)
    except ValueError as e:
        raise UrlValidationError(RejectionKind.MALFORMED_URL, detail=str(e)) from e

    hostname = (parts.hostname or "").rstrip(".")
    if hostname and is_private_host(hostname):
        raise SecurityRejection(detail=f"private host {hostname}")

    scheme = parts.scheme.lower()
    if scheme not in ALLOWED_SCHEMES:
        raise UrlValidationError(RejectionKind.UNSUPPORTED_SCHEME, detail=f"scheme {scheme!r}")

    if not hostname:
        raise UrlValidationError(RejectionKind.MALFORMED_URL, detail="missing hostname")

    try:
        port = parts.port
    except ValueError as e:
        raise UrlValidationError(RejectionKind.MALFORMED_URL, detail=str(e)) from e

    check_public_name(hostname)

    return ValidatedUrl(
        url=candidate,
        scheme=scheme,
        hostname=hostname,
        cache_key=canonical_key(scheme, hostname, port, parts.path, parts.query),
    )
