"""
URL validation for operator-configured outbound destinations.

Integration URLs are called server-side, so besides being well-formed they
must not point at internal infrastructure (SSRF protection).
"""

import ipaddress
import socket
from urllib.parse import urlparse

ALLOWED_SCHEMES = frozenset({"http", "https"})

# Hostnames that always resolve to the local machine
LOCAL_HOSTNAMES = frozenset({"localhost", "localhost.localdomain", "ip6-localhost"})


class SSRFError(ValueError):
    """Raised when a URL fails destination validation."""

    pass


def is_private_ip(ip_str: str) -> bool:
    """
    Check if an IP address is private, loopback, or otherwise internal.

    Args:
        ip_str: IP address string (IPv4 or IPv6)

    Returns:
        True if the IP is private/internal, False if public
    """
    try:
        ip = ipaddress.ip_address(ip_str)
    except ValueError:
        # Invalid IP address format
        return True

    return (
        ip.is_private
        or ip.is_loopback
        or ip.is_link_local
        or ip.is_multicast
        or ip.is_reserved
        or ip.is_unspecified
    )


def _is_ip_literal(hostname: str) -> bool:
    try:
        ipaddress.ip_address(hostname)
    except ValueError:
        return False
    return True


def validate_destination_url(
    url: str,
    allow_private: bool = False,
    resolve_dns: bool = False,
) -> str:
    """
    Validate an absolute http(s) URL used as an outbound webhook destination.

    Checks:
    1. URL parses and uses the http or https scheme
    2. URL has a hostname
    3. Hostname is not a loopback name or private IP literal (unless allowed)
    4. Resolved IPs are not private (optional, when resolve_dns is set)

    Args:
        url: The URL to validate
        allow_private: Accept internal destinations (local development only)
        resolve_dns: Whether to resolve DNS and check for private IPs

    Returns:
        The validated URL, stripped of surrounding whitespace

    Raises:
        SSRFError: If the URL fails any validation check
    """
    url = (url or "").strip()
    if not url:
        raise SSRFError("Empty URL")

    try:
        parsed = urlparse(url)
        # Accessing port validates it is numeric and in range
        port = parsed.port
    except ValueError as e:
        raise SSRFError(f"Invalid URL format: {e}") from e

    if parsed.scheme not in ALLOWED_SCHEMES:
        raise SSRFError(f"URL must use http or https, got: {parsed.scheme or 'none'}")

    hostname = parsed.hostname
    if not hostname:
        raise SSRFError("URL has no hostname")

    if any(ch.isspace() for ch in url):
        raise SSRFError("URL must not contain whitespace")

    if allow_private:
        return url

    hostname = hostname.lower()
    if hostname in LOCAL_HOSTNAMES or hostname.endswith(".localhost"):
        raise SSRFError(f"URL points to a local host: {hostname}")

    if _is_ip_literal(hostname) and is_private_ip(hostname):
        raise SSRFError(f"URL points to a private IP: {hostname}")

    # DNS resolution check (defense-in-depth against DNS rebinding)
    if resolve_dns and not _is_ip_literal(hostname):
        default_port = 443 if parsed.scheme == "https" else 80
        try:
            addr_info = socket.getaddrinfo(hostname, port or default_port, proto=socket.IPPROTO_TCP)
        except socket.gaierror as e:
            raise SSRFError(f"DNS resolution failed: {e}") from e
        for _family, _type, _proto, _canonname, sockaddr in addr_info:
            ip = sockaddr[0]
            if is_private_ip(ip):
                raise SSRFError(f"URL resolves to private IP: {ip}")

    return url
