"""
Tests for integration destination URL validation and SSRF protection.

Tests cover:
- Private IP ranges (10.x, 172.16-31.x, 192.168.x)
- Loopback addresses and local hostnames
- Cloud metadata endpoint (169.254.169.254)
- Non-http(s) schemes and malformed URLs
- Optional DNS resolution checks
"""

import socket
from unittest.mock import patch

import pytest

from apps.core.url_validation import SSRFError, is_private_ip, validate_destination_url


class TestIsPrivateIP:
    """Tests for is_private_ip function."""

    @pytest.mark.parametrize(
        "ip",
        [
            "127.0.0.1",
            "127.255.255.255",
            "::1",
            "10.0.0.1",
            "172.16.0.1",
            "172.31.255.255",
            "192.168.1.1",
            "169.254.169.254",
            "0.0.0.0",
            "224.0.0.1",
        ],
    )
    def test_internal_addresses(self, ip: str) -> None:
        """Should detect loopback, private, link-local and multicast addresses."""
        assert is_private_ip(ip) is True

    @pytest.mark.parametrize(
        "ip",
        ["8.8.8.8", "1.1.1.1", "151.101.1.140", "2607:f8b0:4004:800::200e"],
    )
    def test_public_addresses(self, ip: str) -> None:
        assert is_private_ip(ip) is False

    def test_invalid_ip_format(self) -> None:
        """Should treat invalid IP format as private (fail-safe)."""
        assert is_private_ip("not-an-ip") is True
        assert is_private_ip("256.256.256.256") is True
        assert is_private_ip("") is True


class TestValidateDestinationUrl:
    """Tests for validate_destination_url function."""

    # --- Valid URLs ---

    @pytest.mark.parametrize(
        "url",
        [
            "https://crm.example.com/hooks/leads",
            "http://crm.example.com:8080/in?source=console",
            "https://8.8.8.8/webhook",
        ],
    )
    def test_accepts_public_http_urls(self, url: str) -> None:
        assert validate_destination_url(url) == url

    def test_strips_surrounding_whitespace(self) -> None:
        assert validate_destination_url("  https://crm.example.com/in \n") == (
            "https://crm.example.com/in"
        )

    # --- Empty/Invalid URL ---

    def test_empty_url(self) -> None:
        with pytest.raises(SSRFError) as exc_info:
            validate_destination_url("")
        assert "Empty URL" in str(exc_info.value)

    def test_none_url(self) -> None:
        with pytest.raises(SSRFError):
            validate_destination_url(None)  # type: ignore[arg-type]

    def test_invalid_port(self) -> None:
        with pytest.raises(SSRFError) as exc_info:
            validate_destination_url("https://crm.example.com:99999/in")
        assert "Invalid URL format" in str(exc_info.value)

    def test_missing_hostname(self) -> None:
        with pytest.raises(SSRFError) as exc_info:
            validate_destination_url("https:///in")
        assert "no hostname" in str(exc_info.value)

    def test_inner_whitespace(self) -> None:
        with pytest.raises(SSRFError):
            validate_destination_url("https://crm.example.com/le ads")

    # --- Scheme Validation ---

    @pytest.mark.parametrize(
        "url",
        [
            "ftp://crm.example.com/in",
            "file:///etc/passwd",
            "javascript:alert(1)",
            "crm.example.com/in",
        ],
    )
    def test_rejects_other_schemes(self, url: str) -> None:
        with pytest.raises(SSRFError) as exc_info:
            validate_destination_url(url)
        assert "http or https" in str(exc_info.value)

    # --- Internal destinations ---

    @pytest.mark.parametrize(
        "url",
        [
            "http://localhost/in",
            "http://LOCALHOST:8000/in",
            "http://api.localhost/in",
        ],
    )
    def test_rejects_local_hostnames(self, url: str) -> None:
        with pytest.raises(SSRFError) as exc_info:
            validate_destination_url(url)
        assert "local host" in str(exc_info.value)

    @pytest.mark.parametrize(
        "url",
        [
            "http://127.0.0.1/in",
            "http://10.0.0.1/in",
            "http://192.168.1.20:8080/in",
            "http://169.254.169.254/latest/meta-data/",
            "http://[::1]/in",
        ],
    )
    def test_rejects_private_ip_literals(self, url: str) -> None:
        with pytest.raises(SSRFError) as exc_info:
            validate_destination_url(url)
        assert "private IP" in str(exc_info.value)

    def test_allow_private_for_local_development(self) -> None:
        url = "http://localhost:9000/in"
        assert validate_destination_url(url, allow_private=True) == url

    def test_allow_private_still_requires_http(self) -> None:
        with pytest.raises(SSRFError):
            validate_destination_url("ftp://localhost/in", allow_private=True)

    # --- DNS Resolution Protection ---

    @patch("apps.core.url_validation.socket.getaddrinfo")
    def test_no_dns_lookup_by_default(self, mock_getaddrinfo) -> None:
        validate_destination_url("https://crm.example.com/in")
        mock_getaddrinfo.assert_not_called()

    @patch("apps.core.url_validation.socket.getaddrinfo")
    def test_rejects_url_resolving_to_private_ip(self, mock_getaddrinfo) -> None:
        """Should reject URL that resolves to private IP (DNS rebinding protection)."""
        mock_getaddrinfo.return_value = [(2, 1, 6, "", ("10.0.0.1", 443))]

        with pytest.raises(SSRFError) as exc_info:
            validate_destination_url("https://crm.example.com/in", resolve_dns=True)
        assert "private IP" in str(exc_info.value)

    @patch("apps.core.url_validation.socket.getaddrinfo")
    def test_accepts_url_resolving_to_public_ip(self, mock_getaddrinfo) -> None:
        mock_getaddrinfo.return_value = [(2, 1, 6, "", ("151.101.1.140", 443))]

        url = "https://crm.example.com/in"
        assert validate_destination_url(url, resolve_dns=True) == url
        mock_getaddrinfo.assert_called_once_with(
            "crm.example.com", 443, proto=socket.IPPROTO_TCP
        )

    @patch("apps.core.url_validation.socket.getaddrinfo")
    def test_dns_resolution_failure(self, mock_getaddrinfo) -> None:
        mock_getaddrinfo.side_effect = socket.gaierror("DNS failed")

        with pytest.raises(SSRFError) as exc_info:
            validate_destination_url("https://crm.example.com/in", resolve_dns=True)
        assert "DNS resolution failed" in str(exc_info.value)
