"""
Security Utilities

Hashing of personal identifiers, session id generation, API key checks,
client IP extraction and CSV-safe field formatting.
"""

import hashlib
import hmac
import ipaddress
import logging
import re
import uuid
from collections.abc import Mapping
from typing import Any

logger = logging.getLogger(__name__)

UNKNOWN_IP = "0.0.0.0"

# Checked in order; the first header present wins
CLIENT_IP_HEADERS = ("client-ip", "x-forwarded-for")


def sha256_hex(value: str) -> str:
    return hashlib.sha256(value.encode("utf-8")).hexdigest()


def hash_ip(ip: str) -> str:
    """Hash an IP address for storage; raw addresses are never persisted."""
    return sha256_hex(ip)


def hash_user_agent(user_agent: str) -> str:
    return sha256_hex(user_agent)


def api_key_matches(provided: str | None, expected: str | None) -> bool:
    """Constant-time comparison of a presented API key with the configured one."""
    if not provided or not expected:
        return False
    return hmac.compare_digest(provided.encode("utf-8"), expected.encode("utf-8"))


def generate_session_id() -> str:
    """Generate a random consent session id (UUID4)."""
    return str(uuid.uuid4())


def get_client_ip(headers: Mapping[str, str] | None, remote_addr: str | None = None) -> str:
    """
    Determine the client IP address for a request.

    Priority: ``Client-IP`` header, first entry of ``X-Forwarded-For``,
    then the socket's remote address. A value that is not a valid IPv4 or
    IPv6 address yields ``0.0.0.0``.

    Args:
        headers: Request headers (any case)
        remote_addr: Peer address of the connection

    Returns:
        Validated IP address string

    Example:
        >>> get_client_ip({"X-Forwarded-For": "203.0.113.7, 10.0.0.1"}, "10.0.0.1")
        '203.0.113.7'
    """
    lowered = {str(key).lower(): value for key, value in (headers or {}).items()}

    candidate = ""
    for header in CLIENT_IP_HEADERS:
        value = (lowered.get(header) or "").strip()
        if value:
            candidate = value.split(",")[0].strip()
            break
    else:
        candidate = (remote_addr or "").strip()

    try:
        return str(ipaddress.ip_address(candidate))
    except ValueError:
        if candidate:
            logger.debug("Discarding invalid client IP %r", candidate)
        return UNKNOWN_IP


def sanitize_csv_field(value: Any) -> str:
    """
    Sanitize a CSV field value to prevent CSV injection attacks.

    Example:
        >>> sanitize_csv_field("=SUM(A1:A10)")
        "'=SUM(A1:A10)"
    """
    value_str = str(value) if value is not None else ""

    if value_str and value_str[0] in ("=", "+", "-", "@", "\t", "\r", "\n"):
        value_str = "'" + value_str

    return re.sub(r"[\r\n]+", " ", value_str)
