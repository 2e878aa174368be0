"""Client IP resolution from reverse-proxy headers.

Headers are trusted as sent: the service is expected to run behind a proxy
that overwrites them.
"""

from __future__ import annotations

from collections.abc import Mapping

UNKNOWN_CLIENT = "unknown"


def _first_forwarded(headers: Mapping[str, str]) -> str | None:
    forwarded = headers.get("x-forwarded-for") or ""
    first = forwarded.split(",")[0].strip()
    return first or None


def _normalize_ip(ip: str) -> str:
    if ip.startswith("::ffff:"):
        return ip[len("::ffff:"):]
    if ip == "::1":
        return "127.0.0.1"
    return ip


def resolve_rate_limit_identifier(headers: Mapping[str, str]) -> str:
    """Pick the rate limit key for a request.

    First address of ``X-Forwarded-For``, else ``X-Real-IP``, else the shared
    ``"unknown"`` bucket. ``headers`` must look up names case-insensitively
    (Starlette ``Headers`` do).

    Examples:
        >>> resolve_rate_limit_identifier({"x-forwarded-for": "10.0.0.1, 10.0.0.2"})
        '10.0.0.1'
        >>> resolve_rate_limit_identifier({})
        'unknown'
    """

    return _first_forwarded(headers) or headers.get("x-real-ip") or UNKNOWN_CLIENT


def get_client_ip(headers: Mapping[str, str], fallback: str | None = None) -> str | None:
    """Best-effort client IP for audit logs.

    Also honours ``CF-Connecting-IP`` and normalizes IPv4-mapped and loopback
    IPv6 addresses.
    """

    chosen = _first_forwarded(headers) or headers.get("x-real-ip") or headers.get("cf-connecting-ip")
    if not chosen:
        return fallback
    return _normalize_ip(chosen)
