"""Visitor identification helpers that never keep a raw IP address."""
from __future__ import annotations

import hashlib

from starlette.requests import Request

DEFAULT_CLIENT_IP = "127.0.0.1"
UNKNOWN_COUNTRY = "Unknown"


def hash_visitor(ip_address: str, user_agent: str, salt: str) -> str:
    """SHA-256 over IP, user agent and a server-side salt."""
    return hashlib.sha256(f"{ip_address}{user_agent}{salt}".encode("utf-8")).hexdigest()


def get_client_ip(request: Request) -> str:
    """Get client IP address, handling proxies."""
    # Take the first IP in the X-Forwarded-For chain
    forwarded_for = request.headers.get("x-forwarded-for")
    if forwarded_for:
        first = forwarded_for.split(",")[0].strip()
        if first:
            return first

    for header in ("x-real-ip", "cf-connecting-ip"):
        value = request.headers.get(header)
        if value:
            return value.strip()

    if request.client:
        return request.client.host

    return DEFAULT_CLIENT_IP


def get_country(request: Request) -> str:
    """Country code set by the edge network, if any."""
    return request.headers.get("x-vercel-ip-country") or UNKNOWN_COUNTRY
