"""HTTP client helpers for the catalog CLI."""
from __future__ import annotations

import httpx


def create_client(base_url: str, *, timeout: float = 30.0, transport: httpx.BaseTransport | None = None) -> httpx.Client:
    """Instantiate an HTTPX client with a configurable base URL."""

    return httpx.Client(base_url=base_url, timeout=timeout, transport=transport)


def auth_headers(token: str | None) -> dict[str, str]:
    """Bearer header for the admin endpoints; empty when no token is given."""

    return {"Authorization": f"Bearer {token}"} if token else {}
