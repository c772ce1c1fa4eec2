"""Helpers shared by the httpx REST adapters.

The marketplace backend wraps every payload in an envelope:

    {"status": "success", "message": "...", "data": {...}}
    {"status": "error", "message": "Order not found"}
"""

import os

import httpx

DEFAULT_TIMEOUT = 10.0


def service_timeout() -> float:
    return float(os.environ.get("SERVICE_TIMEOUT", DEFAULT_TIMEOUT))


def build_client(base_url: str, client: httpx.AsyncClient | None = None, timeout: float | None = None):
    """Return ``client`` if given, else a new AsyncClient bound to ``base_url``."""
    if client is not None:
        return client
    return httpx.AsyncClient(
        base_url=base_url,
        timeout=timeout if timeout is not None else service_timeout(),
        headers={"Accept": "application/json"},
    )


class MalformedResponse(ValueError):
    """A success response whose body is not the expected JSON document."""


def envelope_data(response: httpx.Response) -> dict:
    """Return the ``data`` member of an envelope (or the bare object).

    Raises MalformedResponse when the body is not JSON, e.g. an HTML page
    served by a proxy in front of the service.
    """
    try:
        payload = response.json()
    except ValueError as exc:
        content_type = response.headers.get("content-type", "unknown")
        raise MalformedResponse(f"Expected JSON, got {content_type} (HTTP {response.status_code})") from exc
    if not isinstance(payload, dict):
        return {}
    if "data" in payload:
        return payload["data"] or {}
    return payload


def error_message(response: httpx.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        return response.text or f"HTTP {response.status_code}"
    if isinstance(payload, dict) and payload.get("message"):
        return str(payload["message"])
    return f"HTTP {response.status_code}"
