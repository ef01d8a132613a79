"""Shared HTTP client handling."""

import asyncio

import httpx

from team_pulse.config import get_http_timeout, get_verify_ssl

_http_client: httpx.AsyncClient | None = None
_http_client_settings: tuple[bool, float] | None = None
# Replaced clients waiting to be closed, and the close tasks still running
_retired_clients: list[httpx.AsyncClient] = []
_closing_tasks: set[asyncio.Task] = set()


def _retire(client: httpx.AsyncClient) -> None:
    """Close a replaced client on the running loop, or at shutdown if there is none."""
    try:
        loop = asyncio.get_running_loop()
    except RuntimeError:
        _retired_clients.append(client)
        return
    task = loop.create_task(client.aclose())
    _closing_tasks.add(task)
    task.add_done_callback(_closing_tasks.discard)


def get_async_http_client() -> httpx.AsyncClient:
    """Get or create a global async HTTP client with connection pooling.

    Recreates the client if SSL verification or timeout settings have changed.
    """
    global _http_client, _http_client_settings
    current_settings = (get_verify_ssl(), get_http_timeout())

    if (
        _http_client is None
        or _http_client.is_closed
        or _http_client_settings != current_settings
    ):
        # Close existing client if necessary
        if _http_client is not None and not _http_client.is_closed:
            _retire(_http_client)

        verify_ssl, timeout = current_settings
        _http_client = httpx.AsyncClient(
            verify=verify_ssl,
            timeout=timeout,
            limits=httpx.Limits(
                max_connections=20,
                max_keepalive_connections=10,
                keepalive_expiry=30.0,
            ),
        )
        _http_client_settings = current_settings
    return _http_client


async def close_async_http_client() -> None:
    """Close the global HTTP client and any replaced ones. Call this when shutting down."""
    global _http_client, _http_client_settings
    while _retired_clients:
        client = _retired_clients.pop()
        if not client.is_closed:
            await client.aclose()
    if _http_client is not None and not _http_client.is_closed:
        await _http_client.aclose()
    _http_client = None
    _http_client_settings = None
