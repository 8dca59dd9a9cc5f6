"""HTTP client for the CampusFeed backend.

This module provides an async HTTP/2 client with:
- Connection pooling and lazy client creation
- Bearer token injection from the current session
- Query-string encoding for list filters
- Response envelope unwrapping (``{code, message, data}``)
- Status-to-error mapping onto :mod:`campusfeed.errors`

The client never retries; a failed call surfaces as an AppError and the
caller decides what to do next.

Example:
    >>> from campusfeed.api import ApiClient
    >>>
    >>> async with ApiClient("https://api.campus.example") as client:
    ...     data = await client.get("/posts", params={"category": "food", "page": 1})
    ...     print(data["pagination"]["total"])
"""

import time
from collections.abc import Callable, Mapping
from enum import Enum
from typing import Any

import httpx

from campusfeed.config import settings
from campusfeed.errors import AppError, RemoteError, error_for_status
from campusfeed.logging import logger
from campusfeed.metrics import errors_total, http_request_duration_seconds, http_requests_total
from campusfeed.utils import encode_path_param

SUCCESS_CODE = 200

# =============================================================================
# Request Encoding
# =============================================================================


def _encode_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, Enum):
        return str(value.value)
    return str(value)


def build_query_params(params: Mapping[str, Any] | None) -> dict[str, str]:
    """Encode list-query parameters for the wire.

    ``None``, empty strings and empty lists are omitted, lists are
    comma-joined and booleans become ``true``/``false``.

    Example:
        >>> build_query_params({"tags": ["spicy", "cheap"], "q": "", "is_active": False})
        {'tags': 'spicy,cheap', 'is_active': 'false'}
    """
    query: dict[str, str] = {}
    for key, value in (params or {}).items():
        if value is None:
            continue
        if isinstance(value, (list, tuple, set)):
            parts = [_encode_value(v) for v in value if v is not None and v != ""]
            if not parts:
                continue
            query[key] = ",".join(parts)
            continue
        encoded = _encode_value(value)
        if encoded == "":
            continue
        query[key] = encoded
    return query


def build_path(template: str, **ids: str) -> str:
    """Substitute percent-encoded ids into a path template.

    Example:
        >>> build_path("/posts/{post_id}/like", post_id="a/b")
        '/posts/a%2Fb/like'
    """
    return template.format(**{name: encode_path_param(value) for name, value in ids.items()})


# =============================================================================
# Async API Client
# =============================================================================


class ApiClient:
    """Async HTTP/2 client for the CampusFeed REST API.

    Args:
        base_url: API root (defaults to settings.api_base_url)
        get_token: Callable returning the current session token, if any
        timeout: Overall request timeout in seconds (defaults to settings)
        transport: Custom httpx transport (tests use ``httpx.MockTransport``)
        pool_limits: Connection pool configuration

    Example:
        >>> client = ApiClient(get_token=session.get_token)
        >>> user = await client.get("/auth/me")
        >>> await client.close()
    """

    def __init__(
        self,
        base_url: str | None = None,
        get_token: Callable[[], str | None] | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        pool_limits: httpx.Limits | None = None,
    ) -> None:
        self.base_url = (base_url or settings.api_base_url).rstrip("/")
        self._get_token = get_token or (lambda: None)
        self._transport = transport

        self._limits = pool_limits or httpx.Limits(
            max_connections=20,
            max_keepalive_connections=5,
            keepalive_expiry=30.0,
        )

        overall = timeout if timeout is not None else settings.request_timeout
        self._timeout = httpx.Timeout(timeout=overall, connect=min(5.0, overall))

        # Created on first use
        self._client: httpx.AsyncClient | None = None

    async def _ensure_client(self) -> httpx.AsyncClient:
        """Lazy initialization of HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                limits=self._limits,
                timeout=self._timeout,
                http2=self._transport is None,
                transport=self._transport,
                headers={"Content-Type": "application/json", "Accept": "application/json"},
            )
        return self._client

    async def __aenter__(self) -> "ApiClient":
        await self._ensure_client()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    async def close(self) -> None:
        """Close all connections and cleanup resources."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    def _headers(self) -> dict[str, str]:
        token = self._get_token()
        return {"Authorization": f"Bearer {token}"} if token else {}

    async def request(
        self,
        method: str,
        path: str,
        params: Mapping[str, Any] | None = None,
        json: Any = None,
    ) -> Any:
        """Send one request and unwrap the response envelope.

        Args:
            method: HTTP method
            path: Path relative to the base URL (ids already encoded)
            params: List-query parameters, encoded with :func:`build_query_params`
            json: JSON body

        Returns:
            The envelope's ``data`` field

        Raises:
            InvalidInputError: 400/409/422
            AuthenticationError: 401
            PermissionDeniedError: 403
            NotFoundError: 404
            RemoteError: Any other failure, including every httpx transport error
        """
        client = await self._ensure_client()
        method = method.upper()
        start = time.perf_counter()

        try:
            resp = await client.request(
                method,
                path,
                params=build_query_params(params),
                json=json,
                headers=self._headers(),
            )
        except httpx.HTTPError as exc:
            http_requests_total.labels(method=method, status="error").inc()
            errors_total.labels(error_type=type(exc).__name__, component="api").inc()
            logger.warning(f"{method} {path} failed: {exc}")
            raise RemoteError(details=str(exc)) from exc
        finally:
            http_request_duration_seconds.labels(method=method).observe(
                time.perf_counter() - start
            )

        http_requests_total.labels(method=method, status=str(resp.status_code)).inc()
        logger.debug(f"{method} {path} -> {resp.status_code}")

        try:
            return self._unwrap(resp)
        except AppError as exc:
            errors_total.labels(error_type=type(exc).__name__, component="api").inc()
            logger.info(f"{method} {path} rejected: {exc!r}")
            raise

    @staticmethod
    def _unwrap(resp: httpx.Response) -> Any:
        try:
            body = resp.json()
        except ValueError:
            body = None

        if not isinstance(body, dict):
            if resp.is_success:
                raise RemoteError(status=resp.status_code, details="Invalid JSON response")
            message = resp.reason_phrase if resp.status_code < 500 else ""
            raise error_for_status(resp.status_code, message)

        code = body.get("code", resp.status_code)
        message = body.get("message") or ""
        if resp.is_success and code == SUCCESS_CODE:
            return body.get("data")

        status = resp.status_code if not resp.is_success else code
        try:
            status = int(status)
        except (TypeError, ValueError):
            status = 500
        raise error_for_status(status, message, code=code if isinstance(code, int) else None)

    async def get(self, path: str, params: Mapping[str, Any] | None = None) -> Any:
        return await self.request("GET", path, params=params)

    async def post(self, path: str, json: Any = None) -> Any:
        return await self.request("POST", path, json=json)

    async def put(self, path: str, json: Any = None) -> Any:
        return await self.request("PUT", path, json=json)

    async def delete(self, path: str) -> Any:
        return await self.request("DELETE", path)


__all__ = ["SUCCESS_CODE", "build_query_params", "build_path", "ApiClient"]
