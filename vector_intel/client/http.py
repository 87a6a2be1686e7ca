"""
HTTP Transport

Thin JSON-over-HTTP layer on httpx. Translates transport failures and
status codes into the tagged error taxonomy:

    httpx.TimeoutException -> RequestTimeoutError
    httpx.TransportError   -> NetworkError
    4xx                    -> ClientError
    5xx                    -> NetworkError(status=...)
"""

from __future__ import annotations

from typing import Any

import httpx

from vector_intel.errors import ClientError, NetworkError, RequestTimeoutError


class HttpTransport:
    """
    Async JSON transport bound to one base URL.

    Args:
        base_url: Service root, e.g. "http://localhost:8080"
        timeout: Default per-call timeout in seconds
        api_key: Bearer token; ignored in local mode
        local_mode: Skip the Authorization header
        transport: Optional httpx transport (httpx.MockTransport in tests)
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 30.0,
        api_key: str | None = None,
        local_mode: bool = True,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url
        self.timeout = timeout
        headers = {"Content-Type": "application/json"}
        if not local_mode and api_key and api_key != "local":
            headers["Authorization"] = f"Bearer {api_key}"
        self._client = httpx.AsyncClient(
            base_url=base_url,
            headers=headers,
            timeout=timeout,
            transport=transport,
        )

    async def request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        body: Any = None,
        headers: dict[str, str] | None = None,
        timeout: float | None = None,
    ) -> Any:
        """Send one request and return the decoded JSON body (None if empty)."""
        effective_timeout = timeout if timeout is not None else self.timeout
        try:
            response = await self._client.request(
                method,
                path,
                params=params,
                json=body,
                headers=headers,
                timeout=effective_timeout,
            )
        except httpx.TimeoutException as e:
            raise RequestTimeoutError(effective_timeout, path) from e
        except httpx.TransportError as e:
            raise NetworkError(f"{method} {path} failed: {e}") from e

        if response.is_error:
            message = _error_message(response)
            if response.status_code < 500:
                raise ClientError(response.status_code, message)
            raise NetworkError(f"HTTP {response.status_code}: {message}", status=response.status_code)

        if not response.content:
            return None
        return response.json()

    async def close(self) -> None:
        await self._client.aclose()


def _error_message(response: httpx.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        return response.reason_phrase or response.text
    if isinstance(payload, dict) and payload.get("message"):
        return str(payload["message"])
    return response.reason_phrase or response.text
