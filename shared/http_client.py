"""
HTTP client utilities for talking to the collaboration backend.
"""

import asyncio
from typing import Any

import aiohttp


class AsyncHTTPClient:
    """Async HTTP client bound to one backend and an optional bearer token."""

    def __init__(self, base_url: str = "", token: str | None = None, timeout: int = 30) -> None:
        """Initialize HTTP client."""
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.timeout = aiohttp.ClientTimeout(total=timeout)
        self.session: aiohttp.ClientSession | None = None

    async def __aenter__(self) -> "AsyncHTTPClient":
        """Enter async context manager."""
        self.session = aiohttp.ClientSession(timeout=self.timeout)
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Exit async context manager."""
        if self.session:
            await self.session.close()
            self.session = None

    def _url(self, path: str) -> str:
        if path.startswith(("http://", "https://")) or not self.base_url:
            return path
        return f"{self.base_url}/{path.lstrip('/')}"

    def _headers(self, headers: dict[str, Any] | None) -> dict[str, Any]:
        merged = dict(headers or {})
        if self.token and "Authorization" not in merged:
            merged["Authorization"] = f"Bearer {self.token}"
        return merged

    @staticmethod
    async def _prepare_request(coro_or_ctx: Any) -> Any:
        """Normalize aiohttp request result to an async context manager."""
        if asyncio.iscoroutine(coro_or_ctx):
            return await coro_or_ctx
        return coro_or_ctx

    @staticmethod
    async def _ensure_response_ok(response: Any) -> None:
        """Invoke raise_for_status, awaiting when necessary."""
        result = response.raise_for_status()
        if asyncio.iscoroutine(result):
            await result

    async def _request(
        self,
        method: str,
        path: str,
        data: dict[str, Any] | None = None,
        headers: dict[str, Any] | None = None,
    ) -> Any:
        if not self.session:
            raise RuntimeError("HTTP client not initialized. Use async context manager.")

        kwargs: dict[str, Any] = {"headers": self._headers(headers)}
        if data is not None:
            kwargs["json"] = data
        request_ctx = await self._prepare_request(
            self.session.request(method, self._url(path), **kwargs)
        )
        async with request_ctx as response:
            await self._ensure_response_ok(response)
            if response.status == 204:
                return None
            return await response.json()

    async def get(self, path: str, headers: dict[str, Any] | None = None) -> Any:
        """Perform GET request."""
        return await self._request("GET", path, headers=headers)

    async def post(
        self,
        path: str,
        data: dict[str, Any] | None = None,
        headers: dict[str, Any] | None = None,
    ) -> Any:
        """Perform POST request."""
        return await self._request("POST", path, data=data, headers=headers)

    async def patch(
        self,
        path: str,
        data: dict[str, Any] | None = None,
        headers: dict[str, Any] | None = None,
    ) -> Any:
        """Perform PATCH request."""
        return await self._request("PATCH", path, data=data, headers=headers)

    async def delete(self, path: str, headers: dict[str, Any] | None = None) -> Any:
        """Perform DELETE request."""
        return await self._request("DELETE", path, headers=headers)
