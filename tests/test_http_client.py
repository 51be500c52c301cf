"""Tests for HTTP client utility module."""

from typing import Any
from unittest.mock import AsyncMock, patch

import aiohttp
import pytest

from shared.http_client import AsyncHTTPClient


def mock_session_with(response_data: Any, status: int = 200) -> AsyncMock:
    mock_session = AsyncMock()
    mock_response = AsyncMock()
    mock_response.status = status
    mock_response.json.return_value = response_data
    mock_response.raise_for_status.return_value = None
    mock_session.request.return_value.__aenter__.return_value = mock_response
    return mock_session


class TestAsyncHTTPClient:
    """Test HTTP client functionality."""

    @pytest.mark.asyncio
    async def test_context_manager(self) -> None:
        """Test HTTP client as async context manager."""
        async with AsyncHTTPClient() as client:
            assert client.session is not None
        assert client.session is None

    @pytest.mark.asyncio
    async def test_get_request_resolves_base_url_and_token(self) -> None:
        """GET joins the base URL and sends the bearer token."""
        mock_response_data: dict[str, Any] = {"id": "doc-1", "slides": []}

        with patch("aiohttp.ClientSession") as mock_session_class:
            mock_session = mock_session_with(mock_response_data)
            mock_session_class.return_value = mock_session

            async with AsyncHTTPClient("http://localhost:8000/", token="abc") as client:
                result = await client.get("/projects/doc-1")
                assert result == mock_response_data
                mock_session.request.assert_called_once_with(
                    "GET",
                    "http://localhost:8000/projects/doc-1",
                    headers={"Authorization": "Bearer abc"},
                )

    @pytest.mark.asyncio
    async def test_absolute_url_and_explicit_headers_win(self) -> None:
        headers: dict[str, Any] = {"Authorization": "Bearer other", "X-Session-Id": "sess-1"}

        with patch("aiohttp.ClientSession") as mock_session_class:
            mock_session = mock_session_with({"ok": True})
            mock_session_class.return_value = mock_session

            async with AsyncHTTPClient("http://localhost:8000", token="abc") as client:
                await client.get("https://api.example.com/test", headers=headers)
                mock_session.request.assert_called_once_with(
                    "GET", "https://api.example.com/test", headers=headers
                )

    @pytest.mark.asyncio
    async def test_patch_request(self) -> None:
        """PATCH sends the merge patch as JSON."""
        patch_data: dict[str, Any] = {"title": "New"}

        with patch("aiohttp.ClientSession") as mock_session_class:
            mock_session = mock_session_with({"id": "s1", "title": "New"})
            mock_session_class.return_value = mock_session

            async with AsyncHTTPClient("http://localhost:8000") as client:
                result = await client.patch("/slides/s1", data=patch_data)
                assert result["title"] == "New"
                mock_session.request.assert_called_once_with(
                    "PATCH", "http://localhost:8000/slides/s1", headers={}, json=patch_data
                )

    @pytest.mark.asyncio
    async def test_delete_no_content(self) -> None:
        """DELETE with a 204 response returns None."""
        with patch("aiohttp.ClientSession") as mock_session_class:
            mock_session = mock_session_with(None, status=204)
            mock_session_class.return_value = mock_session

            async with AsyncHTTPClient("http://localhost:8000") as client:
                assert await client.delete("/slides/s1") is None

    @pytest.mark.asyncio
    async def test_not_initialized_error(self) -> None:
        """Test error when client not used as context manager."""
        client = AsyncHTTPClient()
        with pytest.raises(RuntimeError, match="HTTP client not initialized"):
            await client.get("https://api.example.com/test")

    @pytest.mark.asyncio
    async def test_http_error_status(self) -> None:
        """Test HTTP error status handling."""
        with patch("aiohttp.ClientSession") as mock_session_class:
            mock_session = AsyncMock()
            mock_response = AsyncMock()
            mock_response.raise_for_status.side_effect = aiohttp.ClientResponseError(
                request_info=AsyncMock(), history=(), status=404
            )
            mock_session.request.return_value.__aenter__.return_value = mock_response
            mock_session_class.return_value = mock_session

            async with AsyncHTTPClient() as client:
                with pytest.raises(aiohttp.ClientResponseError):
                    await client.get("https://api.example.com/notfound")
