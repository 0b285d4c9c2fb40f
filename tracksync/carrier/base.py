"""
Shared HTTP plumbing for the Correios API clients.
"""

import asyncio
from typing import Any, Optional
import aiohttp
from loguru import logger

from tracksync.config import DEFAULT_BASE_URL
from tracksync.errors import TransportError
from tracksync.logging_config import redact_headers


class CarrierHTTPClient:
    """
    Base class for Correios API clients.

    Owns an aiohttp session unless one is passed in, in which case the
    caller is responsible for closing it.
    """

    name = "correios"

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = 30.0,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._session = session
        self._owns_session = session is None

    async def _ensure_session(self) -> aiohttp.ClientSession:
        """Ensure HTTP session is created."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                headers={
                    "Content-Type": "application/json",
                    "Accept": "application/json",
                },
                timeout=aiohttp.ClientTimeout(total=self.timeout),
            )
            self._owns_session = True
        return self._session

    async def close(self):
        """Close HTTP session."""
        if self._session and self._owns_session:
            await self._session.close()
        self._session = None

    async def __aenter__(self):
        await self._ensure_session()
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()

    async def _request(
        self,
        method: str,
        path: str,
        headers: Optional[dict[str, str]] = None,
        **kwargs,
    ) -> tuple[int, Any, str]:
        """
        Send a request and return (status, decoded JSON body or None, reason).

        Raises:
            TransportError: when no response was received
        """
        session = await self._ensure_session()
        url = f"{self.base_url}{path}"
        headers = headers or {}

        logger.debug(
            f"[{type(self).__name__}] {method} {url} headers={redact_headers(headers)}"
            + (f" params={kwargs['params']}" if kwargs.get("params") else "")
        )

        try:
            async with session.request(method, url, headers=headers, **kwargs) as resp:
                body = await self._read_body(resp)
                logger.debug(f"[{type(self).__name__}] Response {resp.status} from {path}")
                return resp.status, body, resp.reason or ""
        except asyncio.TimeoutError as e:
            raise TransportError(f"Request to {path} timed out") from e
        except aiohttp.ClientError as e:
            raise TransportError(f"Network request failed: {e}") from e

    @staticmethod
    async def _read_body(resp: aiohttp.ClientResponse) -> Any:
        """Decode a JSON body, tolerating empty or non-JSON bodies."""
        text = await resp.text()
        if not text:
            return None
        try:
            return await resp.json(content_type=None)
        except ValueError:
            return {"message": text[:200]}

    @staticmethod
    def error_message(body: Any, fallback: str) -> str:
        """Pick the carrier's error message: msgs[0], then message, then fallback."""
        if isinstance(body, dict):
            msgs = body.get("msgs")
            if isinstance(msgs, list) and msgs:
                return str(msgs[0])
            if body.get("message"):
                return str(body["message"])
        return fallback or "Unknown error"
