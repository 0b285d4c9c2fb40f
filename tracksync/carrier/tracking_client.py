"""
Correios SRO tracking API (srorastro).
"""

from typing import Optional, Sequence
import aiohttp
from loguru import logger

from tracksync.carrier.base import CarrierHTTPClient
from tracksync.config import DEFAULT_BASE_URL
from tracksync.errors import (
    BatchTooLargeError,
    CarrierError,
    CarrierServerError,
    InvalidRequestError,
    RateLimitedError,
    TokenRejectedError,
    TrackingFailedError,
)
from tracksync.models import MAX_CODES_PER_REQUEST, ResultMode, TrackingResponse


class TrackingClient(CarrierHTTPClient):
    """
    Correios tracking client.

    The bearer token is passed per call so a single client can serve
    several tenants without sharing tokens between them.
    """

    OBJECTS_PATH = "/srorastro/v1/objetos"

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = 30.0,
        session: Optional[aiohttp.ClientSession] = None,
        max_codes: int = MAX_CODES_PER_REQUEST,
    ):
        super().__init__(base_url=base_url, timeout=timeout, session=session)
        self.max_codes = max_codes

    async def track(
        self,
        token: str,
        codes: Sequence[str],
        result_mode: ResultMode = ResultMode.LATEST,
    ) -> TrackingResponse:
        """
        Track up to max_codes objects in one request.

        Codes missing from the response, or returned without events, are
        not found; that is not an error here.

        Raises:
            BatchTooLargeError: more than max_codes codes (chunk before calling)
            TokenRejectedError: token invalid or expired
        """
        if len(codes) > self.max_codes:
            raise BatchTooLargeError(len(codes), self.max_codes)
        if not codes:
            raise InvalidRequestError("At least one tracking code is required")

        mode = ResultMode(result_mode)
        params = [("codigosObjetos", code.strip().upper()) for code in codes]
        params.append(("resultado", mode.value))

        logger.info(f"Tracking {len(codes)} object(s), result={mode.value}")

        status, body, reason = await self._request(
            "GET",
            self.OBJECTS_PATH,
            params=params,
            headers={"Authorization": f"Bearer {token}"},
        )

        if 200 <= status < 300:
            response = TrackingResponse.parse(body or {})
            logger.debug(f"Tracking response: {len(response.objects)} object(s)")
            return response

        error = self.map_error(status, self.error_message(body, reason))
        logger.warning(f"Tracking request failed: {error}")
        raise error

    async def track_one(
        self,
        token: str,
        code: str,
        result_mode: ResultMode = ResultMode.ALL,
    ) -> TrackingResponse:
        """Track a single object, by default with its full event history."""
        return await self.track(token, [code], result_mode)

    @staticmethod
    def map_error(status: int, message: str) -> CarrierError:
        """Map a non-2xx tracking response to a domain error."""
        if status == 400:
            return InvalidRequestError(f"Invalid request parameters: {message}", status)
        if status in (401, 403):
            return TokenRejectedError("Bearer token rejected; re-authentication required", status)
        if status == 429:
            return RateLimitedError("Too many requests. Please wait and try again.", status)
        if status >= 500:
            return CarrierServerError(f"Correios API server error: {message}", status)
        return TrackingFailedError(f"Failed to process request: {message}", status)

