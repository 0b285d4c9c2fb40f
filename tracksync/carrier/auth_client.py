"""
Correios token API.
Basic and contract-scoped authentication yielding a bearer token.
"""

import base64
from typing import Any, Optional
from loguru import logger
from pydantic import ValidationError

from tracksync.carrier.base import CarrierHTTPClient
from tracksync.errors import (
    AuthenticationFailedError,
    CarrierError,
    CarrierServerError,
    InvalidCredentialsError,
    InvalidRequestError,
    MalformedResponseError,
    RateLimitedError,
)
from tracksync.models import TokenResponse


class AuthClient(CarrierHTTPClient):
    """
    Correios authentication client.

    Requires Correios developer credentials:
    - Identifier (CPF/CNPJ)
    - Access code
    - Contract number (and optional regional code) for restricted APIs
    """

    BASIC_AUTH_PATH = "/token/v1/autentica"
    CONTRACT_AUTH_PATH = "/token/v1/autentica/contrato"

    @staticmethod
    def basic_auth_header(identifier: str, access_code: str) -> str:
        credentials = base64.b64encode(
            f"{identifier.strip()}:{access_code.strip()}".encode()
        ).decode()
        return f"Basic {credentials}"

    async def authenticate(self, identifier: str, access_code: str) -> TokenResponse:
        """Basic authentication (public APIs only)."""
        logger.info("Authenticating with basic credentials")

        status, body, reason = await self._request(
            "POST",
            self.BASIC_AUTH_PATH,
            headers={"Authorization": self.basic_auth_header(identifier, access_code)},
        )
        return self._handle_response(status, body, reason)

    async def authenticate_with_contract(
        self,
        identifier: str,
        access_code: str,
        contract_number: str,
        regional_code: Optional[int] = None,
    ) -> TokenResponse:
        """
        Contract-based authentication (required for the tracking API).

        Args:
            identifier: CPF/CNPJ
            access_code: API access code
            contract_number: Correios contract number
            regional_code: Optional regional directorate (DR)

        Returns:
            TokenResponse with the bearer token and carrier-reported expiry
        """
        logger.info("Authenticating with contract credentials")

        payload: dict[str, Any] = {"numero": contract_number.strip()}
        if regional_code is not None:
            payload["dr"] = regional_code

        status, body, reason = await self._request(
            "POST",
            self.CONTRACT_AUTH_PATH,
            json=payload,
            headers={"Authorization": self.basic_auth_header(identifier, access_code)},
        )
        return self._handle_response(status, body, reason)

    def _handle_response(self, status: int, body: Any, reason: str) -> TokenResponse:
        if 200 <= status < 300:
            try:
                token = TokenResponse.model_validate(body)
            except ValidationError as e:
                raise MalformedResponseError("Token response missing token or expiry", status) from e
            logger.info(f"Token received, expires {token.expires_at.isoformat()}")
            return token

        error = self.map_error(status, self.error_message(body, reason))
        logger.error(f"Authentication failed: {error}")
        raise error

    @staticmethod
    def map_error(status: int, message: str) -> CarrierError:
        """Map a non-2xx token response to a domain error."""
        if status == 400:
            return InvalidRequestError(f"Invalid request parameters: {message}", status)
        if status == 401:
            return InvalidCredentialsError(f"Invalid credentials: {message}", status)
        if status == 429:
            return RateLimitedError("Too many requests. Please wait and try again.", status)
        if status >= 500:
            return CarrierServerError(f"Authentication server error: {message}", status)
        return AuthenticationFailedError(f"Authentication failed: {message}", status)
