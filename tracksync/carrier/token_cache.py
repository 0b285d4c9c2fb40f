"""
Bearer token cache for a single sync run.
"""

from datetime import datetime, timedelta, timezone
from typing import Callable, Optional
from loguru import logger

from tracksync.carrier.auth_client import AuthClient
from tracksync.errors import CarrierError, MissingCredentialError
from tracksync.models import AuthToken, Credential


# Correios reports naive timestamps in Brasília time
CARRIER_TZ = timezone(timedelta(hours=-3))

DEFAULT_SAFETY_MARGIN = timedelta(minutes=5)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def to_aware(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=CARRIER_TZ)
    return value


class TokenCache:
    """
    Holds one bearer token and decides between reuse and refresh.

    Create one instance per tenant per run. A token is only reused for the
    credential it was issued to, and never at or past its expiry minus the
    safety margin.
    """

    def __init__(
        self,
        auth_client: AuthClient,
        token: Optional[AuthToken] = None,
        safety_margin: timedelta = DEFAULT_SAFETY_MARGIN,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.auth_client = auth_client
        self.safety_margin = safety_margin
        self._clock = clock
        self._token = token

    @property
    def cached(self) -> Optional[AuthToken]:
        return self._token

    def is_valid(self, credential: Credential) -> bool:
        token = self._token
        if token is None:
            return False
        if token.credential_key is not None and token.credential_key != credential.key:
            return False
        return self._clock() < to_aware(token.expires_at)

    def invalidate(self):
        """Drop the cached token so the next call re-authenticates."""
        if self._token is not None:
            logger.debug("Cached token invalidated")
        self._token = None

    async def get_token(self, credential: Optional[Credential]) -> str:
        """
        Return a usable bearer token, authenticating only when needed.

        Raises:
            MissingCredentialError: no credential given
            AuthError: carrier rejected the credential
            CarrierError: any other authentication failure (cache is cleared)
        """
        if credential is None:
            self.invalidate()
            raise MissingCredentialError()

        if self.is_valid(credential):
            return self._token.token

        try:
            response = await self.auth_client.authenticate_with_contract(
                credential.identifier,
                credential.access_code,
                credential.contract_number,
                credential.regional_code,
            )
        except CarrierError:
            self.invalidate()
            raise

        self._token = AuthToken(
            token=response.token,
            expires_at=to_aware(response.expires_at) - self.safety_margin,
            credential_key=credential.key,
        )
        logger.info(
            f"New token for tenant {credential.tenant_id}, "
            f"usable until {self._token.expires_at.isoformat()}"
        )
        return self._token.token
