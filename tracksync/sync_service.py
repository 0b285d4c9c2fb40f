"""
Sync Service for tracksync.

Ties the credential and order stores to the batch orchestrator and exposes
the tenant-level operations used by the CLI and the scheduler.
"""

import asyncio
import uuid
from datetime import timedelta
from typing import Optional
from loguru import logger

from tracksync.carrier.auth_client import AuthClient
from tracksync.carrier.tracking_client import TrackingClient
from tracksync.config import SyncConfig
from tracksync.errors import CarrierError, InvalidRequestError, MissingCredentialError
from tracksync.models import (
    BatchResult,
    CanonicalStatus,
    Credential,
    CredentialCheck,
    ResultMode,
    TrackingLookup,
)
from tracksync.orchestrator import BatchOrchestrator
from tracksync.stores import CredentialStore, OrderStore


# Known-format code used to probe the tracking API during credential checks
PROBE_TRACKING_CODE = "AA123456789BR"


class TrackingSyncService:
    """
    Service to sync order shipping statuses from Correios.

    Flow:
    1. Look up the tenant's credential
    2. Load the tenant's orders that have tracking codes
    3. Run the batch orchestrator and return its BatchResult
    """

    def __init__(
        self,
        config: SyncConfig,
        credential_store: CredentialStore,
        order_store: OrderStore,
        auth_client: Optional[AuthClient] = None,
        tracking_client: Optional[TrackingClient] = None,
    ):
        self.config = config
        self.credential_store = credential_store
        self.order_store = order_store

        self.auth_client = auth_client or AuthClient(
            base_url=config.correios_base_url,
            timeout=config.request_timeout,
        )
        self.tracking_client = tracking_client or TrackingClient(
            base_url=config.correios_base_url,
            timeout=config.request_timeout,
        )
        self.orchestrator = BatchOrchestrator(
            auth_client=self.auth_client,
            tracking_client=self.tracking_client,
            order_store=order_store,
            batch_size=config.batch_size,
            batch_delay=config.batch_delay_seconds,
            safety_margin=timedelta(seconds=config.token_safety_margin_seconds),
        )

    async def close(self):
        await self.auth_client.close()
        await self.tracking_client.close()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()

    async def _require_credential(self, tenant_id: str) -> Credential:
        credential = await self.credential_store.find_by_tenant(tenant_id)
        if credential is None:
            raise MissingCredentialError(tenant_id)
        return credential

    async def sync_tenant(
        self,
        tenant_id: str,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> BatchResult:
        """
        Sync every trackable order of a tenant.

        Raises:
            MissingCredentialError: tenant has no credential
            AuthError: authentication failed before any chunk completed
        """
        credential = await self._require_credential(tenant_id)
        orders = await self.order_store.find_trackable(tenant_id)

        logger.info(f"Tenant {tenant_id}: {len(orders)} trackable order(s)")

        return await self.orchestrator.sync_all(
            credential,
            orders,
            cancel_event=cancel_event,
            run_id=uuid.uuid4().hex,
        )

    async def sync_all_tenants(
        self,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> dict[str, BatchResult]:
        """
        Sync all tenants one after another, each with its own token.

        Tenants whose run fails to start are logged and left out of the result.
        """
        logger.info("=" * 50)
        logger.info("Tracking sync - all tenants")
        logger.info("=" * 50)

        results: dict[str, BatchResult] = {}

        for tenant_id in await self.credential_store.list_tenants():
            if cancel_event is not None and cancel_event.is_set():
                logger.warning("Sync cancelled, remaining tenants skipped")
                break
            try:
                results[tenant_id] = await self.sync_tenant(tenant_id, cancel_event)
            except CarrierError as e:
                logger.error(f"Tenant {tenant_id}: sync failed to start - {e}")

        total = sum(r.total_processed for r in results.values())
        updated = sum(r.successful_updates for r in results.values())
        logger.info(f"Sync summary: {updated}/{total} order(s) updated across {len(results)} tenant(s)")

        return results

    async def track(self, tenant_id: str, tracking_code: str) -> TrackingLookup:
        """Status and full event history of one code."""
        credential = await self._require_credential(tenant_id)
        return await self.orchestrator.lookup(credential, tracking_code, ResultMode.ALL)

    async def assign_tracking(self, tenant_id: str, order_id: str, tracking_code: str) -> CanonicalStatus:
        """
        Attach a tracking code to an order and store its current status.

        Raises:
            InvalidRequestError: order does not exist
        """
        credential = await self._require_credential(tenant_id)
        code = tracking_code.strip().upper()
        status = await self.orchestrator.sync_one(credential, code)

        if not await self.order_store.update_tracking(order_id, code, status):
            raise InvalidRequestError(f"Order not found: {order_id}")

        logger.info(f"Order {order_id}: tracking {code} -> {status.value}")
        return status

    async def verify_credentials(self, credential: Credential) -> CredentialCheck:
        """
        Check a credential step by step: basic auth, contract auth, tracking API.

        Stops at the first failing step and reports which steps passed.
        """
        check = CredentialCheck(success=False)

        try:
            await self.auth_client.authenticate(credential.identifier, credential.access_code)
            check.basic_auth = True

            token = await self.auth_client.authenticate_with_contract(
                credential.identifier,
                credential.access_code,
                credential.contract_number,
                credential.regional_code,
            )
            check.contract_auth = True

            await self.tracking_client.track_one(token.token, PROBE_TRACKING_CODE, ResultMode.LATEST)
            check.tracking_api = True

            check.success = True

        except CarrierError as e:
            if not check.basic_auth:
                check.error = f"Invalid credentials. Please check your CPF/CNPJ and access code. ({e})"
            elif not check.contract_auth:
                check.error = f"Invalid contract number. Please verify your contract information. ({e})"
            else:
                check.error = f"Tracking API unavailable for this contract. ({e})"
            logger.warning(f"Credential check failed for tenant {credential.tenant_id}: {e}")

        return check
