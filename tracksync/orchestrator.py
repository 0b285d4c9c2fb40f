"""
Batch orchestrator.
Synchronizes order shipping statuses against Correios in provider-sized batches.
"""

import asyncio
import uuid
from collections import defaultdict
from datetime import timedelta
from typing import Awaitable, Callable, Optional, Sequence

from tracksync.carrier.auth_client import AuthClient
from tracksync.carrier.token_cache import DEFAULT_SAFETY_MARGIN, TokenCache
from tracksync.carrier.tracking_client import TrackingClient
from tracksync.classifier import classify
from tracksync.errors import (
    AuthError,
    CarrierError,
    InvalidRequestError,
    MissingCredentialError,
    TokenRejectedError,
)
from tracksync.logging_config import RunLogger
from tracksync.models import (
    MAX_CODES_PER_REQUEST,
    BatchResult,
    CanonicalStatus,
    Credential,
    Order,
    OrderOutcome,
    ResultMode,
    TrackingLookup,
    TrackingResponse,
)
from tracksync.stores import OrderStore


def chunk_orders(orders: Sequence[Order], size: int = MAX_CODES_PER_REQUEST) -> list[list[Order]]:
    """Split orders into consecutive chunks of at most `size`."""
    if not 1 <= size <= MAX_CODES_PER_REQUEST:
        raise ValueError(f"Chunk size must be between 1 and {MAX_CODES_PER_REQUEST}, got {size}")
    return [list(orders[i:i + size]) for i in range(0, len(orders), size)]


class BatchOrchestrator:
    """
    Runs one tracking sync for one credential.

    Features:
    - Chunks orders to the carrier's 50-code limit
    - Processes chunks sequentially with a fixed courtesy delay between them
    - Isolates failures per chunk and per order
    - Writes one grouped update per status per chunk
    - Re-authenticates once when the carrier rejects the token
    """

    def __init__(
        self,
        auth_client: AuthClient,
        tracking_client: TrackingClient,
        order_store: OrderStore,
        batch_size: int = MAX_CODES_PER_REQUEST,
        batch_delay: float = 1.0,
        safety_margin: timedelta = DEFAULT_SAFETY_MARGIN,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        if not 1 <= batch_size <= MAX_CODES_PER_REQUEST:
            raise ValueError(f"batch_size must be between 1 and {MAX_CODES_PER_REQUEST}")

        self.auth_client = auth_client
        self.tracking_client = tracking_client
        self.order_store = order_store
        self.batch_size = batch_size
        self.batch_delay = batch_delay
        self.safety_margin = safety_margin
        self._sleep = sleep

    def new_token_cache(self) -> TokenCache:
        return TokenCache(self.auth_client, safety_margin=self.safety_margin)

    async def sync_all(
        self,
        credential: Optional[Credential],
        orders: Sequence[Order],
        cancel_event: Optional[asyncio.Event] = None,
        run_id: Optional[str] = None,
    ) -> BatchResult:
        """
        Sync the shipping status of every order that has a tracking code.

        Args:
            credential: Tenant's carrier credential
            orders: Candidate orders; those without a tracking code are skipped
            cancel_event: Checked before each chunk; a running chunk completes
            run_id: Identifier used in log lines

        Returns:
            BatchResult. Partial failures show as successful_updates < total_processed.

        Raises:
            AuthError: credential missing, or the carrier refused the credential
                before any chunk completed. Other token request failures only
                fail the chunk they occur in.
        """
        result = BatchResult()
        trackable = [order for order in orders if order.is_trackable]

        if not trackable:
            return result

        if credential is None:
            raise MissingCredentialError()

        run_log = RunLogger(run_id or uuid.uuid4().hex, credential.tenant_id)
        chunks = chunk_orders(trackable, self.batch_size)
        token_cache = self.new_token_cache()

        run_log.info(f"Syncing {len(trackable)} order(s) in {len(chunks)} chunk(s)")

        for index, chunk in enumerate(chunks):
            position = f"{index + 1}/{len(chunks)}"

            if cancel_event is not None and cancel_event.is_set():
                result.cancelled = True
                run_log.warning(f"Cancelled before chunk {position}")
                break

            try:
                await token_cache.get_token(credential)
            except AuthError as e:
                if result.chunks == 0:
                    run_log.error(f"Authentication failed, nothing synced: {e}")
                    raise
                remaining = sum(len(c) for c in chunks[index:])
                result.total_processed += remaining
                result.aborted = True
                run_log.error(
                    f"Authentication failed at chunk {position}: {e}. "
                    f"{remaining} order(s) not synced"
                )
                break
            except CarrierError as e:
                # Token endpoint unavailable: this chunk fails, the next one asks again
                run_log.warning(f"Token request failed at chunk {position} ({len(chunk)} order(s)): {e}")
                outcomes = [
                    OrderOutcome(order_id=order.id, tracking_code=order.tracking_code.strip().upper(), error=str(e))
                    for order in chunk
                ]
            else:
                outcomes = await self._process_chunk(credential, token_cache, chunk, position, run_log)

            if not any(outcome.succeeded for outcome in outcomes):
                result.failed_chunks += 1

            updated = await self._apply_outcomes(outcomes, result, run_log)

            result.chunks += 1
            result.total_processed += len(chunk)
            result.successful_updates += updated

            # Courtesy window, also after a failed chunk
            if index < len(chunks) - 1:
                await self._sleep(self.batch_delay)

        run_log.info(
            f"Sync finished: {result.successful_updates}/{result.total_processed} updated, "
            f"{result.failed_chunks} failed chunk(s)"
        )
        return result

    async def sync_one(self, credential: Optional[Credential], tracking_code: str) -> CanonicalStatus:
        """Current status of a single code; NOT_FOUND when the carrier has no events."""
        lookup = await self.lookup(credential, tracking_code, ResultMode.LATEST)
        return lookup.status

    async def lookup(
        self,
        credential: Optional[Credential],
        tracking_code: str,
        result_mode: ResultMode = ResultMode.ALL,
        token_cache: Optional[TokenCache] = None,
    ) -> TrackingLookup:
        """Status plus event history of a single code."""
        code = (tracking_code or "").strip().upper()
        if not code:
            raise InvalidRequestError("Tracking code is required")

        token_cache = token_cache or self.new_token_cache()
        response = await self._track(credential, token_cache, [code], result_mode)
        events = response.events_for(code)

        return TrackingLookup(tracking_code=code, status=classify(events), events=events)

    async def _track(
        self,
        credential: Optional[Credential],
        token_cache: TokenCache,
        codes: list[str],
        result_mode: ResultMode,
    ) -> TrackingResponse:
        """Track codes, forcing one re-authentication if the token is rejected."""
        token = await token_cache.get_token(credential)
        try:
            return await self.tracking_client.track(token, codes, result_mode)
        except TokenRejectedError:
            token_cache.invalidate()
            token = await token_cache.get_token(credential)
            return await self.tracking_client.track(token, codes, result_mode)

    async def _process_chunk(
        self,
        credential: Credential,
        token_cache: TokenCache,
        chunk: list[Order],
        position: str,
        run_log: RunLogger,
    ) -> list[OrderOutcome]:
        """One (result, error) outcome per order in the chunk."""
        codes = [order.tracking_code.strip().upper() for order in chunk]

        try:
            response = await self._track(credential, token_cache, codes, ResultMode.LATEST)
        except CarrierError as e:
            run_log.warning(f"Chunk {position} failed ({len(chunk)} order(s)): {e}")
            return [
                OrderOutcome(order_id=order.id, tracking_code=code, error=str(e))
                for order, code in zip(chunk, codes)
            ]

        outcomes = [
            self._classify_order(order, code, response)
            for order, code in zip(chunk, codes)
        ]
        run_log.debug(f"Chunk {position}: {len(response.objects)} object(s) returned for {len(codes)} code(s)")
        return outcomes

    @staticmethod
    def _classify_order(order: Order, code: str, response: TrackingResponse) -> OrderOutcome:
        try:
            status = classify(response.events_for(code))
        except Exception as e:
            return OrderOutcome(order_id=order.id, tracking_code=code, error=f"Classification failed: {e}")
        return OrderOutcome(order_id=order.id, tracking_code=code, status=status)

    async def _apply_outcomes(
        self,
        outcomes: list[OrderOutcome],
        result: BatchResult,
        run_log: RunLogger,
    ) -> int:
        """Write one grouped update per status. Returns orders updated."""
        by_status: dict[CanonicalStatus, list[str]] = defaultdict(list)
        for outcome in outcomes:
            if outcome.succeeded:
                by_status[outcome.status].append(outcome.order_id)
            else:
                run_log.debug(f"Order {outcome.order_id} ({outcome.tracking_code}) not updated: {outcome.error}")

        updated_total = 0
        for status, order_ids in by_status.items():
            try:
                updated = await self.order_store.update_status_many(order_ids, status)
            except Exception as e:
                run_log.error(f"Failed to write {len(order_ids)} order(s) as {status.value}: {e}")
                continue
            result.count_status(status, updated)
            updated_total += updated

        return updated_total
