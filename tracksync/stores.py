"""
Storage interfaces consumed by the sync engine.

The engine only reads credentials and trackable orders, and only writes an
order's shipping status and tracking code. Schema ownership lives elsewhere;
the implementations here back the CLI and the tests.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable, Optional
import orjson
from loguru import logger

from tracksync.models import CanonicalStatus, Credential, Order


class CredentialStore(ABC):
    """Read-only access to carrier credentials."""

    @abstractmethod
    async def find_by_tenant(self, tenant_id: str) -> Optional[Credential]:
        """Get the credential configured for a tenant."""
        pass

    @abstractmethod
    async def list_tenants(self) -> list[str]:
        """Tenants that have a credential configured."""
        pass


class OrderStore(ABC):
    """Order reads and status writes."""

    @abstractmethod
    async def find_trackable(self, tenant_id: str) -> list[Order]:
        """Orders of a tenant that carry a tracking code."""
        pass

    @abstractmethod
    async def update_status_many(self, order_ids: list[str], status: CanonicalStatus) -> int:
        """Set one status on many orders. Returns the number of orders updated."""
        pass

    @abstractmethod
    async def update_tracking(self, order_id: str, tracking_code: str, status: CanonicalStatus) -> bool:
        """Set tracking code and status of one order. Returns False if not found."""
        pass


def _now() -> datetime:
    return datetime.now(timezone.utc)


class InMemoryCredentialStore(CredentialStore):

    def __init__(self, credentials: Iterable[Credential] = ()):
        self._credentials: dict[str, Credential] = {c.tenant_id: c for c in credentials}

    def add(self, credential: Credential):
        self._credentials[credential.tenant_id] = credential

    async def find_by_tenant(self, tenant_id: str) -> Optional[Credential]:
        return self._credentials.get(tenant_id)

    async def list_tenants(self) -> list[str]:
        return sorted(self._credentials)


class InMemoryOrderStore(OrderStore):
    """
    Dict-backed order store.

    Records every grouped write in `writes` as (order_ids, status).
    """

    def __init__(self, orders: Iterable[Order] = ()):
        self._orders: dict[str, Order] = {o.id: o for o in orders}
        self.writes: list[tuple[list[str], CanonicalStatus]] = []

    def add(self, order: Order):
        self._orders[order.id] = order

    def get(self, order_id: str) -> Optional[Order]:
        return self._orders.get(order_id)

    async def find_trackable(self, tenant_id: str) -> list[Order]:
        return [
            order for order in self._orders.values()
            if order.tenant_id == tenant_id and order.is_trackable
        ]

    async def update_status_many(self, order_ids: list[str], status: CanonicalStatus) -> int:
        self.writes.append((list(order_ids), status))
        updated = 0
        now = _now()
        for order_id in order_ids:
            order = self._orders.get(order_id)
            if order:
                order.shipping_status = status
                order.updated_at = now
                updated += 1
        return updated

    async def update_tracking(self, order_id: str, tracking_code: str, status: CanonicalStatus) -> bool:
        order = self._orders.get(order_id)
        if not order:
            return False
        order.tracking_code = tracking_code
        order.shipping_status = status
        order.updated_at = _now()
        return True


class JsonFileStore(CredentialStore, OrderStore):
    """
    Credentials and orders kept in one JSON document.

    Layout:
        {"credentials": {tenant_id: {...}}, "orders": [{...}], "saved_at": "..."}
    """

    def __init__(self, path: Path):
        self.path = Path(path)
        self._credentials: dict[str, Credential] = {}
        self._orders: dict[str, Order] = {}
        self._load()

    def _load(self):
        """Load store state from disk."""
        if not self.path.exists():
            logger.warning(f"Store file not found, starting empty: {self.path}")
            return

        data = orjson.loads(self.path.read_bytes())

        for tenant_id, cred_data in data.get("credentials", {}).items():
            self._credentials[tenant_id] = Credential(tenant_id=tenant_id, **{
                k: v for k, v in cred_data.items() if k != "tenant_id"
            })

        for order_data in data.get("orders", []):
            order = Order(**order_data)
            self._orders[order.id] = order

        logger.info(
            f"Loaded {len(self._credentials)} credential(s) and "
            f"{len(self._orders)} order(s) from {self.path}"
        )

    def _save(self):
        """Persist store state to disk."""
        self.path.parent.mkdir(parents=True, exist_ok=True)

        data = {
            "credentials": {
                tenant_id: cred.model_dump(mode="json")
                for tenant_id, cred in self._credentials.items()
            },
            "orders": [order.model_dump(mode="json") for order in self._orders.values()],
            "saved_at": _now().isoformat(),
        }

        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp_path.write_bytes(orjson.dumps(data, option=orjson.OPT_INDENT_2))
        tmp_path.replace(self.path)

    def add_credential(self, credential: Credential):
        self._credentials[credential.tenant_id] = credential
        self._save()

    def add_orders(self, orders: Iterable[Order]):
        for order in orders:
            self._orders[order.id] = order
        self._save()

    def get_order(self, order_id: str) -> Optional[Order]:
        return self._orders.get(order_id)

    async def find_by_tenant(self, tenant_id: str) -> Optional[Credential]:
        return self._credentials.get(tenant_id)

    async def list_tenants(self) -> list[str]:
        return sorted(self._credentials)

    async def find_trackable(self, tenant_id: str) -> list[Order]:
        return [
            order for order in self._orders.values()
            if order.tenant_id == tenant_id and order.is_trackable
        ]

    async def update_status_many(self, order_ids: list[str], status: CanonicalStatus) -> int:
        updated = 0
        now = _now()
        for order_id in order_ids:
            order = self._orders.get(order_id)
            if order:
                order.shipping_status = status
                order.updated_at = now
                updated += 1
        if updated:
            self._save()
        return updated

    async def update_tracking(self, order_id: str, tracking_code: str, status: CanonicalStatus) -> bool:
        order = self._orders.get(order_id)
        if not order:
            return False
        order.tracking_code = tracking_code
        order.shipping_status = status
        order.updated_at = _now()
        self._save()
        return True
