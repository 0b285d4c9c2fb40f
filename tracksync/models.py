"""
Data models for tracksync.
Defines credentials, orders, carrier wire payloads and sync results.

Sync flow:
1. Read trackable orders for a tenant
2. Authenticate against Correios with the tenant's contract credential
3. Query tracking in batches of up to 50 codes
4. Classify the newest event of each code into a CanonicalStatus
5. Write statuses back grouped by status
"""

from enum import Enum
from datetime import datetime
from typing import Any, Optional
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from tracksync.errors import MalformedResponseError


# Correios accepts at most this many codigosObjetos per request
MAX_CODES_PER_REQUEST = 50


class CanonicalStatus(str, Enum):
    """Shipment status of record, derived from carrier events."""
    POSTED = "posted"
    IN_TRANSIT = "in_transit"
    DELIVERED = "delivered"
    NOT_FOUND = "not_found"
    UNKNOWN = "unknown"


class ResultMode(str, Enum):
    """Which events the tracking endpoint returns per code."""
    LATEST = "U"
    ALL = "T"
    FIRST = "P"


# ===== Domain =====

class Credential(BaseModel):
    """Correios contract credential for one tenant."""

    tenant_id: str
    identifier: str  # CPF/CNPJ
    access_code: str = Field(repr=False)
    contract_number: str
    regional_code: Optional[int] = None  # DR

    @property
    def key(self) -> str:
        """Identity used to keep tokens from leaking across credentials."""
        return f"{self.tenant_id}:{self.identifier.strip()}:{self.contract_number.strip()}"


class AuthToken(BaseModel):
    """Bearer token with its safety-margined expiry."""

    token: str = Field(repr=False)
    expires_at: datetime
    credential_key: Optional[str] = None


class Order(BaseModel):
    """Order as seen by the sync engine."""

    id: str
    tenant_id: Optional[str] = None
    tracking_code: Optional[str] = None
    shipping_status: CanonicalStatus = CanonicalStatus.UNKNOWN
    updated_at: Optional[datetime] = None

    @property
    def is_trackable(self) -> bool:
        return bool(self.tracking_code and self.tracking_code.strip())


class OrderOutcome(BaseModel):
    """Result of processing one order inside a chunk."""

    order_id: str
    tracking_code: str
    status: Optional[CanonicalStatus] = None
    error: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.error is None and self.status is not None


class BatchResult(BaseModel):
    """Aggregate result of one sync run."""

    total_processed: int = 0
    successful_updates: int = 0

    chunks: int = 0
    failed_chunks: int = 0
    status_counts: dict[str, int] = Field(default_factory=dict)

    # Run ended early
    aborted: bool = False
    cancelled: bool = False

    @property
    def failed_updates(self) -> int:
        return self.total_processed - self.successful_updates

    def count_status(self, status: CanonicalStatus, count: int):
        key = CanonicalStatus(status).value
        self.status_counts[key] = self.status_counts.get(key, 0) + count


class CredentialCheck(BaseModel):
    """Outcome of verifying a credential end to end."""

    success: bool
    error: Optional[str] = None
    basic_auth: bool = False
    contract_auth: bool = False
    tracking_api: bool = False


# ===== Carrier wire formats =====

class _CarrierModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class ContractInfo(_CarrierModel):
    number: str = Field(alias="numero")
    regional_code: Optional[int] = Field(default=None, alias="dr")


class TokenResponse(_CarrierModel):
    """Body of /token/v1/autentica[/contrato]."""

    token: str = Field(repr=False)
    expires_at: datetime = Field(alias="expiraEm")
    environment: Optional[str] = Field(default=None, alias="ambiente")
    contract: Optional[ContractInfo] = Field(default=None, alias="contrato")


class Address(_CarrierModel):
    city: Optional[str] = Field(default=None, alias="cidade")
    state: Optional[str] = Field(default=None, alias="uf")


class CarrierUnit(_CarrierModel):
    address: Optional[Address] = Field(default=None, alias="endereco")

    def __str__(self) -> str:
        if not self.address:
            return ""
        parts = [p for p in (self.address.city, self.address.state) if p]
        return " - ".join(parts)


class TrackingEvent(_CarrierModel):
    """A single carrier event. Objects list these newest-first."""

    description: str = Field(alias="descricao")
    occurred_at: datetime = Field(alias="dtHrCriado")
    code: Optional[str] = Field(default=None, alias="codigo")
    event_type: Optional[str] = Field(default=None, alias="tipo")
    origin: Optional[CarrierUnit] = Field(default=None, alias="unidade")
    destination: Optional[CarrierUnit] = Field(default=None, alias="unidadeDestino")


class TrackedObject(_CarrierModel):
    tracking_code: str = Field(alias="codObjeto")
    events: list[TrackingEvent] = Field(default_factory=list, alias="eventos")
    message: Optional[str] = Field(default=None, alias="mensagem")  # e.g. "SRO-020: Objeto não encontrado"

    @field_validator("events", mode="before")
    @classmethod
    def _null_events(cls, v):
        # "eventos": null means no events yet
        return [] if v is None else v


class TrackingResponse(_CarrierModel):
    """Body of /srorastro/v1/objetos."""

    version: Optional[str] = Field(default=None, alias="versao")
    count: int = Field(default=0, alias="quantidade")
    objects: list[TrackedObject] = Field(default_factory=list, alias="objetos")
    result_mode: Optional[str] = Field(default=None, alias="tipoResultado")
    # Codes whose object failed validation, with the reason
    rejected: dict[str, str] = Field(default_factory=dict, exclude=True)

    @classmethod
    def parse(cls, data: Any) -> "TrackingResponse":
        """
        Validate a decoded body.

        Objects are validated one by one: a malformed object is recorded in
        `rejected` and does not affect the other codes. A malformed envelope
        raises MalformedResponseError.
        """
        if not isinstance(data, dict):
            raise MalformedResponseError(f"Unexpected tracking response: {type(data).__name__} body")

        raw_objects = data.get("objetos") or []
        if not isinstance(raw_objects, list):
            raise MalformedResponseError("Unexpected tracking response: objetos is not a list")

        try:
            response = cls.model_validate({k: v for k, v in data.items() if k != "objetos"})
        except ValidationError as e:
            raise MalformedResponseError(f"Unexpected tracking response: {e.error_count()} invalid field(s)") from e

        for raw in raw_objects:
            try:
                response.objects.append(TrackedObject.model_validate(raw))
            except ValidationError as e:
                code = raw.get("codObjeto") if isinstance(raw, dict) else None
                if isinstance(code, str) and code.strip():
                    response.rejected[code.strip().upper()] = (
                        f"Malformed tracking object: {e.error_count()} invalid field(s)"
                    )

        return response

    def find(self, tracking_code: str) -> Optional[TrackedObject]:
        """Find the object for a code (case-insensitive). First match wins."""
        wanted = tracking_code.strip().upper()
        for obj in self.objects:
            if obj.tracking_code.strip().upper() == wanted:
                return obj
        return None

    def events_for(self, tracking_code: str) -> list[TrackingEvent]:
        """
        Events of a code, newest first.

        Raises:
            MalformedResponseError: the carrier's object for this code was malformed
        """
        reason = self.rejected.get(tracking_code.strip().upper())
        if reason:
            raise MalformedResponseError(f"{tracking_code}: {reason}")
        obj = self.find(tracking_code)
        return obj.events if obj else []


class TrackingLookup(BaseModel):
    """Status plus event history of a single code."""

    tracking_code: str
    status: CanonicalStatus
    events: list[TrackingEvent] = Field(default_factory=list)

    @property
    def last_update(self) -> Optional[datetime]:
        return self.events[0].occurred_at if self.events else None
