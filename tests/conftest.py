"""Shared fixtures: a fake Correios API and model factories."""

from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio
from aiohttp import web
from aiohttp.test_utils import TestServer

from tracksync.carrier.auth_client import AuthClient
from tracksync.carrier.tracking_client import TrackingClient
from tracksync.models import Credential, Order, TokenResponse, TrackingResponse


class FakeCorreios:
    """
    In-process stand-in for the Correios token and SRO APIs.

    Set `auth_status` / `track_statuses` to make endpoints fail, and
    `objects` to control which codes have events.
    """

    def __init__(self):
        self.objects: dict[str, list[str]] = {}
        self.auth_status = 200
        self.track_statuses: list[int] = []  # consumed one per tracking request
        self.token_lifetime = timedelta(hours=1)

        self.auth_requests: list[dict] = []
        self.track_requests: list[dict] = []
        self.base_url = ""
        self._issued = 0

    def app(self) -> web.Application:
        app = web.Application()
        app.router.add_post("/token/v1/autentica", self.basic_auth)
        app.router.add_post("/token/v1/autentica/contrato", self.contract_auth)
        app.router.add_get("/srorastro/v1/objetos", self.objetos)
        return app

    def _token_body(self) -> dict:
        self._issued += 1
        expires = datetime.now(timezone.utc) + self.token_lifetime
        return {
            "token": f"token-{self._issued}",
            "expiraEm": expires.isoformat(),
            "ambiente": "PRODUCAO",
        }

    async def basic_auth(self, request: web.Request) -> web.Response:
        self.auth_requests.append({
            "path": request.path,
            "authorization": request.headers.get("Authorization"),
            "body": None,
        })
        if self.auth_status != 200:
            return web.json_response({"msgs": ["Credenciais inválidas"]}, status=self.auth_status)
        return web.json_response(self._token_body(), status=201)

    async def contract_auth(self, request: web.Request) -> web.Response:
        self.auth_requests.append({
            "path": request.path,
            "authorization": request.headers.get("Authorization"),
            "body": await request.json(),
        })
        if self.auth_status != 200:
            return web.json_response({"msgs": ["Contrato inválido"]}, status=self.auth_status)
        return web.json_response(self._token_body(), status=201)

    async def objetos(self, request: web.Request) -> web.Response:
        codes = request.query.getall("codigosObjetos", [])
        self.track_requests.append({
            "codes": codes,
            "resultado": request.query.get("resultado"),
            "authorization": request.headers.get("Authorization"),
        })

        if self.track_statuses:
            status = self.track_statuses.pop(0)
            if status != 200:
                return web.json_response({"msgs": [f"Erro {status}"]}, status=status)

        objetos = []
        for code in codes:
            if code in self.objects:
                objetos.append(event_object(code, self.objects[code]))
            else:
                objetos.append({"codObjeto": code, "mensagem": "SRO-020: Objeto não encontrado na base de dados dos Correios."})

        return web.json_response({
            "versao": "1.0.0",
            "quantidade": len(objetos),
            "objetos": objetos,
            "tipoResultado": "Todos os eventos",
        })


def event_object(code: str, descriptions: list[str]) -> dict:
    """Carrier object payload with newest-first events."""
    return {
        "codObjeto": code,
        "eventos": [
            {
                "codigo": "BDE",
                "tipo": "01",
                "descricao": description,
                "dtHrCriado": f"2024-05-{10 - i:02d}T10:00:00",
                "unidade": {"endereco": {"cidade": "SAO PAULO", "uf": "SP"}},
            }
            for i, description in enumerate(descriptions)
        ],
    }


def make_tracking_response(objects: dict[str, list[str]]) -> TrackingResponse:
    return TrackingResponse.model_validate({
        "quantidade": len(objects),
        "objetos": [event_object(code, descriptions) for code, descriptions in objects.items()],
    })


def make_orders(count: int, tenant_id: str = "team-1", prefix: str = "AA") -> list[Order]:
    return [
        Order(id=f"order-{i}", tenant_id=tenant_id, tracking_code=f"{prefix}{i:09d}BR")
        for i in range(count)
    ]


def make_token_response(token: str = "token-1", lifetime: timedelta = timedelta(hours=1)) -> TokenResponse:
    return TokenResponse(token=token, expires_at=datetime.now(timezone.utc) + lifetime)


@pytest.fixture
def credential() -> Credential:
    return Credential(
        tenant_id="team-1",
        identifier="12345678000190",
        access_code="secret-code",
        contract_number="9912345678",
        regional_code=72,
    )


@pytest.fixture
def mock_auth_client():
    """AuthClient double issuing a fresh one-hour token per call."""
    client = AsyncMock(spec=AuthClient)
    issued = {"n": 0}

    async def authenticate_with_contract(*args, **kwargs):
        issued["n"] += 1
        return make_token_response(f"token-{issued['n']}")

    client.authenticate_with_contract.side_effect = authenticate_with_contract
    return client


@pytest.fixture
def mock_tracking_client():
    """TrackingClient double; every code is in transit unless overridden."""
    client = AsyncMock(spec=TrackingClient)

    async def track(token, codes, result_mode=None):
        return make_tracking_response({code: ["Objeto em trânsito - por favor aguarde"] for code in codes})

    client.track.side_effect = track
    return client


@pytest_asyncio.fixture
async def carrier():
    """Running FakeCorreios server."""
    fake = FakeCorreios()
    server = TestServer(fake.app())
    await server.start_server()
    fake.base_url = str(server.make_url("/")).rstrip("/")
    yield fake
    await server.close()


@pytest_asyncio.fixture
async def auth_client(carrier):
    client = AuthClient(base_url=carrier.base_url, timeout=5)
    yield client
    await client.close()


@pytest_asyncio.fixture
async def tracking_client(carrier):
    client = TrackingClient(base_url=carrier.base_url, timeout=5)
    yield client
    await client.close()


@pytest.fixture
def order_factory():
    return make_orders


@pytest.fixture
def response_factory():
    return make_tracking_response


@pytest.fixture
def token_factory():
    return make_token_response
