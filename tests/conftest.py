from __future__ import annotations

import dataclasses
from collections.abc import AsyncIterator, Callable, Iterator

import httpx
import pytest
from fastapi.testclient import TestClient

from app.api.dependencies import get_shopify_client
from app.core.config import SETTINGS, Settings, get_settings
from app.main import app
from app.services.hmac_service import generate_encrypted_hash
from app.services.shopify_client import ShopifyClient
from app.services.state_store import InMemoryStateStore, get_state_store

TEST_SETTINGS: Settings = dataclasses.replace(
    SETTINGS,
    app_env="test",
    shopify_api_public_key="test-public-key",
    shopify_api_secret_key="test-secret-key",
    shopify_scopes="write_products",
    app_url="https://install.example.com",
    state_ttl_sec=600,
    state_cookie_secure=False,
    upstream_timeout_sec=5.0,
    upstream_max_retries=1,
    upstream_retry_backoff_sec=0.0,
)

TEST_SHOP = "test.example.com"

Handler = Callable[[httpx.Request], httpx.Response]


class FakeShopify:
    """Stand-in for the platform's shop domain, served through MockTransport.

    Routes default to a successful token exchange and shop fetch; tests
    replace entries in `routes` to simulate failures. Every request that
    reaches the transport is recorded in `calls`.
    """

    TOKEN_PATH = "/admin/oauth/access_token"
    SHOP_PATH = "/admin/shop.json"

    def __init__(self) -> None:
        self.calls: list[httpx.Request] = []
        self.routes: dict[str, Handler] = {
            self.TOKEN_PATH: lambda _req: httpx.Response(
                200, json={"access_token": "tok1", "scope": "write_products"}
            ),
            self.SHOP_PATH: lambda _req: httpx.Response(
                200, json={"id": 1, "name": "Test Shop"}
            ),
        }

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.calls.append(request)
        handler = self.routes.get(request.url.path)
        if handler is None:
            return httpx.Response(404, json={"errors": "Not Found"})
        return handler(request)

    def calls_to(self, path: str) -> list[httpx.Request]:
        return [c for c in self.calls if c.url.path == path]

    def http(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self.handle))


@pytest.fixture
def state_store() -> InMemoryStateStore:
    return InMemoryStateStore(TEST_SETTINGS.state_ttl_sec)


@pytest.fixture
def fake_shopify() -> FakeShopify:
    return FakeShopify()


@pytest.fixture(autouse=True)
def override_dependencies(
    state_store: InMemoryStateStore, fake_shopify: FakeShopify
) -> Iterator[None]:
    """Fresh nonce store, test settings and a fake platform for every test."""
    app.dependency_overrides[get_settings] = lambda: TEST_SETTINGS
    app.dependency_overrides[get_state_store] = lambda: state_store

    async def _shopify_client() -> AsyncIterator[ShopifyClient]:
        # Closed once the request is done, like the lifespan client.
        async with fake_shopify.http() as http:
            yield ShopifyClient(http, TEST_SETTINGS)

    app.dependency_overrides[get_shopify_client] = _shopify_client
    yield
    app.dependency_overrides.clear()


@pytest.fixture
def client() -> TestClient:
    return TestClient(app, follow_redirects=False)


# ---------------------------------------------------------------------------
# Flow helpers
# ---------------------------------------------------------------------------


def sign(params: dict[str, str], secret: str = TEST_SETTINGS.shopify_api_secret_key) -> str:
    """Compute the hmac the platform would attach to these params."""
    return generate_encrypted_hash(params, secret)


def start_install(client: TestClient, shop: str = TEST_SHOP) -> str:
    """GET /shopify and return the state nonce from the cookie it sets."""
    resp = client.get("/shopify", params={"shop": shop})
    assert resp.status_code == 302, resp.text
    state = client.cookies.get("state")
    assert state
    return state


def callback_params(
    state: str, shop: str = TEST_SHOP, code: str = "abc123", **extra: str
) -> dict[str, str]:
    """Signed callback query, as the platform would build it."""
    params = {"shop": shop, "code": code, "state": state, "timestamp": "1700000000"}
    params.update(extra)
    params["hmac"] = sign(params)
    return params
