from __future__ import annotations

import asyncio
import time

from app.models.install_state import InstallState
from app.services.state_store import InMemoryStateStore, RedisStateStore, StateStore

SHOP = "shop.example.com"


class _FakeRedis:
    """Just enough of redis.asyncio.Redis for the store: SET EX and GETDEL."""

    def __init__(self) -> None:
        self.data: dict[str, str] = {}
        self.ttls: dict[str, int] = {}

    async def set(self, key: str, value: str, ex: int | None = None) -> bool:
        self.data[key] = value
        if ex is not None:
            self.ttls[key] = ex
        return True

    async def getdel(self, key: str) -> str | None:
        self.ttls.pop(key, None)
        return self.data.pop(key, None)


# ---- in-memory ----


def test_in_memory_store_satisfies_protocol() -> None:
    assert isinstance(InMemoryStateStore(60), StateStore)


def test_issue_then_consume_once() -> None:
    store = InMemoryStateStore(60)

    async def _run() -> tuple[bool, bool]:
        state = await store.issue(SHOP)
        return await store.consume(SHOP, state.nonce), await store.consume(
            SHOP, state.nonce
        )

    first, second = asyncio.run(_run())
    assert first is True
    assert second is False


def test_issue_returns_fresh_nonces() -> None:
    store = InMemoryStateStore(60)

    async def _run() -> set[str]:
        return {(await store.issue(SHOP)).nonce for _ in range(50)}

    assert len(asyncio.run(_run())) == 50


def test_consume_rejects_other_shop_and_burns_nonce() -> None:
    store = InMemoryStateStore(60)

    async def _run() -> tuple[bool, bool]:
        state = await store.issue(SHOP)
        wrong = await store.consume("other.example.com", state.nonce)
        right = await store.consume(SHOP, state.nonce)
        return wrong, right

    wrong, right = asyncio.run(_run())
    assert wrong is False
    # A mismatched attempt still spends the nonce.
    assert right is False


def test_consume_rejects_unknown_nonce() -> None:
    store = InMemoryStateStore(60)
    assert asyncio.run(store.consume(SHOP, "never-issued")) is False


def test_consume_rejects_expired_nonce() -> None:
    store = InMemoryStateStore(60)
    expired = InstallState(nonce="old", shop=SHOP, expires_at=time.time() - 1)
    store._states[expired.nonce] = expired
    assert asyncio.run(store.consume(SHOP, "old")) is False


def test_issue_purges_expired_entries() -> None:
    store = InMemoryStateStore(60)
    store._states["old"] = InstallState(nonce="old", shop=SHOP, expires_at=0.0)
    asyncio.run(store.issue(SHOP))
    assert "old" not in store._states
    assert len(store._states) == 1


# ---- redis ----


def test_redis_store_sets_prefixed_key_with_ttl() -> None:
    redis = _FakeRedis()
    store = RedisStateStore(redis, ttl_sec=600)

    state = asyncio.run(store.issue(SHOP))

    key = f"shopify:state:{state.nonce}"
    assert redis.data[key] == SHOP
    assert redis.ttls[key] == 600


def test_redis_store_consumes_once() -> None:
    redis = _FakeRedis()
    store = RedisStateStore(redis, ttl_sec=600)

    async def _run() -> tuple[bool, bool]:
        state = await store.issue(SHOP)
        return await store.consume(SHOP, state.nonce), await store.consume(
            SHOP, state.nonce
        )

    assert asyncio.run(_run()) == (True, False)
    assert redis.data == {}


def test_redis_store_rejects_other_shop() -> None:
    store = RedisStateStore(_FakeRedis(), ttl_sec=600)

    async def _run() -> bool:
        state = await store.issue(SHOP)
        return await store.consume("other.example.com", state.nonce)

    assert asyncio.run(_run()) is False
