"""Install nonce store.

The state cookie alone proves the browser holding it started an install,
but a bare cookie can be replayed for as long as it lives. The store adds
the server-side half: every nonce minted by GET /shopify is registered
here, bound to its shop, and the first verified callback consumes it.
A second callback with the same nonce, a nonce we never issued, an
expired one, or one issued for a different shop all fail to consume.

Two backends behind one Protocol:
  - InMemoryStateStore: a dict, per process (dev, tests, single instance)
  - RedisStateStore: shared across instances; TTL handled by Redis, and
    consumption is a single GETDEL so two racing callbacks cannot both win
"""

from __future__ import annotations

import time
from typing import Protocol, runtime_checkable

from app.core.config import SETTINGS
from app.db.redis import redis_pool
from app.models.install_state import InstallState


@runtime_checkable
class StateStore(Protocol):
    async def issue(self, shop: str) -> InstallState:
        """Mint a nonce for shop and remember it until it expires."""
        ...

    async def consume(self, shop: str, nonce: str) -> bool:
        """Forget nonce; True only if it was live and issued for shop."""
        ...


class InMemoryStateStore:
    def __init__(self, ttl_sec: int) -> None:
        self._ttl_sec = ttl_sec
        # nonce -> InstallState
        self._states: dict[str, InstallState] = {}

    async def issue(self, shop: str) -> InstallState:
        self._purge_expired()
        state = InstallState.new(shop=shop, ttl_sec=self._ttl_sec)
        self._states[state.nonce] = state
        return state

    async def consume(self, shop: str, nonce: str) -> bool:
        state = self._states.pop(nonce, None)
        if state is None or state.is_expired():
            return False
        return state.shop == shop

    def _purge_expired(self) -> None:
        # Abandoned installs never reach the callback; drop them lazily.
        now = time.time()
        for nonce in [n for n, s in self._states.items() if s.is_expired(now)]:
            del self._states[nonce]


class RedisStateStore:
    _PREFIX = "shopify:state:"

    def __init__(self, redis_client, ttl_sec: int) -> None:
        self._redis = redis_client
        self._ttl_sec = ttl_sec

    async def issue(self, shop: str) -> InstallState:
        state = InstallState.new(shop=shop, ttl_sec=self._ttl_sec)
        await self._redis.set(f"{self._PREFIX}{state.nonce}", shop, ex=self._ttl_sec)
        return state

    async def consume(self, shop: str, nonce: str) -> bool:
        stored_shop = await self._redis.getdel(f"{self._PREFIX}{nonce}")
        return stored_shop is not None and stored_shop == shop


if redis_pool is not None:
    state_store: StateStore = RedisStateStore(redis_pool, SETTINGS.state_ttl_sec)
else:
    state_store = InMemoryStateStore(SETTINGS.state_ttl_sec)


def get_state_store() -> StateStore:
    return state_store
