from __future__ import annotations

import secrets
import time
from dataclasses import dataclass

# 32 random bytes -> 43 url-safe chars, 256 bits of entropy.
NONCE_BYTES = 32


@dataclass(frozen=True, slots=True)
class InstallState:
    """One authorization attempt: the nonce we sent and the shop it was for."""

    nonce: str
    shop: str
    expires_at: float

    @staticmethod
    def new(*, shop: str, ttl_sec: int) -> InstallState:
        return InstallState(
            nonce=secrets.token_urlsafe(NONCE_BYTES),
            shop=shop,
            expires_at=time.time() + ttl_sec,
        )

    def is_expired(self, now: float | None = None) -> bool:
        return (time.time() if now is None else now) >= self.expires_at
