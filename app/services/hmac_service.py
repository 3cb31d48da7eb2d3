from __future__ import annotations

import hashlib
import hmac
from collections.abc import Iterable, Mapping

# Callback signature verification.
#
# The platform signs its redirect by computing HMAC-SHA256 (keyed with the
# app secret) over every query parameter except "hmac" itself. To recompute
# the same digest we must rebuild the exact message it signed:
#
#   - pairs sorted lexicographically
#   - "%" and "&" escaped in keys and values, "=" additionally in keys
#   - array parameters (ids[]=1&ids[]=2) and repeated keys collapsed to one
#     key, without the brackets, whose value is rendered as ["1", "2"]
#   - joined as key=value with "&"
#
# Any drift from this canonical form rejects every legitimate callback.

SIGNATURE_PARAM = "hmac"

Params = Mapping[str, str] | Iterable[tuple[str, str]]


def _pairs(params: Params) -> list[tuple[str, str]]:
    return list(params.items() if isinstance(params, Mapping) else params)


def _escape(text: str, *, is_key: bool) -> str:
    escaped = text.replace("%", "%25").replace("&", "%26")
    if is_key:
        escaped = escaped.replace("=", "%3D")
    return escaped


def _render_list(values: list[str]) -> str:
    return "[" + ", ".join(f'"{v}"' for v in values) + "]"


def canonical_query(params: Params) -> str:
    """Render params (minus hmac) in the form the platform signs.

    Accepts a plain mapping or a sequence of (key, value) pairs, the latter
    so repeated keys from a raw query string survive.
    """
    grouped: dict[str, list[str]] = {}
    for key, value in _pairs(params):
        if key == SIGNATURE_PARAM:
            continue
        grouped.setdefault(key, []).append(value)

    encoded = []
    for key, values in grouped.items():
        if key.endswith("[]"):
            key = key[:-2]
            value = _render_list(values)
        elif len(values) > 1:
            value = _render_list(values)
        else:
            value = values[0]
        encoded.append(f"{_escape(key, is_key=True)}={_escape(value, is_key=False)}")
    return "&".join(sorted(encoded))


def generate_encrypted_hash(params: Params, secret: str) -> str:
    """Hex HMAC-SHA256 of the canonical query, keyed with the app secret."""
    message = canonical_query(params)
    return hmac.new(
        secret.encode("utf-8"), message.encode("utf-8"), hashlib.sha256
    ).hexdigest()


def verify_hmac(params: Params, secret: str) -> bool:
    """True when the params' own "hmac" matches the recomputed digest.

    A missing or repeated hmac fails. Comparison is constant time (on bytes,
    so a non-ASCII forgery is a plain mismatch rather than a TypeError).
    """
    pairs = _pairs(params)
    supplied = [value for key, value in pairs if key == SIGNATURE_PARAM]
    if len(supplied) != 1 or not supplied[0]:
        return False
    expected = generate_encrypted_hash(pairs, secret)
    return hmac.compare_digest(expected.encode("ascii"), supplied[0].encode("utf-8"))
