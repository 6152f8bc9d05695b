"""Unverified inspection of the bearer token issued by the sign-in endpoint.

The dashboard never holds the signing key, so claims are read without
checking the signature. Liveness is decided from ``exp`` alone.
"""

from __future__ import annotations

import binascii
import json
from typing import Any, Dict, Mapping, Optional

from jose.utils import base64url_decode

from profile_core.errors import DecodeError, MissingClaim, TokenInvalid


def decode(token: str) -> Dict[str, Any]:
    if not isinstance(token, str) or not token.strip():
        raise DecodeError("Token is empty")
    if token.count(".") != 2:
        raise DecodeError("Token must have three segments")
    # only the payload segment is read; header and signature are opaque
    payload = token.split(".")[1]
    try:
        raw = base64url_decode(payload.encode("ascii"))
    except (binascii.Error, UnicodeError, ValueError) as exc:
        raise DecodeError(f"Token payload is not base64url: {exc}") from exc
    try:
        claims = json.loads(raw)
    except ValueError as exc:
        raise DecodeError(f"Token payload is not JSON: {exc}") from exc
    if not isinstance(claims, dict):
        raise DecodeError("Token payload is not a JSON object")
    return claims


def extract_identity(claims: Mapping[str, Any]) -> int:
    sub = claims.get("sub")
    if sub is None or (isinstance(sub, str) and not sub.strip()):
        raise MissingClaim("Token has no subject claim")
    if isinstance(sub, bool):
        raise TokenInvalid(f"Subject claim is not an integer: {sub!r}")
    try:
        return int(str(sub).strip())
    except ValueError as exc:
        raise TokenInvalid(f"Subject claim is not an integer: {sub!r}") from exc


def _as_epoch(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def is_live(claims: Mapping[str, Any], now: float) -> bool:
    exp = _as_epoch(claims.get("exp"))
    if exp is None:
        return False
    return exp > now


def token_user_info(claims: Mapping[str, Any]) -> Dict[str, Any]:
    return {
        "id": claims.get("sub"),
        "username": claims.get("username") or claims.get("login"),
        "email": claims.get("email"),
        "exp": claims.get("exp"),
        "iat": claims.get("iat"),
    }
