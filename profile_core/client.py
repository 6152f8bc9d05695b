from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import httpx

from profile_core import token as token_inspector
from profile_core.config import ERRORS, Settings, settings as default_settings
from profile_core.errors import AuthError, FetchFailed, TokenInvalid, Unauthorized
from profile_core.queries import Query

logger = logging.getLogger(__name__)

# Hasura reports an expired or malformed JWT as a GraphQL error on HTTP 200
_AUTH_ERROR_CODES = {"invalid-jwt"}


class ApiClient:
    """Credential exchange and query boundary for the remote GraphQL API."""

    def __init__(self, config: Optional[Settings] = None, *, http: Optional[httpx.AsyncClient] = None) -> None:
        self.config = config or default_settings
        self._owns_http = http is None
        self._http = http or httpx.AsyncClient(timeout=self.config.request_timeout)

    async def aclose(self) -> None:
        if self._owns_http:
            await self._http.aclose()

    async def __aenter__(self) -> ApiClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def sign_in(self, username: str, password: str) -> str:
        username = (username or "").strip()
        if not username or not password:
            raise AuthError(ERRORS["MISSING_CREDENTIALS"])
        try:
            response = await self._http.post(
                self.config.auth_endpoint,
                auth=(username, password),
                headers={"Content-Type": "application/json"},
            )
        except httpx.HTTPError as exc:
            logger.warning("sign-in transport error: %s", exc)
            raise AuthError(ERRORS["NETWORK_ERROR"]) from exc

        if response.status_code in (401, 403):
            raise AuthError(ERRORS["INVALID_CREDENTIALS"])
        if response.is_error:
            raise AuthError(f"{ERRORS['NETWORK_ERROR']} ({response.status_code})")

        try:
            body = response.json()
        except ValueError as exc:
            raise AuthError("No token received from server") from exc
        jwt = body if isinstance(body, str) else (body.get("jwt") if isinstance(body, dict) else None)
        if not jwt:
            raise AuthError("No token received from server")

        try:
            token_inspector.extract_identity(token_inspector.decode(jwt))
        except TokenInvalid as exc:
            raise AuthError("Invalid token received") from exc
        logger.info("signed in as %s", username)
        return jwt

    async def execute(self, query: Query, token: str, *, user_id: Optional[int] = None) -> Dict[str, Any]:
        if not token:
            raise Unauthorized(ERRORS["NOT_AUTHENTICATED"])
        logger.debug("query %s user_id=%s", query.name, user_id)
        try:
            response = await self._http.post(
                self.config.graphql_endpoint,
                json=query.payload(user_id),
                headers={"Authorization": f"Bearer {token}"},
            )
        except httpx.HTTPError as exc:
            raise FetchFailed(f"{ERRORS['NETWORK_ERROR']}: {exc}") from exc

        if response.status_code in (401, 403):
            raise Unauthorized(ERRORS["TOKEN_EXPIRED"])
        if response.is_error:
            raise FetchFailed(f"HTTP {response.status_code}: {response.reason_phrase}")

        try:
            body = response.json()
        except ValueError as exc:
            raise FetchFailed(f"{ERRORS['GRAPHQL_ERROR']}: response is not JSON") from exc
        if not isinstance(body, dict):
            raise FetchFailed(f"{ERRORS['GRAPHQL_ERROR']}: unexpected response shape")

        errors: Any = body.get("errors") or []
        if not isinstance(errors, list):
            errors = [errors]
        if errors:
            first = errors[0] if isinstance(errors[0], dict) else {"message": str(errors[0])}
            code = (first.get("extensions") or {}).get("code")
            logger.error("GraphQL errors on %s: %s", query.name, errors)
            if code in _AUTH_ERROR_CODES:
                raise Unauthorized(f"GraphQL Error: {first.get('message')}")
            raise FetchFailed(f"GraphQL Error: {first.get('message')}")

        data = body.get("data")
        if not isinstance(data, dict):
            raise FetchFailed(f"{ERRORS['GRAPHQL_ERROR']}: missing data")
        return data
