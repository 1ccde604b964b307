"""
storefront.session — SessionVerifier for Cognito-issued session tokens.

Session tokens are RS256 ID tokens signed by the user pool. Verification
checks signature (via the pool's JWKS), expiry, audience and issuer, and
resolves the token to the account's `sub`.
"""

from __future__ import annotations

from typing import Any

import jwt
from aws_lambda_powertools import Logger
from jwt import PyJWKClient

from storefront.exceptions import InvalidSessionError
from storefront.models import SessionIdentity

logger = Logger(service="storefront-lib")

_BEARER_PREFIX = "Bearer "
_JWKS_CACHE_SECONDS = 300


def cognito_issuer(region: str, user_pool_id: str) -> str:
    return f"https://cognito-idp.{region}.amazonaws.com/{user_pool_id}"


class SessionVerifier:
    """Resolve session tokens to a SessionIdentity or raise InvalidSessionError."""

    def __init__(
        self,
        jwks_url: str,
        *,
        audience: str | None,
        issuer: str | None,
        jwk_client: Any = None,
    ) -> None:
        self._audience = audience
        self._issuer = issuer
        self._jwk_client: Any = jwk_client or PyJWKClient(
            jwks_url, cache_jwk_set=True, lifespan=_JWKS_CACHE_SECONDS
        )

    @classmethod
    def from_user_pool(
        cls, region: str, user_pool_id: str, client_id: str, **kwargs: Any
    ) -> SessionVerifier:
        issuer = cognito_issuer(region, user_pool_id)
        return cls(
            f"{issuer}/.well-known/jwks.json",
            audience=client_id,
            issuer=issuer,
            **kwargs,
        )

    def verify(self, token: str | None) -> SessionIdentity:
        if not token or not token.strip():
            raise InvalidSessionError("Missing session token")

        token = token.strip()
        if token.startswith(_BEARER_PREFIX):
            token = token[len(_BEARER_PREFIX) :].strip()

        try:
            signing_key = self._jwk_client.get_signing_key_from_jwt(token)
            payload = jwt.decode(
                token,
                signing_key.key,
                algorithms=["RS256"],
                audience=self._audience,
                issuer=self._issuer,
            )
        except jwt.ExpiredSignatureError as exc:
            logger.info("Session token expired")
            raise InvalidSessionError("Session token expired") from exc
        except jwt.PyJWTError as exc:
            # PyJWKClientError (JWKS fetch) is a PyJWTError too.
            logger.warning(f"Invalid session token: {exc}")
            raise InvalidSessionError("Invalid session token") from exc

        uid = payload.get("sub")
        if not uid:
            logger.warning("Session token has no sub claim")
            raise InvalidSessionError("Session token has no subject")

        exp = payload.get("exp")
        return SessionIdentity(
            uid=str(uid),
            email=payload.get("email"),
            expires_at=int(exp) if exp is not None else None,
        )
