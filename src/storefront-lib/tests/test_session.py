"""
tests/test_session.py — SessionVerifier with real RS256 tokens.

Tokens are signed with an ephemeral key pair; the JWKS lookup is replaced
by a stub returning the matching public key.
"""

from __future__ import annotations

import time
from typing import Any
from unittest.mock import MagicMock

import jwt
import pytest
from cryptography.hazmat.primitives.asymmetric import rsa
from storefront import InvalidSessionError, SessionIdentity, SessionVerifier
from storefront.session import cognito_issuer

REGION = "eu-west-2"
POOL_ID = "eu-west-2_Abc123"
CLIENT_ID = "storefront-web"
ISSUER = cognito_issuer(REGION, POOL_ID)

_PRIVATE_KEY = rsa.generate_private_key(public_exponent=65537, key_size=2048)
_OTHER_KEY = rsa.generate_private_key(public_exponent=65537, key_size=2048)


def _token(*, key: Any = _PRIVATE_KEY, **overrides: Any) -> str:
    now = int(time.time())
    payload: dict[str, Any] = {
        "iss": ISSUER,
        "aud": CLIENT_ID,
        "sub": "owner-1",
        "email": "owner@example.com",
        "token_use": "id",
        "iat": now,
        "exp": now + 3600,
    }
    payload.update(overrides)
    payload = {name: value for name, value in payload.items() if value is not None}
    return jwt.encode(payload, key, algorithm="RS256", headers={"kid": "test-kid"})


@pytest.fixture
def jwk_client() -> MagicMock:
    client = MagicMock()
    client.get_signing_key_from_jwt.return_value = MagicMock(key=_PRIVATE_KEY.public_key())
    return client


@pytest.fixture
def verifier(jwk_client: MagicMock) -> SessionVerifier:
    return SessionVerifier.from_user_pool(REGION, POOL_ID, CLIENT_ID, jwk_client=jwk_client)


def test_cognito_issuer() -> None:
    assert ISSUER == "https://cognito-idp.eu-west-2.amazonaws.com/eu-west-2_Abc123"


def test_verify_valid_token(verifier: SessionVerifier) -> None:
    identity = verifier.verify(_token())

    assert isinstance(identity, SessionIdentity)
    assert identity.uid == "owner-1"
    assert identity.email == "owner@example.com"
    assert identity.expires_at is not None


def test_verify_accepts_bearer_prefix(verifier: SessionVerifier, jwk_client: MagicMock) -> None:
    token = _token()

    assert verifier.verify(f"Bearer {token}").uid == "owner-1"
    jwk_client.get_signing_key_from_jwt.assert_called_with(token)


@pytest.mark.parametrize("token", [None, "", "   ", "Bearer "])
def test_verify_missing_token(verifier: SessionVerifier, token: str | None) -> None:
    with pytest.raises(InvalidSessionError):
        verifier.verify(token)


def test_verify_expired_token(verifier: SessionVerifier) -> None:
    expired = _token(iat=int(time.time()) - 7200, exp=int(time.time()) - 3600)

    with pytest.raises(InvalidSessionError, match="expired"):
        verifier.verify(expired)


def test_verify_wrong_signature(verifier: SessionVerifier) -> None:
    with pytest.raises(InvalidSessionError):
        verifier.verify(_token(key=_OTHER_KEY))


def test_verify_wrong_audience(verifier: SessionVerifier) -> None:
    with pytest.raises(InvalidSessionError):
        verifier.verify(_token(aud="another-app"))


def test_verify_wrong_issuer(verifier: SessionVerifier) -> None:
    with pytest.raises(InvalidSessionError):
        verifier.verify(_token(iss="https://evil.example.com"))


def test_verify_token_without_subject(verifier: SessionVerifier) -> None:
    with pytest.raises(InvalidSessionError, match="subject"):
        verifier.verify(_token(sub=None))


def test_verify_garbage_token(verifier: SessionVerifier, jwk_client: MagicMock) -> None:
    jwk_client.get_signing_key_from_jwt.side_effect = jwt.DecodeError("Not enough segments")

    with pytest.raises(InvalidSessionError):
        verifier.verify("garbage")


def test_verify_jwks_unreachable(verifier: SessionVerifier, jwk_client: MagicMock) -> None:
    jwk_client.get_signing_key_from_jwt.side_effect = jwt.PyJWKClientError(
        "Fail to fetch data from the url"
    )

    with pytest.raises(InvalidSessionError):
        verifier.verify(_token())


def test_default_jwk_client_points_at_pool_jwks() -> None:
    verifier = SessionVerifier.from_user_pool(REGION, POOL_ID, CLIENT_ID)

    assert verifier._jwk_client.uri == f"{ISSUER}/.well-known/jwks.json"
