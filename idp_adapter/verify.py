"""
Token verification: ID tokens from an exchange, and bearer access tokens presented later.

Access tokens are not guaranteed to be JWTs, so access-token verification is pluggable:
JWTAccessTokenVerifier checks the signature against the cached JWKS, while
IntrospectionAccessTokenVerifier asks the provider (RFC 7662) about opaque tokens.
"""
from datetime import datetime
from typing import Callable, Protocol

import httpx

from idp_adapter.claims import (
    AccessTokenClaims,
    IDTokenClaims,
    decode_access_token_claims,
    decode_id_token_claims,
    validate_access_token_claims,
    validate_id_token_claims,
)
from idp_adapter.errors import (
    KeySetError,
    KeySetFetchError,
    MissingIDToken,
    SignatureInvalid,
    TokenInactive,
)
from idp_adapter.exchange import TokenSet, post_client_form, utc_now
from idp_adapter.keyset import RemoteKeySet


def _unix(clock: Callable[[], datetime]) -> int:
    return int(clock().timestamp())


def _verify_signature(key_set: RemoteKeySet, token: str, timeout) -> dict:
    """KeySet failures other than fetching become SignatureInvalid."""
    try:
        return key_set.verify_signature(token, timeout=timeout)
    except KeySetFetchError:
        raise
    except KeySetError as e:
        raise SignatureInvalid(f"verifying jwt signature: {e}") from e


class AccessTokenVerifier(Protocol):
    def verify(self, token: str, *, timeout=None) -> AccessTokenClaims: ...


class JWTAccessTokenVerifier:
    """Access tokens formatted as JWTs, signed by a key in the provider's JWKS."""

    def __init__(
        self,
        key_set: RemoteKeySet,
        *,
        issuer: str,
        audience: str,
        client_id: str,
        clock: Callable[[], datetime] = utc_now,
    ):
        self._key_set = key_set
        self._issuer = issuer
        self._audience = audience
        self._client_id = client_id
        self._clock = clock

    def verify(self, token: str, *, timeout=None) -> AccessTokenClaims:
        payload = _verify_signature(self._key_set, token, timeout)
        claims = decode_access_token_claims(payload)
        validate_access_token_claims(
            claims,
            issuer=self._issuer,
            audience=self._audience,
            client_id=self._client_id,
            now=_unix(self._clock),
        )
        return claims


class IntrospectionAccessTokenVerifier:
    """Opaque access tokens checked at the provider's introspection endpoint (RFC 7662)."""

    def __init__(
        self,
        client: httpx.Client,
        introspection_endpoint: str,
        *,
        issuer: str,
        audience: str,
        client_id: str,
        client_secret: str,
        auth_style: str = "basic",
        clock: Callable[[], datetime] = utc_now,
    ):
        self._client = client
        self.introspection_endpoint = introspection_endpoint
        self._issuer = issuer
        self._audience = audience
        self._client_id = client_id
        self._client_secret = client_secret
        self._auth_style = auth_style
        self._clock = clock

    def verify(self, token: str, *, timeout=None) -> AccessTokenClaims:
        body = post_client_form(
            self._client,
            self.introspection_endpoint,
            {"token": token, "token_type_hint": "access_token"},
            client_id=self._client_id,
            client_secret=self._client_secret,
            auth_style=self._auth_style,
            timeout=httpx.USE_CLIENT_DEFAULT if timeout is None else timeout,
        )
        if body.get("active") is not True:
            raise TokenInactive("token is not active")
        claims = decode_access_token_claims(body)
        validate_access_token_claims(
            claims,
            issuer=self._issuer,
            audience=self._audience,
            client_id=self._client_id,
            now=_unix(self._clock),
            allow_absent=True,
        )
        return claims


class TokenVerifier:
    """Verifies ID tokens from an exchange and delegates access tokens to an AccessTokenVerifier."""

    def __init__(
        self,
        key_set: RemoteKeySet,
        access_token_verifier: AccessTokenVerifier,
        *,
        issuer: str,
        client_id: str,
        clock: Callable[[], datetime] = utc_now,
    ):
        self._key_set = key_set
        self._access_token_verifier = access_token_verifier
        self._issuer = issuer
        self._client_id = client_id
        self._clock = clock

    def verify_id_token(self, token_set: TokenSet, *, timeout=None) -> tuple[IDTokenClaims, str]:
        """
        Verify the id_token of an exchange result: signature, then iat, exp, iss and aud.
        Returns (claims, raw_id_token); claims are never returned unless every check passed.
        """
        raw_id_token = token_set.id_token
        if not raw_id_token:
            raise MissingIDToken("no id_token field in token response")
        payload = _verify_signature(self._key_set, raw_id_token, timeout)
        claims = decode_id_token_claims(payload)
        validate_id_token_claims(
            claims,
            issuer=self._issuer,
            client_id=self._client_id,
            now=_unix(self._clock),
        )
        return claims, raw_id_token

    def verify_access_token(self, token: str, *, timeout=None) -> AccessTokenClaims:
        return self._access_token_verifier.verify(token, timeout=timeout)
