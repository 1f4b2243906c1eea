"""
Remote JWKS key set: fetch the provider's public signing keys and verify JWT signatures.
Keys are fetched lazily and cached as an immutable snapshot. A refresh builds a new
snapshot and swaps it in, so verifications in flight never see a half-updated set.
An unknown kid triggers one refresh (key rotation); nothing polls in the background.
"""
import logging
import threading

import httpx
import jwt
from jwt import PyJWK, PyJWKSet
from jwt.exceptions import PyJWTError

from idp_adapter.errors import KeySetError, KeySetFetchError

logger = logging.getLogger(__name__)

# Signature only; claim rules (exp, iat, nbf, iss, aud) are checked separately in claims.py
_SIGNATURE_ONLY = {
    "verify_signature": True,
    "verify_exp": False,
    "verify_nbf": False,
    "verify_iat": False,
    "verify_aud": False,
    "verify_iss": False,
    "verify_sub": False,
    "verify_jti": False,
}


def parse_jwks(data) -> tuple[PyJWK, ...]:
    """Turn a JWKS JSON document into usable keys. Raises KeySetFetchError if none are usable."""
    if not isinstance(data, dict) or not isinstance(data.get("keys"), list):
        raise KeySetFetchError("JWKS document has no 'keys' list")
    try:
        return tuple(PyJWKSet.from_dict(data).keys)
    except (PyJWTError, ValueError) as e:
        raise KeySetFetchError(f"malformed key material: {e}") from e


class RemoteKeySet:
    """Signing keys published at a JWKS URI. Shared by all verifications of one adapter."""

    def __init__(
        self,
        jwks_uri: str,
        client: httpx.Client,
        *,
        algorithms: tuple[str, ...] = ("RS256",),
        timeout=httpx.USE_CLIENT_DEFAULT,
        log=logger,
    ):
        self.jwks_uri = jwks_uri
        self.log = log
        self._client = client
        self._algorithms = tuple(algorithms)
        self._timeout = timeout
        self._keys: tuple[PyJWK, ...] | None = None
        self._refresh_lock = threading.Lock()

    @property
    def cached_kids(self) -> tuple[str, ...]:
        keys = self._keys or ()
        return tuple(k.key_id for k in keys if k.key_id)

    def invalidate(self) -> None:
        """Drop the cached snapshot; the next verification refetches."""
        self._keys = None

    def refresh(self, *, timeout=None) -> tuple[PyJWK, ...]:
        """Fetch the JWKS now and swap in a new snapshot."""
        with self._refresh_lock:
            return self._load(timeout)

    def _refresh_unless_replaced(self, seen, timeout) -> tuple[PyJWK, ...]:
        # Another thread may have loaded a newer snapshot while we waited for the lock
        with self._refresh_lock:
            current = self._keys
            if current is not None and current is not seen:
                return current
            return self._load(timeout)

    def _load(self, timeout) -> tuple[PyJWK, ...]:
        keys = self._fetch(self._timeout if timeout is None else timeout)
        self._keys = keys
        self.log.debug("Loaded %d signing key(s) from %s", len(keys), self.jwks_uri)
        return keys

    def _fetch(self, timeout) -> tuple[PyJWK, ...]:
        try:
            r = self._client.get(self.jwks_uri, headers={"Accept": "application/json"}, timeout=timeout)
        except httpx.HTTPError as e:
            raise KeySetFetchError(f"fetching keys from {self.jwks_uri}: {e}") from e
        if r.status_code != 200:
            raise KeySetFetchError(f"fetching keys from {self.jwks_uri}: HTTP {r.status_code}")
        try:
            data = r.json()
        except ValueError as e:
            raise KeySetFetchError(f"JWKS is not JSON: {e}") from e
        return parse_jwks(data)

    def _snapshot(self, timeout) -> tuple[PyJWK, ...]:
        keys = self._keys
        if keys is None:
            keys = self._refresh_unless_replaced(None, timeout)
        return keys

    def verify_signature(self, token: str, *, timeout=None) -> dict:
        """
        Verify a compact JWT against the cached keys and return its payload.
        Raises KeySetError on unknown kid, bad header, disallowed alg or signature mismatch;
        KeySetFetchError if the keys cannot be loaded.
        """
        try:
            header = jwt.get_unverified_header(token)
        except PyJWTError as e:
            raise KeySetError(f"malformed jwt: {e}") from e
        alg = header.get("alg")
        if alg not in self._algorithms:
            raise KeySetError(f"unsupported signing algorithm {alg!r}")
        kid = header.get("kid")

        keys = self._snapshot(timeout)
        if kid:
            candidates = [k for k in keys if k.key_id == kid]
            if not candidates:
                # Provider may have rotated keys since the last fetch
                self.log.info("Unknown kid %s; refreshing keys from %s", kid, self.jwks_uri)
                keys = self._refresh_unless_replaced(keys, timeout)
                candidates = [k for k in keys if k.key_id == kid]
            if not candidates:
                raise KeySetError(f"no signing key with kid {kid!r}")
        else:
            candidates = list(keys)

        last_error = None
        for key in candidates:
            try:
                return jwt.decode(token, key.key, algorithms=list(self._algorithms), options=_SIGNATURE_ONLY)
            except PyJWTError as e:
                last_error = e
        raise KeySetError(f"failed to verify signature: {last_error}") from last_error
