"""
OpenID Connect discovery: resolve provider endpoints from the issuer URL.
Runs once when the adapter is built; any failure here aborts construction.
"""
import logging
from dataclasses import dataclass

import httpx

from idp_adapter.errors import DiscoveryError

logger = logging.getLogger(__name__)

WELL_KNOWN_PATH = "/.well-known/openid-configuration"

_REQUIRED = ("authorization_endpoint", "token_endpoint", "jwks_uri")


@dataclass(frozen=True)
class ProviderMetadata:
    issuer: str
    authorization_endpoint: str
    token_endpoint: str
    jwks_uri: str
    userinfo_endpoint: str | None = None
    introspection_endpoint: str | None = None
    end_session_endpoint: str | None = None
    id_token_signing_alg_values_supported: tuple[str, ...] = ()

    @classmethod
    def from_document(cls, doc: dict, issuer: str) -> "ProviderMetadata":
        """Pick the fields we use out of a discovery document. Raises DiscoveryError if any required one is missing."""
        missing = [name for name in _REQUIRED if not isinstance(doc.get(name), str) or not doc.get(name)]
        if missing:
            raise DiscoveryError(f"discovery document missing {', '.join(missing)}")
        algs = doc.get("id_token_signing_alg_values_supported") or ()
        if not isinstance(algs, (list, tuple)):
            raise DiscoveryError("discovery document id_token_signing_alg_values_supported is not a list")
        return cls(
            issuer=doc.get("issuer") or issuer,
            authorization_endpoint=doc["authorization_endpoint"],
            token_endpoint=doc["token_endpoint"],
            jwks_uri=doc["jwks_uri"],
            userinfo_endpoint=doc.get("userinfo_endpoint"),
            introspection_endpoint=doc.get("introspection_endpoint"),
            end_session_endpoint=doc.get("end_session_endpoint"),
            id_token_signing_alg_values_supported=tuple(str(a) for a in algs),
        )


def discovery_url(issuer: str) -> str:
    return issuer.rstrip("/") + WELL_KNOWN_PATH


def discover(
    issuer: str,
    client: httpx.Client,
    *,
    timeout=httpx.USE_CLIENT_DEFAULT,
    log=logger,
) -> ProviderMetadata:
    """
    GET the issuer's discovery document and return its endpoints.
    The advertised issuer must match the configured one (trailing slash ignored).
    """
    url = discovery_url(issuer)
    try:
        r = client.get(url, headers={"Accept": "application/json"}, timeout=timeout)
    except httpx.HTTPError as e:
        raise DiscoveryError(f"fetching {url}: {e}") from e
    if r.status_code != 200:
        raise DiscoveryError(f"fetching {url}: HTTP {r.status_code}")
    try:
        doc = r.json()
    except ValueError as e:
        raise DiscoveryError(f"discovery document is not JSON: {e}") from e
    if not isinstance(doc, dict):
        raise DiscoveryError("discovery document is not a JSON object")

    advertised = doc.get("issuer")
    if advertised is not None and not isinstance(advertised, str):
        raise DiscoveryError(f"discovery document issuer is not a string: {advertised!r}")
    if advertised and advertised.rstrip("/") != issuer.rstrip("/"):
        raise DiscoveryError(f"issuer did not match: expected {issuer!r} got {advertised!r}")

    metadata = ProviderMetadata.from_document(doc, issuer)
    log.debug("Discovered provider %s (jwks_uri=%s)", metadata.issuer, metadata.jwks_uri)
    return metadata
