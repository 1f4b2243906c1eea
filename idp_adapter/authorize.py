"""
Authorization request helpers: flow-aware redirect resolution and the /authorize URL.
The base OAuth2 settings are frozen; every call derives its own copy with the redirect URI set.
"""
import uuid
from dataclasses import dataclass, replace
from enum import Enum
from urllib.parse import urlencode, urlsplit, urlunsplit

DEFAULT_SCOPES = ("openid", "email", "profile")


class AuthFlow(Enum):
    """Which default callback applies when the caller gives no redirect override."""

    LOGIN = "login"
    SIGNUP = "signup"


@dataclass(frozen=True)
class OAuth2Config:
    client_id: str
    client_secret: str
    authorization_endpoint: str
    token_endpoint: str
    scopes: tuple[str, ...] = DEFAULT_SCOPES
    redirect_uri: str = ""

    def with_redirect(self, redirect_uri: str) -> "OAuth2Config":
        return replace(self, redirect_uri=redirect_uri)


def generate_nonce() -> str:
    """Random value for ID token binding; a fresh uuid4 per authorization request."""
    return str(uuid.uuid4())


def resolve_redirect_uri(override: str, flow: AuthFlow, login_callback: str, signup_callback: str) -> str:
    """Non-empty override wins verbatim; otherwise the flow's default callback."""
    if override:
        return override
    if flow is AuthFlow.SIGNUP:
        return signup_callback
    return login_callback


def build_auth_code_url(config: OAuth2Config, *, state: str, nonce: str) -> str:
    """Build the /authorize URL. Query parameters already on the endpoint are kept."""
    params = {
        "client_id": config.client_id,
        "redirect_uri": config.redirect_uri,
        "response_type": "code",
        "scope": " ".join(config.scopes),
        "state": state,
        "nonce": nonce,
    }
    if not config.redirect_uri:
        del params["redirect_uri"]
    parts = urlsplit(config.authorization_endpoint)
    query = urlencode(params)
    if parts.query:
        query = f"{parts.query}&{query}"
    return urlunsplit((parts.scheme, parts.netloc, parts.path, query, parts.fragment))
