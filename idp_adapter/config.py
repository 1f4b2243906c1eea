"""
Identity-provider adapter configuration.
Values come from IDP_* environment variables; client secret is never hard-coded.
"""
import os
from dataclasses import dataclass
from urllib.parse import urlsplit

from idp_adapter.errors import ConfigurationError

# Set DISABLE_IDP=disable to run the web service without an identity provider
DISABLE_IDP = os.environ.get("DISABLE_IDP", "") == "disable"

# Seconds before an IdP call (discovery, JWKS, token, introspection) gives up
DEFAULT_HTTP_TIMEOUT = 10.0

TOKEN_AUTH_STYLES = ("basic", "post")


def _require_url(name: str, value: str) -> None:
    parts = urlsplit(value)
    if parts.scheme not in ("http", "https") or not parts.netloc:
        raise ConfigurationError(f"{name} expected to be valid url: {value!r}")


@dataclass(frozen=True)
class AdapterConfig:
    """Static settings for one identity provider. Validated on construction."""

    label: str
    client_id: str
    client_secret: str
    issuer: str
    audience: str
    login_callback: str
    signup_callback: str
    issuer_logout_path: str = ""
    token_auth_style: str = "basic"
    signing_algorithms: tuple[str, ...] = ("RS256",)
    http_timeout: float = DEFAULT_HTTP_TIMEOUT

    def __post_init__(self):
        _require_url("login callback", self.login_callback)
        _require_url("signup callback", self.signup_callback)
        _require_url("issuer", self.issuer)
        if self.token_auth_style not in TOKEN_AUTH_STYLES:
            raise ConfigurationError(
                f"token auth style must be one of {TOKEN_AUTH_STYLES}, got {self.token_auth_style!r}"
            )
        if not self.signing_algorithms:
            raise ConfigurationError("at least one signing algorithm is required")


def load_adapter_config(environ=None) -> AdapterConfig:
    """Build AdapterConfig from IDP_* variables (read now, not at import)."""
    env = os.environ if environ is None else environ
    try:
        timeout = float(env.get("IDP_HTTP_TIMEOUT") or DEFAULT_HTTP_TIMEOUT)
    except ValueError as e:
        raise ConfigurationError(f"IDP_HTTP_TIMEOUT must be a number: {e}") from e
    return AdapterConfig(
        label=env.get("IDP_LABEL", ""),
        client_id=env.get("IDP_CLIENT_ID", ""),
        client_secret=env.get("IDP_CLIENT_SECRET", ""),
        issuer=env.get("IDP_ISSUER", ""),
        audience=env.get("IDP_AUDIENCE", ""),
        login_callback=env.get("IDP_LOGIN_CALLBACK", ""),
        signup_callback=env.get("IDP_SIGNUP_CALLBACK", ""),
        issuer_logout_path=env.get("IDP_ISSUER_LOGOUT_PATH", ""),
        token_auth_style=env.get("IDP_TOKEN_AUTH_STYLE", "basic") or "basic",
        http_timeout=timeout,
    )
