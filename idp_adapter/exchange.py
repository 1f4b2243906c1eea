"""
Token endpoint grants: authorization_code and (legacy) password.
Both POST form data with client credentials and return a TokenSet. No retries;
the caller's timeout is passed straight through to httpx.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from types import MappingProxyType
from typing import Any, Callable, Mapping

import httpx

from idp_adapter.authorize import OAuth2Config
from idp_adapter.errors import ExchangeError

logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class TokenSet:
    access_token: str
    token_type: str = "Bearer"
    id_token: str | None = None
    expiry: datetime | None = None
    refresh_token: str | None = None
    scope: str = ""
    raw: Mapping[str, Any] = field(default_factory=dict, repr=False)

    @classmethod
    def from_response(cls, data: Mapping[str, Any], now: datetime) -> "TokenSet":
        """Build from a token endpoint JSON body. Raises ExchangeError if access_token is missing."""
        access_token = data.get("access_token")
        if not access_token or not isinstance(access_token, str):
            raise ExchangeError("server response missing access_token")
        expiry = None
        expires_in = data.get("expires_in")
        if expires_in not in (None, ""):
            try:
                seconds = int(expires_in)
            except (TypeError, ValueError) as e:
                raise ExchangeError(f"invalid expires_in {expires_in!r}") from e
            if seconds > 0:
                expiry = now + timedelta(seconds=seconds)
        id_token = data.get("id_token")
        return cls(
            access_token=access_token,
            token_type=data.get("token_type") or "Bearer",
            id_token=id_token if isinstance(id_token, str) and id_token else None,
            expiry=expiry,
            refresh_token=data.get("refresh_token") or None,
            scope=data.get("scope") or "",
            raw=MappingProxyType(dict(data)),
        )


def post_client_form(
    client: httpx.Client,
    url: str,
    form: dict,
    *,
    client_id: str,
    client_secret: str,
    auth_style: str = "basic",
    timeout=httpx.USE_CLIENT_DEFAULT,
) -> dict:
    """
    POST a form authenticated as the OAuth client; return the JSON body.
    auth_style "basic" sends Authorization: Basic, "post" sends client_id/client_secret in the form.
    """
    data = dict(form)
    auth = None
    if auth_style == "post":
        data["client_id"] = client_id
        if client_secret:
            data["client_secret"] = client_secret
    else:
        auth = httpx.BasicAuth(client_id, client_secret)
    try:
        r = client.post(
            url,
            data=data,
            auth=auth,
            headers={"Accept": "application/json"},
            timeout=timeout,
        )
    except httpx.HTTPError as e:
        raise ExchangeError(f"POST {url}: {e}") from e

    try:
        body = r.json()
    except ValueError:
        body = None

    if r.status_code < 200 or r.status_code >= 300:
        err = body if isinstance(body, dict) else {}
        if isinstance(err.get("detail"), dict):
            # FastAPI-style {"detail": {"error": ...}} bodies
            err = err["detail"]
        error = err.get("error")
        description = err.get("error_description")
        raise ExchangeError(
            f"POST {url}: HTTP {r.status_code} {error or ''} {description or ''}".strip(),
            error=error,
            error_description=description,
            status_code=r.status_code,
        )
    if not isinstance(body, dict):
        raise ExchangeError(f"POST {url}: response is not a JSON object", status_code=r.status_code)
    return body


class TokenExchanger:
    """Runs grants against the token endpoint of one OAuth2Config."""

    def __init__(
        self,
        client: httpx.Client,
        *,
        auth_style: str = "basic",
        clock: Callable[[], datetime] = utc_now,
    ):
        self._client = client
        self._auth_style = auth_style
        self._clock = clock

    def _grant(self, config: OAuth2Config, form: dict, timeout) -> TokenSet:
        body = post_client_form(
            self._client,
            config.token_endpoint,
            form,
            client_id=config.client_id,
            client_secret=config.client_secret,
            auth_style=self._auth_style,
            timeout=timeout,
        )
        return TokenSet.from_response(body, self._clock())

    def exchange_code(self, config: OAuth2Config, code: str, *, timeout=httpx.USE_CLIENT_DEFAULT) -> TokenSet:
        """authorization_code grant. config.redirect_uri must be the one used to obtain the code."""
        form = {"grant_type": "authorization_code", "code": code}
        if config.redirect_uri:
            form["redirect_uri"] = config.redirect_uri
        return self._grant(config, form, timeout)

    def exchange_password(
        self,
        config: OAuth2Config,
        username: str,
        password: str,
        *,
        timeout=httpx.USE_CLIENT_DEFAULT,
    ) -> TokenSet:
        """
        Resource Owner Password grant. Last resort only: it skips browser consent and hands
        the user's password to this application, so use it for fully trusted first-party
        clients or test environments. Nothing here restricts who may call it.
        """
        form = {
            "grant_type": "password",
            "username": username,
            "password": password,
            "scope": " ".join(config.scopes),
        }
        return self._grant(config, form, timeout)
