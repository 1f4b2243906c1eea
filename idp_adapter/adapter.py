"""
IdentityProviderAdapter: one OAuth2 + OIDC identity provider, long lived.

Built once per process: construction runs discovery and prepares the JWKS cache, after
which the adapter is shared by every request. Nothing on the instance is mutated after
construction except the key set snapshot, so concurrent use needs no locking by callers.
"""
import logging
from datetime import datetime
from typing import Callable, Mapping, Protocol, Sequence
from urllib.parse import urlencode, urlsplit, urlunsplit

import httpx

from idp_adapter.authorize import (
    DEFAULT_SCOPES,
    AuthFlow,
    OAuth2Config,
    build_auth_code_url,
    generate_nonce,
    resolve_redirect_uri,
)
from idp_adapter.claims import AccessTokenClaims, IDTokenClaims
from idp_adapter.config import AdapterConfig
from idp_adapter.discovery import ProviderMetadata, discover
from idp_adapter.errors import ExchangeError, IdPAdapterError, VerificationError
from idp_adapter.exchange import TokenExchanger, TokenSet, utc_now
from idp_adapter.identity import Identity, project_identity
from idp_adapter.keyset import RemoteKeySet
from idp_adapter.verify import AccessTokenVerifier, JWTAccessTokenVerifier, TokenVerifier


class SupportsLogging(Protocol):
    """Leveled logging the adapter needs; logging.Logger satisfies it."""

    def debug(self, msg, *args, **kwargs): ...

    def info(self, msg, *args, **kwargs): ...

    def error(self, msg, *args, **kwargs): ...


class IdentityProviderAdapter:
    """
    Login/signup redirects, code and password exchange, ID/access token verification,
    and logout links for a single provider.

    http_client: used for every call to the provider; one is created (and closed by
    close()) when not given. timeout: default per-call timeout in seconds, overridable
    on each network operation. Raises ConfigurationError or DiscoveryError.
    """

    def __init__(
        self,
        config: AdapterConfig,
        *,
        http_client: httpx.Client | None = None,
        logger: SupportsLogging | None = None,
        clock: Callable[[], datetime] | None = None,
        access_token_verifier: AccessTokenVerifier | None = None,
        timeout: float | None = None,
    ):
        self.config = config
        self.log = logger if logger is not None else logging.getLogger("idp_adapter")
        self._clock = clock or utc_now
        self._timeout = config.http_timeout if timeout is None else timeout
        self._owns_client = http_client is None
        self._http = http_client if http_client is not None else httpx.Client(timeout=self._timeout)

        try:
            self.metadata: ProviderMetadata = discover(
                config.issuer, self._http, timeout=self._timeout, log=self.log
            )
        except IdPAdapterError:
            if self._owns_client:
                self._http.close()
            raise

        self.key_set = RemoteKeySet(
            self.metadata.jwks_uri,
            self._http,
            algorithms=config.signing_algorithms,
            timeout=self._timeout,
            log=self.log,
        )
        # redirect_uri intentionally blank here; set per call
        self._oauth2 = OAuth2Config(
            client_id=config.client_id,
            client_secret=config.client_secret,
            authorization_endpoint=self.metadata.authorization_endpoint,
            token_endpoint=self.metadata.token_endpoint,
            scopes=DEFAULT_SCOPES,
        )
        self._exchanger = TokenExchanger(self._http, auth_style=config.token_auth_style, clock=self._clock)
        if access_token_verifier is None:
            access_token_verifier = JWTAccessTokenVerifier(
                self.key_set,
                issuer=config.issuer,
                audience=config.audience,
                client_id=config.client_id,
                clock=self._clock,
            )
        self._verifier = TokenVerifier(
            self.key_set,
            access_token_verifier,
            issuer=config.issuer,
            client_id=config.client_id,
            clock=self._clock,
        )

        self.log.debug(
            "initialized new identity provider adapter for %s: %s %s",
            config.label,
            config.issuer,
            config.audience,
        )

    # --- resources ---

    @property
    def http_client(self) -> httpx.Client:
        return self._http

    def close(self) -> None:
        if self._owns_client:
            self._http.close()

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.close()

    def _call_timeout(self, timeout):
        return self._timeout if timeout is None else timeout

    # --- authorization request ---

    def oauth2_config(self, override_redirect_uri: str = "", flow: AuthFlow = AuthFlow.LOGIN) -> OAuth2Config:
        """Copy of the base OAuth2 settings with the redirect URI resolved for this flow."""
        redirect_uri = resolve_redirect_uri(
            override_redirect_uri,
            flow,
            self.config.login_callback,
            self.config.signup_callback,
        )
        return self._oauth2.with_redirect(redirect_uri)

    def auth_code_url(self, state: str, override_redirect_uri: str = "", flow: AuthFlow = AuthFlow.LOGIN) -> str:
        """Link to the provider's consent page; a fresh nonce is added on every call."""
        return build_auth_code_url(
            self.oauth2_config(override_redirect_uri, flow),
            state=state,
            nonce=generate_nonce(),
        )

    # --- exchange ---

    def exchange_code(
        self,
        code: str,
        override_redirect_uri: str = "",
        flow: AuthFlow = AuthFlow.LOGIN,
        *,
        timeout=None,
    ) -> TokenSet:
        """
        Exchange an authorization code for tokens. override_redirect_uri is only needed
        if the default callbacks were not used when getting the code.
        """
        config = self.oauth2_config(override_redirect_uri, flow)
        try:
            return self._exchanger.exchange_code(config, code, timeout=self._call_timeout(timeout))
        except ExchangeError as e:
            self.log.error("exchanging code for token (%s): %s", self.config.label, e)
            raise

    def exchange_password(self, username: str, password: str, *, timeout=None) -> TokenSet:
        """
        Resource Owner Password grant. Not recommended: use only as a last resort for
        fully trusted first-party applications, or in testing environments. The caller
        decides who may reach this; the adapter does not restrict it.
        """
        config = self.oauth2_config("", AuthFlow.LOGIN)
        try:
            return self._exchanger.exchange_password(
                config, username, password, timeout=self._call_timeout(timeout)
            )
        except ExchangeError as e:
            self.log.error("exchanging u:p for token (%s): %s", self.config.label, e)
            raise

    def exchange_code_and_verify(
        self,
        code: str,
        override_redirect_uri: str = "",
        flow: AuthFlow = AuthFlow.LOGIN,
        *,
        timeout=None,
    ) -> Identity:
        token_set = self.exchange_code(code, override_redirect_uri, flow, timeout=timeout)
        return self.identity_from_token_set(token_set, timeout=timeout)

    def exchange_password_and_verify(self, username: str, password: str, *, timeout=None) -> Identity:
        token_set = self.exchange_password(username, password, timeout=timeout)
        return self.identity_from_token_set(token_set, timeout=timeout)

    # --- verification ---

    def verify_id_token(self, token_set: TokenSet, *, timeout=None) -> tuple[IDTokenClaims, str]:
        try:
            return self._verifier.verify_id_token(token_set, timeout=self._call_timeout(timeout))
        except VerificationError as e:
            self.log.info("id token rejected (%s): %s", e.reason, e)
            raise

    def verify_access_token(self, token: str, *, timeout=None) -> AccessTokenClaims:
        """Verify a bearer access token with the configured AccessTokenVerifier (JWT by default)."""
        try:
            return self._verifier.verify_access_token(token, timeout=self._call_timeout(timeout))
        except VerificationError as e:
            self.log.info("access token rejected (%s): %s", e.reason, e)
            raise

    def identity_from_token_set(self, token_set: TokenSet, *, timeout=None) -> Identity:
        """Verify the ID token of an exchange result and project it to an Identity."""
        claims, raw_id_token = self.verify_id_token(token_set, timeout=timeout)
        identity = project_identity(claims, raw_id_token, token_set)
        self.log.info("verified identity %s from %s", identity.user_id, identity.issuer)
        return identity

    # --- logout ---

    def logout_link(self, params: Mapping[str, str] | Sequence[tuple[str, str]] | None = None) -> str:
        """Provider logout URL: issuer + "/" + logout path, with params as the query."""
        parts = urlsplit(self.config.issuer)
        path = parts.path.rstrip("/") + "/" + self.config.issuer_logout_path.lstrip("/")
        query = urlencode(params or {}, doseq=True)
        return urlunsplit((parts.scheme, parts.netloc, path, query, ""))
