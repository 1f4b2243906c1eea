"""
Minimal fake OIDC provider for tests: discovery, JWKS, token and introspection endpoints.
Served through FastAPI's TestClient, which is an httpx.Client, so the adapter's real
HTTP code runs against it without a network.
"""
import base64
import secrets
from datetime import datetime, timezone

import jwt
from cryptography.hazmat.backends import default_backend
from cryptography.hazmat.primitives.asymmetric.rsa import generate_private_key
from fastapi import FastAPI, Form, Request
from fastapi.responses import JSONResponse
from fastapi.testclient import TestClient

ISSUER = "https://idp.example.com"
CLIENT_ID = "abc123"
CLIENT_SECRET = "s3cret"
AUDIENCE = "abc123"
LOGIN_CALLBACK = "https://app.example.com/auth/login/token"
SIGNUP_CALLBACK = "https://app.example.com/auth/signup/token"

NOW = datetime(2026, 1, 15, 12, 0, 0, tzinfo=timezone.utc)
NOW_TS = int(NOW.timestamp())


def fixed_clock() -> datetime:
    return NOW


def _int_to_b64url(value: int) -> str:
    """Encode a positive int as base64url (JWK n/e)."""
    length = (value.bit_length() + 7) // 8
    return base64.urlsafe_b64encode(value.to_bytes(length, "big")).rstrip(b"=").decode("ascii")


def generate_key():
    return generate_private_key(65537, 2048, default_backend())


def public_key_to_jwk(public_key, kid: str) -> dict:
    numbers = public_key.public_numbers()
    return {
        "kty": "RSA",
        "kid": kid,
        "alg": "RS256",
        "use": "sig",
        "n": _int_to_b64url(numbers.n),
        "e": _int_to_b64url(numbers.e),
    }


def _parse_basic(header_value: str | None) -> tuple[str, str] | None:
    if not header_value or not header_value.lower().startswith("basic "):
        return None
    decoded = base64.b64decode(header_value[6:].strip()).decode("utf-8")
    client_id, _, client_secret = decoded.partition(":")
    return client_id, client_secret


def _oauth_error(status_code: int, error: str, description: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": error, "error_description": description})


class FakeIdP:
    """In-process provider. Tests tweak its attributes to produce edge cases."""

    def __init__(self, issuer: str = ISSUER, kid: str = "idp-key-1"):
        self.issuer = issuer
        self.key = generate_key()
        self.kid = kid
        # kid -> private key; only these appear in the JWKS
        self.published = {kid: self.key}
        self.discovery_overrides: dict = {}
        self.codes: dict[str, str] = {}  # code -> redirect_uri
        self.users = {"alice": "wonderland"}
        self.id_claims: dict = {"sub": "u1", "name": "Alice", "email": "a@example.com"}
        self.expires_in: int | None = 600
        self.include_id_token = True
        self.introspection: dict[str, dict] = {}
        self.token_requests: list[dict] = []
        self.jwks_fetches = 0
        self.app = self._build_app()

    # --- token helpers ---

    def sign(self, claims: dict, *, key=None, kid: str | None = None) -> str:
        headers = {"kid": kid if kid is not None else self.kid, "typ": "JWT"}
        if kid == "":
            headers.pop("kid")
        return jwt.encode(claims, key or self.key, algorithm="RS256", headers=headers)

    def id_token(self, **overrides) -> str:
        claims = {
            "iss": self.issuer,
            "aud": CLIENT_ID,
            "iat": NOW_TS - 5,
            "exp": NOW_TS + 600,
            **self.id_claims,
        }
        claims.update(overrides)
        return self.sign({k: v for k, v in claims.items() if v is not None})

    def access_token(self, **overrides) -> str:
        claims = {
            "iss": self.issuer,
            "aud": AUDIENCE,
            "sub": "u1",
            "iat": NOW_TS - 5,
            "nbf": NOW_TS - 5,
            "exp": NOW_TS + 600,
            "jti": secrets.token_hex(8),
            "cid": CLIENT_ID,
            "uid": "00u1",
        }
        claims.update(overrides)
        return self.sign({k: v for k, v in claims.items() if v is not None})

    def issue_code(self, redirect_uri: str) -> str:
        code = secrets.token_urlsafe(16)
        self.codes[code] = redirect_uri
        return code

    def rotate_key(self, kid: str) -> None:
        """Publish a new current key alongside the old one."""
        self.key = generate_key()
        self.kid = kid
        self.published[kid] = self.key

    def client(self) -> TestClient:
        return TestClient(self.app, base_url=self.issuer)

    # --- endpoints ---

    def _token_response(self) -> dict:
        body = {"access_token": self.access_token(), "token_type": "Bearer", "scope": "openid email profile"}
        if self.expires_in is not None:
            body["expires_in"] = self.expires_in
        if self.include_id_token:
            body["id_token"] = self.id_token()
        return body

    def _build_app(self) -> FastAPI:
        app = FastAPI(title="Fake IdP")
        idp = self

        @app.get("/.well-known/openid-configuration")
        def openid_configuration():
            doc = {
                "issuer": idp.issuer,
                "authorization_endpoint": f"{idp.issuer}/oauth2/v1/authorize",
                "token_endpoint": f"{idp.issuer}/oauth2/v1/token",
                "jwks_uri": f"{idp.issuer}/oauth2/v1/keys",
                "introspection_endpoint": f"{idp.issuer}/oauth2/v1/introspect",
                "id_token_signing_alg_values_supported": ["RS256"],
            }
            doc.update(idp.discovery_overrides)
            return {k: v for k, v in doc.items() if v is not None}

        @app.get("/oauth2/v1/keys")
        def keys():
            idp.jwks_fetches += 1
            return {"keys": [public_key_to_jwk(k.public_key(), kid) for kid, k in idp.published.items()]}

        @app.post("/oauth2/v1/token")
        def token(
            request: Request,
            grant_type: str = Form(...),
            code: str | None = Form(None),
            redirect_uri: str | None = Form(None),
            username: str | None = Form(None),
            password: str | None = Form(None),
            client_id: str | None = Form(None),
            client_secret: str | None = Form(None),
        ):
            basic = _parse_basic(request.headers.get("Authorization"))
            if basic:
                client_id, client_secret = basic
            idp.token_requests.append(
                {
                    "grant_type": grant_type,
                    "code": code,
                    "redirect_uri": redirect_uri,
                    "username": username,
                    "client_id": client_id,
                    "client_secret": client_secret,
                    "basic": basic is not None,
                }
            )
            if client_id != CLIENT_ID or client_secret != CLIENT_SECRET:
                return _oauth_error(401, "invalid_client", "Invalid client credentials")
            if grant_type == "authorization_code":
                expected = idp.codes.pop(code or "", None)
                if expected is None:
                    return _oauth_error(400, "invalid_grant", "Invalid or expired code")
                if expected != redirect_uri:
                    return _oauth_error(400, "invalid_grant", "redirect_uri mismatch")
                return idp._token_response()
            if grant_type == "password":
                if idp.users.get(username or "") != password:
                    return _oauth_error(400, "invalid_grant", "Invalid username or password")
                return idp._token_response()
            return _oauth_error(400, "unsupported_grant_type", "Unsupported grant type")

        @app.post("/oauth2/v1/introspect")
        def introspect(request: Request, token: str = Form(...)):
            if _parse_basic(request.headers.get("Authorization")) != (CLIENT_ID, CLIENT_SECRET):
                return _oauth_error(401, "invalid_client", "Invalid client credentials")
            return idp.introspection.get(token, {"active": False})

        return app
