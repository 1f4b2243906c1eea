"""
Typed JWT claims. Decoding (schema validation) and claim rules are separate steps:
decode_* turns a verified payload into a model, validate_* checks it against config and time.
"""
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError, field_validator

from idp_adapter.errors import (
    AudienceMismatch,
    ClientMismatch,
    IssuerMismatch,
    MalformedClaims,
    TokenExpired,
    TokenNotYetValid,
    TokenPremature,
)


class RegisteredClaims(BaseModel):
    """RFC 7519 registered claims. Unknown claims are kept as extras."""

    model_config = ConfigDict(extra="allow", frozen=True)

    subject: str = Field("", alias="sub")
    issuer: str = Field("", alias="iss")
    audience: str | list[str] = Field("", alias="aud")
    issued_at: int | None = Field(None, alias="iat")
    expires_at: int | None = Field(None, alias="exp")
    not_before: int | None = Field(None, alias="nbf")
    jwt_id: str = Field("", alias="jti")


class IDTokenClaims(RegisteredClaims):
    """OIDC ID token: https://openid.net/specs/openid-connect-core-1_0.html#IDToken"""

    name: str = ""
    email: str = ""
    nonce: str | None = None

    @field_validator("name", "email", mode="before")
    @classmethod
    def _null_as_empty(cls, value):
        return "" if value is None else value


class AccessTokenClaims(RegisteredClaims):
    """
    Access token claims. `uid`/`cid` are provider-specific (Okta and others);
    `client_id` is the RFC 7662 introspection spelling of the same thing.
    """

    uid: str = ""
    client_id: str = Field("", validation_alias=AliasChoices("cid", "client_id"))
    scope: str | list[str] | None = None


def _decode(model, payload: dict):
    try:
        return model.model_validate(payload)
    except ValidationError as e:
        raise MalformedClaims(f"unmarshaling claims: {e}") from e


def decode_id_token_claims(payload: dict) -> IDTokenClaims:
    return _decode(IDTokenClaims, payload)


def decode_access_token_claims(payload: dict) -> AccessTokenClaims:
    return _decode(AccessTokenClaims, payload)


def audience_matches(aud: str | list[str], expected: str) -> bool:
    """A string aud must equal expected; a list aud must contain it."""
    if isinstance(aud, list):
        return expected in aud
    return aud == expected


def _check_times(claims: RegisteredClaims, now: int, *, require_exp: bool, check_nbf: bool) -> None:
    if claims.issued_at is not None and claims.issued_at > now:
        raise TokenNotYetValid("invalid jwt iat")
    if claims.expires_at is None:
        if require_exp:
            raise TokenExpired("invalid jwt exp: missing")
    elif claims.expires_at < now:
        raise TokenExpired("invalid jwt exp")
    if check_nbf and claims.not_before is not None and claims.not_before > now:
        raise TokenPremature("invalid jwt nbf")


def validate_id_token_claims(claims: IDTokenClaims, *, issuer: str, client_id: str, now: int) -> None:
    """iat, exp, iss, aud, in that order. `now` is unix seconds."""
    _check_times(claims, now, require_exp=True, check_nbf=False)
    if claims.issuer != issuer:
        raise IssuerMismatch("invalid jwt iss")
    if not audience_matches(claims.audience, client_id):
        raise AudienceMismatch("invalid jwt aud")


def validate_access_token_claims(
    claims: AccessTokenClaims,
    *,
    issuer: str,
    audience: str,
    client_id: str,
    now: int,
    allow_absent: bool = False,
) -> None:
    """
    iat, exp, nbf, iss, aud, then cid when the provider sent one.
    allow_absent tolerates missing exp/iss/aud (introspection responses may omit them).
    """
    _check_times(claims, now, require_exp=not allow_absent, check_nbf=True)
    if claims.issuer != issuer and not (allow_absent and not claims.issuer):
        raise IssuerMismatch("invalid jwt iss")
    if not audience_matches(claims.audience, audience) and not (allow_absent and not claims.audience):
        raise AudienceMismatch("invalid jwt aud")
    if claims.client_id and claims.client_id != client_id:
        raise ClientMismatch("invalid jwt cid")
