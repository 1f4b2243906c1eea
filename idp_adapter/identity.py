"""
Identity: who the user is, projected from verified ID token claims.
"""
from dataclasses import dataclass
from datetime import datetime, timezone

from idp_adapter.claims import IDTokenClaims
from idp_adapter.exchange import TokenSet


@dataclass(frozen=True)
class Identity:
    user_id: str  # idtoken.sub
    name: str  # idtoken.name
    email: str  # idtoken.email
    issuer: str  # idtoken.iss
    id_token: str  # raw
    access_token: str  # raw
    access_token_issued_at: datetime | None
    access_token_expires_at: datetime | None

    def to_dict(self) -> dict:
        return {
            "user_id": self.user_id,
            "name": self.name,
            "email": self.email,
            "issuer": self.issuer,
            "id_token": self.id_token,
            "access_token": self.access_token,
            "access_token_issued_at": _isoformat(self.access_token_issued_at),
            "access_token_expires_at": _isoformat(self.access_token_expires_at),
        }


def _isoformat(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def project_identity(claims: IDTokenClaims, raw_id_token: str, token_set: TokenSet) -> Identity:
    """Map already-verified claims to an Identity. No checks happen here."""
    issued_at = None
    if claims.issued_at is not None:
        issued_at = datetime.fromtimestamp(claims.issued_at, tz=timezone.utc)
    expires_at = None
    if token_set.expiry is not None:
        expires_at = token_set.expiry.astimezone(timezone.utc)
    return Identity(
        user_id=claims.subject,
        name=claims.name,
        email=claims.email,
        issuer=claims.issuer,
        id_token=raw_id_token,
        access_token=token_set.access_token,
        access_token_issued_at=issued_at,
        access_token_expires_at=expires_at,
    )
