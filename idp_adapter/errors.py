"""
Error taxonomy for the identity-provider adapter.
Construction errors (configuration, discovery) are fatal; exchange and verification
errors are per request and returned to the caller to turn into a 401.
"""


class IdPAdapterError(Exception):
    """Base class for every error raised by the adapter."""


class ConfigurationError(IdPAdapterError):
    """Issuer or callback URLs are malformed; no adapter is built."""


class DiscoveryError(IdPAdapterError):
    """Provider metadata could not be fetched or is incomplete."""


class KeySetError(IdPAdapterError):
    """Unknown kid, unusable key material, or signature mismatch."""


class KeySetFetchError(KeySetError):
    """The JWKS document could not be fetched or parsed."""


class ExchangeError(IdPAdapterError):
    """Token endpoint (or introspection endpoint) call failed."""

    def __init__(
        self,
        message: str,
        *,
        error: str | None = None,
        error_description: str | None = None,
        status_code: int | None = None,
    ):
        super().__init__(message)
        self.error = error
        self.error_description = error_description
        self.status_code = status_code


class VerificationError(IdPAdapterError):
    """A token failed verification. `reason` names which check failed."""

    reason = "verification_failed"


class MissingIDToken(VerificationError):
    reason = "missing_id_token"


class SignatureInvalid(VerificationError):
    reason = "signature_invalid"


class MalformedClaims(VerificationError):
    reason = "malformed_claims"


class TokenNotYetValid(VerificationError):
    """iat is in the future."""

    reason = "token_not_yet_valid"


class TokenExpired(VerificationError):
    reason = "token_expired"


class TokenPremature(VerificationError):
    """nbf is in the future."""

    reason = "token_premature"


class IssuerMismatch(VerificationError):
    reason = "issuer_mismatch"


class AudienceMismatch(VerificationError):
    reason = "audience_mismatch"


class ClientMismatch(VerificationError):
    reason = "client_mismatch"


class TokenInactive(VerificationError):
    """Introspection reported the token as inactive."""

    reason = "token_inactive"
