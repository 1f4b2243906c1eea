"""
Bearer access-token dependencies for protected routes.
Tokens are verified by the identity-provider adapter; failures become 401 invalid_token.
"""
import logging
from typing import Annotated

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from idp_adapter.adapter import IdentityProviderAdapter
from idp_adapter.claims import AccessTokenClaims
from idp_adapter.errors import IdPAdapterError, VerificationError

logger = logging.getLogger(__name__)

security = HTTPBearer(auto_error=False)


def unauthorized(error: str, description: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail={"error": error, "error_description": description},
        headers={"WWW-Authenticate": "Bearer"},
    )


def get_adapter(request: Request) -> IdentityProviderAdapter:
    """Dependency: the adapter built at startup. 503 when the IdP is disabled."""
    adapter = getattr(request.app.state, "adapter", None)
    if adapter is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail={"error": "temporarily_unavailable", "error_description": "Identity provider is disabled"},
        )
    return adapter


def get_bearer_token(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
) -> str:
    """Extract Bearer token from Authorization header. Raises 401 if missing or not Bearer."""
    if credentials is None:
        raise unauthorized("invalid_request", "Authorization header missing")
    if credentials.scheme.lower() != "bearer":
        raise unauthorized("invalid_request", "Bearer scheme required")
    return credentials.credentials


def get_access_claims(
    token: Annotated[str, Depends(get_bearer_token)],
    adapter: Annotated[IdentityProviderAdapter, Depends(get_adapter)],
) -> AccessTokenClaims:
    """Dependency: valid Bearer token -> verified access token claims."""
    try:
        return adapter.verify_access_token(token)
    except VerificationError as e:
        raise unauthorized("invalid_token", f"Token verification failed: {e.reason}")
    except IdPAdapterError as e:
        logger.error("Access token verification unavailable: %s", e)
        raise unauthorized("invalid_token", "Token verification failed")


AccessClaims = Annotated[AccessTokenClaims, Depends(get_access_claims)]
