"""
Auth routes: redirect to the IdP, exchange the returned code, log out, and a protected /me.
State and session handling stay with the caller; these routes only drive the adapter.
"""
import logging
import secrets
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import RedirectResponse

from auth_web.bearer import AccessClaims, get_adapter, unauthorized
from idp_adapter.adapter import IdentityProviderAdapter
from idp_adapter.authorize import AuthFlow
from idp_adapter.errors import ExchangeError, IdPAdapterError, VerificationError

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/auth")

Adapter = Annotated[IdentityProviderAdapter, Depends(get_adapter)]


def _parse_flow(flow: str) -> AuthFlow:
    try:
        return AuthFlow(flow.lower())
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"error": "invalid_request", "error_description": f"Unknown flow '{flow}'"},
        )


@router.get("/login")
def login(adapter: Adapter, flow: str = "login", redirect_uri: str = "", state: str | None = None):
    """Redirect the user-agent to the provider's consent page (login or signup flow)."""
    auth_flow = _parse_flow(flow)
    url = adapter.auth_code_url(state or secrets.token_urlsafe(32), redirect_uri, auth_flow)
    return RedirectResponse(url=url, status_code=302)


@router.get("/login/token")
def login_token(
    adapter: Adapter,
    code: str | None = None,
    flow: str = "login",
    redirect_uri: str = "",
    error: str | None = None,
    error_description: str | None = None,
):
    """
    Callback target: exchange the code and verify the ID token.
    Returns the identity with raw tokens; storing them is up to the caller.
    """
    if error:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"error": error, "error_description": error_description or error},
        )
    if not code:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"error": "invalid_request", "error_description": "Missing code parameter"},
        )
    auth_flow = _parse_flow(flow)
    try:
        identity = adapter.exchange_code_and_verify(code, redirect_uri, auth_flow)
    except ExchangeError as e:
        raise unauthorized(e.error or "invalid_grant", e.error_description or "Token exchange failed")
    except VerificationError as e:
        raise unauthorized("invalid_token", f"ID token verification failed: {e.reason}")
    except IdPAdapterError as e:
        logger.error("Login exchange failed: %s", e)
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail={"error": "server_error", "error_description": "Identity provider unavailable"},
        )
    return identity.to_dict()


@router.get("/logout")
def logout(request: Request, adapter: Adapter):
    """Redirect to the provider's logout page, passing our query params through."""
    return RedirectResponse(url=adapter.logout_link(request.query_params.multi_items()), status_code=302)


@router.get("/me")
def me(claims: AccessClaims):
    """Requires a valid access token. Returns caller identity from token."""
    return {
        "message": "Authenticated",
        "sub": claims.subject,
        "client_id": claims.client_id,
        "scope": claims.scope,
    }
