"""
Authentication routes.

Sign-in happens in the browser with the Firebase client SDK; the resulting
ID token is exchanged here for an httpOnly session cookie.
"""

from datetime import timedelta
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse, RedirectResponse

from saasbase.config import IS_PRODUCTION, SESSION_COOKIE_NAME, SESSION_EXPIRY_DAYS, logger
from saasbase.core.context import AppContext, get_context
from saasbase.core.security import generate_nonce, log_security_event, sanitize_redirect_path
from saasbase.core.session import CurrentUser, get_current_user
from saasbase.schemas import NonceResponse

router = APIRouter(prefix="/api/v1", tags=["Auth"])

AUTH_ERROR_PATH = "/auth/auth-code-error"


@router.get("/auth/callback")
async def auth_callback(
    request: Request,
    code: Optional[str] = Query(default=None, max_length=4096),
    next: Optional[str] = Query(default=None),
    context: AppContext = Depends(get_context),
):
    """Exchange a Firebase ID token for a session cookie and redirect to ``next``."""
    if code:
        expires_in = timedelta(days=SESSION_EXPIRY_DAYS)
        try:
            session_cookie = context.identity.create_session_cookie(code, expires_in)
        except Exception as exc:
            log_security_event("auth_callback_failed", request=request, details={"error": str(exc)})
        else:
            response = RedirectResponse(url=sanitize_redirect_path(next), status_code=303)
            response.set_cookie(
                SESSION_COOKIE_NAME,
                session_cookie,
                max_age=int(expires_in.total_seconds()),
                httponly=True,
                secure=IS_PRODUCTION,
                samesite="lax",
            )
            return response

    return RedirectResponse(url=AUTH_ERROR_PATH, status_code=303)


@router.post("/auth/logout")
async def logout():
    response = JSONResponse({"success": True})
    response.delete_cookie(SESSION_COOKIE_NAME)
    return response


@router.get("/auth/web3/nonce", response_model=NonceResponse)
async def web3_nonce() -> NonceResponse:
    """Random nonce for a sign-in-with-wallet challenge."""
    return NonceResponse(nonce=generate_nonce())


@router.get("/user", tags=["User"])
async def current_user_profile(
    user: CurrentUser = Depends(get_current_user),
    context: AppContext = Depends(get_context),
) -> Dict[str, Any]:
    """Profile of the signed-in user."""
    record = context.identity.get_user(user.uid)
    if record is None:
        logger.warning("Authenticated user %s has no identity record", user.uid)
        record = {}
    return {
        "id": user.uid,
        "email": record.get("email") or user.email,
        "user_metadata": {
            "full_name": record.get("name") or user.name,
            "avatar_url": record.get("picture") or user.picture,
            "email_verified": record.get("email_verified", user.email_verified),
        },
        "last_sign_in_at": record.get("last_sign_in_timestamp"),
    }
