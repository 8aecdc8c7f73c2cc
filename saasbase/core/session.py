"""
Session accessor.

A request is authenticated by a Firebase ID token in the ``Authorization:
Bearer`` header (API clients) or by the Firebase session cookie set at
sign-in (browser pages).
"""

from typing import Any, Dict, Optional
from urllib.parse import quote

from fastapi import Depends, Request
from fastapi.responses import RedirectResponse
from pydantic import BaseModel, Field

from saasbase.config import SESSION_COOKIE_NAME, logger
from saasbase.core.context import AppContext, get_context
from saasbase.core.errors import ForbiddenError, UnauthorizedError
from saasbase.core.locale import localized_path
from saasbase.core.security import log_security_event


class CurrentUser(BaseModel):
    uid: str
    email: Optional[str] = None
    email_verified: bool = False
    name: Optional[str] = None
    picture: Optional[str] = None
    auth_time: Optional[int] = None
    claims: Dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_claims(cls, decoded: Dict[str, Any]) -> "CurrentUser":
        return cls(
            uid=decoded["uid"],
            email=decoded.get("email"),
            email_verified=bool(decoded.get("email_verified", False)),
            name=decoded.get("name"),
            picture=decoded.get("picture"),
            auth_time=decoded.get("auth_time"),
            claims={k: v for k, v in decoded.items() if k not in {"uid", "email", "name", "picture"}},
        )

    @property
    def is_admin(self) -> bool:
        """Firebase custom claim ``admin: true``."""
        return self.claims.get("admin") is True


class SessionAccessor:
    def __init__(self, context: AppContext):
        self.identity = context.identity

    def _decode(self, credential: str, kind: str) -> Optional[Dict[str, Any]]:
        try:
            if kind == "bearer":
                return self.identity.verify_id_token(credential)
            return self.identity.verify_session_cookie(credential)
        except Exception as exc:
            logger.debug("Rejected %s credential: %s", kind, exc)
            return None

    def from_request(self, request: Request) -> Optional[CurrentUser]:
        """The signed-in user, or None. Bearer tokens win over the cookie."""
        authorization = request.headers.get("Authorization", "")
        decoded = None
        if authorization.startswith("Bearer "):
            decoded = self._decode(authorization.split(" ", 1)[1].strip(), "bearer")
        if decoded is None:
            cookie = request.cookies.get(SESSION_COOKIE_NAME)
            if cookie:
                decoded = self._decode(cookie, "cookie")
        if not decoded or not decoded.get("uid"):
            return None
        return CurrentUser.from_claims(decoded)


def _resolve_user(request: Request, context: AppContext) -> Optional[CurrentUser]:
    cached = getattr(request.state, "user", None)
    if cached is not None:
        return cached
    user = SessionAccessor(context).from_request(request)
    request.state.user = user
    return user


async def get_optional_user(
    request: Request,
    context: AppContext = Depends(get_context),
) -> Optional[CurrentUser]:
    return _resolve_user(request, context)


async def get_current_user(
    request: Request,
    context: AppContext = Depends(get_context),
) -> CurrentUser:
    """Authenticated user or 401."""
    user = _resolve_user(request, context)
    if user is None:
        log_security_event("unauthorized", request=request, level="info")
        raise UnauthorizedError()
    return user


async def require_admin(
    request: Request,
    user: CurrentUser = Depends(get_current_user),
) -> CurrentUser:
    """Authenticated admin; 401 without a session, 403 without the claim."""
    if not user.is_admin:
        log_security_event(
            "unauthorized_admin_access",
            request=request,
            user_id=user.uid,
        )
        raise ForbiddenError("Not authorized")
    return user


def login_redirect(locale: str, next_path: Optional[str] = None) -> RedirectResponse:
    url = localized_path(locale, "/login")
    if next_path:
        url = f"{url}?next={quote(next_path, safe='/')}"
    return RedirectResponse(url=url, status_code=303)


def require_page_user(request: Request, context: AppContext) -> Optional[CurrentUser]:
    """Signed-in user for a protected page, or None when the page must redirect to login."""
    user = _resolve_user(request, context)
    if user is None:
        log_security_event("page_login_required", request=request, level="info")
    return user
