from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends

from saasbase.core.context import AppContext, get_context
from saasbase.core.errors import ForbiddenError, QuotaExceededError
from saasbase.core.session import CurrentUser, get_current_user
from saasbase.schemas import DemoRequest

router = APIRouter(prefix="/api/v1/demo", tags=["Demo"])

FEATURE = "api_request"
QUOTA_KEY = "daily_requests"


@router.post("/request")
async def demo_request(
    payload: Optional[DemoRequest] = Body(default=None),
    user: CurrentUser = Depends(get_current_user),
    context: AppContext = Depends(get_context),
) -> Dict[str, Any]:
    """A metered API call: requires API access and counts against the daily quota."""
    subscriptions = context.subscriptions
    if not subscriptions.check_feature_permission(user.uid, "api_access"):
        raise ForbiddenError("Your current plan does not have API access. Please upgrade.")

    quota = subscriptions.check_quota(user.uid, FEATURE, QUOTA_KEY)
    if not quota.allowed:
        raise QuotaExceededError(
            quota.error or "Quota exceeded",
            details={"currentUsage": quota.current_usage, "limit": quota.limit},
        )

    usage = subscriptions.increment_usage(user.uid, FEATURE)
    response: Dict[str, Any] = {
        "success": True,
        "message": "API request successful!",
        "currentUsage": usage.current_usage,
        "limit": usage.limit,
        "usingCredits": usage.using_credits,
    }
    if usage.using_credits:
        response["creditBalance"] = usage.credit_balance
    if payload and payload.prompt:
        response["echo"] = payload.prompt
    return response
