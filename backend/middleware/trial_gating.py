"""
Trial Gating Middleware
Server-side enforcement of trial-based feature access.
The trial service is the single source of truth; status is recomputed per request.
"""
from fastapi import HTTPException, Request
from functools import wraps
import logging

from services.trial_service import trial_service

logger = logging.getLogger(__name__)

TRIAL_ACCESS_REQUIRED = "TRIAL_ACCESS_REQUIRED"


def require_trial_access(func):
    """
    Decorator that rejects the request with 403 unless the trial grants access.
    Wraps sync handlers: the access check reads the store, so it runs in
    FastAPI's threadpool alongside the handler.

    Usage:
        @router.post("/endpoint")
        @require_trial_access
        def my_endpoint(request: Request):
            ...
    """
    @wraps(func)
    def wrapper(request: Request, *args, **kwargs):
        if not trial_service.has_gated_access():
            logger.warning(
                "Trial access denied: endpoint=%s method=%s",
                request.url.path, request.method
            )
            raise HTTPException(
                status_code=403,
                detail={
                    "error_code": TRIAL_ACCESS_REQUIRED,
                    "message": "This feature requires an active subscription",
                    "upgrade_url": "/payment",
                },
            )
        return func(request, *args, **kwargs)

    return wrapper
