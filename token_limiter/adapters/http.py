"""
Request framework adapters.

Turn a failed quota check into an HTTP 429 response carrying usage
details. A ``get_identity`` callable returning None skips limiting for
that request.
"""

from typing import Any, Callable, Dict, Optional

from fastapi import HTTPException, Request, status
from starlette.responses import JSONResponse
from starlette.types import ASGIApp, Receive, Scope, Send

from token_limiter.core.evaluator import UsageStats
from token_limiter.core.limiter import TokenLimiter
from token_limiter.log import get_logger

logger = get_logger(__name__)

IdentityGetter = Callable[[Request], Optional[str]]


def rejection_payload(stats: UsageStats) -> Dict[str, Any]:
    """Body returned to a client that is over quota."""
    return {
        "error": "rate limit exceeded",
        "resetAt": stats.reset_at.isoformat(),
        "tokensUsed": stats.tokens_used,
    }


async def _rejection(
    limiter: TokenLimiter,
    request: Request,
    get_identity: IdentityGetter
) -> Optional[Dict[str, Any]]:
    identity = get_identity(request)
    if not identity:
        return None
    if await limiter.check(identity):
        return None
    stats = await limiter.stats(identity)
    logger.warning("Rejecting request for %s: quota exceeded", identity)
    return rejection_payload(stats)


def fastapi_dependency(limiter: TokenLimiter, get_identity: IdentityGetter):
    """Build a FastAPI dependency enforcing the limiter.

    Example:
        check_quota = fastapi_dependency(limiter, lambda r: r.headers.get("x-user-id"))

        @app.post("/chat", dependencies=[Depends(check_quota)])
        async def chat(): ...

    Raises (from the dependency):
        HTTPException: With status 429 and the rejection payload as detail
    """
    async def check_quota(request: Request) -> None:
        payload = await _rejection(limiter, request, get_identity)
        if payload is not None:
            raise HTTPException(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                detail=payload,
            )

    return check_quota


class QuotaMiddleware:
    """ASGI middleware answering 429 for identities over quota.

    Register with ``app.add_middleware(QuotaMiddleware, limiter=...,
    get_identity=...)``. Non-HTTP traffic passes through untouched.
    """

    def __init__(self, app: ASGIApp, limiter: TokenLimiter, get_identity: IdentityGetter):
        self.app = app
        self.limiter = limiter
        self.get_identity = get_identity

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        payload = await _rejection(self.limiter, Request(scope), self.get_identity)
        if payload is None:
            await self.app(scope, receive, send)
            return

        response = JSONResponse(payload, status_code=status.HTTP_429_TOO_MANY_REQUESTS)
        await response(scope, receive, send)
