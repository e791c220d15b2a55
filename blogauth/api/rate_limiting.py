"""
Rate Limiting

Fixed-window counters per (policy, source). Three policies:
- login: challenge + verify endpoints (default 5 per minute)
- key_management: key registration + rotation (default 3 per minute)
- general: every other /api endpoint (default 100 per 15 minutes)

Limits come from settings ("<max>/<window seconds>"). Exempt IPs bypass
every policy.
"""
import logging
import math
import time
from dataclasses import dataclass
from threading import Lock
from typing import Callable, Dict, Tuple

from fastapi import Depends, Request
from starlette.concurrency import run_in_threadpool
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse

from blogauth.api.dependencies import get_actor, get_audit_trail
from blogauth.core.audit import ActorContext, AuditEventKind, AuditTrail
from blogauth.core.config import Settings, get_settings, parse_rate_limit

logger = logging.getLogger(__name__)

POLICY_LOGIN = "login"
POLICY_KEY_MANAGEMENT = "key_management"
POLICY_GENERAL = "general"


@dataclass(frozen=True)
class RateLimitPolicy:
    name: str
    max_requests: int
    window_seconds: int

    @classmethod
    def parse(cls, name: str, value: str) -> "RateLimitPolicy":
        max_requests, window_seconds = parse_rate_limit(value)
        return cls(name=name, max_requests=max_requests, window_seconds=window_seconds)


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    limit: int
    remaining: int
    retry_after: int  # seconds until the current window ends


def policy_for(name: str, settings: Settings = None) -> RateLimitPolicy:
    settings = settings or get_settings()
    values = {
        POLICY_LOGIN: settings.rate_limit_login,
        POLICY_KEY_MANAGEMENT: settings.rate_limit_key_management,
        POLICY_GENERAL: settings.rate_limit_general,
    }
    try:
        return RateLimitPolicy.parse(name, values[name])
    except KeyError:
        raise ValueError(f"Unknown rate limit policy '{name}'") from None


class FixedWindowRateLimiter:
    """
    Counts hits per (policy, source) in fixed windows.

    The read, compare and increment of a counter happen under one lock, so
    concurrent requests can never push a window past its maximum.
    """

    def __init__(self, clock: Callable[[], float] = time.time):
        self.clock = clock
        self.windows: Dict[Tuple[str, str], Tuple[int, float]] = {}  # (policy, source) -> (count, window_end)
        self.lock = Lock()

    def hit(self, policy: RateLimitPolicy, source: str) -> RateLimitDecision:
        """Record one request from source and decide whether it may proceed."""
        now = self.clock()
        key = (policy.name, source)
        with self.lock:
            count, window_end = self.windows.get(key, (0, 0.0))
            if now >= window_end:
                window_start = now - (now % policy.window_seconds)
                count, window_end = 0, window_start + policy.window_seconds

            retry_after = max(1, math.ceil(window_end - now))
            if count >= policy.max_requests:
                self.windows[key] = (count, window_end)
                return RateLimitDecision(False, policy.max_requests, 0, retry_after)

            count += 1
            self.windows[key] = (count, window_end)
            return RateLimitDecision(True, policy.max_requests, policy.max_requests - count, retry_after)

    def cleanup(self):
        """Drop windows that have ended."""
        now = self.clock()
        with self.lock:
            self.windows = {
                key: entry for key, entry in self.windows.items()
                if entry[1] > now
            }

    def reset(self):
        with self.lock:
            self.windows.clear()


# Global rate limiter instance
rate_limiter = FixedWindowRateLimiter()


def get_rate_limiter() -> FixedWindowRateLimiter:
    return rate_limiter


class RateLimitExceeded(Exception):
    """Raised by endpoint guards; rendered as HTTP 429."""

    def __init__(self, policy: RateLimitPolicy, decision: RateLimitDecision):
        self.policy = policy
        self.decision = decision
        super().__init__(f"Rate limit exceeded for {policy.name}")


def rate_limit_response(policy: RateLimitPolicy, decision: RateLimitDecision) -> JSONResponse:
    return JSONResponse(
        status_code=429,
        content={
            "error": "rate_limited",
            "message": "Too many requests, please try again later.",
            "retry_after": decision.retry_after,
        },
        headers={
            "Retry-After": str(decision.retry_after),
            "X-RateLimit-Limit": str(decision.limit),
            "X-RateLimit-Remaining": "0",
        },
    )


def _is_exempt(source: str, settings: Settings) -> bool:
    return not settings.rate_limit_enabled or source in settings.rate_limit_exempt_ip_set


def _record_exceeded(audit: AuditTrail, actor: ActorContext, policy: RateLimitPolicy, path: str):
    audit.record(
        AuditEventKind.RATE_LIMIT_EXCEEDED,
        details={"policy": policy.name, "limit": policy.max_requests, "path": path},
        actor=actor,
    )
    logger.warning(f"Rate limit '{policy.name}' exceeded: {actor.ip} - {path}")


def rate_limited(policy_name: str):
    """Endpoint dependency enforcing one rate limit policy."""

    def guard(
        request: Request,
        actor: ActorContext = Depends(get_actor),
        audit: AuditTrail = Depends(get_audit_trail),
        limiter: FixedWindowRateLimiter = Depends(get_rate_limiter),
    ):
        settings = get_settings()
        source = actor.ip or "unknown"
        if _is_exempt(source, settings):
            return
        policy = policy_for(policy_name, settings)
        decision = limiter.hit(policy, source)
        if not decision.allowed:
            _record_exceeded(audit, actor, policy, request.url.path)
            raise RateLimitExceeded(policy, decision)

    return guard


class GeneralRateLimitMiddleware(BaseHTTPMiddleware):
    """
    Applies the general policy to every /api request.
    """

    EXEMPT_PATHS = ["/health", "/docs", "/redoc", "/openapi.json"]

    async def dispatch(self, request: Request, call_next):
        path = request.url.path
        if not path.startswith("/api/") or any(path.startswith(p) for p in self.EXEMPT_PATHS):
            return await call_next(request)

        settings = get_settings()
        client_ip = request.client.host if request.client else "unknown"
        if _is_exempt(client_ip, settings):
            return await call_next(request)

        # Honour dependency overrides so tests and embedding apps share one limiter/trail
        overrides = request.app.dependency_overrides
        limiter = overrides.get(get_rate_limiter, get_rate_limiter)()
        policy = policy_for(POLICY_GENERAL, settings)
        decision = limiter.hit(policy, client_ip)

        if not decision.allowed:
            audit = overrides.get(get_audit_trail, get_audit_trail)()
            actor = ActorContext(ip=client_ip, user_agent=request.headers.get("user-agent"))
            await run_in_threadpool(_record_exceeded, audit, actor, policy, path)
            return rate_limit_response(policy, decision)

        response = await call_next(request)
        # An endpoint policy that refused the request reports its own limit
        response.headers.setdefault("X-RateLimit-Limit", str(decision.limit))
        response.headers.setdefault("X-RateLimit-Remaining", str(decision.remaining))
        return response


def cleanup_rate_limiter():
    """Periodic cleanup task (call from background thread)."""
    rate_limiter.cleanup()
