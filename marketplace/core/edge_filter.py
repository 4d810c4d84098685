"""Edge request filter: security headers and per-route rate limiting.

Runs once per inbound request, before routing:

- Static assets (build output, image optimizer, favicon, image files) pass
  through untouched.
- Every other response gets the security headers from
  ``marketplace.core.security_headers``, including throttled ones and 500s
  from unhandled handler errors.
- Paths under the API prefix are matched against the route policy table and
  counted per client. Over-budget requests are answered with 429 here; the
  route handler never runs.

Usage:
    edge_filter = EdgeRequestFilter(limiter=InMemoryRateLimiter(), policies=table)
    app.middleware("http")(edge_filter)
"""

from __future__ import annotations

import logging
import re
from typing import Awaitable, Callable, Mapping

from fastapi import Request, Response, status
from fastapi.responses import JSONResponse

from marketplace.adapters.rate_limit.base import (
    AbstractRateLimiter,
    RateLimitResult,
    RouteLimitPolicy,
)
from marketplace.core.exception_handlers import general_exception_handler
from marketplace.core.rate_limit import (
    RoutePolicyTable,
    build_rate_limit_key,
    get_client_identifier,
    hash_limiter_key,
)
from marketplace.core.security_headers import SECURITY_HEADERS, apply_security_headers
from marketplace.schemas.errors import TOO_MANY_REQUESTS_MESSAGE, RateLimitErrorBody

logger = logging.getLogger(__name__)

CallNext = Callable[[Request], Awaitable[Response]]

_EXCLUDED_PATH_RE = re.compile(
    r"^/(?:_next/static|_next/image|favicon\.ico)"
    r"|\.(?:svg|png|jpg|jpeg|gif|webp)$"
)


def is_excluded_path(path: str) -> bool:
    """True for static-asset paths the filter never touches."""
    return _EXCLUDED_PATH_RE.search(path) is not None


class EdgeRequestFilter:
    """HTTP middleware owning the admission decision for API requests.

    The limiter is injected so the application (or a test) decides its
    lifetime; the filter itself keeps no state.
    """

    def __init__(
        self,
        *,
        limiter: AbstractRateLimiter,
        policies: RoutePolicyTable,
        api_prefix: str = "/api/",
        enabled: bool = True,
        log_allowed: bool = False,
    ) -> None:
        self.limiter = limiter
        self.policies = policies
        self.api_prefix = api_prefix
        self.enabled = enabled
        self.log_allowed = log_allowed

    async def __call__(self, request: Request, call_next: CallNext) -> Response:
        path = request.url.path
        if is_excluded_path(path):
            return await call_next(request)

        denied = self.admit(path, request.headers)
        if denied is not None:
            return denied

        try:
            response = await call_next(request)
        except Exception as exc:
            response = await general_exception_handler(request, exc)
        apply_security_headers(response.headers)
        return response

    def admit(self, path: str, headers: Mapping[str, str]) -> Response | None:
        """Count the request and return a 429 response when it is over budget.

        Returns:
            None when the request may proceed (including paths that are not
            rate limited), otherwise the ready-to-send denial response.
        """
        if not self.enabled or not path.startswith(self.api_prefix):
            return None

        match = self.policies.resolve(path)
        if match is None:
            return None

        route_prefix, policy = match
        key = build_rate_limit_key(get_client_identifier(headers), route_prefix)
        result = self.limiter.consume(key, policy)

        if result.allowed:
            if self.log_allowed:
                logger.debug(
                    "rate_limit.allowed",
                    extra={
                        "route_prefix": route_prefix,
                        "key_hash": hash_limiter_key(key),
                        "limit": result.limit,
                        "remaining": result.remaining,
                    },
                )
            return None

        logger.warning(
            "rate_limit.exceeded",
            extra={
                "route_prefix": route_prefix,
                "request_path": path,
                "key_hash": hash_limiter_key(key),
                "limit": result.limit,
                "window_ms": policy.window_ms,
                "retry_after_s": policy.retry_after_seconds,
            },
        )
        return self._deny(policy, result)

    @staticmethod
    def _deny(policy: RouteLimitPolicy, result: RateLimitResult) -> JSONResponse:
        retry_after = result.retry_after_seconds or policy.retry_after_seconds
        body = RateLimitErrorBody(error=TOO_MANY_REQUESTS_MESSAGE, retry_after=retry_after)
        return JSONResponse(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            content=body.model_dump(by_alias=True),
            headers={"Retry-After": str(retry_after), **SECURITY_HEADERS},
        )
