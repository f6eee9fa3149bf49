"""Admission gate middleware: rejects bot, shield and rate-limited traffic before routing."""

import logging
from typing import TYPE_CHECKING

from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import Response
from starlette.types import ASGIApp

from app.core.cookies import read_cookie
from app.core.security import InvalidTokenError, decode_access_token
from app.services.admission import (
    GUEST_ROLE,
    Decision,
    DecisionKind,
    DecisionService,
    RequestContext,
    rule_for_tier,
    tier_for_role,
)

if TYPE_CHECKING:
    from app.core.config import Settings

logger = logging.getLogger(__name__)


class AdmissionGateMiddleware(BaseHTTPMiddleware):
    """
    Classify every request before it reaches a route.

    The caller's role comes from the session cookie (guest when absent or
    invalid) and selects the rate tier. Faults inside the gate fail closed
    with a 500; the request is not forwarded.
    """

    def __init__(
        self,
        app: ASGIApp,
        settings: "Settings",
        decision_service: DecisionService,
    ) -> None:
        super().__init__(app)
        self.settings = settings
        self.decision_service = decision_service

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        if not self.settings.ADMISSION_ENABLED or self._is_exempt(request.url.path):
            return await call_next(request)

        try:
            denial = await self._check(request)
        except Exception:
            logger.exception(
                "Admission gate error",
                extra={"path": request.url.path, "method": request.method},
            )
            return JSONResponse(
                status_code=500,
                content={
                    "detail": "Internal server error",
                    "message": "An error occurred while processing your request.",
                },
            )
        if denial is not None:
            return denial
        return await call_next(request)

    def _is_exempt(self, path: str) -> bool:
        """Exempt prefixes match whole path segments: /docs covers /docs/x but not /docsfoo."""
        for prefix in self.settings.ADMISSION_EXEMPT_PATHS:
            base = prefix.rstrip("/")
            if not base:
                return True
            if path == base or path.startswith(base + "/"):
                return True
        return False

    def _role_for(self, request: Request) -> str:
        token = read_cookie(request, self.settings.COOKIE_NAME)
        if not token:
            return GUEST_ROLE
        try:
            payload = decode_access_token(token, self.settings)
        except InvalidTokenError:
            return GUEST_ROLE
        return str(payload.get("role") or GUEST_ROLE)

    async def _check(self, request: Request) -> JSONResponse | None:
        """Return the denial response, or None to let the request through."""
        tier = tier_for_role(self._role_for(request), self.settings)
        rule = rule_for_tier(tier, self.settings)
        context = RequestContext(
            client_ip=request.client.host if request.client else "unknown",
            user_agent=request.headers.get("user-agent", ""),
            path=request.url.path,
            method=request.method,
            query=request.url.query,
        )
        decision = await self.decision_service.classify(context, rule)
        if not decision.is_denied:
            return None

        log_extra = {
            "ip": context.client_ip,
            "user_agent": context.user_agent,
            "path": context.path,
            "method": context.method,
            "role": tier.role,
            "decision": decision.kind.value,
            "reason": decision.reason,
        }
        log_args = (
            context.client_ip,
            context.user_agent,
            context.path,
            context.method,
            tier.role,
            decision.reason,
        )
        response = self._denial_response(decision, tier.message)
        if self.settings.ADMISSION_MODE == "DRY_RUN":
            logger.warning(
                "Admission denial (dry run, not enforced) decision=%s " + _LOG_CONTEXT,
                decision.kind.value,
                *log_args,
                extra=log_extra,
            )
            return None
        logger.warning(
            _DENIAL_LOG_MESSAGES[decision.kind] + " " + _LOG_CONTEXT, *log_args, extra=log_extra
        )
        return response

    @staticmethod
    def _denial_response(decision: Decision, rate_limit_message: str) -> JSONResponse:
        if decision.kind is DecisionKind.DENY_BOT:
            return JSONResponse(
                status_code=403,
                content={
                    "detail": "Access denied for bots",
                    "message": "Your request has been identified as coming from a bot and has been blocked.",
                },
            )
        if decision.kind is DecisionKind.DENY_SHIELD:
            return JSONResponse(
                status_code=403,
                content={"detail": "Access denied", "message": "Request blocked by Shield."},
            )
        if decision.kind is DecisionKind.DENY_RATE_LIMIT:
            return JSONResponse(
                status_code=429,
                content={"detail": "Rate limit exceeded", "message": rate_limit_message},
            )
        raise ValueError(f"Unhandled admission decision: {decision.kind}")


_LOG_CONTEXT = "ip=%s user_agent=%r path=%s method=%s role=%s reason=%s"

_DENIAL_LOG_MESSAGES = {
    DecisionKind.DENY_BOT: "Bot request blocked",
    DecisionKind.DENY_SHIELD: "Shield request blocked",
    DecisionKind.DENY_RATE_LIMIT: "Rate limit request blocked",
}
