"""FastAPI application entrypoint. No business logic; only wiring, middleware and error handlers."""

from dotenv import load_dotenv

load_dotenv()

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.api.v1 import router as v1_router
from app.core.config import Settings, get_settings
from app.core.logging import setup_logging
from app.middleware.admission import AdmissionGateMiddleware
from app.services.admission import DecisionService, LocalDecisionService
from app.services.validation import format_validation_errors, issues_from_pydantic

logger = logging.getLogger(__name__)


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Malformed input is a 400 with one readable line per problem."""
    errors = format_validation_errors(issues_from_pydantic(exc.errors()))
    logger.info(
        "Request validation failed",
        extra={"path": request.url.path, "error_count": len(errors)},
    )
    return JSONResponse(
        status_code=400,
        content={"detail": "Validation failed", "errors": errors},
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Infrastructure faults are logged with traceback and hidden from the caller."""
    logger.error(
        "Unhandled error on %s %s",
        request.method,
        request.url.path,
        exc_info=exc,
    )
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


def _warn_on_insecure_settings(settings: Settings) -> None:
    if settings.uses_default_jwt_secret:
        level = logging.ERROR if settings.APP_ENV == "prod" else logging.WARNING
        logger.log(level, "JWT_SECRET is the built-in default; set a real secret for deployment")
    if settings.COOKIE_MAX_AGE_MINUTES and settings.COOKIE_MAX_AGE_MINUTES != settings.JWT_EXPIRE_MINUTES:
        logger.warning(
            "Session cookie lifetime (%s min) differs from token lifetime (%s min)",
            settings.COOKIE_MAX_AGE_MINUTES,
            settings.JWT_EXPIRE_MINUTES,
        )


def create_app(
    settings: Settings | None = None,
    decision_service: DecisionService | None = None,
) -> FastAPI:
    """Build the application; tests pass their own settings and decision service."""
    settings = settings or get_settings()
    setup_logging(settings.LOG_LEVEL)
    _warn_on_insecure_settings(settings)

    app = FastAPI(
        title="Users Auth API",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
    )

    app.add_middleware(
        AdmissionGateMiddleware,
        settings=settings,
        decision_service=decision_service or LocalDecisionService.from_settings(settings),
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if settings.APP_ENV == "dev" else [],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    # Routes resolve settings through Depends(get_settings); pin them to this instance.
    app.dependency_overrides[get_settings] = lambda: settings

    app.include_router(v1_router, prefix=settings.API_V1_PREFIX)

    @app.get("/")
    def root() -> dict[str, str]:
        """Root route; minimal payload for discovery."""
        return {"message": "Users Auth API"}

    return app


app = create_app()
