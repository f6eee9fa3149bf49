"""Session cookie helpers: the token cookie is set and cleared with identical attributes."""

from typing import TYPE_CHECKING, Any

from fastapi import Request, Response

if TYPE_CHECKING:
    from app.core.config import Settings


def cookie_options(settings: "Settings", **overrides: Any) -> dict[str, Any]:
    """Return the fixed cookie policy; keyword overrides win."""
    options: dict[str, Any] = {
        "httponly": True,
        "secure": settings.APP_ENV == "prod",
        "samesite": "lax",
        "max_age": settings.cookie_max_age_seconds,
        "path": "/",
        "domain": settings.COOKIE_DOMAIN,
    }
    options.update(overrides)
    return options


def set_token_cookie(
    response: Response, token: str, settings: "Settings", **overrides: Any
) -> None:
    """Store the signed token in the session cookie."""
    response.set_cookie(
        key=settings.COOKIE_NAME,
        value=token,
        **cookie_options(settings, **overrides),
    )


def clear_token_cookie(response: Response, settings: "Settings", **overrides: Any) -> None:
    """Expire the session cookie. Safe to call when no cookie was set."""
    options = cookie_options(settings, **overrides)
    # delete_cookie sets max_age=0 and expires=0 itself
    options.pop("max_age", None)
    response.delete_cookie(key=settings.COOKIE_NAME, **options)


def read_cookie(request: Request, name: str = "token") -> str | None:
    """Return a cookie value from the incoming request, or None."""
    value = request.cookies.get(name)
    return value or None
