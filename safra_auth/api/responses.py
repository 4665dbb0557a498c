"""
Translation of AuthResult into HTTP responses and auth cookies.

Cookies are HTTPOnly, SameSite from settings, Secure in production, and
expire with the token or session they carry.
"""

from datetime import timedelta

from fastapi import status
from fastapi.responses import JSONResponse, Response

from safra_auth.config import settings
from safra_auth.core.auth import status_for
from safra_auth.core.principals import PrincipalKind
from safra_auth.schemas.auth import AuthResult


def _set_cookie(response: Response, key: str, value: str, ttl: timedelta) -> None:
    response.set_cookie(
        key=key,
        value=value,
        httponly=True,  # Prevent JavaScript access (XSS protection)
        secure=settings.is_production,  # HTTPS only in production
        samesite=settings.COOKIE_SAMESITE,  # type: ignore[arg-type]
        max_age=int(ttl.total_seconds()),
        path="/",
    )


def set_auth_cookies(
    response: Response, kind: PrincipalKind, result: AuthResult, remember_me: bool = False
) -> None:
    """Set the session, access token and refresh token cookies present on the result."""
    if result.session_id:
        _set_cookie(response, kind.session_cookie_name, result.session_id, kind.session_ttl(remember_me))
    if result.access_token:
        _set_cookie(response, kind.access_cookie_name, result.access_token, kind.access_token_ttl())
    if result.refresh_token:
        _set_cookie(response, kind.refresh_cookie_name, result.refresh_token, kind.refresh_token_ttl())


def clear_auth_cookies(response: Response, kind: PrincipalKind) -> None:
    # Match set_cookie params
    for key in (kind.session_cookie_name, kind.access_cookie_name, kind.refresh_cookie_name):
        response.delete_cookie(
            key=key,
            path="/",
            httponly=True,
            secure=settings.is_production,
            samesite=settings.COOKIE_SAMESITE,  # type: ignore[arg-type]
        )


def result_response(result: AuthResult, success_status: int = status.HTTP_200_OK) -> JSONResponse:
    """
    JSON response for an AuthResult.

    Failures use the status mapped from their code; rate limiting adds a
    Retry-After header.
    """
    headers = {}
    if result.retry_after:
        headers["Retry-After"] = str(result.retry_after)
    return JSONResponse(
        status_code=success_status if result.success else status_for(result.code),
        content=result.model_dump(mode="json", exclude_none=True),
        headers=headers,
    )
