"""
Authentication dependencies for FastAPI route protection.

This module provides dependency functions for:
- Extracting client metadata (IP, User-Agent) from requests
- Building an AuthService per request for users or admins
- Resolving the caller's AuthContext from a Bearer token, the access token
  cookie or the opaque session cookie
- Protecting routes with role requirements
"""

from collections.abc import Awaitable, Callable
from typing import Annotated

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from safra_auth.config import Role
from safra_auth.core.database import get_db
from safra_auth.core.errors import AuthError, AuthErrorCode, RateLimitedError
from safra_auth.core.logging import identity_ctx
from safra_auth.core.principals import ADMIN, USER, AuthContext, ClientInfo
from safra_auth.services.auth_service import AuthService

bearer_scheme = HTTPBearer(auto_error=False)

HTTP_STATUS_BY_CODE: dict[AuthErrorCode, int] = {
    AuthErrorCode.INVALID_CREDENTIALS: status.HTTP_401_UNAUTHORIZED,
    AuthErrorCode.RATE_LIMITED: status.HTTP_429_TOO_MANY_REQUESTS,
    AuthErrorCode.TWO_FACTOR_REQUIRED: status.HTTP_401_UNAUTHORIZED,
    AuthErrorCode.ACCOUNT_DISABLED: status.HTTP_403_FORBIDDEN,
    AuthErrorCode.SESSION_EXPIRED: status.HTTP_401_UNAUTHORIZED,
    AuthErrorCode.INVALID_TOKEN: status.HTTP_401_UNAUTHORIZED,
    AuthErrorCode.EMAIL_EXISTS: status.HTTP_409_CONFLICT,
    AuthErrorCode.WEAK_PASSWORD: 422,
    AuthErrorCode.INTERNAL_ERROR: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def status_for(code: AuthErrorCode | None) -> int:
    if code is None:
        return status.HTTP_400_BAD_REQUEST
    return HTTP_STATUS_BY_CODE[code]


def auth_http_exception(error: AuthError) -> HTTPException:
    """Translate an AuthError raised by an authenticate_* call."""
    headers = {"WWW-Authenticate": "Bearer"}
    if isinstance(error, RateLimitedError):
        headers["Retry-After"] = str(error.retry_after)
    return HTTPException(
        status_code=status_for(error.code),
        detail={"code": error.code.value, "message": error.message},
        headers=headers,
    )


def get_client_ip(request: Request) -> str:
    """
    Extract client IP address from request.

    Checks X-Forwarded-For header first (for proxies/load balancers),
    falls back to direct client IP.
    """
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        # X-Forwarded-For can contain multiple IPs, take the first (client)
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


def get_user_agent(request: Request) -> str:
    return request.headers.get("User-Agent", "unknown")


def get_client(request: Request) -> ClientInfo:
    """Client metadata stored on new sessions and attempt records."""
    return ClientInfo(ip_address=get_client_ip(request), user_agent=get_user_agent(request))


async def get_user_auth_service(db: Annotated[AsyncSession, Depends(get_db)]) -> AuthService:
    return AuthService(db, USER)


async def get_admin_auth_service(db: Annotated[AsyncSession, Depends(get_db)]) -> AuthService:
    return AuthService(db, ADMIN)


async def _resolve_context(
    service: AuthService,
    request: Request,
    credentials: HTTPAuthorizationCredentials | None,
) -> AuthContext:
    """
    Resolve the caller from, in order: Bearer header, access token cookie,
    session cookie. An expired access token cookie falls back to the session
    cookie when one is present.

    Raises:
        HTTPException: 401 if no credential resolves to a valid session
    """
    kind = service.kind
    try:
        if credentials is not None:
            context = await service.authenticate_access_token(credentials.credentials)
        else:
            access_token = request.cookies.get(kind.access_cookie_name)
            session_id = request.cookies.get(kind.session_cookie_name)
            if access_token:
                try:
                    context = await service.authenticate_access_token(access_token)
                except AuthError:
                    if not session_id:
                        raise
                    context = await service.authenticate_session(session_id)
            elif session_id:
                context = await service.authenticate_session(session_id)
            else:
                raise HTTPException(
                    status_code=status.HTTP_401_UNAUTHORIZED,
                    detail="No autenticado",
                    headers={"WWW-Authenticate": "Bearer"},
                )
    except AuthError as e:
        # Keep the lazy inactive flag on expired sessions; get_db rolls back on the 401
        await service.db.commit()
        raise auth_http_exception(e) from e

    identity_ctx.set(f"{context.principal_kind}:{context.identity_id}")
    return context


async def get_current_user_context(
    request: Request,
    service: Annotated[AuthService, Depends(get_user_auth_service)],
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(bearer_scheme)] = None,
) -> AuthContext:
    return await _resolve_context(service, request, credentials)


async def get_current_admin_context(
    request: Request,
    service: Annotated[AuthService, Depends(get_admin_auth_service)],
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(bearer_scheme)] = None,
) -> AuthContext:
    return await _resolve_context(service, request, credentials)


def require_roles(
    *roles: Role,
    context_dependency: Callable[..., Awaitable[AuthContext]] = get_current_admin_context,
) -> Callable[..., Awaitable[AuthContext]]:
    """
    Build a dependency that only admits callers holding one of the roles.

    Usage:
        @router.delete("/users/{user_id}")
        async def delete_user(
            context: Annotated[AuthContext, Depends(require_roles(Role.SUPER_ADMIN))],
        ): ...
    """

    async def dependency(
        context: Annotated[AuthContext, Depends(context_dependency)],
    ) -> AuthContext:
        if not context.has_role(*roles):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Permisos insuficientes",
            )
        return context

    return dependency


# Type aliases for dependency injection
UserAuthService = Annotated[AuthService, Depends(get_user_auth_service)]
AdminAuthService = Annotated[AuthService, Depends(get_admin_auth_service)]
CurrentUserContext = Annotated[AuthContext, Depends(get_current_user_context)]
CurrentAdminContext = Annotated[AuthContext, Depends(get_current_admin_context)]
Client = Annotated[ClientInfo, Depends(get_client)]
