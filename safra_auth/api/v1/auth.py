"""
Authentication API endpoints.

This module provides endpoints for:
- Login (session cookie + JWT access/refresh tokens)
- Token refresh
- Logout (this session or every session)
- Password change, reset and email verification (public users)
- Two-factor setup, enable and disable

create_auth_router() builds the same endpoints for either principal kind; the
admin router is built from it in admin_auth.py.
"""

from typing import Annotated

from fastapi import APIRouter, Body, Depends, Request, status
from fastapi.responses import JSONResponse

from safra_auth.api.responses import clear_auth_cookies, result_response, set_auth_cookies
from safra_auth.core.auth import (
    Client,
    get_admin_auth_service,
    get_current_admin_context,
    get_current_user_context,
    get_user_auth_service,
)
from safra_auth.core.errors import InvalidTokenError
from safra_auth.core.principals import USER, AuthContext, PrincipalKind
from safra_auth.schemas.auth import (
    AuthResult,
    ForgotPasswordRequest,
    LoginRequest,
    PasswordChangeRequest,
    RefreshRequest,
    RegisterRequest,
    ResetPasswordRequest,
    TwoFactorCodeRequest,
    TwoFactorDisableRequest,
    VerifyEmailRequest,
)
from safra_auth.services.auth_service import AuthService


def create_auth_router(kind: PrincipalKind, prefix: str, tags: list[str]) -> APIRouter:
    """Build the login/session/password/2FA endpoints for one principal kind."""
    router = APIRouter(prefix=prefix, tags=tags)  # type: ignore[arg-type]

    if kind.name == "admin":
        Service = Annotated[AuthService, Depends(get_admin_auth_service)]
        Context = Annotated[AuthContext, Depends(get_current_admin_context)]
    else:
        Service = Annotated[AuthService, Depends(get_user_auth_service)]  # type: ignore[misc]
        Context = Annotated[AuthContext, Depends(get_current_user_context)]  # type: ignore[misc]

    @router.post("/login", response_model=AuthResult)
    async def login(body: LoginRequest, service: Service, client: Client) -> JSONResponse:
        """
        Authenticate with email and password.

        On success the session id, access token and refresh token are set as
        HTTPOnly cookies and the tokens are also returned in the body for
        non-browser clients.
        """
        result = await service.login(
            body.email,
            body.password,
            client,
            two_factor_code=body.two_factor_code,
            remember_me=body.remember_me,
        )
        response = result_response(result)
        if result.success:
            set_auth_cookies(response, kind, result, remember_me=body.remember_me)
        return response

    @router.post("/refresh", response_model=AuthResult)
    async def refresh(
        request: Request,
        service: Service,
        body: Annotated[RefreshRequest | None, Body()] = None,
    ) -> JSONResponse:
        """Issue a new access token from the refresh token (body or cookie)."""
        refresh_token = (body.refresh_token if body else None) or request.cookies.get(
            kind.refresh_cookie_name
        )
        if not refresh_token:
            return result_response(AuthResult.from_error(InvalidTokenError()))

        result = await service.refresh(refresh_token)
        response = result_response(result)
        if result.success:
            # Refresh tokens are not rotated; only the access cookie is renewed
            set_auth_cookies(
                response, kind, result.model_copy(update={"session_id": None, "refresh_token": None})
            )
        else:
            clear_auth_cookies(response, kind)
        return response

    @router.post("/logout", response_model=AuthResult)
    async def logout(context: Context, service: Service) -> JSONResponse:
        result = await service.logout(context.session_id)
        response = result_response(result)
        clear_auth_cookies(response, kind)
        return response

    @router.post("/logout-all", response_model=AuthResult)
    async def logout_all(context: Context, service: Service) -> JSONResponse:
        """End every session of the caller, including this one."""
        result = await service.logout_all(context.identity_id)
        response = result_response(result)
        clear_auth_cookies(response, kind)
        return response

    @router.get("/me", response_model=AuthResult)
    async def me(context: Context, service: Service) -> JSONResponse:
        return result_response(await service.me(context))

    @router.get("/sessions", response_model=AuthResult)
    async def list_sessions(context: Context, service: Service) -> JSONResponse:
        """List the caller's active sessions (devices signed in)."""
        return result_response(await service.list_sessions(context))

    @router.post("/change-password", response_model=AuthResult)
    async def change_password(
        body: PasswordChangeRequest, context: Context, service: Service
    ) -> JSONResponse:
        """Change password; every other session of the caller is signed out."""
        result = await service.change_password(
            context.identity_id,
            body.current_password,
            body.new_password,
            current_session_id=context.session_id,
        )
        return result_response(result)

    @router.post("/2fa/setup", response_model=AuthResult)
    async def setup_two_factor(context: Context, service: Service) -> JSONResponse:
        return result_response(await service.setup_two_factor(context.identity_id))

    @router.post("/2fa/enable", response_model=AuthResult)
    async def enable_two_factor(
        body: TwoFactorCodeRequest, context: Context, service: Service
    ) -> JSONResponse:
        return result_response(await service.enable_two_factor(context.identity_id, body.code))

    @router.post("/2fa/disable", response_model=AuthResult)
    async def disable_two_factor(
        body: TwoFactorDisableRequest, context: Context, service: Service
    ) -> JSONResponse:
        return result_response(await service.disable_two_factor(context.identity_id, body.password))

    if not kind.supports_registration:
        return router

    @router.post("/register", response_model=AuthResult, status_code=status.HTTP_201_CREATED)
    async def register(body: RegisterRequest, service: Service) -> JSONResponse:
        """
        Create a public user account.

        The verification token is delivered by email and never returned here.
        """
        result = await service.register(
            body.email, body.password, first_name=body.first_name, last_name=body.last_name
        )
        return result_response(result, success_status=status.HTTP_201_CREATED)

    @router.post("/forgot-password", response_model=AuthResult)
    async def forgot_password(body: ForgotPasswordRequest, service: Service) -> JSONResponse:
        """Always answers with the same message, registered email or not."""
        return result_response(await service.request_password_reset(body.email))

    @router.post("/reset-password", response_model=AuthResult)
    async def reset_password(body: ResetPasswordRequest, service: Service) -> JSONResponse:
        result = await service.reset_password(body.token, body.new_password)
        response = result_response(result)
        if result.success:
            clear_auth_cookies(response, kind)
        return response

    @router.post("/verify-email", response_model=AuthResult)
    async def verify_email(body: VerifyEmailRequest, service: Service) -> JSONResponse:
        return result_response(await service.verify_email(body.token))

    return router


router = create_auth_router(USER, prefix="/auth", tags=["Authentication"])
