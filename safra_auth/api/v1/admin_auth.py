"""
Admin authentication and account moderation endpoints.

Admins authenticate against their own table and role space through the same
login/session endpoints as public users, mounted under /admin/auth. The
/admin/users endpoints let staff deactivate, reactivate or delete public
accounts; each change ends the affected sessions immediately.
"""

from typing import Annotated

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from safra_auth.api.responses import result_response
from safra_auth.api.v1.auth import create_auth_router
from safra_auth.config import Role
from safra_auth.core.auth import UserAuthService, require_roles
from safra_auth.core.principals import ADMIN, AuthContext

router = create_auth_router(ADMIN, prefix="/admin/auth", tags=["Admin Authentication"])

users_router = APIRouter(prefix="/admin/users", tags=["Admin Users"])

Moderator = Annotated[
    AuthContext, Depends(require_roles(Role.MODERATOR, Role.ADMIN, Role.SUPER_ADMIN))
]
SuperAdmin = Annotated[AuthContext, Depends(require_roles(Role.SUPER_ADMIN))]


@users_router.post("/{user_id}/deactivate")
async def deactivate_user(user_id: int, _admin: Moderator, service: UserAuthService) -> JSONResponse:
    return result_response(await service.deactivate(user_id))


@users_router.post("/{user_id}/activate")
async def activate_user(user_id: int, _admin: Moderator, service: UserAuthService) -> JSONResponse:
    return result_response(await service.activate(user_id))


@users_router.delete("/{user_id}")
async def delete_user(user_id: int, _admin: SuperAdmin, service: UserAuthService) -> JSONResponse:
    """Permanently delete a public account and its sessions."""
    return result_response(await service.delete_identity(user_id))
