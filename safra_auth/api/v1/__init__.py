"""
API v1 Router
"""

from fastapi import APIRouter

from safra_auth.api.v1 import admin_auth, auth

router = APIRouter()

# Include all endpoint routers
router.include_router(auth.router)
router.include_router(admin_auth.router)
router.include_router(admin_auth.users_router)

__all__ = ["router"]
