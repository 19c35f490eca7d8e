"""Authentication API routes

Sign-in itself belongs to the external session provider; these routes only
expose the resolved identity and clear the session cookie.
"""

import logging

from fastapi import APIRouter, Depends, Response
from pydantic import BaseModel

from api.core.config import Settings
from api.core.dependencies import AuthUser, get_app_settings, get_current_user

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/auth", tags=["authentication"])


# ============================================
# Response Models
# ============================================


class UserInfoResponse(BaseModel):
    id: str
    email: str | None = None


class LogoutResponse(BaseModel):
    message: str


# ============================================
# Routes
# ============================================


@router.get("/me", response_model=UserInfoResponse)
async def get_me(user: AuthUser = Depends(get_current_user)) -> UserInfoResponse:
    """Get current authenticated user information"""
    return UserInfoResponse(id=user.id, email=user.email)


@router.post("/logout", response_model=LogoutResponse)
async def logout(
    response: Response,
    user: AuthUser = Depends(get_current_user),
    settings: Settings = Depends(get_app_settings),
) -> LogoutResponse:
    """Logout current user by clearing auth cookie"""
    response.delete_cookie(
        key=settings.auth_cookie_name,
        path="/",
        httponly=True,
        secure=settings.is_production,
        samesite="none" if settings.is_production else "lax",
    )
    logger.info(f"User logged out: {user.id}")
    return LogoutResponse(message="Logged out successfully")
