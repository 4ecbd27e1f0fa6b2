"""
Auth API routes — signup, login, password reset, password update.

Route prefix: /api/v1/users
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Request, status
from pydantic import BaseModel, ConfigDict, Field, field_validator

from auth.dependencies import get_auth_service, protect
from auth.service import AuthService
from database.models import User

logger = logging.getLogger(__name__)

ROUTE_PREFIX = "/api/v1/users"

router = APIRouter(tags=["auth"])


# ── Request schemas ────────────────────────────────────────────────────


class _Body(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class _EmailBody(_Body):
    email: Optional[str] = None

    @field_validator("email")
    @classmethod
    def normalise_email(cls, value: Optional[str]) -> Optional[str]:
        return value.strip().lower() if isinstance(value, str) else value


class SignupRequest(_EmailBody):
    name: str = Field(..., min_length=1, max_length=128)
    email: str = Field(..., min_length=3, max_length=255)
    password: str
    password_confirm: Optional[str] = Field(None, alias="passwordConfirm")


class LoginRequest(_EmailBody):
    password: Optional[str] = None


class ForgotPasswordRequest(_EmailBody):
    pass


class ResetPasswordRequest(_Body):
    password: str
    password_confirm: Optional[str] = Field(None, alias="passwordConfirm")


class UpdatePasswordRequest(_Body):
    password_current: Optional[str] = Field(None, alias="passwordCurrent")
    password: str
    password_confirm: Optional[str] = Field(None, alias="passwordConfirm")


def _token_response(user: User, token: str) -> Dict[str, Any]:
    return {
        "success": True,
        "token": token,
        "data": {"user": user.to_public_dict()},
    }


# ── Endpoints ──────────────────────────────────────────────────────────


@router.post("/signup", status_code=status.HTTP_201_CREATED)
async def signup(
    req: SignupRequest,
    service: AuthService = Depends(get_auth_service),
) -> Dict[str, Any]:
    """Register a new user."""
    user, token = await service.signup(req.name, req.email, req.password, req.password_confirm)
    return _token_response(user, token)


@router.post("/login")
async def login(
    req: LoginRequest,
    service: AuthService = Depends(get_auth_service),
) -> Dict[str, Any]:
    """Login with email + password."""
    user, token = await service.login(req.email, req.password)
    return _token_response(user, token)


@router.post("/forgot-password")
async def forgot_password(
    req: ForgotPasswordRequest,
    request: Request,
    service: AuthService = Depends(get_auth_service),
) -> Dict[str, Any]:
    """Email a password reset link valid for a limited time."""
    reset_base_url = f"{request.url.scheme}://{request.url.netloc}{ROUTE_PREFIX}/reset-password"
    await service.forgot_password(req.email, reset_base_url)
    return {"success": True, "message": "Token sent to email!"}


@router.patch("/reset-password/{token}")
async def reset_password(
    token: str,
    req: ResetPasswordRequest,
    service: AuthService = Depends(get_auth_service),
) -> Dict[str, Any]:
    """Set a new password using the emailed reset secret."""
    user, new_token = await service.reset_password(token, req.password, req.password_confirm)
    return _token_response(user, new_token)


@router.patch("/update-password")
async def update_password(
    req: UpdatePasswordRequest,
    current_user: User = Depends(protect),
    service: AuthService = Depends(get_auth_service),
) -> Dict[str, Any]:
    """Change the password of the logged-in user."""
    user, token = await service.update_password(
        current_user, req.password_current, req.password, req.password_confirm,
    )
    return _token_response(user, token)


@router.get("/me")
async def me(current_user: User = Depends(protect)) -> Dict[str, Any]:
    return {"success": True, "data": {"user": current_user.to_public_dict()}}
