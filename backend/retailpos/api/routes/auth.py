"""
Authentication API routes.
"""

from datetime import datetime
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, EmailStr, Field, field_validator

from retailpos.db.models import User, AccountStatus
from retailpos.api.deps import get_current_user
from retailpos.services.auth import AuthService, get_auth_service
from retailpos.services.auth.phone import normalize_phone

router = APIRouter(prefix="/auth", tags=["auth"])


class SignRequest(BaseModel):
    username: str = Field(min_length=3)
    email: EmailStr
    phone: str
    firstname: str = Field(min_length=1)
    lastname: str = Field(min_length=1)
    store: UUID
    role: UUID
    password: str = Field(min_length=6)
    status: Optional[AccountStatus] = None

    @field_validator("phone")
    @classmethod
    def check_phone(cls, value: str) -> str:
        return normalize_phone(value)


class SignInRequest(BaseModel):
    name: str  # username, email or phone
    password: str


class EmailRequest(BaseModel):
    email: EmailStr


class PasswordRequest(BaseModel):
    password: str = Field(min_length=6)


class ChangePasswordRequest(BaseModel):
    current_password: str
    new_password: str = Field(min_length=6)


class OtpRequest(BaseModel):
    name: str
    code: Optional[str] = None


class CodeRequest(BaseModel):
    code: str


class RefreshRequest(BaseModel):
    refresh_token: str


class MessageResponse(BaseModel):
    message: str


class UserResponse(BaseModel):
    id: UUID
    username: str
    email: str
    phone: str
    firstname: str
    lastname: str
    store: UUID = Field(validation_alias="store_id")
    role: UUID = Field(validation_alias="role_id")
    status: AccountStatus
    online: bool
    last_login: Optional[datetime] = None

    class Config:
        from_attributes = True


class TokenPair(BaseModel):
    access: str
    refresh: str


class AuthResponse(BaseModel):
    user: UserResponse
    token: TokenPair


@router.post("/sign", response_model=MessageResponse)
async def sign(
    request: SignRequest,
    service: AuthService = Depends(get_auth_service),
):
    """Start a registration; the account is created from the emailed link."""
    await service.initiate_registration(request.model_dump(mode="json", exclude_none=True))
    return {"message": "Verification email sent"}


@router.api_route(
    "/signup/{token}",
    methods=["GET", "POST"],
    response_model=AuthResponse,
    status_code=status.HTTP_201_CREATED,
)
async def signup(
    token: str,
    service: AuthService = Depends(get_auth_service),
):
    """Complete a registration from its verification token and sign in."""
    return await service.complete_registration(token)


@router.post("/signin", response_model=AuthResponse)
async def signin(
    request: SignInRequest,
    service: AuthService = Depends(get_auth_service),
):
    """Sign in with username, email or phone and password."""
    return await service.sign_in(request.name, request.password)


@router.post("/signout")
async def signout(
    current_user: User = Depends(get_current_user),
    service: AuthService = Depends(get_auth_service),
):
    return await service.sign_out(current_user.id)


@router.post("/forgot-password")
async def forgot_password(
    request: EmailRequest,
    service: AuthService = Depends(get_auth_service),
):
    return await service.forgot_password(request.email)


@router.post("/reset-password/{token}")
async def reset_password(
    token: str,
    request: PasswordRequest,
    service: AuthService = Depends(get_auth_service),
):
    return await service.reset_password(token, request.password)


@router.post("/change-password")
async def change_password(
    request: ChangePasswordRequest,
    current_user: User = Depends(get_current_user),
    service: AuthService = Depends(get_auth_service),
):
    return await service.change_password(
        current_user.id, request.current_password, request.new_password
    )


@router.post("/otp/verify")
async def verify_otp(
    request: OtpRequest,
    service: AuthService = Depends(get_auth_service),
):
    return await service.verify_otp(request.name, request.code or "")


@router.post("/otp/resend")
async def resend_otp(
    request: OtpRequest,
    service: AuthService = Depends(get_auth_service),
):
    return await service.resend_otp(request.name)


@router.post("/2fa/enable")
async def enable_two_factor(
    current_user: User = Depends(get_current_user),
    service: AuthService = Depends(get_auth_service),
):
    return await service.enable_two_factor(current_user.id)


@router.post("/2fa/disable")
async def disable_two_factor(
    current_user: User = Depends(get_current_user),
    service: AuthService = Depends(get_auth_service),
):
    return await service.disable_two_factor(current_user.id)


@router.post("/2fa/verify")
async def verify_two_factor(
    request: CodeRequest,
    current_user: User = Depends(get_current_user),
    service: AuthService = Depends(get_auth_service),
):
    return await service.verify_two_factor(current_user.id, request.code)


@router.post("/refresh")
async def refresh_tokens(
    request: RefreshRequest,
    service: AuthService = Depends(get_auth_service),
):
    return await service.refresh_tokens(request.refresh_token)
