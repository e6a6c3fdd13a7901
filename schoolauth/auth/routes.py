# =============================================================================
# Auth API Routes
# =============================================================================
#
# Endpoints:
#   POST /auth/register             - Register a school administrator
#   POST /auth/admin-registration   - E-mail an administrator registration link
#   GET  /auth/admin-registration?token= - Check a registration link
#   POST /auth/admin-registration/complete - Finish registering with the link
#   POST /auth/accounts             - Admin creates a teacher/student/parent account
#   GET  /auth/verify-email?token=  - Confirm an e-mail address
#   POST /auth/resend-verification  - New verification link
#   POST /auth/login                - Get a session token
#   GET  /auth/verify               - Current user behind the bearer token
#   POST /auth/change-password      - Change own password
#   POST /auth/reset-password       - Request a reset link
#   PUT  /auth/reset-password       - Set a new password with a reset token
#   POST /auth/logout               - Stateless; the client discards its token
#
# Handlers that hash or check passwords run the bcrypt work through
# run_in_threadpool so the event loop keeps serving other requests.
#
# =============================================================================

from __future__ import annotations

import logging
from datetime import datetime
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Request, status
from starlette.concurrency import run_in_threadpool
from pydantic import AfterValidator, BaseModel, EmailStr, Field, field_validator

from schoolauth.auth.passwords import BCRYPT_MAX_BYTES
from schoolauth.auth.policies import require_auth, require_role
from schoolauth.auth.tokens import Claims
from schoolauth.core.errors import (
    AccountExists,
    InvalidCredentials,
    InvalidToken,
    Unauthorized,
    UnverifiedAccount,
)
from schoolauth.core.roles import Role
from schoolauth.integrations.email import EmailService
from schoolauth.services.accounts import AccountService
from schoolauth.storage.base import Credential

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])

RESET_REQUESTED_MESSAGE = "If your email is registered, you will receive a password reset link"


# =============================================================================
# Dependencies
# =============================================================================


def get_accounts(request: Request) -> AccountService:
    return request.app.state.accounts


def get_email(request: Request) -> EmailService:
    return request.app.state.email


# =============================================================================
# Request/Response Models
# =============================================================================


def _within_bcrypt_limit(value: str) -> str:
    if len(value.encode("utf-8")) > BCRYPT_MAX_BYTES:
        raise ValueError(f"Password too long (max {BCRYPT_MAX_BYTES} bytes)")
    return value


NewPassword = Annotated[str, Field(min_length=8), AfterValidator(_within_bcrypt_limit)]


class RoleField(BaseModel):
    role: Role

    @field_validator("role", mode="before")
    @classmethod
    def _parse_role(cls, value):
        role = Role.parse(value)
        if role is None:
            raise ValueError("Invalid role")
        return role


class RegisterRequest(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    email: EmailStr
    password: NewPassword


class AdminInviteRequest(BaseModel):
    email: EmailStr


class CompleteAdminRegistrationRequest(BaseModel):
    token: str
    name: str = Field(min_length=1, max_length=100)
    password: NewPassword


class InvitationResponse(BaseModel):
    email: str


class CreateAccountRequest(RoleField):
    name: str = Field(min_length=1, max_length=100)
    identifier: str = Field(min_length=1, description="E-mail, or roll number for students")
    password: NewPassword


class LoginRequest(RoleField):
    email: str = Field(description="E-mail, or roll number for students")
    password: str


class ResendVerificationRequest(RoleField):
    email: EmailStr


class ChangePasswordRequest(BaseModel):
    current_password: str
    new_password: NewPassword


class ResetRequest(RoleField):
    email: str


class ResetPasswordRequest(BaseModel):
    token: str
    password: NewPassword


class UserResponse(BaseModel):
    id: str
    name: str
    email: str
    role: Role
    verified: bool

    @classmethod
    def from_credential(cls, credential: Credential) -> UserResponse:
        return cls(
            id=credential.id,
            name=credential.name,
            email=credential.identifier,
            role=credential.role,
            verified=credential.verified,
        )


class LoginResponse(BaseModel):
    user: UserResponse
    token: str
    token_type: str = "bearer"
    expires_at: datetime


class MessageResponse(BaseModel):
    message: str


def _is_email(identifier: str) -> bool:
    return "@" in identifier


# =============================================================================
# Registration & Verification
# =============================================================================


@router.post("/register", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def register(
    data: RegisterRequest,
    accounts: AccountService = Depends(get_accounts),
    email: EmailService = Depends(get_email),
):
    """
    Register a school administrator.

    The account must verify its e-mail before it can log in.
    """
    try:
        credential, token = await run_in_threadpool(
            accounts.register, data.email, data.password, data.name, Role.ADMIN,
        )
    except AccountExists:
        raise HTTPException(status_code=400, detail="User with this email already exists")

    await email.send_verification(credential.identifier, credential.name, token)
    return UserResponse.from_credential(credential)


@router.post("/accounts", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def create_account(
    data: CreateAccountRequest,
    claims: Claims = Depends(require_role(Role.ADMIN)),
    accounts: AccountService = Depends(get_accounts),
    email: EmailService = Depends(get_email),
):
    """
    Create a teacher, student or parent account.

    Teachers and accounts without an e-mail address (students with a
    roll number) start verified; the others get a verification link.
    """
    if data.role == Role.ADMIN:
        raise HTTPException(status_code=400, detail="Administrators register themselves")

    verified = data.role == Role.TEACHER or not _is_email(data.identifier)
    try:
        credential, token = await run_in_threadpool(
            accounts.register, data.identifier, data.password, data.name, data.role, verified=verified,
        )
    except AccountExists:
        raise HTTPException(status_code=409, detail=f"A {data.role.value.lower()} with this identifier already exists")

    logger.info(f"{claims.subject_id} created {data.role.value} account {credential.id}")
    if token:
        await email.send_verification(credential.identifier, credential.name, token)
    return UserResponse.from_credential(credential)


@router.get("/verify-email", response_model=MessageResponse)
async def verify_email(token: str, accounts: AccountService = Depends(get_accounts)):
    """Verify an e-mail address using the token from the link."""
    try:
        accounts.verify_email(token)
    except InvalidToken:
        raise HTTPException(status_code=400, detail="Invalid or expired token")

    return MessageResponse(message="Email verified successfully")


@router.post("/resend-verification", response_model=MessageResponse)
async def resend_verification(
    data: ResendVerificationRequest,
    accounts: AccountService = Depends(get_accounts),
    email: EmailService = Depends(get_email),
):
    """Send a fresh verification link. Same answer whether or not the account exists."""
    issued = accounts.resend_verification(data.email, data.role)
    if issued:
        credential, token = issued
        await email.send_verification(credential.identifier, credential.name, token)

    return MessageResponse(message="If the account exists and is unverified, a new link has been sent")


# =============================================================================
# Administrator Invitations
# =============================================================================


@router.post("/admin-registration", response_model=MessageResponse)
async def invite_admin(
    data: AdminInviteRequest,
    accounts: AccountService = Depends(get_accounts),
    email: EmailService = Depends(get_email),
):
    """E-mail a link for registering a school administrator."""
    try:
        credential, token = accounts.invite_admin(data.email)
    except AccountExists:
        raise HTTPException(status_code=400, detail="An admin with this email already exists")

    await email.send_admin_invite(credential.identifier, token)
    return MessageResponse(message="Registration email sent successfully")


@router.get("/admin-registration", response_model=InvitationResponse)
async def check_invitation(token: str, accounts: AccountService = Depends(get_accounts)):
    """Check a registration link before showing the form. Does not use it up."""
    try:
        credential = accounts.check_invitation(token)
    except InvalidToken:
        raise HTTPException(status_code=400, detail="Invalid or expired token")

    return InvitationResponse(email=credential.identifier)


@router.post(
    "/admin-registration/complete",
    response_model=UserResponse,
    status_code=status.HTTP_201_CREATED,
)
async def complete_admin_registration(
    data: CompleteAdminRegistrationRequest,
    accounts: AccountService = Depends(get_accounts),
):
    """Set name and password using the registration link; the account starts verified."""
    try:
        credential = await run_in_threadpool(accounts.accept_invitation, data.token, data.name, data.password)
    except InvalidToken:
        raise HTTPException(status_code=400, detail="Invalid or expired token")

    return UserResponse.from_credential(credential)


# =============================================================================
# Sessions
# =============================================================================


@router.post("/login", response_model=LoginResponse)
async def login(data: LoginRequest, accounts: AccountService = Depends(get_accounts)):
    """Authenticate and get a session token."""
    try:
        result = await run_in_threadpool(accounts.login, data.email, data.password, data.role)
    except InvalidCredentials:
        raise HTTPException(status_code=401, detail="Invalid credentials")
    except UnverifiedAccount:
        raise HTTPException(
            status_code=401,
            detail={"error": "Please verify your email before logging in", "verified": False},
        )

    return LoginResponse(
        user=UserResponse.from_credential(result.credential),
        token=result.token,
        expires_at=result.claims.expires_at,
    )


@router.get("/verify", response_model=UserResponse)
async def current_user(
    claims: Claims = Depends(require_auth()),
    accounts: AccountService = Depends(get_accounts),
):
    """Get the user behind the bearer token."""
    try:
        credential = accounts.current_user(claims)
    except Unauthorized:
        raise HTTPException(status_code=404, detail="User not found")

    return UserResponse.from_credential(credential)


@router.post("/logout", response_model=MessageResponse)
async def logout():
    """
    Logout (client should discard its token).

    Session tokens are stateless and stay valid until they expire.
    """
    return MessageResponse(message="Logged out successfully")


# =============================================================================
# Passwords
# =============================================================================


@router.post("/change-password", response_model=MessageResponse)
async def change_password(
    data: ChangePasswordRequest,
    claims: Claims = Depends(require_auth()),
    accounts: AccountService = Depends(get_accounts),
    email: EmailService = Depends(get_email),
):
    """Change the signed-in user's password."""
    try:
        credential = await run_in_threadpool(
            accounts.change_password, claims, data.current_password, data.new_password,
        )
    except Unauthorized:
        raise HTTPException(status_code=404, detail="User not found")
    except InvalidCredentials:
        raise HTTPException(status_code=400, detail="Current password is incorrect")

    if _is_email(credential.identifier):
        await email.send_password_changed(credential.identifier, credential.name)
    return MessageResponse(message="Password updated successfully")


@router.post("/reset-password", response_model=MessageResponse)
async def request_password_reset(
    data: ResetRequest,
    accounts: AccountService = Depends(get_accounts),
    email: EmailService = Depends(get_email),
):
    """
    Request a password reset link.

    Always returns the same message to prevent account enumeration.
    """
    issued = accounts.request_password_reset(data.email, data.role)
    if issued:
        credential, token = issued
        if _is_email(credential.identifier):
            await email.send_password_reset(credential.identifier, credential.name, token, credential.role.value)

    return MessageResponse(message=RESET_REQUESTED_MESSAGE)


@router.put("/reset-password", response_model=MessageResponse)
async def reset_password(data: ResetPasswordRequest, accounts: AccountService = Depends(get_accounts)):
    """Set a new password using the token from the reset link."""
    try:
        await run_in_threadpool(accounts.reset_password, data.token, data.password)
    except InvalidToken:
        raise HTTPException(status_code=400, detail="Invalid or expired token")

    return MessageResponse(message="Password reset successful")
