"""Authentication and account endpoints."""

import logging
import re

from fastapi import APIRouter, HTTPException, Response, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, EmailStr, Field, field_validator
from sqlalchemy.exc import IntegrityError

from careerforge.api.deps import (
    AuthRateLimit,
    ClientIP,
    CurrentUser,
    SessionDep,
    SigninRateLimit,
    SignupRateLimit,
)
from careerforge.config import settings
from careerforge.models import User, UserRead
from careerforge.services import users as user_store
from careerforge.services.auth import create_access_token, create_verification_token
from careerforge.services.email import email_service
from careerforge.services.security import BCRYPT_MAX_PASSWORD_BYTES, verify_password
from careerforge.services.verification import build_response, verify_user

logger = logging.getLogger(__name__)

router = APIRouter()

RESERVED_NAMES = {"admin", "root", "superuser"}

RESEND_VERIFICATION_MESSAGE = (
    "If an unverified account with that email address exists, a new verification link has been sent."
)
FORGOT_PASSWORD_MESSAGE = (
    "If an account with that email exists, a password reset link has been sent."
)


def validate_password_strength(value: str) -> str:
    """Require 8+ characters with upper, lower, digit and symbol."""
    checks = [
        (len(value) >= 8, "Password must be at least 8 characters long"),
        (
            len(value.encode("utf-8")) <= BCRYPT_MAX_PASSWORD_BYTES,
            f"Password must be at most {BCRYPT_MAX_PASSWORD_BYTES} bytes long",
        ),
        (re.search(r"[A-Z]", value), "Password must contain at least one uppercase letter"),
        (re.search(r"[a-z]", value), "Password must contain at least one lowercase letter"),
        (re.search(r"[0-9]", value), "Password must contain at least one digit"),
        (re.search(r"[\W_]", value), "Password must contain at least one special symbol"),
    ]
    for passed, message in checks:
        if not passed:
            raise ValueError(message)
    return value


class SignupRequest(BaseModel):
    """Request body for signup."""

    name: str = Field(min_length=2, max_length=30)
    email: EmailStr
    password: str = Field(max_length=128)

    @field_validator("name")
    @classmethod
    def check_name(cls, value: str) -> str:
        value = value.strip()
        if not value.isalnum() or not value.isascii():
            raise ValueError("Name should contain only letters and numbers")
        if value.lower() in RESERVED_NAMES:
            raise ValueError("That name is not allowed")
        return value

    @field_validator("password")
    @classmethod
    def check_password(cls, value: str) -> str:
        return validate_password_strength(value)


class SignupResponse(BaseModel):
    """Response for a successful signup."""

    success: bool = True
    message: str
    data: UserRead
    # In development, include the verification link for testing
    verification_link: str | None = None


class SigninRequest(BaseModel):
    """Request body for signin."""

    email: EmailStr
    password: str = Field(min_length=1, max_length=128)


class TokenResponse(BaseModel):
    """Response containing a session JWT."""

    success: bool = True
    access_token: str
    token_type: str = "bearer"
    user: UserRead


class EmailRequest(BaseModel):
    """Request body carrying only an email address."""

    email: EmailStr


class ResetPasswordRequest(BaseModel):
    """Request body for resetting a password."""

    password: str = Field(max_length=128)

    @field_validator("password")
    @classmethod
    def check_password(cls, value: str) -> str:
        return validate_password_strength(value)


class MessageResponse(BaseModel):
    """Generic success/message response."""

    success: bool
    message: str


def verification_link(user: User) -> str:
    return f"{settings.app_url}/verify/{create_verification_token(user)}"


def set_auth_cookie(response: Response, token: str) -> None:
    response.set_cookie(
        key=settings.auth_cookie_name,
        value=token,
        max_age=settings.jwt_expiration_days * 24 * 60 * 60,
        path="/",
        httponly=True,
        secure=settings.auth_cookie_secure,
        samesite="none" if settings.auth_cookie_secure else "lax",
    )


def clear_auth_cookie(response: Response) -> None:
    response.delete_cookie(
        key=settings.auth_cookie_name,
        path="/",
        httponly=True,
        secure=settings.auth_cookie_secure,
        samesite="none" if settings.auth_cookie_secure else "lax",
    )


@router.post("/signup", response_model=SignupResponse, status_code=status.HTTP_201_CREATED)
async def signup(
    request: SignupRequest,
    session: SessionDep,
    client_ip: ClientIP,
    _rate_limit: SignupRateLimit,
):
    """
    Create an unverified account and email a verification link.

    A failed email send is logged but does not fail the signup; the user
    can request a new link.
    """
    try:
        user = await user_store.create_user(session, request.name, request.email, request.password)
        await session.commit()
    except (user_store.EmailAlreadyRegistered, IntegrityError) as e:
        await session.rollback()
        logger.warning(f"[SignUp][Conflict] Email exists: {request.email} from IP: {client_ip}")
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="An account with this email address already exists.",
        ) from e

    link = verification_link(user)
    if not await email_service.send_verification_link(to=user.email, name=user.name, link=link):
        logger.error(f"[SignUp][EmailError] Failed to send verification email for userId: {user.id}")

    logger.info(f"[SignUp][Success] New user: {user.email} (ID: {user.id})")

    response = SignupResponse(
        message="Signup successful. Please check your email for the verification link.",
        data=UserRead.from_user(user),
    )
    if settings.is_development:
        response.verification_link = link
    return response


@router.post("/signin", response_model=TokenResponse)
async def signin(
    request: SigninRequest,
    response: Response,
    session: SessionDep,
    client_ip: ClientIP,
    _rate_limit: SigninRateLimit,
):
    """Exchange email and password for a session token (also set as a cookie)."""
    user = await user_store.get_user_by_email(session, request.email)

    if not user or not verify_password(request.password, user.hashed_password):
        reason = "Email not found" if not user else "Invalid password"
        logger.warning(f"[SignIn][Fail] {reason} for email: {request.email} from IP: {client_ip}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password",
        )

    access_token = create_access_token(user)
    set_auth_cookie(response, access_token)

    logger.info(f"[SignIn][Success] User: {user.email} (ID: {user.id}) from IP: {client_ip}")
    return TokenResponse(access_token=access_token, user=UserRead.from_user(user))


@router.post("/signout", response_model=MessageResponse)
async def signout(user: CurrentUser, response: Response, client_ip: ClientIP):
    """
    Sign out.

    Session JWTs are stateless; this clears the cookie for browser clients.
    """
    clear_auth_cookie(response)
    logger.info(f"[SignOut][Success] User: {user.id} from IP: {client_ip}")
    return MessageResponse(success=True, message="Signed out successfully")


@router.get("/status", response_model=UserRead)
async def auth_status(user: CurrentUser):
    """Get current authenticated user info."""
    return UserRead.from_user(user)


@router.get("/verify/{verification_token}", response_model=MessageResponse)
async def verify_email(
    verification_token: str,
    session: SessionDep,
    client_ip: ClientIP,
    _rate_limit: AuthRateLimit,
):
    """
    Follow an email verification link.

    Responds 200 on success, otherwise 401 with one generic body whatever
    the reason (bad token, unknown user, already verified, internal error).
    """
    result = await verify_user(session, verification_token, client_ip=client_ip)
    status_code, body = build_response(result)
    return JSONResponse(status_code=status_code, content=body)


@router.post("/resend-verification", response_model=MessageResponse)
async def resend_verification(
    request: EmailRequest,
    session: SessionDep,
    client_ip: ClientIP,
    _rate_limit: AuthRateLimit,
):
    """Email a fresh verification link. The response never reveals account state."""
    user = await user_store.get_user_by_email(session, request.email)

    if not user:
        logger.warning(f"[ResendVerification][NotFound] Attempt for {request.email} from IP: {client_ip}")
    elif user.verified:
        logger.warning(f"[ResendVerification][AlreadyVerified] Attempt for userId: {user.id}")
    elif await email_service.send_verification_link(
        to=user.email, name=user.name, link=verification_link(user)
    ):
        logger.info(f"[ResendVerification][Success] New verification link sent to userId: {user.id}")
    else:
        logger.error(f"[ResendVerification][EmailError] Failed to send link for userId: {user.id}")

    return MessageResponse(success=True, message=RESEND_VERIFICATION_MESSAGE)


@router.post("/forgot-password", response_model=MessageResponse)
async def forgot_password(
    request: EmailRequest,
    session: SessionDep,
    client_ip: ClientIP,
    _rate_limit: AuthRateLimit,
):
    """Email a password reset link. The response never reveals account existence."""
    user = await user_store.get_user_by_email(session, request.email)

    if not user:
        logger.warning(f"[ForgotPassword][NotFound] Attempt for {request.email} from IP: {client_ip}")
        return MessageResponse(success=True, message=FORGOT_PASSWORD_MESSAGE)

    token = await user_store.issue_password_reset(session, user)
    await session.commit()

    link = f"{settings.app_url}/reset-password/{token}"
    if not await email_service.send_password_reset(to=user.email, name=user.name, link=link):
        logger.error(f"[ForgotPassword][EmailError] Failed to send reset link for userId: {user.id}")

    return MessageResponse(success=True, message=FORGOT_PASSWORD_MESSAGE)


@router.post("/reset-password/{token}", response_model=TokenResponse)
async def reset_password(
    token: str,
    request: ResetPasswordRequest,
    response: Response,
    session: SessionDep,
    _rate_limit: AuthRateLimit,
):
    """Set a new password using an emailed reset token, then sign the user in."""
    user = await user_store.get_user_by_reset_token(session, token)

    if not user:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Password reset token is invalid or has expired.",
        )

    await user_store.reset_password(session, user, request.password)
    await session.commit()

    access_token = create_access_token(user)
    set_auth_cookie(response, access_token)

    return TokenResponse(access_token=access_token, user=UserRead.from_user(user))
