"""
Authentication Routes
Login and password reset for marketplace buyers
"""

import logging
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from database import get_db
from config import settings
from app.models.user import User
from app.schemas.user import (
    UserLogin, UserResponse, TokenResponse, PasswordResetRequest, PasswordReset
)
from app.services.auth_service import AuthService
from app.services.email_service import email_service
from app.services.token_service import token_service
from app.utils.security import get_current_active_user

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post("/login", response_model=TokenResponse)
async def login(
    credentials: UserLogin,
    db: Session = Depends(get_db)
):
    """Authenticate user and return an access token"""

    user = AuthService.authenticate(db, credentials.email, credentials.password)
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password"
        )

    access_token = AuthService.create_access_token({"sub": str(user.id)})
    logger.info(f"User logged in: {user.id}")

    return TokenResponse(
        access_token=access_token,
        expires_in=settings.JWT_ACCESS_TOKEN_EXPIRE_HOURS * 3600,
        user=UserResponse.model_validate(user)
    )


@router.get("/me", response_model=UserResponse)
async def get_me(current_user: User = Depends(get_current_active_user)):
    """Current user profile"""
    return current_user


@router.post("/forgot-password")
async def forgot_password(
    request_data: PasswordResetRequest,
    db: Session = Depends(get_db)
):
    """Request password reset"""

    user = db.query(User).filter(User.email == request_data.email).first()

    if user and user.is_active:
        reset_token, expires_at = token_service.issue_password_reset_token(user.id)

        try:
            email_service.send_password_reset(user.email, reset_token)
        except Exception as e:
            logger.error(f"Failed to send password reset email to user {user.id}: {e}")

        logger.info(f"Password reset requested for user {user.id}, expires {expires_at.isoformat()}")

    # Always return success to prevent email enumeration
    return {"message": "If the email exists, a password reset link has been sent"}


@router.post("/reset-password")
async def reset_password(
    reset_data: PasswordReset,
    db: Session = Depends(get_db)
):
    """Reset password with token"""

    verification = token_service.verify_password_reset_token(reset_data.token)
    if not verification.valid:
        logger.warning(f"Rejected password reset token: {verification.error}")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid or expired reset token"
        )

    user = db.query(User).filter(User.id == verification.user_id).first()
    if not user:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User not found"
        )

    AuthService.set_password(db, user, reset_data.new_password)
    logger.info(f"Password reset for user {user.id}")

    return {"message": "Password reset successfully"}
