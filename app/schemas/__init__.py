"""
Pydantic schemas for request/response validation
"""

from .user import (
    UserLogin, UserResponse, TokenResponse,
    PasswordResetRequest, PasswordReset
)
from .purchase import DownloadLinkResponse, PurchaseResponse, PurchaseList

__all__ = [
    # User schemas
    "UserLogin", "UserResponse", "TokenResponse",
    "PasswordResetRequest", "PasswordReset",

    # Purchase schemas
    "DownloadLinkResponse", "PurchaseResponse", "PurchaseList",
]
