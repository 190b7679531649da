"""
Signed capability tokens for template downloads and password resets

Tokens are stateless: a holder of the signing secret recomputes the HMAC over
the subject id and the embedded timestamp. Nothing is stored server side, so a
token cannot be revoked before it expires.
"""

import base64
import hashlib
import hmac
import logging
import re
import time
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Optional, Tuple

from config import settings

logger = logging.getLogger(__name__)

MS_PER_SECOND = 1000
MS_PER_HOUR = 60 * 60 * MS_PER_SECOND
MS_PER_DAY = 24 * MS_PER_HOUR

# Canonical decimal only, so one signed timestamp has one encoding
TIMESTAMP_PATTERN = re.compile(r"-?(0|[1-9][0-9]*)")

INVALID_FORMAT = "Invalid token format"
INVALID_TIMESTAMP = "Invalid timestamp"
TOKEN_EXPIRED = "Token expired"
INVALID_SIGNATURE = "Invalid signature"
VERIFICATION_FAILED = "Token verification failed"


class TokenConfigurationError(RuntimeError):
    """Raised when the signing secret is missing"""
    pass


@dataclass
class TokenVerification:
    """Outcome of a token check"""
    valid: bool
    error: Optional[str] = None
    user_id: Optional[str] = None

    def to_dict(self) -> dict:
        result = {"valid": self.valid}
        if self.error:
            result["error"] = self.error
        if self.user_id:
            result["userId"] = self.user_id
        return result


def _now_ms() -> int:
    return int(time.time() * MS_PER_SECOND)


def b64url_encode(raw: str) -> str:
    return base64.urlsafe_b64encode(raw.encode("utf-8")).rstrip(b"=").decode("ascii")


def b64url_decode(token: str) -> str:
    padded = token + "=" * (-len(token) % 4)
    # Invalid UTF-8 sequences become U+FFFD and fail the signature check
    return base64.urlsafe_b64decode(padded.encode("ascii")).decode("utf-8", errors="replace")


class TokenService:
    """HMAC-SHA256 token issuer and verifier"""

    def __init__(
        self,
        secret: str,
        download_expiry_ms: int = 7 * MS_PER_DAY,
        reset_expiry_ms: int = MS_PER_HOUR,
        max_future_skew_ms: Optional[int] = 5 * 60 * MS_PER_SECOND,
        clock: Callable[[], int] = _now_ms
    ):
        if not secret:
            raise TokenConfigurationError("Token signing secret is not configured")

        self._secret = secret.encode("utf-8")
        self.download_expiry_ms = download_expiry_ms
        self.reset_expiry_ms = reset_expiry_ms
        self.max_future_skew_ms = max_future_skew_ms
        self._clock = clock

    def _sign(self, message: str) -> str:
        return hmac.new(self._secret, message.encode("utf-8"), hashlib.sha256).hexdigest()

    def _check_timestamp(self, timestamp_part: str, expiry_ms: int) -> Tuple[Optional[int], Optional[str]]:
        """Parse the embedded timestamp and apply the expiry window"""
        if not TIMESTAMP_PATTERN.fullmatch(timestamp_part):
            return None, INVALID_TIMESTAMP
        timestamp = int(timestamp_part)

        elapsed = self._clock() - timestamp
        if elapsed > expiry_ms:
            return None, TOKEN_EXPIRED

        if self.max_future_skew_ms is not None and -elapsed > self.max_future_skew_ms:
            return None, INVALID_TIMESTAMP

        return timestamp, None

    # Download tokens

    def issue_download_token(self, purchase_id: int) -> str:
        """Mint a download token for a purchase"""
        timestamp = self._clock()
        signature = self._sign(f"{purchase_id}-{timestamp}")
        return b64url_encode(f"{timestamp}.{signature}")

    def verify_download_token(self, purchase_id: int, token: str) -> TokenVerification:
        """Check a download token against a purchase id. Never raises."""
        try:
            timestamp_part, _, signature = b64url_decode(token).partition(".")
            if not timestamp_part or not signature:
                return TokenVerification(valid=False, error=INVALID_FORMAT)

            timestamp, error = self._check_timestamp(timestamp_part, self.download_expiry_ms)
            if error:
                return TokenVerification(valid=False, error=error)

            expected = self._sign(f"{purchase_id}-{timestamp}")
            if not hmac.compare_digest(signature.encode("utf-8"), expected.encode("utf-8")):
                return TokenVerification(valid=False, error=INVALID_SIGNATURE)

            return TokenVerification(valid=True)

        except Exception as e:
            logger.error(f"Token verification error: {e}")
            return TokenVerification(valid=False, error=VERIFICATION_FAILED)

    # Password reset tokens

    def issue_password_reset_token(self, user_id: str) -> Tuple[str, datetime]:
        """Mint a password reset token; returns the token and its expiry time"""
        timestamp = self._clock()
        signature = self._sign(f"reset-{user_id}-{timestamp}")
        token = b64url_encode(f"{user_id}:{timestamp}:{signature}")
        expires_at = datetime.utcfromtimestamp(timestamp / MS_PER_SECOND) + timedelta(
            milliseconds=self.reset_expiry_ms
        )
        return token, expires_at

    def verify_password_reset_token(self, token: str) -> TokenVerification:
        """Check a password reset token and recover the user id. Never raises."""
        try:
            # User ids never contain ":", the signature is hex
            user_id, timestamp_part, signature = (b64url_decode(token).split(":") + ["", ""])[:3]
            if not user_id or not timestamp_part or not signature:
                return TokenVerification(valid=False, error=INVALID_FORMAT)

            timestamp, error = self._check_timestamp(timestamp_part, self.reset_expiry_ms)
            if error:
                return TokenVerification(valid=False, error=error)

            expected = self._sign(f"reset-{user_id}-{timestamp}")
            if not hmac.compare_digest(signature.encode("utf-8"), expected.encode("utf-8")):
                return TokenVerification(valid=False, error=INVALID_SIGNATURE)

            return TokenVerification(valid=True, user_id=user_id)

        except Exception as e:
            logger.error(f"Password reset token verification error: {e}")
            return TokenVerification(valid=False, error=VERIFICATION_FAILED)


def _build_token_service() -> TokenService:
    skew_seconds = settings.DOWNLOAD_TOKEN_MAX_FUTURE_SKEW_SECONDS
    return TokenService(
        secret=settings.TOKEN_SIGNING_SECRET,
        download_expiry_ms=settings.DOWNLOAD_TOKEN_EXPIRY_DAYS * MS_PER_DAY,
        reset_expiry_ms=settings.PASSWORD_RESET_TOKEN_EXPIRY_HOURS * MS_PER_HOUR,
        max_future_skew_ms=skew_seconds * MS_PER_SECOND if skew_seconds >= 0 else None,
    )


# Global token service instance
token_service = _build_token_service()


def build_download_url(purchase_id: int, token: str) -> str:
    """Absolute download link for emails and the regenerate-link endpoint"""
    return f"{settings.PUBLIC_BASE_URL}/api/download/{purchase_id}?token={token}"
