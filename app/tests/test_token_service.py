"""
Tests for signed download and password reset tokens
"""

import pytest

from app.services.token_service import (
    TokenService, TokenConfigurationError, b64url_decode, b64url_encode,
    MS_PER_DAY, MS_PER_HOUR, MS_PER_SECOND,
    INVALID_FORMAT, INVALID_TIMESTAMP, TOKEN_EXPIRED, INVALID_SIGNATURE,
)

NOW_MS = 1_760_000_000_000
SECRET = "unit-test-secret"


class FrozenClock:
    def __init__(self, now_ms):
        self.now_ms = now_ms

    def __call__(self):
        return self.now_ms


@pytest.fixture
def clock():
    return FrozenClock(NOW_MS)


@pytest.fixture
def tokens(clock):
    return TokenService(secret=SECRET, clock=clock)


def _token_at(timestamp_ms, purchase_id=5):
    return TokenService(secret=SECRET, clock=lambda: timestamp_ms).issue_download_token(purchase_id)


class TestDownloadTokens:
    """Download token issue and verification"""

    def test_round_trip(self, tokens):
        for purchase_id in (1, 5, 42, 987654321):
            token = tokens.issue_download_token(purchase_id)
            assert tokens.verify_download_token(purchase_id, token).valid

    def test_token_format(self, tokens):
        token = tokens.issue_download_token(5)

        assert "=" not in token
        assert "+" not in token and "/" not in token

        timestamp, _, signature = b64url_decode(token).partition(".")
        assert int(timestamp) == NOW_MS
        assert len(signature) == 64
        assert signature == signature.lower()

    def test_just_inside_expiry_is_valid(self, tokens):
        token = _token_at(NOW_MS - 7 * MS_PER_DAY + 1)
        assert tokens.verify_download_token(5, token).valid

    def test_exact_expiry_is_valid(self, tokens):
        token = _token_at(NOW_MS - 7 * MS_PER_DAY)
        assert tokens.verify_download_token(5, token).valid

    def test_just_past_expiry_is_rejected(self, tokens):
        result = tokens.verify_download_token(5, _token_at(NOW_MS - 7 * MS_PER_DAY - 1))

        assert not result.valid
        assert result.error == TOKEN_EXPIRED

    def test_eight_day_old_token_is_expired(self, tokens):
        result = tokens.verify_download_token(5, _token_at(NOW_MS - 8 * MS_PER_DAY))
        assert result.error == TOKEN_EXPIRED

    def test_every_signature_character_is_load_bearing(self, tokens):
        token = tokens.issue_download_token(5)
        timestamp, _, signature = b64url_decode(token).partition(".")

        for index, char in enumerate(signature):
            flipped = "0" if char != "0" else "1"
            tampered_signature = signature[:index] + flipped + signature[index + 1:]
            tampered = b64url_encode(f"{timestamp}.{tampered_signature}")

            result = tokens.verify_download_token(5, tampered)
            assert not result.valid
            assert result.error == INVALID_SIGNATURE

    def test_token_is_bound_to_its_purchase(self, tokens):
        token = tokens.issue_download_token(5)

        result = tokens.verify_download_token(6, token)
        assert not result.valid
        assert result.error == INVALID_SIGNATURE

    def test_other_secret_cannot_verify(self, tokens, clock):
        token = tokens.issue_download_token(5)
        other = TokenService(secret="another-secret", clock=clock)

        assert other.verify_download_token(5, token).error == INVALID_SIGNATURE

    def test_missing_separator(self, tokens):
        result = tokens.verify_download_token(5, b64url_encode("no-separator-here"))
        assert result.error == INVALID_FORMAT

    def test_empty_signature(self, tokens):
        result = tokens.verify_download_token(5, b64url_encode(f"{NOW_MS}."))
        assert result.error == INVALID_FORMAT

    def test_non_numeric_timestamp(self, tokens):
        result = tokens.verify_download_token(5, b64url_encode("yesterday." + "a" * 64))
        assert result.error == INVALID_TIMESTAMP

    @pytest.mark.parametrize("respell", [
        lambda ts: f"+{ts}",
        lambda ts: f" {ts} ",
        lambda ts: f"0{ts}",
        lambda ts: f"{ts}\n",
        lambda ts: f"{ts[:4]}_{ts[4:]}",
    ])
    def test_only_canonical_timestamp_verifies(self, tokens, respell):
        timestamp, _, signature = b64url_decode(tokens.issue_download_token(5)).partition(".")
        respelled = b64url_encode(f"{respell(timestamp)}.{signature}")

        result = tokens.verify_download_token(5, respelled)

        assert not result.valid
        assert result.error == INVALID_TIMESTAMP

    def test_far_future_timestamp_is_rejected(self, tokens):
        result = tokens.verify_download_token(5, _token_at(NOW_MS + MS_PER_DAY))
        assert result.error == INVALID_TIMESTAMP

    def test_small_clock_skew_is_tolerated(self, tokens):
        token = _token_at(NOW_MS + 30 * MS_PER_SECOND)
        assert tokens.verify_download_token(5, token).valid

    def test_future_check_can_be_disabled(self, clock):
        lenient = TokenService(secret=SECRET, clock=clock, max_future_skew_ms=None)
        assert lenient.verify_download_token(5, _token_at(NOW_MS + MS_PER_DAY)).valid

    def test_garbage_never_raises(self, tokens):
        for garbage in ("", "%%%", "ÿÿÿ", "a", "...."):
            result = tokens.verify_download_token(5, garbage)
            assert not result.valid
            assert result.error

    def test_decoder_tolerates_missing_padding(self):
        assert b64url_decode(b64url_encode("ab")) == "ab"
        assert b64url_decode(b64url_encode("abcd")) == "abcd"

    def test_to_dict(self, tokens):
        assert tokens.verify_download_token(5, tokens.issue_download_token(5)).to_dict() == {"valid": True}
        assert tokens.verify_download_token(6, tokens.issue_download_token(5)).to_dict() == {
            "valid": False, "error": INVALID_SIGNATURE
        }


class TestPasswordResetTokens:
    """Password reset token issue and verification"""

    def test_round_trip_recovers_user(self, tokens):
        token, expires_at = tokens.issue_password_reset_token("user-abc")
        result = tokens.verify_password_reset_token(token)

        assert result.valid
        assert result.user_id == "user-abc"
        assert expires_at is not None

    def test_expires_after_one_hour(self, tokens, clock):
        token, _ = tokens.issue_password_reset_token("user-abc")
        clock.now_ms = NOW_MS + MS_PER_HOUR + 1

        assert tokens.verify_password_reset_token(token).error == TOKEN_EXPIRED

    def test_user_id_cannot_be_swapped(self, tokens):
        token, _ = tokens.issue_password_reset_token("user-abc")
        _, timestamp, signature = b64url_decode(token).split(":")

        forged = b64url_encode(f"user-xyz:{timestamp}:{signature}")
        assert tokens.verify_password_reset_token(forged).error == INVALID_SIGNATURE

    def test_signed_timestamp_with_plus_sign_is_rejected(self, tokens):
        token, _ = tokens.issue_password_reset_token("user-abc")
        user_id, timestamp, signature = b64url_decode(token).split(":")

        respelled = b64url_encode(f"{user_id}:+{timestamp}:{signature}")
        assert tokens.verify_password_reset_token(respelled).error == INVALID_TIMESTAMP

    def test_download_token_is_not_a_reset_token(self, tokens):
        assert not tokens.verify_password_reset_token(tokens.issue_download_token(5)).valid


def test_empty_secret_is_a_configuration_error():
    with pytest.raises(TokenConfigurationError):
        TokenService(secret="")
