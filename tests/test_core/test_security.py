"""Tests for security helpers."""

from focusroom.core.security import generate_token, verify_cron_authorization


class TestGenerateToken:
    """Tests for generate_token."""

    def test_tokens_are_unique(self):
        """Should return a fresh url-safe token each call."""
        tokens = {generate_token() for _ in range(20)}

        assert len(tokens) == 20
        assert all(len(token) >= 32 for token in tokens)


class TestVerifyCronAuthorization:
    """Tests for verify_cron_authorization."""

    def test_matching_bearer(self):
        """Should accept the exact bearer header."""
        assert verify_cron_authorization("Bearer s3cret", "s3cret")

    def test_mismatch(self):
        """Should reject wrong secrets and schemes."""
        assert not verify_cron_authorization("Bearer wrong", "s3cret")
        assert not verify_cron_authorization("s3cret", "s3cret")
        assert not verify_cron_authorization(None, "s3cret")

    def test_unset_secret_never_authorizes(self):
        """An empty CRON_SECRET closes the endpoint."""
        assert not verify_cron_authorization("Bearer ", "")
        assert not verify_cron_authorization(None, "")
