import hmac
import secrets


def generate_token() -> str:
    """Generate a cryptographically secure random token."""
    return secrets.token_urlsafe(32)


def verify_cron_authorization(authorization: str | None, cron_secret: str) -> bool:
    """Check an ``Authorization: Bearer <CRON_SECRET>`` header in constant time.

    An unset secret never authorizes, so the cron endpoint is closed by default.
    """
    if not cron_secret or not authorization:
        return False
    expected = f"Bearer {cron_secret}"
    return hmac.compare_digest(expected.encode(), authorization.encode())
