"""
JWT token utilities for authentication.
"""

import re
from datetime import datetime, timezone
from typing import Any

import jwt

from retailpos.core.config import settings
from retailpos.core.errors import ConfigurationError
from retailpos.core.logging import get_logger

logger = get_logger(__name__)

DEFAULT_ALGORITHM = "HS256"

_DURATION_RE = re.compile(r"(\d+)([smhd])", re.ASCII)
_UNIT_SECONDS = {"s": 1, "m": 60, "h": 3600, "d": 86400}

# Claims added at issuance and stripped again on verification
_TIMING_CLAIMS = ("iat", "exp")


def parse_expiration(value: int | str) -> int:
    """
    Convert an expiration setting into seconds.

    Args:
        value: Seconds as an int, or shorthand such as "15m", "24h", "7d"

    Returns:
        Number of seconds of validity

    Raises:
        ConfigurationError: if the value is not an int or a valid shorthand
    """
    # bool is an int subclass but never a meaningful duration
    if isinstance(value, int) and not isinstance(value, bool):
        if value < 0:
            raise ConfigurationError(f"Invalid duration: {value}")
        return value

    if not isinstance(value, str):
        raise ConfigurationError(f"Invalid duration: {value!r}")

    match = _DURATION_RE.fullmatch(value)
    if not match:
        raise ConfigurationError(f"Invalid duration: {value!r}")

    amount, unit = match.groups()
    return int(amount) * _UNIT_SECONDS[unit]


class TokenService:
    """Signs and verifies bearer tokens with an injected secret."""

    def __init__(self, secret: str, algorithm: str = DEFAULT_ALGORITHM):
        if not secret:
            raise ConfigurationError("Token secret must not be empty")
        self._secret = secret
        self.algorithm = algorithm

    def generate_token(self, payload: dict[str, Any], expires_in: int | str = "1h") -> str:
        """
        Sign a token carrying ``payload``.

        ``iat`` and ``exp`` are reserved: any such keys in ``payload`` are
        replaced by the issue time and expiry, and verify_token strips them.

        Raises:
            ConfigurationError: if ``expires_in`` is not a valid duration
        """
        lifetime = parse_expiration(expires_in)
        # Integer timestamps; no datetime range limit on long lifetimes
        now = int(datetime.now(timezone.utc).timestamp())

        claims = dict(payload)
        claims["iat"] = now
        claims["exp"] = now + lifetime

        return jwt.encode(claims, self._secret, algorithm=self.algorithm)

    def verify_token(self, token: str) -> dict[str, Any] | None:
        """
        Verify and decode a token.

        Returns:
            The claims originally passed to generate_token, or None if the
            token is expired, tampered with or otherwise invalid
        """
        try:
            claims = jwt.decode(token, self._secret, algorithms=[self.algorithm])
        except jwt.ExpiredSignatureError:
            logger.debug("Token has expired")
            return None
        except jwt.InvalidTokenError as e:
            logger.warning(f"Invalid token: {e}")
            return None

        return {k: v for k, v in claims.items() if k not in _TIMING_CLAIMS}


# Singleton instance
_token_service: TokenService | None = None


def get_token_service() -> TokenService:
    """Get the token service built from settings."""
    global _token_service
    if _token_service is None:
        _token_service = TokenService(settings.JWT_SECRET, settings.JWT_ALGORITHM)
    return _token_service
