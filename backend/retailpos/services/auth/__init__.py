"""Authentication service."""

from .service import AuthService, get_auth_service
from .tokens import TokenService, get_token_service, parse_expiration

__all__ = [
    "AuthService",
    "get_auth_service",
    "TokenService",
    "get_token_service",
    "parse_expiration",
]
