"""
Application errors.

Services raise these; the handler registered in main.py renders them as
``{"message": ...}`` with the error's status code.
"""

from fastapi import status


class AppError(Exception):
    """Base class for errors that map onto an HTTP response."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message: str = "Internal server error"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class DuplicateResourceError(AppError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "A user with this email, phone or username already exists"


class NotFoundError(AppError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Resource not found"


class InvalidTokenError(AppError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Invalid or expired token"


class InvalidCredentialsError(AppError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Invalid password"


class ConfigurationError(AppError):
    """Raised for settings that cannot be used, e.g. a malformed duration."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = "Invalid configuration"


class MailDeliveryError(AppError):
    status_code = status.HTTP_502_BAD_GATEWAY
    default_message = "Failed to send email"


class NotImplementedFeatureError(AppError):
    status_code = status.HTTP_501_NOT_IMPLEMENTED

    def __init__(self, operation: str):
        self.operation = operation
        super().__init__(f"{operation} is not implemented yet")
