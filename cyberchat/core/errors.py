"""Error taxonomy shared by services and routes.

Services raise these; the exception handler in `cyberchat.main` renders
them as `{"message": ...}` with the class status code. Messages are safe to
show to end users.
"""
from typing import Optional


class AppError(Exception):
    """Base class for errors that map to an HTTP response."""

    status_code = 500
    default_message = "Internal server error"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(AppError):
    status_code = 400
    default_message = "Invalid request"


class InvalidInput(ValidationError):
    default_message = "Message is required"


class InvalidVerificationCode(ValidationError):
    default_message = "Invalid or expired verification code"


class AuthenticationError(AppError):
    status_code = 401
    default_message = "Authentication required"


class InvalidCredentials(AuthenticationError):
    # Shared by unknown email and wrong password so neither leaks which.
    default_message = "Invalid email or password"


class EmailNotVerified(AuthenticationError):
    default_message = "Please verify your email first"


class Unauthenticated(AuthenticationError):
    default_message = "Not authenticated"


class ConflictError(AppError):
    status_code = 400
    default_message = "Resource already exists"


class EmailAlreadyRegistered(ConflictError):
    default_message = "Email already registered"


class UpstreamError(AppError):
    status_code = 500
    default_message = "An external service failed"


class GenerationFailed(UpstreamError):
    default_message = "An error occurred while processing your request."


class EmailDeliveryFailed(UpstreamError):
    default_message = "Could not send the verification email. Please try again later."


class RateLimitError(AppError):
    status_code = 429
    default_message = "Too many requests, please try again later."
