"""Application exception classes and handlers."""

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse


class AppException(Exception):
    """Base application exception."""

    def __init__(self, message: str, code: str, status_code: int = 400) -> None:
        self.message = message
        self.code = code
        self.status_code = status_code
        super().__init__(message)


# --- Invalid argument (400) ---


class InvalidArgumentError(AppException):
    """A required field is missing or malformed."""

    def __init__(self, message: str = "Invalid argument") -> None:
        super().__init__(message=message, code="INVALID_ARGUMENT", status_code=400)


# --- Authentication (401) ---


class AuthenticationError(AppException):
    """Base authentication error."""

    def __init__(self, message: str = "Authentication failed") -> None:
        super().__init__(message=message, code="AUTHENTICATION_ERROR", status_code=401)


class TokenExpiredError(AppException):
    """Token has expired."""

    def __init__(self) -> None:
        super().__init__(
            message="Token has expired",
            code="TOKEN_EXPIRED",
            status_code=401,
        )


class TokenBlacklistedError(AppException):
    """Token has been revoked."""

    def __init__(self) -> None:
        super().__init__(
            message="Token has been revoked",
            code="TOKEN_BLACKLISTED",
            status_code=401,
        )


class InvalidTokenError(AppException):
    """Token is invalid."""

    def __init__(self) -> None:
        super().__init__(
            message="Invalid token",
            code="INVALID_TOKEN",
            status_code=401,
        )


class InvalidCredentialsError(AppException):
    """Invalid email or password."""

    def __init__(self) -> None:
        super().__init__(
            message="Invalid email or password",
            code="INVALID_CREDENTIALS",
            status_code=401,
        )


# --- Authorization (403) ---


class AuthorizationError(AppException):
    """Insufficient permissions."""

    def __init__(self, message: str = "Insufficient permissions") -> None:
        super().__init__(message=message, code="AUTHORIZATION_ERROR", status_code=403)


class ChatNotActiveError(AppException):
    """Message refused because the chat is not writable (blocked, expired...)."""

    def __init__(self, reason: str) -> None:
        super().__init__(message=reason, code="CHAT_NOT_ACTIVE", status_code=403)


class QuotaExceededError(AppException):
    """Message refused because the client used up the free allowance."""

    def __init__(self, reason: str) -> None:
        super().__init__(message=reason, code="QUOTA_EXCEEDED", status_code=403)


# --- Not Found (404) ---


class UserNotFoundError(AppException):
    """User not found."""

    def __init__(self) -> None:
        super().__init__(
            message="User not found",
            code="USER_NOT_FOUND",
            status_code=404,
        )


class ModelNotFoundError(AppException):
    """Target of a new chat is not a registered model."""

    def __init__(self) -> None:
        super().__init__(
            message="Modelo não encontrada",
            code="MODEL_NOT_FOUND",
            status_code=404,
        )


class ChatNotFoundError(AppException):
    """Chat session missing, or not visible to the requester."""

    def __init__(self) -> None:
        super().__init__(
            message="Chat não encontrado",
            code="CHAT_NOT_FOUND",
            status_code=404,
        )


class NotificationNotFoundError(AppException):
    """Notification missing or owned by someone else."""

    def __init__(self) -> None:
        super().__init__(
            message="Notificação não encontrada",
            code="NOTIFICATION_NOT_FOUND",
            status_code=404,
        )


# --- Conflict (409) ---


class UserAlreadyExistsError(AppException):
    """User with this email already exists."""

    def __init__(self) -> None:
        super().__init__(
            message="User with this email already exists",
            code="USER_ALREADY_EXISTS",
            status_code=409,
        )


class ConcurrentUpdateError(AppException):
    """Another request modified the chat session first."""

    def __init__(self) -> None:
        super().__init__(
            message="Chat was modified by another request, please retry",
            code="CONCURRENT_UPDATE",
            status_code=409,
        )


class ChatStateConflictError(AppException):
    """Requested transition is not valid from the chat's current status."""

    def __init__(self, message: str) -> None:
        super().__init__(message=message, code="CHAT_STATE_CONFLICT", status_code=409)


# --- Rate Limit (429) ---


class AccountLockedError(AppException):
    """Too many failed login attempts."""

    def __init__(self) -> None:
        super().__init__(
            message="Too many failed login attempts. Please try again later.",
            code="ACCOUNT_LOCKED",
            status_code=429,
        )


# --- Exception Handlers ---


async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    """Central exception handler for AppException."""
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "status": exc.status_code,
            "message": exc.message,
            "code": exc.code,
        },
    )


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Render request validation failures in the common error shape."""
    errors = exc.errors()
    first = errors[0] if errors else {}
    field = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    detail = first.get("msg", "Invalid request")
    message = f"{field}: {detail}" if field else detail
    return JSONResponse(
        status_code=422,
        content={
            "status": 422,
            "message": message,
            "code": "VALIDATION_ERROR",
        },
    )
