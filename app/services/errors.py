from enum import Enum


class AuthErrorKind(str, Enum):
    MISSING = "AUTH_MISSING"
    INVALID = "AUTH_INVALID"
    EXPIRED = "AUTH_EXPIRED"
    REVOKED_OR_UNKNOWN = "AUTH_REVOKED_OR_UNKNOWN"
    ACCOUNT_INACTIVE = "AUTH_ACCOUNT_INACTIVE"
    STORAGE_ERROR = "STORAGE_ERROR"


AUTH_MESSAGES = {
    AuthErrorKind.MISSING: "Access token required",
    AuthErrorKind.INVALID: "Invalid token",
    AuthErrorKind.EXPIRED: "Token has expired",
    AuthErrorKind.REVOKED_OR_UNKNOWN: "Invalid or expired token",
    AuthErrorKind.ACCOUNT_INACTIVE: "User account is inactive",
    AuthErrorKind.STORAGE_ERROR: "Authentication failed",
}

# Anything not listed is a 401. A storage failure still rejects the request.
AUTH_STATUS_CODES = {
    AuthErrorKind.STORAGE_ERROR: 500,
}


class AuthFailure(Exception):
    """Request could not be authenticated."""

    def __init__(self, kind: AuthErrorKind, message: str | None = None) -> None:
        self.kind = kind
        self.message = message or AUTH_MESSAGES[kind]
        self.status_code = AUTH_STATUS_CODES.get(kind, 401)
        super().__init__(self.message)


class StorageError(RuntimeError):
    pass
