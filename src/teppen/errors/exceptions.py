"""Custom exception classes for the TEPPEN API."""


class TeppenError(Exception):
    """Base exception for TEPPEN."""

    def __init__(
        self,
        code: str,
        message: str,
        details=None,
        status_code: int = 500,
        next_action: str | None = None,
    ):
        self.code = code
        self.message = message
        self.details = details
        self.status_code = status_code
        self.next_action = next_action
        super().__init__(message)


class ValidationError(TeppenError):
    """Request validation failure."""

    def __init__(self, message: str, details=None):
        super().__init__(
            "VALIDATION_ERROR",
            message,
            details,
            status_code=400,
            next_action="入力内容を確認してください。",
        )


class NotFoundError(TeppenError):
    """Resource not found."""

    def __init__(self, resource: str, resource_id: str):
        super().__init__(
            "NOT_FOUND",
            f"{resource} '{resource_id}' not found",
            status_code=404,
        )


class AuthenticationError(TeppenError):
    """Shared secret or credential mismatch."""

    def __init__(self, message: str = "認証に失敗しました。"):
        super().__init__("AUTHENTICATION_ERROR", message, status_code=401)


class ConflictError(TeppenError):
    """Resource state conflict."""

    def __init__(self, message: str):
        super().__init__(
            "CONFLICT",
            message,
            status_code=409,
            next_action="時間をおいて再実行してください。",
        )


class ConfigurationError(TeppenError):
    """Missing credentials or unapplied migrations. Never retried automatically."""

    def __init__(self, message: str):
        super().__init__(
            "CONFIGURATION_ERROR",
            message,
            status_code=500,
            next_action="環境変数とマイグレーションの状態を確認してください。",
        )
