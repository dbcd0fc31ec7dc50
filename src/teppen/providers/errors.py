"""Provider error taxonomy shared by every adapter."""

from dataclasses import dataclass

from teppen.models.enums import ProviderErrorCode, ProviderType


class ProviderError(Exception):
    """Failure raised by a provider adapter or provider-facing service.

    ``code`` is always one of :class:`ProviderErrorCode`; callers branch on it
    (``auth_required`` -> reconnect, ``rate_limited`` -> try later).
    """

    def __init__(
        self,
        provider: ProviderType,
        code: ProviderErrorCode,
        message: str,
        status: int | None = None,
    ):
        self.provider = provider
        self.code = code
        self.message = message
        self.status = status
        super().__init__(message)

    def __repr__(self) -> str:
        return f"ProviderError({self.provider.value}, {self.code.value}, {self.message!r})"


def to_provider_error(provider: ProviderType, error: BaseException) -> ProviderError:
    """Wrap any exception as a ProviderError, keeping existing ones as-is."""
    if isinstance(error, ProviderError):
        return error
    message = str(error) or "Unknown error"
    return ProviderError(provider, ProviderErrorCode.UNKNOWN, message)


_STATUS_BY_CODE: dict[ProviderErrorCode, int] = {
    ProviderErrorCode.NOT_SUPPORTED: 400,
    ProviderErrorCode.NOT_CONFIGURED: 500,
    ProviderErrorCode.AUTH_REQUIRED: 401,
    ProviderErrorCode.RATE_LIMITED: 429,
    ProviderErrorCode.UPSTREAM_ERROR: 502,
    ProviderErrorCode.VALIDATION_ERROR: 400,
    ProviderErrorCode.UNKNOWN: 500,
}


def provider_error_status(error: ProviderError) -> int:
    return _STATUS_BY_CODE.get(error.code, 500)


@dataclass(frozen=True)
class UiError:
    cause: str
    next_action: str


def to_ui_error(error: ProviderError) -> UiError:
    """Human-facing cause and next step for a provider failure."""
    if error.code == ProviderErrorCode.UNKNOWN:
        return UiError(
            cause="予期しないエラーが発生しました。",
            next_action="時間をおいて再実行してください。",
        )
    if error.code == ProviderErrorCode.AUTH_REQUIRED:
        return UiError(
            cause=error.message,
            next_action="プロバイダの再接続またはAPI承認を行ってください。",
        )
    if error.code == ProviderErrorCode.RATE_LIMITED:
        return UiError(cause=error.message, next_action="時間をおいて再実行してください。")
    if error.code == ProviderErrorCode.VALIDATION_ERROR:
        return UiError(
            cause=error.message,
            next_action="入力内容または紐付け状態を確認してください。",
        )
    if error.code in (ProviderErrorCode.NOT_CONFIGURED, ProviderErrorCode.NOT_SUPPORTED):
        return UiError(cause=error.message, next_action="設定とプロバイダの対応状況を確認してください。")
    return UiError(
        cause=error.message,
        next_action="ログを確認し、必要なら再認可してください。",
    )
