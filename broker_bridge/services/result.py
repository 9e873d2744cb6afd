from dataclasses import dataclass
from typing import Any, Generic, Optional, TypeVar

T = TypeVar("T")


class ErrorCode:
    VALIDATION = "validation_error"
    AUTH = "auth_error"
    SERVER = "server_error"
    REQUEST = "request_error"
    TRANSPORT = "transport_error"
    INVALID_RESPONSE = "invalid_response"
    STORAGE = "storage_error"
    TRANSCRIPTION = "transcription_error"
    DOWNLOAD = "download_error"
    AUTH_REFRESH_FAILED = "auth_refresh_failed"
    UNEXPECTED = "unexpected_error"


@dataclass
class Result(Generic[T]):
    ok: bool
    value: Optional[T] = None
    error: Optional[str] = None
    error_code: Optional[str] = None
    detail: Any = None

    @staticmethod
    def success(value: T) -> "Result[T]":
        return Result(ok=True, value=value)

    @staticmethod
    def failure(error: str, code: str = "unknown", detail: Any = None) -> "Result[T]":
        return Result(ok=False, error=error, error_code=code, detail=detail)

    def unwrap_or(self, default: T) -> T:
        return self.value if self.ok else default

    def is_error(self, code: str) -> bool:
        return not self.ok and self.error_code == code
