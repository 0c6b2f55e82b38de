from dataclasses import dataclass
from enum import Enum
from typing import Generic, Optional, TypeVar

T = TypeVar("T")


class ErrorCode(str, Enum):
    NOT_FOUND = "not_found"
    ALREADY_EXISTS = "already_exists"
    INVALID_ARGUMENT = "invalid_argument"
    NO_REPLY_TARGET = "no_reply_target"
    NO_AGENT_AVAILABLE = "no_agent_available"
    AGENT_OFFLINE = "agent_offline"
    AGENT_NOT_REACHABLE = "agent_not_reachable"
    DELIVERY_FAILED = "delivery_failed"
    TRANSCRIPTION_FAILED = "transcription_failed"
    UNKNOWN = "unknown"


@dataclass
class Result(Generic[T]):
    ok: bool
    value: Optional[T] = None
    error: Optional[str] = None
    error_code: Optional[str] = None

    @staticmethod
    def success(value: T) -> "Result[T]":
        return Result(ok=True, value=value)

    @staticmethod
    def failure(error: str, code: ErrorCode = ErrorCode.UNKNOWN) -> "Result[T]":
        return Result(ok=False, error=error, error_code=ErrorCode(code).value)

    def unwrap_or(self, default: T) -> T:
        return self.value if self.ok else default
