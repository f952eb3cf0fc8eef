from dataclasses import dataclass
from typing import Generic, Optional, TypeVar

T = TypeVar("T")

TTS_ERROR = "tts_error"
GATEWAY_ERROR = "gateway_error"


@dataclass(frozen=True)
class Result(Generic[T]):
    """Outcome of a call to an external collaborator.

    Adapters return failures as values so callers can decide on a fallback
    without wrapping every call in try/except.
    """

    ok: bool
    value: Optional[T] = None
    error: Optional[str] = None
    error_code: Optional[str] = None

    @classmethod
    def success(cls, value: T) -> "Result[T]":
        return cls(ok=True, value=value)

    @classmethod
    def failure(cls, error: str, code: str = "unknown") -> "Result[T]":
        return cls(ok=False, error=error, error_code=code)

    def describe(self) -> str:
        if self.ok:
            return "ok"
        return f"{self.error_code}: {self.error}"
