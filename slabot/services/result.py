from dataclasses import dataclass
from typing import Generic, Optional, TypeVar

from slabot.services.errors import UpstreamError

T = TypeVar("T")

INTERNAL_ERROR = "internal"


@dataclass
class Result(Generic[T]):
    """Outcome of one handled event or voice turn."""

    ok: bool
    value: Optional[T] = None
    error: Optional[str] = None
    error_code: Optional[str] = None

    @staticmethod
    def success(value: T) -> "Result[T]":
        return Result(ok=True, value=value)

    @staticmethod
    def failure(error: str, code: str = INTERNAL_ERROR) -> "Result[T]":
        return Result(ok=False, error=error, error_code=code)

    @staticmethod
    def from_exception(exc: Exception) -> "Result[T]":
        """Upstream failures keep the failing service as the code."""
        code = exc.service if isinstance(exc, UpstreamError) else INTERNAL_ERROR
        return Result.failure(str(exc), code)

    def unwrap_or(self, default: T) -> T:
        return self.value if self.ok else default

    def describe(self) -> str:
        return "ok" if self.ok else f"{self.error_code}: {self.error}"
