from dataclasses import dataclass, field
from enum import Enum
from typing import Generic, List, Optional, TypeVar

T = TypeVar('T')


class ExtractionStatus(str, Enum):
    SUCCESS = "success"
    PARSE_ERROR = "parse_error"
    PROVIDER_ERROR = "provider_error"


@dataclass
class TokenUsage:
    input_tokens: int = 0
    output_tokens: int = 0

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens

    def __add__(self, other: 'TokenUsage') -> 'TokenUsage':
        return TokenUsage(
            input_tokens=self.input_tokens + other.input_tokens,
            output_tokens=self.output_tokens + other.output_tokens,
        )


@dataclass
class ExtractionResult(Generic[T]):
    """Outcome of one extraction client call. Logged, never persisted on its own."""

    raw_text: str = ""
    parsed_payload: Optional[T] = None
    usage: TokenUsage = field(default_factory=TokenUsage)
    status: ExtractionStatus = ExtractionStatus.SUCCESS
    error_detail: Optional[str] = None
    stop_reason: Optional[str] = None
    warnings: List[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return self.status is ExtractionStatus.SUCCESS

    @classmethod
    def ok(
        cls,
        payload: T,
        raw_text: str,
        usage: TokenUsage,
        stop_reason: Optional[str] = None,
    ) -> 'ExtractionResult[T]':
        """Create a successful result."""
        return cls(raw_text=raw_text, parsed_payload=payload, usage=usage, stop_reason=stop_reason)

    @classmethod
    def parse_failure(
        cls,
        error: str,
        raw_text: str,
        usage: TokenUsage,
        stop_reason: Optional[str] = None,
    ) -> 'ExtractionResult[T]':
        """The provider answered but the answer is not usable structured data."""
        return cls(
            raw_text=raw_text,
            usage=usage,
            status=ExtractionStatus.PARSE_ERROR,
            error_detail=error,
            stop_reason=stop_reason,
        )

    @classmethod
    def provider_failure(cls, error: str) -> 'ExtractionResult[T]':
        """The provider call itself failed."""
        return cls(status=ExtractionStatus.PROVIDER_ERROR, error_detail=error)

    def unwrap(self) -> T:
        """Get payload or raise if failed."""
        if not self.success or self.parsed_payload is None:
            raise ValueError(self.error_detail or "Result has no payload")
        return self.parsed_payload

    def unwrap_or(self, default: T) -> T:
        """Get payload or return default if failed."""
        if not self.success or self.parsed_payload is None:
            return default
        return self.parsed_payload

    def add_warning(self, warning: str) -> 'ExtractionResult[T]':
        self.warnings.append(warning)
        return self
