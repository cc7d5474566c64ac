"""Pre-call size estimation.

Every number here is an approximation made before the provider is called, so
estimates round up: the mode decision they feed cannot be undone later.
"""

import logging
import math
from dataclasses import dataclass
from typing import Protocol

from config import ExtractionConfig
from documents import Document
from errors import ConfigurationError

logger = logging.getLogger(__name__)


class TokenEstimator(Protocol):
    """Anything that can approximate token counts for text and raw payloads."""

    def estimate_text(self, text: str) -> int:
        ...

    def estimate_bytes(self, size: int) -> int:
        ...


class HeuristicTokenEstimator:
    """Character/byte ratio heuristic (1 token ≈ 4 characters, ≈ 2.5 PDF bytes)."""

    def __init__(self, chars_per_token: float = 4.0, bytes_per_token: float = 2.5):
        self.chars_per_token = chars_per_token
        self.bytes_per_token = bytes_per_token

    def estimate_text(self, text: str) -> int:
        return math.ceil(len(text) / self.chars_per_token)

    def estimate_bytes(self, size: int) -> int:
        return math.ceil(size / self.bytes_per_token)


class TiktokenEstimator:
    """Real BPE token counts for text; binary payloads fall back to the byte ratio."""

    def __init__(self, encoding_name: str = "o200k_base", bytes_per_token: float = 2.5):
        import tiktoken

        try:
            self._encoding = tiktoken.get_encoding(encoding_name)
        except ValueError:
            self._encoding = tiktoken.get_encoding("cl100k_base")
        self.bytes_per_token = bytes_per_token

    def estimate_text(self, text: str) -> int:
        return len(self._encoding.encode(text, disallowed_special=()))

    def estimate_bytes(self, size: int) -> int:
        return math.ceil(size / self.bytes_per_token)


@dataclass(frozen=True)
class SizeEstimate:
    estimated_input_tokens: int
    estimated_prompt_tokens: int

    @property
    def total(self) -> int:
        return self.estimated_input_tokens + self.estimated_prompt_tokens


def build_estimator(config: ExtractionConfig) -> TokenEstimator:
    """Pick the estimator named in the config."""
    if config.estimator == "heuristic":
        return HeuristicTokenEstimator(config.chars_per_token, config.bytes_per_token)
    if config.estimator == "tiktoken":
        return TiktokenEstimator(bytes_per_token=config.bytes_per_token)
    raise ConfigurationError(f"Unknown estimator: {config.estimator}")


def estimate_document(
    document: Document,
    instruction_template: str,
    estimator: TokenEstimator,
) -> SizeEstimate:
    """Approximate the size of a document plus its instructions. Never calls out."""
    if document.is_text:
        input_tokens = estimator.estimate_text(document.text())
    else:
        input_tokens = estimator.estimate_bytes(document.size)

    estimate = SizeEstimate(
        estimated_input_tokens=input_tokens,
        estimated_prompt_tokens=estimator.estimate_text(instruction_template),
    )
    logger.info(
        "Token estimation: document ~%s, prompt ~%s, total ~%s",
        f"{estimate.estimated_input_tokens:,}",
        f"{estimate.estimated_prompt_tokens:,}",
        f"{estimate.total:,}",
    )
    return estimate
