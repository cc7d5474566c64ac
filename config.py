from dataclasses import dataclass, replace
from pathlib import Path
from typing import Optional
import os

from dotenv import load_dotenv

from errors import ConfigurationError

# Single-pass ceiling and batch budget for models with room to spare
DEFAULT_INPUT_CEILING = 180_000


@dataclass(frozen=True)
class ModelConfig:
    """Configuration for a specific LLM model."""
    name: str
    provider: str
    context_tokens: int
    max_output_tokens: int


@dataclass(frozen=True)
class ExtractionConfig:
    """Configuration for the extraction pipeline."""

    # Model settings
    model: ModelConfig

    # Mode selection (None: derived from the model's context window)
    single_pass_ceiling: Optional[int] = None
    safety_margin_tokens: int = 2_000

    # Batching
    max_batch_tokens: Optional[int] = None
    preamble_chars: int = 2_000

    # Output allowance (clamped between these two)
    min_output_tokens: int = 8_000
    default_max_output_tokens: int = 16_000

    # Estimation constants
    estimator: str = "heuristic"
    chars_per_token: float = 4.0
    bytes_per_token: float = 2.5

    # Provider calls
    request_timeout: float = 300.0
    provider_max_retries: int = 0
    inter_batch_delay: float = 1.0
    run_deadline_seconds: Optional[float] = None

    # Text acquisition for batch mode
    text_acquirer: str = "docling"

    # Review
    review_threshold: float = 60.0

    # Debug
    debug_enabled: bool = False
    debug_dir: str = "debug_text"

    # Derived properties
    @property
    def total_context_window(self) -> int:
        return self.model.context_tokens

    @property
    def output_ceiling(self) -> int:
        """Largest allowance ever requested; never above the provider's hard limit."""
        return min(self.default_max_output_tokens, self.model.max_output_tokens)

    @property
    def input_ceiling(self) -> int:
        """Largest estimate (document + prompt + margin) sent in one pass."""
        if self.single_pass_ceiling is not None:
            return self.single_pass_ceiling
        # Leave room for the margin and the smallest output allowance
        fitted = self.total_context_window - self.safety_margin_tokens - self.min_output_tokens
        return min(DEFAULT_INPUT_CEILING, fitted)

    @property
    def batch_budget(self) -> int:
        """Token budget of one batch; defaults to the single-pass ceiling."""
        if self.max_batch_tokens is not None:
            return self.max_batch_tokens
        return self.input_ceiling

    def validate(self) -> 'ExtractionConfig':
        """Reject budgets that cannot work together."""
        if self.min_output_tokens > self.output_ceiling:
            raise ConfigurationError(
                f"min_output_tokens ({self.min_output_tokens:,}) exceeds the output ceiling "
                f"({self.output_ceiling:,}) for {self.model.name}"
            )
        if self.input_ceiling <= 0:
            raise ConfigurationError("single_pass_ceiling must be positive")
        if self.input_ceiling > self.total_context_window:
            raise ConfigurationError(
                f"single_pass_ceiling ({self.input_ceiling:,}) exceeds the context window "
                f"of {self.model.name} ({self.total_context_window:,})"
            )
        if self.batch_budget <= 0:
            raise ConfigurationError("max_batch_tokens must be positive")
        batch_call = self.batch_budget + self.safety_margin_tokens + self.min_output_tokens
        if batch_call > self.total_context_window:
            raise ConfigurationError(
                f"max_batch_tokens ({self.batch_budget:,}) plus safety margin and min_output_tokens "
                f"({batch_call:,}) exceeds the context window of {self.model.name} "
                f"({self.total_context_window:,})"
            )
        if self.chars_per_token <= 0 or self.bytes_per_token <= 0:
            raise ConfigurationError("chars_per_token and bytes_per_token must be positive")
        if not 0 <= self.review_threshold <= 100:
            raise ConfigurationError("review_threshold must be between 0 and 100")
        return self


# Predefined model configurations
CLAUDE_SONNET_4 = ModelConfig(
    name="claude-sonnet-4-20250514",
    provider="anthropic",
    context_tokens=200_000,
    max_output_tokens=64_000,
)

CLAUDE_SONNET_45 = ModelConfig(
    name="claude-sonnet-4-5-20250929",
    provider="anthropic",
    context_tokens=200_000,
    max_output_tokens=64_000,
)

GPT41 = ModelConfig(
    name="gpt-4.1",
    provider="openai",
    context_tokens=1_047_576,
    max_output_tokens=32_768,
)

GPT4O = ModelConfig(
    name="gpt-4o-2024-08-06",
    provider="openai",
    context_tokens=128_000,
    max_output_tokens=16_384,
)


def get_model_by_name(model_name: str) -> ModelConfig:
    """Get model config by name."""
    model_map = {
        "claude-sonnet-4-20250514": CLAUDE_SONNET_4,
        "claude-sonnet-4": CLAUDE_SONNET_4,
        "claude-sonnet-4-5-20250929": CLAUDE_SONNET_45,
        "claude-sonnet-4-5": CLAUDE_SONNET_45,
        "gpt-4.1": GPT41,
        "gpt-4o-2024-08-06": GPT4O,
        "gpt-4o": GPT4O,
    }
    if model_name not in model_map:
        raise ConfigurationError(f"Unknown model: {model_name}")
    return model_map[model_name]


def _env_flag(name: str, default: str = "") -> bool:
    return os.getenv(name, default).lower() in ("1", "true", "yes")


def get_default_config() -> ExtractionConfig:
    """Get default configuration based on environment."""
    load_dotenv(Path(__file__).parent / ".env")

    model = get_model_by_name(os.getenv("EXTRACTOR_MODEL", CLAUDE_SONNET_4.name))

    # Same model family served through another provider (e.g. a proxy)
    provider = os.getenv("EXTRACTOR_PROVIDER")
    if provider:
        model = replace(model, provider=provider.lower())

    deadline = os.getenv("EXTRACTOR_DEADLINE_SECONDS")
    ceiling = os.getenv("EXTRACTOR_SINGLE_PASS_CEILING")
    batch_tokens = os.getenv("EXTRACTOR_MAX_BATCH_TOKENS")

    return ExtractionConfig(
        model=model,
        debug_enabled=_env_flag("EXTRACTOR_DEBUG"),
        run_deadline_seconds=float(deadline) if deadline else None,
        single_pass_ceiling=int(ceiling) if ceiling else None,
        max_batch_tokens=int(batch_tokens) if batch_tokens else None,
        text_acquirer=os.getenv("EXTRACTOR_TEXT_ACQUIRER", "docling").lower(),
        estimator=os.getenv("EXTRACTOR_ESTIMATOR", "heuristic").lower(),
    ).validate()


# Global default (can be overridden)
DEFAULT_CONFIG = get_default_config()
