"""Exception types raised by the extraction pipeline."""

from typing import Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from pipeline import PipelineMetrics


class ExtractionError(Exception):
    """Raised when a run cannot produce a consolidated result."""

    code = "extraction_failed"

    def __init__(self, message: str, metrics: Optional['PipelineMetrics'] = None):
        super().__init__(message)
        self.metrics = metrics


class ConfigurationError(ExtractionError):
    """Inconsistent budgets, unknown provider names or missing API keys."""

    code = "configuration_error"


class SegmentationFailed(ExtractionError):
    """Batch mode found none of the expected section headings."""

    code = "segmentation_failed"


class DeadlineExceeded(ExtractionError):
    """The host wall-clock budget ran out mid-run."""

    code = "deadline_exceeded"


# Batch-local failures. The extraction client converts these into
# ExtractionResult statuses; they never escape a run.

class ProviderCallError(Exception):
    """Transport error, timeout or non-2xx response from the LLM provider."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class ParseError(Exception):
    """Provider output that is not valid structured data for the payload schema."""
