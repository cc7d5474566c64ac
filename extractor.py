import json
import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Type

from pydantic import BaseModel, ValidationError

from config import ExtractionConfig
from constants import RESPONSE_PREVIEW_CHARS
from documents import Document
from errors import ParseError, ProviderCallError
from providers import ProviderResponse, TextCompletionProvider
from result import ExtractionResult, TokenUsage

logger = logging.getLogger(__name__)

# Stop reasons meaning the output allowance ran out mid-answer
TRUNCATION_STOP_REASONS = frozenset({"max_tokens", "length"})

_FENCED_JSON = re.compile(r"```(?:json)?\s*(.*?)```", re.DOTALL | re.IGNORECASE)


class ExtractionTarget(str, Enum):
    WHOLE_DOCUMENT = "whole_document"
    BATCH = "batch"


@dataclass(frozen=True)
class ExtractionRequest:
    """One provider call: what to send, with which instructions and output allowance."""
    target: ExtractionTarget
    instruction_template: str
    max_output_tokens: int
    payload_model: Type[BaseModel]
    estimated_input_tokens: int = 0
    document: Optional[Document] = None
    text: Optional[str] = None
    batch_index: Optional[int] = None

    def __post_init__(self):
        if self.target is ExtractionTarget.WHOLE_DOCUMENT and self.document is None:
            raise ValueError("Whole-document request needs a document")
        if self.target is ExtractionTarget.BATCH and not self.text:
            raise ValueError("Batch request needs text")

    @property
    def label(self) -> str:
        if self.target is ExtractionTarget.BATCH:
            return f"Batch {self.batch_index + 1 if self.batch_index is not None else '?'}"
        return "Single pass"


def compute_max_output_tokens(
    estimated_input_tokens: int,
    total_context_window: int,
    safety_margin: int,
    default_min: int,
    default_max: int,
) -> int:
    """Output allowance: whatever the window leaves, clamped to [default_min, default_max].

    When even default_min does not fit, default_min is still returned and the
    call may overflow; an oversized section is sent anyway.
    """
    available = total_context_window - estimated_input_tokens - safety_margin
    return max(default_min, min(default_max, available))


def _candidate_json_texts(raw_text: str):
    text = raw_text.strip()
    yield text

    fenced = _FENCED_JSON.search(text)
    if fenced:
        yield fenced.group(1).strip()

    first, last = text.find("{"), text.rfind("}")
    if first != -1 and last > first:
        yield text[first:last + 1]


def _first_balanced_object(text: str) -> Optional[dict]:
    decoder = json.JSONDecoder()
    pos = text.find("{")
    while pos != -1:
        try:
            obj, _ = decoder.raw_decode(text, pos)
        except json.JSONDecodeError:
            pos = text.find("{", pos + 1)
            continue
        if isinstance(obj, dict):
            return obj
        pos = text.find("{", pos + 1)
    return None


def extract_json_object(raw_text: str) -> dict:
    """Find the JSON object in a model response, tolerating prose and code fences."""
    for candidate in _candidate_json_texts(raw_text):
        try:
            obj = json.loads(candidate)
        except json.JSONDecodeError:
            continue
        if isinstance(obj, dict):
            return obj

    obj = _first_balanced_object(raw_text)
    if obj is None:
        raise ParseError("No JSON object found in response")
    return obj


def parse_structured_response(raw_text: str, payload_model: Type[BaseModel]) -> BaseModel:
    """JSON object -> validated payload model, or ParseError."""
    data = extract_json_object(raw_text)
    try:
        return payload_model.model_validate(data)
    except ValidationError as e:
        raise ParseError(f"Response does not match {payload_model.__name__}: {e.error_count()} errors; {e.errors()[0]['msg']}") from e


class ExtractionClient:
    """Sends one request to the provider and turns the answer into an ExtractionResult."""

    def __init__(self, provider: TextCompletionProvider, config: ExtractionConfig):
        self.provider = provider
        self.config = config

    def _call(self, request: ExtractionRequest, timeout: float) -> ProviderResponse:
        if request.target is ExtractionTarget.WHOLE_DOCUMENT and not request.document.is_text:
            document = request.document
            return self.provider.read_document(
                document.to_base64(),
                document.media_type,
                document.filename,
                request.instruction_template,
                request.max_output_tokens,
                timeout,
                response_model=request.payload_model,
            )

        text = request.text if request.text is not None else request.document.text()
        return self.provider.complete_text(
            text,
            request.instruction_template,
            request.max_output_tokens,
            timeout,
            response_model=request.payload_model,
        )

    def extract(self, request: ExtractionRequest, timeout: Optional[float] = None) -> ExtractionResult:
        """Make the call. Provider and parse failures are returned, never raised."""
        timeout = self.config.request_timeout if timeout is None else timeout
        logger.info(
            "%s: calling %s (~%s input tokens, max_output_tokens=%s)",
            request.label, self.provider.name,
            f"{request.estimated_input_tokens:,}", f"{request.max_output_tokens:,}",
        )

        try:
            response = self._call(request, timeout)
        except ProviderCallError as e:
            logger.error("%s: provider call failed: %s", request.label, e)
            return ExtractionResult.provider_failure(str(e))

        usage = TokenUsage(input_tokens=response.input_tokens, output_tokens=response.output_tokens)
        logger.info(
            "%s: tokens used input=%s output=%s stop_reason=%s",
            request.label, f"{usage.input_tokens:,}", f"{usage.output_tokens:,}", response.stop_reason,
        )
        logger.debug("%s: response preview: %s", request.label, response.content_text[:RESPONSE_PREVIEW_CHARS])

        if response.stop_reason in TRUNCATION_STOP_REASONS:
            logger.warning("%s: response truncated at %s output tokens", request.label, f"{request.max_output_tokens:,}")
            return ExtractionResult.parse_failure(
                f"Response truncated at max_output_tokens={request.max_output_tokens}",
                raw_text=response.content_text,
                usage=usage,
                stop_reason=response.stop_reason,
            )

        try:
            payload = parse_structured_response(response.content_text, request.payload_model)
        except ParseError as e:
            logger.error("%s: could not parse response: %s", request.label, e)
            return ExtractionResult.parse_failure(
                str(e), raw_text=response.content_text, usage=usage, stop_reason=response.stop_reason
            )

        return ExtractionResult.ok(payload, response.content_text, usage, stop_reason=response.stop_reason)
