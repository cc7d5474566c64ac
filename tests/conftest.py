"""Pytest configuration and fixtures."""

import json
from typing import Any, Callable, Dict, List, Optional

import pytest

from config import CLAUDE_SONNET_4, ExtractionConfig
from constants import GAZETTE_TARGET_SUBSECTIONS
from documents import Document, DocumentKind
from providers import ProviderResponse, TextCompletionProvider

BLOCK_TOKENS = 1000


class BlockEstimator:
    """Every "BLOCK" word counts as 1,000 tokens; everything else is free.

    Lets tests state section sizes directly: "BLOCK " * 40 is a 40k section.
    """

    def estimate_text(self, text: str) -> int:
        return text.count("BLOCK") * BLOCK_TOKENS

    def estimate_bytes(self, size: int) -> int:
        return size // 4


class FakeProvider(TextCompletionProvider):
    """Scripted provider: each call pops the next response.

    A response may be a JSON string, a ProviderResponse, an exception to
    raise, or a callable taking the call record.
    """

    name = "fake"

    def __init__(self, responses: Optional[List[Any]] = None):
        super().__init__("fake-model")
        self.responses = list(responses or [])
        self.calls: List[Dict[str, Any]] = []

    def _next(self, call: Dict[str, Any]) -> ProviderResponse:
        self.calls.append(call)
        if not self.responses:
            raise AssertionError("Unexpected provider call")
        response = self.responses.pop(0)
        if callable(response) and not isinstance(response, ProviderResponse):
            response = response(call)
        if isinstance(response, Exception):
            raise response
        if isinstance(response, str):
            return ProviderResponse(content_text=response, input_tokens=100, output_tokens=50, stop_reason="end_turn")
        return response

    def read_document(self, document_base64, media_type, filename, instruction, max_output_tokens,
                      timeout, response_model=None):
        return self._next({
            "shape": "document",
            "media_type": media_type,
            "filename": filename,
            "instruction": instruction,
            "max_output_tokens": max_output_tokens,
            "timeout": timeout,
        })

    def complete_text(self, text, instruction, max_output_tokens, timeout, response_model=None):
        return self._next({
            "shape": "text",
            "text": text,
            "instruction": instruction,
            "max_output_tokens": max_output_tokens,
            "timeout": timeout,
        })


class FakeClock:
    def __init__(self, now: float = 0.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def config():
    """Claude-sized budgets, no delay between batches."""
    return ExtractionConfig(model=CLAUDE_SONNET_4, inter_batch_delay=0.0)


@pytest.fixture
def estimator():
    return BlockEstimator()


@pytest.fixture
def fake_provider_factory() -> Callable[..., FakeProvider]:
    return FakeProvider


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def gazette_metadata() -> Dict[str, Any]:
    return {"gazette_type": "Extraordinary Gazette", "issue_number": "Ex84/2025", "publication_date": "2025-10-27"}


@pytest.fixture
def notice() -> Callable[..., Dict[str, Any]]:
    """Build a liquidation notice record."""
    def _notice(name: str, **fields) -> Dict[str, Any]:
        record = {
            "entity_name": name,
            "entity_type": "Company",
            "registration_no": None,
            "liquidation_type": "Voluntary",
            "liquidators": ["Jane Smith"],
            "contact_emails": [],
            "notice_kind": "appointment",
        }
        record.update(fields)
        return record
    return _notice


@pytest.fixture
def gazette_response(gazette_metadata) -> Callable[..., str]:
    """JSON text a model would return for a gazette batch."""
    def _response(records: List[Dict[str, Any]], metadata: Optional[Dict[str, Any]] = None) -> str:
        return json.dumps({
            "status": "success",
            "metadata": gazette_metadata if metadata is None else metadata,
            "records": records,
        })
    return _response


@pytest.fixture
def gazette_text() -> Callable[..., str]:
    """Gazette plain text with one COMMERCIAL subsection per size (in thousands of tokens)."""
    def _text(sizes: List[int]) -> str:
        parts = [
            "THE CAYMAN ISLANDS GAZETTE\nExtraordinary Issue No. Ex84/2025\nMonday, 27 October 2025\n\n",
            "COMMERCIAL\n\n",
        ]
        for heading, size in zip(GAZETTE_TARGET_SUBSECTIONS, sizes):
            parts.append(f"{heading}\n" + "BLOCK " * size + "\n\n")
        parts.append("GOVERNMENT\nAppointments and other government notices\n")
        return "".join(parts)
    return _text


@pytest.fixture
def text_document() -> Callable[..., Document]:
    def _document(text: str, kind: DocumentKind = DocumentKind.GAZETTE_ISSUE, **metadata) -> Document:
        return Document(
            raw_bytes=text.encode("utf-8"),
            kind=kind,
            media_type="text/plain",
            filename="document.txt",
            metadata=metadata,
        )
    return _document
