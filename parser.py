"""Plain-text acquisition for batch mode.

Segmentation needs character offsets, so a binary document is turned into
plain text once before any section is cut out of it.
"""

import logging
from dataclasses import dataclass, field
from io import BytesIO
from typing import List, Protocol

from config import ExtractionConfig
from documents import Document
from errors import ConfigurationError, ExtractionError, ProviderCallError
from extractor import TRUNCATION_STOP_REASONS
from prompts import TEXT_ACQUISITION_PROMPT
from providers import TextCompletionProvider

logger = logging.getLogger(__name__)


class TextAcquisitionError(ExtractionError):
    """The document's text could not be obtained at all."""

    code = "text_acquisition_failed"


@dataclass
class AcquiredText:
    text: str
    # Text may be incomplete; the run result must be reviewed
    warnings: List[str] = field(default_factory=list)

    @property
    def incomplete(self) -> bool:
        return bool(self.warnings)


class TextAcquirer(Protocol):
    def acquire(self, document: Document) -> AcquiredText:
        ...


class DoclingTextAcquirer:
    """Local PDF → text with docling (no OCR: gazettes and filings are digital PDFs)."""

    def __init__(self, do_table_structure: bool = False):
        self.do_table_structure = do_table_structure
        self._converter = None

    def _get_converter(self):
        if self._converter is None:
            from docling.datamodel.base_models import InputFormat
            from docling.datamodel.pipeline_options import PdfPipelineOptions
            from docling.document_converter import DocumentConverter, PdfFormatOption

            pipeline_options = PdfPipelineOptions()
            pipeline_options.do_ocr = False  # Disable OCR for digital documents
            pipeline_options.do_table_structure = self.do_table_structure

            self._converter = DocumentConverter(
                format_options={
                    InputFormat.PDF: PdfFormatOption(pipeline_options=pipeline_options)
                }
            )
        return self._converter

    def acquire(self, document: Document) -> AcquiredText:
        if document.is_text:
            return AcquiredText(document.text())

        from docling.datamodel.base_models import DocumentStream

        stream = DocumentStream(name=document.filename, stream=BytesIO(document.raw_bytes))
        try:
            result = self._get_converter().convert(stream)
        except Exception as e:
            raise TextAcquisitionError(f"docling could not convert {document.filename}: {e}") from e

        text = result.document.export_to_markdown()
        if not text.strip():
            raise TextAcquisitionError(f"No text found in {document.filename}")
        return AcquiredText(text)


class ProviderTextAcquirer:
    """Ask the LLM provider to transcribe the PDF (a document-understanding call)."""

    def __init__(self, provider: TextCompletionProvider, max_output_tokens: int, timeout: float = 300.0):
        self.provider = provider
        self.max_output_tokens = max_output_tokens
        self.timeout = timeout

    def acquire(self, document: Document) -> AcquiredText:
        if document.is_text:
            return AcquiredText(document.text())

        try:
            response = self.provider.read_document(
                document.to_base64(),
                document.media_type,
                document.filename,
                TEXT_ACQUISITION_PROMPT,
                self.max_output_tokens,
                self.timeout,
            )
        except ProviderCallError as e:
            raise TextAcquisitionError(f"Text extraction call failed: {e}") from e

        if not response.content_text.strip():
            raise TextAcquisitionError(f"Provider returned no text for {document.filename}")

        acquired = AcquiredText(response.content_text)
        if response.stop_reason in TRUNCATION_STOP_REASONS:
            logger.warning("Text extraction truncated at %s output tokens", f"{self.max_output_tokens:,}")
            acquired.warnings.append(
                f"Text extraction truncated at max_output_tokens={self.max_output_tokens}; "
                f"sections after the cut may be missing"
            )
        return acquired


def build_text_acquirer(config: ExtractionConfig, provider: TextCompletionProvider) -> TextAcquirer:
    """Pick the acquirer named in the config."""
    if config.text_acquirer == "docling":
        return DoclingTextAcquirer()
    if config.text_acquirer == "provider":
        return ProviderTextAcquirer(provider, config.model.max_output_tokens, config.request_timeout)
    raise ConfigurationError(f"Unknown text acquirer: {config.text_acquirer}")


def acquire_text(document: Document, acquirer: TextAcquirer) -> AcquiredText:
    acquired = acquirer.acquire(document)
    logger.info("Acquired text: %s chars from %s", f"{len(acquired.text):,}", document.filename)
    return acquired
