"""Inbound document wrapper."""

import base64
import binascii
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from types import MappingProxyType
from typing import Any, Mapping, Optional


class DocumentKind(str, Enum):
    """Declared kind of an inbound document."""

    CASE_FILING = "case-filing"
    GAZETTE_ISSUE = "gazette-issue"


MEDIA_TYPES = {
    ".pdf": "application/pdf",
    ".txt": "text/plain",
    ".md": "text/markdown",
}


@dataclass(frozen=True)
class Document:
    """Immutable input of one run: raw bytes, declared kind and caller metadata."""

    raw_bytes: bytes
    kind: DocumentKind
    media_type: str = "application/pdf"
    filename: str = "document.pdf"
    metadata: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        if not self.raw_bytes:
            raise ValueError("Document is empty")
        object.__setattr__(self, "kind", DocumentKind(self.kind))
        object.__setattr__(self, "metadata", MappingProxyType(dict(self.metadata)))

    @property
    def is_text(self) -> bool:
        return self.media_type.startswith("text/")

    @property
    def size(self) -> int:
        return len(self.raw_bytes)

    def text(self) -> str:
        """Decoded content of a text document."""
        if not self.is_text:
            raise ValueError(f"{self.media_type} document has no inline text")
        return self.raw_bytes.decode("utf-8", errors="replace")

    def to_base64(self) -> str:
        return base64.b64encode(self.raw_bytes).decode("ascii")

    def meta(self, key: str, default: Optional[Any] = None) -> Any:
        return self.metadata.get(key, default)

    @classmethod
    def from_path(cls, file_path: str, kind: DocumentKind, **metadata) -> 'Document':
        path = Path(file_path)
        if not path.exists():
            raise FileNotFoundError(f"Document not found: {file_path}")

        suffix = path.suffix.lower()
        if suffix not in MEDIA_TYPES:
            raise ValueError(f"Unsupported file format: {suffix}. Use PDF or plain text.")

        return cls(
            raw_bytes=path.read_bytes(),
            kind=kind,
            media_type=MEDIA_TYPES[suffix],
            filename=path.name,
            metadata={k: v for k, v in metadata.items() if v is not None},
        )

    @classmethod
    def from_base64(
        cls,
        data: str,
        kind: DocumentKind,
        media_type: str = "application/pdf",
        filename: str = "document.pdf",
        **metadata,
    ) -> 'Document':
        # Tolerate data URLs ("data:application/pdf;base64,....")
        if data.startswith("data:") and "," in data:
            data = data.split(",", 1)[1]
        try:
            raw = base64.b64decode(data, validate=True)
        except (binascii.Error, ValueError) as e:
            raise ValueError(f"Invalid base64 document: {e}") from e

        return cls(
            raw_bytes=raw,
            kind=kind,
            media_type=media_type,
            filename=filename,
            metadata={k: v for k, v in metadata.items() if v is not None},
        )
