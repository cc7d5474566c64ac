"""Storage and review-queue collaborators.

The real relational store and the notification channel live elsewhere; these
interfaces are what the pipeline hands its result to. The JSON-file versions
are used by the CLI and the dev server.
"""

import json
import logging
import uuid
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Union

from documents import Document
from mapper import to_storage_record
from schemas import ConsolidatedResult, ReviewQueueItem

logger = logging.getLogger(__name__)


class ResultStore(ABC):
    @abstractmethod
    def save(self, document: Document, result: ConsolidatedResult) -> str:
        """Persist a consolidated result and return its id."""


class ReviewQueue(ABC):
    @abstractmethod
    def enqueue(self, item: ReviewQueueItem) -> None:
        ...


class JsonFileStore(ResultStore):
    """One JSON file per run: the full result plus the mapped storage rows."""

    def __init__(self, root: Union[str, Path] = "results"):
        self.root = Path(root)

    def path_for(self, item_id: str) -> Path:
        return self.root / f"{item_id}.json"

    def save(self, document: Document, result: ConsolidatedResult) -> str:
        self.root.mkdir(parents=True, exist_ok=True)
        item_id = uuid.uuid4().hex
        payload = {
            "item_id": item_id,
            "saved_at": datetime.now(timezone.utc).isoformat(),
            "document": {
                "filename": document.filename,
                "kind": document.kind.value,
                "media_type": document.media_type,
                "size": document.size,
                "metadata": dict(document.metadata),
            },
            "result": result.model_dump(mode="json"),
            "storage": to_storage_record(document, result, item_id),
        }
        path = self.path_for(item_id)
        path.write_text(json.dumps(payload, indent=2, ensure_ascii=False), encoding="utf-8")
        logger.info("Saved result %s to %s", item_id, path)
        return item_id

    def load(self, item_id: str) -> ConsolidatedResult:
        data = json.loads(self.path_for(item_id).read_text(encoding="utf-8"))
        return ConsolidatedResult.model_validate(data["result"])


class JsonlReviewQueue(ReviewQueue):
    """Appends review items to a JSON-lines file."""

    def __init__(self, path: Union[str, Path] = "review_queue.jsonl"):
        self.path = Path(path)

    def enqueue(self, item: ReviewQueueItem) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "a", encoding="utf-8") as f:
            f.write(item.model_dump_json() + "\n")
        logger.info("Queued %s %s for review (%s): %s", item.item_type, item.item_id, item.priority, item.reason)

    def items(self) -> List[ReviewQueueItem]:
        if not self.path.exists():
            return []
        with open(self.path, encoding="utf-8") as f:
            return [ReviewQueueItem.model_validate_json(line) for line in f if line.strip()]
