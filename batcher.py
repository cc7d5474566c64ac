import logging
from dataclasses import dataclass, field
from typing import List

from segmenter import Section

logger = logging.getLogger(__name__)


@dataclass
class Batch:
    """Consecutive sections sent together in one provider call."""
    batch_index: int
    sections: List[Section] = field(default_factory=list)
    cumulative_estimated_tokens: int = 0
    # A single section larger than the budget, sent alone anyway
    oversized: bool = False

    @property
    def section_names(self) -> List[str]:
        return [s.name for s in self.sections]

    def text(self, separator: str = "\n\n") -> str:
        return separator.join(s.content for s in self.sections)

    def add(self, section: Section) -> None:
        self.sections.append(section)
        self.cumulative_estimated_tokens += section.estimated_tokens


def group_sections_into_batches(sections: List[Section], max_batch_tokens: int) -> List[Batch]:
    """Greedy, order-preserving grouping under a per-call token budget.

    A section whose own estimate exceeds the budget becomes a batch of its
    own instead of being dropped.
    """
    batches: List[Batch] = []
    current = Batch(batch_index=0)

    def flush() -> None:
        nonlocal current
        if current.sections:
            batches.append(current)
        current = Batch(batch_index=len(batches))

    for section in sections:
        if section.estimated_tokens > max_batch_tokens:
            flush()
            logger.warning(
                "Section '%s' (~%s tokens) exceeds the batch budget of %s, sending it alone",
                section.name[:60], f"{section.estimated_tokens:,}", f"{max_batch_tokens:,}",
            )
            current.add(section)
            current.oversized = True
            flush()
            continue

        if current.sections and current.cumulative_estimated_tokens + section.estimated_tokens > max_batch_tokens:
            flush()

        current.add(section)

    # Don't forget last batch
    flush()

    logger.info("Created %d batches from %d sections", len(batches), len(sections))
    return batches
