import logging
from dataclasses import dataclass
from typing import Any, List, Protocol, Sequence, Tuple

from constants import PLACEHOLDER_VALUES
from schemas import ConsolidatedResult

logger = logging.getLogger(__name__)


def is_populated(value: Any) -> bool:
    """False for None, empty containers and the placeholders models write for "nothing found"."""
    if value is None:
        return False
    if isinstance(value, str):
        return value.strip().lower() not in PLACEHOLDER_VALUES
    if isinstance(value, (list, tuple, set)):
        return any(is_populated(v) for v in value)
    if isinstance(value, dict):
        return any(is_populated(v) for v in value.values())
    return True


class ScoringPolicy(Protocol):
    def evaluate(self, result: ConsolidatedResult) -> Tuple[float, List[str]]:
        """Return (score 0-100, names of expected items that are missing)."""
        ...


@dataclass(frozen=True)
class FieldCompletenessPolicy:
    """Score = share of expected items that are populated.

    Expected items are the listed metadata fields, one item per record
    category that should appear at least once, "records" itself when
    require_records is set, and every segmented section when
    include_section_coverage is set.
    """
    metadata_fields: Sequence[str]
    record_categories: Sequence[str] = ()
    require_records: bool = True
    include_section_coverage: bool = True
    category_key: str = "category"

    def expected_items(self, result: ConsolidatedResult) -> List[Tuple[str, bool]]:
        items = [
            (f"metadata.{name}", is_populated(result.document_metadata.get(name)))
            for name in self.metadata_fields
        ]

        if self.require_records:
            items.append(("records", bool(result.records)))

        present = {r.get(self.category_key) for r in result.records}
        items.extend((f"records.{category}", category in present) for category in self.record_categories)

        if self.include_section_coverage:
            items.extend((f"section.{name}", covered) for name, covered in result.section_coverage.items())

        return items

    def evaluate(self, result: ConsolidatedResult) -> Tuple[float, List[str]]:
        items = self.expected_items(result)
        if not items:
            return 0.0, []
        populated = sum(1 for _, ok in items if ok)
        missing = [name for name, ok in items if not ok]
        return round(100.0 * populated / len(items), 1), missing


def score_result(
    result: ConsolidatedResult,
    policy: ScoringPolicy,
    review_threshold: float,
    force_review: bool = False,
) -> ConsolidatedResult:
    """Attach quality_score, requires_review and missing_fields to a merged result."""
    score, missing = policy.evaluate(result)

    # A run with any failed batch is partial and always goes to review
    requires_review = force_review or score < review_threshold or bool(result.batch_diagnostics)

    logger.info(
        "Quality score: %.1f (threshold %.0f), %d missing, requires_review=%s",
        score, review_threshold, len(missing), requires_review,
    )
    return result.model_copy(update={
        "quality_score": score,
        "requires_review": requires_review,
        "missing_fields": missing,
    })


def review_reason(result: ConsolidatedResult, review_threshold: float) -> str:
    reasons = []
    if result.quality_score < review_threshold:
        reasons.append(f"quality score {result.quality_score:.1f} below {review_threshold:.0f}")
    if result.batch_diagnostics:
        failed = ", ".join(str(d.batch_index + 1) for d in result.batch_diagnostics)
        reasons.append(f"{len(result.batch_diagnostics)} batch(es) failed ({failed})")
    if not reasons and result.warnings:
        reasons.append(result.warnings[0])
    return "; ".join(reasons) or "manual review requested"


def review_priority(result: ConsolidatedResult) -> str:
    if not result.records or result.batch_diagnostics or result.quality_score < 30:
        return "high"
    if result.missing_fields:
        return "medium"
    return "low"
