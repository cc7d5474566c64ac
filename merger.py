"""Merge per-batch extraction results into one ConsolidatedResult."""

import logging
import re
from collections import Counter
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Sequence, get_args

from batcher import Batch
from constants import CORPORATE_SUFFIXES
from result import ExtractionResult, TokenUsage
from schemas import BatchDiagnostic, CaseFact, ConsolidatedResult, TokenUsageSummary
from scoring import is_populated
from strategy import ProcessingMode

logger = logging.getLogger(__name__)

PRIOR_GAZETTE_NOTE = "Final meeting notice only; liquidation commenced in prior gazette"

_SUFFIXES = frozenset(s.replace(".", "") for s in CORPORATE_SUFFIXES)
_LIQUIDATION_STATUS = re.compile(r"\(\s*in\s+(?:voluntary\s+|official\s+)?liquidation\s*\)", re.IGNORECASE)


@dataclass
class BatchOutcome:
    """One Extraction Client result with the batch it came from (None in single-pass mode)."""
    result: ExtractionResult
    batch: Optional[Batch] = None
    max_output_tokens: int = 0
    estimated_tokens: int = 0


def normalize_name(name: Optional[str]) -> str:
    """Case, punctuation and trailing corporate suffixes removed: "Acme Ltd." == "ACME LIMITED"."""
    if not name:
        return ""
    text = _LIQUIDATION_STATUS.sub(" ", name.lower())
    text = text.replace("&", " and ").replace(".", "")
    text = re.sub(r"[^\w\s]", " ", text)
    words = text.split()
    while words and words[-1] in _SUFFIXES:
        words.pop()
    return " ".join(words)


def normalize_registration(registration_no: Optional[str]) -> str:
    if not is_populated(registration_no):
        return ""
    return re.sub(r"[^A-Z0-9]", "", registration_no.upper())


def _append_note(notes: Optional[str], note: str) -> str:
    if not is_populated(notes):
        return note
    return f"{notes}; {note}"


def cross_reference_final_meetings(records: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Link final-meeting notices to the liquidation notices they refer to.

    Runs after merging because the two notices may come from different
    batches. Records are annotated, never removed or reordered.
    """
    records = [dict(r) for r in records]

    by_name: Dict[str, int] = {}
    by_registration: Dict[str, int] = {}
    for i, record in enumerate(records):
        if record.get("notice_kind") == "final_meeting":
            continue
        name = normalize_name(record.get("entity_name"))
        if name:
            by_name.setdefault(name, i)
        registration = normalize_registration(record.get("registration_no"))
        if registration:
            by_registration.setdefault(registration, i)

    matched = 0
    for record in records:
        if record.get("notice_kind") != "final_meeting":
            continue

        registration = normalize_registration(record.get("registration_no"))
        target = by_registration.get(registration) if registration else None
        if target is None:
            target = by_name.get(normalize_name(record.get("entity_name")))

        record["matched_record_index"] = target
        if target is None:
            if not is_populated(record.get("liquidation_type")):
                record["liquidation_type"] = "Unknown"
            record["notes"] = _append_note(record.get("notes"), PRIOR_GAZETTE_NOTE)
            continue

        matched += 1
        appointment = records[target]
        meeting_date = record.get("final_meeting_date")
        if is_populated(meeting_date) and not is_populated(appointment.get("final_meeting_date")):
            appointment["final_meeting_date"] = meeting_date
        appointment["notes"] = _append_note(
            appointment.get("notes"), f"Final meeting notice: {meeting_date or 'date not stated'}"
        )
        record["notes"] = _append_note(record.get("notes"), f"Matched to liquidation notice of {appointment.get('entity_name')}")

    final_meetings = sum(1 for r in records if r.get("notice_kind") == "final_meeting")
    if final_meetings:
        logger.info("Cross-referenced final meetings: %d of %d matched", matched, final_meetings)
    return records


def _entity_records(records: Sequence[Dict[str, Any]]) -> List[Dict[str, Any]]:
    # A matched final-meeting notice describes an entity already counted
    return [
        r for r in records
        if not (r.get("notice_kind") == "final_meeting" and r.get("matched_record_index") is not None)
    ]


def summarize_gazette(records: Sequence[Dict[str, Any]]) -> Dict[str, Any]:
    """Counts over the merged record set."""
    entities = _entity_records(records)

    def count(entity_type: str, liquidation_type: str) -> int:
        return sum(
            1 for r in entities
            if r.get("entity_type") == entity_type and r.get("liquidation_type") == liquidation_type
        )

    by_type = Counter(r.get("liquidation_type") if is_populated(r.get("liquidation_type")) else "Unknown" for r in entities)
    return {
        "total_entities": len(entities),
        "companies_voluntary": count("Company", "Voluntary"),
        "companies_court_ordered": count("Company", "Court-Ordered"),
        "partnerships_voluntary": count("Partnership", "Voluntary"),
        "entities_with_final_meetings": sum(1 for r in entities if is_populated(r.get("final_meeting_date"))),
        "by_liquidation_type": dict(by_type),
    }


CASE_CATEGORIES = get_args(CaseFact.model_fields["category"].annotation)


def summarize_case(records: Sequence[Dict[str, Any]]) -> Dict[str, Any]:
    counts = Counter(r.get("category") for r in records)
    return {
        "total_facts": len(records),
        "by_category": {category: counts.get(category, 0) for category in CASE_CATEGORIES},
    }


def merge_results(
    outcomes: Sequence[BatchOutcome],
    document_kind: str,
    processing_mode: ProcessingMode,
    summarize: Callable[[List[Dict[str, Any]]], Dict[str, Any]],
    cross_reference: Optional[Callable[[List[Dict[str, Any]]], List[Dict[str, Any]]]] = None,
) -> ConsolidatedResult:
    """Concatenate successful payloads in batch order; failed batches become diagnostics.

    The result is unscored; see scoring.score_result.
    """
    records: List[Dict[str, Any]] = []
    metadata: Optional[Dict[str, Any]] = None
    diagnostics: List[BatchDiagnostic] = []
    coverage: Dict[str, bool] = {}
    warnings: List[str] = []
    usage = TokenUsage()

    for i, outcome in enumerate(outcomes):
        result, batch = outcome.result, outcome.batch
        batch_index = batch.batch_index if batch is not None else i
        usage = usage + result.usage
        warnings.extend(result.warnings)

        if batch is not None:
            for name in batch.section_names:
                coverage[name] = result.success
            if batch.oversized:
                warnings.append(
                    f"Batch {batch_index + 1} holds one section of ~{batch.cumulative_estimated_tokens:,} "
                    f"tokens, above the batch budget"
                )

        if not result.success:
            diagnostics.append(BatchDiagnostic(
                batch_index=batch_index,
                section_names=batch.section_names if batch is not None else [],
                status=result.status.value,
                error_detail=result.error_detail,
                estimated_tokens=outcome.estimated_tokens,
                max_output_tokens=outcome.max_output_tokens,
            ))
            warnings.append(f"Batch {batch_index + 1} failed ({result.status.value}): {result.error_detail}")
            continue

        payload = result.parsed_payload
        if metadata is None:
            metadata = payload.metadata.model_dump(mode="json")
        batch_records = [record.model_dump(mode="json") for record in payload.records]
        records.extend(batch_records)
        logger.info("Batch %d contributed %d records", batch_index + 1, len(batch_records))

    if cross_reference is not None:
        records = cross_reference(records)

    logger.info(
        "Merged %d records from %d of %d calls",
        len(records), len(outcomes) - len(diagnostics), len(outcomes),
    )
    return ConsolidatedResult(
        document_kind=document_kind,
        processing_mode=processing_mode.value,
        records=records,
        document_metadata=metadata or {},
        summary_stats=summarize(records),
        batch_diagnostics=diagnostics,
        section_coverage=coverage,
        token_usage=TokenUsageSummary(
            input_tokens=usage.input_tokens,
            output_tokens=usage.output_tokens,
            calls=len(outcomes),
        ),
        warnings=warnings,
    )
