from typing import Any, Dict, List, Optional

from documents import Document, DocumentKind
from schemas import ConsolidatedResult
from scoring import is_populated


def clean_value(value: Any) -> Any:
    """Placeholders ("Unknown", "N/A", "") become None; lists lose their empty entries."""
    if isinstance(value, list):
        return [v for v in (clean_value(item) for item in value) if v is not None]
    if isinstance(value, str):
        value = value.strip()
    return value if is_populated(value) else None


def prefer_caller(document: Document, caller_key: str, extracted: Dict[str, Any], extracted_key: str) -> Any:
    """Caller-supplied metadata wins over what the model read from the document."""
    caller_value = clean_value(document.meta(caller_key))
    if caller_value is not None:
        return caller_value
    return clean_value(extracted.get(extracted_key))


def extraction_confidence(result: ConsolidatedResult) -> str:
    if result.quality_score >= 80 and not result.batch_diagnostics:
        return "high"
    if result.quality_score >= 60:
        return "medium"
    return "low"


def extraction_metadata(result: ConsolidatedResult) -> Dict[str, Any]:
    """Run details kept alongside the stored document row."""
    return {
        "processing_mode": result.processing_mode,
        "quality_score": result.quality_score,
        "requires_review": result.requires_review,
        "missing_fields": result.missing_fields,
        "summary_stats": result.summary_stats,
        "section_coverage": result.section_coverage,
        "batch_diagnostics": [d.model_dump(mode="json") for d in result.batch_diagnostics],
        "warnings": result.warnings,
    }


def _gazette_type(value: Optional[str]) -> str:
    if value and "extra" in value.lower():
        return "extraordinary"
    return "regular"


def transform_gazette_notice(record: Dict[str, Any], confidence: str) -> Dict[str, Any]:
    """Map one liquidation notice to a storage row."""
    liquidators = clean_value(record.get("liquidators")) or []
    emails = clean_value(record.get("contact_emails")) or []
    liquidation_type = clean_value(record.get("liquidation_type"))

    return {
        "company_name": clean_value(record.get("entity_name")),
        "entity_type": clean_value(record.get("entity_type")),
        "registration_no": clean_value(record.get("registration_no")),
        "liquidation_type": liquidation_type,
        "liquidators": liquidators,
        "contact_emails": emails,
        "court_cause_no": clean_value(record.get("court_cause_no")),
        "liquidation_date": clean_value(record.get("liquidation_date")),
        "final_meeting_date": clean_value(record.get("final_meeting_date")),
        "notes": clean_value(record.get("notes")),
        "appointment_type": record.get("notice_kind") or "appointment",
        "appointment_date": clean_value(record.get("liquidation_date")),
        "liquidator_name": liquidators[0] if liquidators else None,
        "liquidator_contact": emails[0] if emails else None,
        "source_section": clean_value(record.get("source_section")),
        "extraction_confidence": confidence,
    }


def transform_case_fact(record: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "category": record.get("category"),
        "description": clean_value(record.get("description")),
        "fact_date": clean_value(record.get("date")),
        "amount": clean_value(record.get("amount")),
        "name": clean_value(record.get("name")),
    }


def to_storage_record(document: Document, result: ConsolidatedResult, item_id: Optional[str] = None) -> Dict[str, Any]:
    """
    Convert a ConsolidatedResult into the rows the storage schema expects.

    Args:
        document: The inbound document (caller metadata is taken from it)
        result: Scored consolidated result
        item_id: Storage id of the document row, if already assigned

    Returns:
        {"document": {...}, "records": [...]} with one row per record
    """
    extracted = result.document_metadata
    tokens = result.token_usage.model_dump()
    confidence = extraction_confidence(result)

    if document.kind is DocumentKind.GAZETTE_ISSUE:
        gazette_type = document.meta("gazette_type") or extracted.get("gazette_type")
        doc_row = {
            "id": item_id,
            "gazette_type": _gazette_type(gazette_type),
            "issue_number": prefer_caller(document, "issue_number", extracted, "issue_number"),
            "issue_date": prefer_caller(document, "issue_date", extracted, "publication_date"),
            "notices_count": len(result.records),
            "extraction_metadata": extraction_metadata(result),
            "llm_tokens_used": tokens,
        }
        rows: List[Dict[str, Any]] = [transform_gazette_notice(r, confidence) for r in result.records]
    else:
        doc_row = {
            "id": item_id,
            "case_id": clean_value(document.meta("case_id")),
            "cause_number": prefer_caller(document, "cause_number", extracted, "cause_no"),
            "company_name": clean_value(extracted.get("company_name")),
            "petition_type": clean_value(extracted.get("petition_type")),
            "extraction_quality_score": result.quality_score,
            "extraction_metadata": extraction_metadata(result),
            "llm_tokens_used": tokens,
        }
        rows = [transform_case_fact(r) for r in result.records]

    for row in rows:
        row["document_id"] = item_id
    return {"document": doc_row, "records": rows}
