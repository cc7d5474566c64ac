"""Everything that differs between document kinds, in one registry."""

from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Sequence, Type

from pydantic import BaseModel

from documents import DocumentKind
from merger import cross_reference_final_meetings, summarize_case, summarize_gazette
from prompts import build_case_prompt, build_gazette_prompt
from schemas import CaseFilingPayload, GazettePayload
from scoring import FieldCompletenessPolicy, ScoringPolicy
from segmenter import CASE_FILING_TEMPLATE, GAZETTE_TEMPLATE, SectionTemplate


@dataclass(frozen=True)
class DocumentProfile:
    kind: DocumentKind
    payload_model: Type[BaseModel]
    build_prompt: Callable[[Optional[Sequence[str]]], str]
    template: SectionTemplate
    policy: ScoringPolicy
    summarize: Callable[[List[Dict[str, Any]]], Dict[str, Any]]
    item_type: str
    cross_reference: Optional[Callable[[List[Dict[str, Any]]], List[Dict[str, Any]]]] = None


GAZETTE_PROFILE = DocumentProfile(
    kind=DocumentKind.GAZETTE_ISSUE,
    payload_model=GazettePayload,
    build_prompt=build_gazette_prompt,
    template=GAZETTE_TEMPLATE,
    policy=FieldCompletenessPolicy(
        metadata_fields=("gazette_type", "issue_number", "publication_date"),
        require_records=True,
        include_section_coverage=True,
    ),
    summarize=summarize_gazette,
    item_type="gazette",
    cross_reference=cross_reference_final_meetings,
)

CASE_FILING_PROFILE = DocumentProfile(
    kind=DocumentKind.CASE_FILING,
    payload_model=CaseFilingPayload,
    build_prompt=build_case_prompt,
    template=CASE_FILING_TEMPLATE,
    policy=FieldCompletenessPolicy(
        metadata_fields=(
            "company_name",
            "registration_no",
            "incorporation_date",
            "court",
            "cause_no",
            "filing_date",
            "petition_type",
            "law_firm",
            "solvency_status",
        ),
        record_categories=("party", "timeline_event", "financial"),
        require_records=True,
        include_section_coverage=True,
    ),
    summarize=summarize_case,
    item_type="case",
)

PROFILES: Dict[DocumentKind, DocumentProfile] = {
    DocumentKind.GAZETTE_ISSUE: GAZETTE_PROFILE,
    DocumentKind.CASE_FILING: CASE_FILING_PROFILE,
}


def get_profile(kind: DocumentKind) -> DocumentProfile:
    return PROFILES[DocumentKind(kind)]
