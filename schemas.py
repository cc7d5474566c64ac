from typing import Any, Dict, List, Literal, Optional
from pydantic import BaseModel, Field


# 1. GAZETTE PAYLOAD
class GazetteMetadata(BaseModel):
    gazette_type: Optional[str] = Field(None, description="'Regular' or 'Extraordinary'")
    issue_number: Optional[str] = Field(None, description="Issue number as printed, e.g. 'Ex42/2024'")
    publication_date: Optional[str] = Field(None, description="Publication date, YYYY-MM-DD")


class LiquidationNotice(BaseModel):
    """One entity named in a COMMERCIAL notice."""
    entity_name: str = Field(..., description="Full legal name exactly as printed")
    entity_type: Optional[Literal["Company", "Partnership", "Individual", "Trust", "Other"]] = Field(
        None, description="Kind of entity the notice concerns"
    )
    registration_no: Optional[str] = Field(None, description="Registration number if printed, e.g. 'CR-12345'")
    liquidation_type: Optional[str] = Field(
        None,
        description="'Voluntary', 'Court-Ordered', 'Bankruptcy', 'Receivership' or 'Unknown' when the notice does not say"
    )
    liquidators: List[str] = Field(default_factory=list, description="Liquidator / trustee / receiver names")
    contact_emails: List[str] = Field(default_factory=list, description="Email addresses printed in the notice")
    court_cause_no: Optional[str] = Field(None, description="Court cause number for court-ordered matters")
    liquidation_date: Optional[str] = Field(None, description="Date the liquidation commenced, YYYY-MM-DD")
    final_meeting_date: Optional[str] = Field(None, description="Date of the final meeting, YYYY-MM-DD")
    notes: Optional[str] = Field(None, description="Anything else material, short")
    source_section: Optional[str] = Field(None, description="Subsection heading the notice was printed under")
    notice_kind: Literal["appointment", "final_meeting"] = Field(
        "appointment",
        description="'final_meeting' for notices of final meeting of shareholders, otherwise 'appointment'"
    )


class GazettePayload(BaseModel):
    status: str = Field("success", description="'success', or 'no_notices' when nothing relevant was found")
    metadata: GazetteMetadata = Field(default_factory=GazetteMetadata)
    records: List[LiquidationNotice] = Field(default_factory=list, description="Every notice, in printed order")
    summary: Optional[Dict[str, Any]] = Field(None, description="Optional counts; recomputed downstream")


# 2. CASE FILING PAYLOAD
class CaseMetadata(BaseModel):
    company_name: Optional[str] = Field(None, description="Company the petition concerns")
    registration_no: Optional[str] = Field(None, description="Company registration number")
    incorporation_date: Optional[str] = Field(None, description="YYYY-MM-DD")
    court: Optional[str] = Field(None, description="Court and division, e.g. 'Grand Court, Financial Services Division'")
    cause_no: Optional[str] = Field(None, description="Cause number, e.g. 'FSD 123 of 2024'")
    filing_date: Optional[str] = Field(None, description="YYYY-MM-DD")
    petition_type: Optional[str] = Field(None, description="e.g. 'Winding Up', 'Supervision Order', 'Scheme of Arrangement'")
    law_firm: Optional[str] = Field(None, description="Attorneys for the petitioner")
    solvency_status: Optional[Literal["Solvent", "Insolvent", "Unknown"]] = Field(None)


class CaseFact(BaseModel):
    category: Literal[
        "party",
        "timeline_event",
        "financial",
        "insolvency_practitioner",
        "creditor",
        "name_change",
    ] = Field(..., description="What kind of fact this is")
    description: str = Field(..., description="The fact, in one or two sentences, close to the source wording")
    date: Optional[str] = Field(None, description="YYYY-MM-DD if the fact is dated")
    amount: Optional[str] = Field(None, description="Amount with currency if financial, e.g. 'USD 1,250,000'")
    name: Optional[str] = Field(None, description="Person or entity the fact is about")


class CaseFilingPayload(BaseModel):
    status: str = Field("success")
    metadata: CaseMetadata = Field(default_factory=CaseMetadata)
    records: List[CaseFact] = Field(default_factory=list, description="Facts in document order")
    summary: Optional[Dict[str, Any]] = Field(None, description="Optional counts; recomputed downstream")


# 3. CONSOLIDATED RESULT
class BatchDiagnostic(BaseModel):
    """Why one batch contributed nothing to the result."""
    batch_index: int
    section_names: List[str] = Field(default_factory=list)
    status: Literal["parse_error", "provider_error"]
    error_detail: Optional[str] = None
    estimated_tokens: int = 0
    max_output_tokens: int = 0


class TokenUsageSummary(BaseModel):
    input_tokens: int = 0
    output_tokens: int = 0
    calls: int = 0


class ConsolidatedResult(BaseModel):
    """The one durable output of a run."""
    document_kind: Literal["case-filing", "gazette-issue"]
    processing_mode: Literal["single_pass", "batch"]
    records: List[Dict[str, Any]] = Field(default_factory=list)
    document_metadata: Dict[str, Any] = Field(default_factory=dict)
    summary_stats: Dict[str, Any] = Field(default_factory=dict)
    quality_score: float = Field(0.0, ge=0.0, le=100.0)
    requires_review: bool = True
    missing_fields: List[str] = Field(default_factory=list)
    batch_diagnostics: List[BatchDiagnostic] = Field(default_factory=list)
    section_coverage: Dict[str, bool] = Field(default_factory=dict)
    token_usage: TokenUsageSummary = Field(default_factory=TokenUsageSummary)
    warnings: List[str] = Field(default_factory=list)

    @property
    def failed_batches(self) -> int:
        return len(self.batch_diagnostics)


class ReviewQueueItem(BaseModel):
    item_type: Literal["case", "gazette"]
    item_id: str
    reason: str
    priority: Literal["low", "medium", "high"] = "medium"
