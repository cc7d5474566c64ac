"""Composable prompt components for consistent extraction instructions."""

from typing import List, Optional, Sequence

from constants import FINAL_MEETING_SECTION, GAZETTE_STOP_SUBSECTIONS, GAZETTE_TARGET_SUBSECTIONS


VERBATIM_EXTRACTION_RULES = """## CORE PRINCIPLE - EXTRACT, DO NOT INFER
Extract ONLY information explicitly written in the document.
- Copy names EXACTLY as written: capitalization, punctuation, non-English characters
- Do NOT expand abbreviations or correct spelling
- Do NOT guess dates, numbers or parties that are not printed
- When something is not in the document use null (or [] for lists), never an invented value"""


DATE_RULES = """### Dates
- Every date in ISO format YYYY-MM-DD
- "Monday, 27 October 2025" → "2025-10-27"
- A date that is only partially printed (month and year) → null, mention it in notes"""


JSON_OUTPUT_RULES = """## OUTPUT
Respond with ONE JSON object and nothing else. No markdown fences, no commentary.
The object MUST follow the schema described below; keys are snake_case."""


# ── Gazette ────────────────────────────────────────────────────────────

GAZETTE_ROLE = """You are a specialized legal document extraction system for Cayman Islands Gazettes and Extraordinary Gazettes.
Your task is to extract ALL liquidation-related notices from the COMMERCIAL section and return structured JSON."""


GAZETTE_CONTENTS_RULES = """### Contents Page vs Content
Gazettes open with a CONTENTS page listing each subsection with a page reference ("Liquidation Notices...Pg.1387")
or "None". The CONTENTS page is only an index:
- Read the ACTUAL notices on the numbered pages, never the contents entry
- A subsection listed as "None" has no notices; skip only that subsection"""


GAZETTE_SECTION_RULES = """### Extraction Rules by Subsection

**Liquidation Notices** (voluntary and court-ordered windings up)
- liquidation_type: "Voluntary" for voluntary liquidation / voluntary winding up,
  "Court-Ordered" for Official Liquidator, FSD Cause No. or other court references
- entity_type: "Company" unless the notice says otherwise

**Notices of Final Meeting of Shareholders**
- One record per notice with notice_kind: "final_meeting"
- final_meeting_date: the meeting date; put location and time in notes
- Keep liquidation_type null; do NOT merge these into other records

**Partnership Notices**
- ONLY partnerships with liquidation language ("voluntary liquidation", "winding up", "liquidator", "dissolution")
- entity_type: "Partnership", liquidation_type: "Voluntary", General Partner or liquidator in liquidators

**Bankruptcy Notices**
- entity_type: "Individual" or "Company", liquidation_type: "Bankruptcy"
- liquidators: Trustee(s) in Bankruptcy, or ["Court-Appointed Trustee"] if unnamed

**Receivership Notices**
- liquidation_type: "Receivership", liquidators: Receiver name(s); appointing party and assets in notes

**Dividend Notices**
- ONLY dividends paid in a liquidation, never ordinary corporate dividends
- liquidation_type: "Dividend Distribution", liquidation_date: null; payment date and claim deadline in notes

**Grand Court Notices**
- ONLY notices containing "liquidation", "winding up", "liquidator", "FSD" or "Cause No."
- liquidation_type: "Court-Ordered", court_cause_no: the cause number"""


GAZETTE_FIELD_RULES = """### Record Fields
- entity_name: full legal name exactly as printed
- registration_no: keep prefixes (CR-, IC-, MC-, ...); null if not printed
- liquidators: always a list of names (individuals or firms)
- contact_emails: list of emails, [] when none
- court_cause_no: e.g. "FSD 123 of 2025"; null when not applicable
- source_section: the subsection heading the notice appears under
- notice_kind: "appointment" for every record except final-meeting notices
- Same entity twice ONLY for different segregated portfolios"""


GAZETTE_SCHEMA = """### Schema
{
  "status": "success" | "no_notices",
  "metadata": {"gazette_type": "Gazette" | "Extraordinary Gazette", "issue_number": "Ex84/2025", "publication_date": "YYYY-MM-DD"},
  "records": [
    {
      "entity_name": "...", "entity_type": "Company" | "Partnership" | "Individual" | "Trust" | "Other",
      "registration_no": null, "liquidation_type": "...", "liquidators": ["..."], "contact_emails": [],
      "court_cause_no": null, "liquidation_date": null, "final_meeting_date": null,
      "notes": null, "source_section": "...", "notice_kind": "appointment" | "final_meeting"
    }
  ]
}
Return "no_notices" ONLY when every target subsection is absent or shows "None"."""


def _numbered(headings: Sequence[str]) -> str:
    return "\n".join(f'{i}. "{heading}"' for i, heading in enumerate(headings, 1))


def build_gazette_scope(section_names: Optional[Sequence[str]] = None) -> str:
    """Which subsections to read: all targets, or just the ones in this batch."""
    if section_names:
        return f"""## SCOPE
Extract from the following COMMERCIAL subsections in this excerpt:
{_numbered(section_names)}

The text starts with the first pages of the gazette for issue metadata only.
Do NOT extract notices from those opening pages."""

    return f"""## SCOPE
Extract from these COMMERCIAL subsections ONLY, in this order:
{_numbered(GAZETTE_TARGET_SUBSECTIONS)}

STOP after "{GAZETTE_TARGET_SUBSECTIONS[-1]}". Do NOT extract from:
{", ".join(GAZETTE_STOP_SUBSECTIONS)}, or any GOVERNMENT section."""


def build_gazette_prompt(section_names: Optional[Sequence[str]] = None) -> str:
    """Build the gazette prompt; section_names narrows it to one batch."""
    parts: List[str] = [GAZETTE_ROLE, VERBATIM_EXTRACTION_RULES, build_gazette_scope(section_names)]
    if not section_names:
        parts.append(GAZETTE_CONTENTS_RULES)
    parts.extend([GAZETTE_SECTION_RULES, GAZETTE_FIELD_RULES, DATE_RULES, JSON_OUTPUT_RULES, GAZETTE_SCHEMA])
    if section_names and FINAL_MEETING_SECTION not in section_names:
        parts.append("This excerpt has no final-meeting subsection; every record is an appointment.")
    return "\n\n".join(parts)


# ── Case filing ────────────────────────────────────────────────────────

CASE_ROLE = """You are a specialized legal document extraction system for Cayman Islands court petitions
(Grand Court, Financial Services Division). Extract the key facts of the petition as structured JSON."""


CASE_VALIDATION_RULES = """### Validate Before Answering
1. Name changes: the full chronological sequence of former names, no gaps
2. Dates: incorporation < meetings < filing < hearing; re-read the document if they are not
3. Amounts: shares × par value = capital; authorised capital ≥ issued capital
4. Petition type from the statutes cited, the relief sought and any insolvency practitioners:
   Capital Reduction / Winding Up / Administration / Restructuring / Supervision Order / Other"""


CASE_CATEGORY_RULES = """### Record Categories
One record per fact, each with a category:
- party: petitioner, respondent, directors, shareholders (name + role in description)
- timeline_event: dated events (incorporation, meetings, resolutions, filing, hearing)
- financial: authorised / issued capital, proposed changes, debts; amount WITH currency
- insolvency_practitioner: liquidators, restructuring officers, provisional liquidators
- creditor: creditors and the amounts owed to them
- name_change: each former name with the dates it was used"""


CASE_SCHEMA = """### Schema
{
  "status": "success",
  "metadata": {
    "company_name": "...", "registration_no": "...", "incorporation_date": "YYYY-MM-DD",
    "court": "...", "cause_no": "FSD ... of 2025", "filing_date": "YYYY-MM-DD",
    "petition_type": "...", "law_firm": "...", "solvency_status": "Solvent" | "Insolvent" | "Unknown"
  },
  "records": [
    {"category": "timeline_event", "description": "...", "date": "YYYY-MM-DD", "amount": null, "name": null}
  ]
}"""


def build_case_prompt(section_names: Optional[Sequence[str]] = None) -> str:
    """Build the case-filing prompt; section_names narrows it to one batch."""
    parts: List[str] = [CASE_ROLE, VERBATIM_EXTRACTION_RULES]
    if section_names:
        parts.append(
            "## SCOPE\nThis is an excerpt of a longer petition containing these parts:\n"
            f"{_numbered(section_names)}\n\n"
            "The text starts with the opening of the petition for metadata context. "
            "Extract facts from the listed parts only."
        )
    parts.extend([CASE_VALIDATION_RULES, CASE_CATEGORY_RULES, DATE_RULES, JSON_OUTPUT_RULES, CASE_SCHEMA])
    return "\n\n".join(parts)


# ── Text acquisition (provider fallback) ───────────────────────────────

TEXT_ACQUISITION_PROMPT = """Transcribe the full text of this PDF in reading order.
- Keep every heading on its own line, exactly as printed
- Keep page references such as "Pg.1387" as printed
- Do not summarize, translate or skip anything
- Output plain text only"""
