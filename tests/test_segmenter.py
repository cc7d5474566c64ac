"""Tests for template-driven section identification."""

import pytest

from constants import GAZETTE_TARGET_SUBSECTIONS
from errors import SegmentationFailed
from estimator import HeuristicTokenEstimator
from segmenter import (
    CASE_FILING_TEMPLATE,
    GAZETTE_TEMPLATE,
    SectionTemplate,
    extract_region,
    identify_sections,
    segment,
)

LIQUIDATION, FINAL_MEETING = GAZETTE_TARGET_SUBSECTIONS[:2]

GAZETTE_WITH_CONTENTS = f"""CONTENTS
COMMERCIAL ........................................ Pg.1380
{LIQUIDATION} ........ Pg.1387
{FINAL_MEETING} ........ Pg.1401
Partnership Notices ........ None
GOVERNMENT ........................................ Pg.1420

COMMERCIAL

{LIQUIDATION}

ACME HOLDINGS LTD (In Voluntary Liquidation)
Registration No. 123456
Voluntary Liquidator: Jane Smith

{FINAL_MEETING}

BETA FUND LIMITED
Final meeting to be held on 15 November 2025

Dormant Accounts Notices

GAMMA LTD dormant account notice

GOVERNMENT
Appointments
"""

PETITION = """IN THE GRAND COURT OF THE CAYMAN ISLANDS
FINANCIAL SERVICES DIVISION

1. The Company
The Company was incorporated on 3 March 2010 as an exempted company.

Share Capital
The authorised share capital is US$50,000.

Background
The Company carried on business as an investment fund.

Grounds:
The Company is unable to pay its debts.

Affidavit
Sworn statement in support.
"""


@pytest.fixture
def heuristic():
    return HeuristicTokenEstimator()


class TestGazetteSegmentation:

    def test_contents_page_entries_are_skipped(self, heuristic):
        sections = segment(GAZETTE_WITH_CONTENTS, GAZETTE_TEMPLATE, heuristic)

        assert [s.name for s in sections] == [LIQUIDATION, FINAL_MEETING]
        assert "ACME HOLDINGS LTD" in sections[0].content
        assert sections[0].content.startswith(LIQUIDATION)
        assert "BETA FUND LIMITED" in sections[1].content

    def test_terminal_heading_ends_scope(self, heuristic):
        sections = segment(GAZETTE_WITH_CONTENTS, GAZETTE_TEMPLATE, heuristic)

        assert "Dormant Accounts" not in sections[-1].content
        assert "GAMMA LTD" not in sections[-1].content

    def test_sections_are_contiguous_and_ordered(self, heuristic):
        sections = segment(GAZETTE_WITH_CONTENTS, GAZETTE_TEMPLATE, heuristic)

        assert [s.ordinal for s in sections] == [0, 1]
        assert sections[0].char_end == sections[1].char_start
        for section in sections:
            assert GAZETTE_WITH_CONTENTS[section.char_start:section.char_end] == section.content
            assert section.estimated_tokens == heuristic.estimate_text(section.content)

    def test_region_starts_at_commercial_heading(self):
        start, end = extract_region(GAZETTE_WITH_CONTENTS, GAZETTE_TEMPLATE)

        assert GAZETTE_WITH_CONTENTS[start:].startswith("COMMERCIAL\n")
        assert GAZETTE_WITH_CONTENTS[end:].startswith("GOVERNMENT\nAppointments")

    def test_region_marker_is_case_sensitive(self):
        text = "The commercial court heard the matter.\nPartnership Notices\nDELTA LP\n"
        start, end = extract_region(text, GAZETTE_TEMPLATE)
        assert (start, end) == (0, len(text))

    def test_wrapped_heading_still_matches(self, heuristic):
        wrapped = LIQUIDATION.replace(" Appointment", "\nAppointment")
        text = f"COMMERCIAL\n{wrapped}\nACME LTD\n"

        sections = segment(text, GAZETTE_TEMPLATE, heuristic)

        assert sections[0].name == LIQUIDATION

    def test_no_headings_fails(self, heuristic):
        with pytest.raises(SegmentationFailed):
            segment("COMMERCIAL\nnothing recognisable here\n", GAZETTE_TEMPLATE, heuristic)

    def test_missing_headings_are_skipped(self, heuristic):
        text = "COMMERCIAL\nPartnership Notices\nDELTA LP\nGrand Court Notices\nCause No. FSD 1 of 2025\n"

        sections = identify_sections(text, GAZETTE_TEMPLATE, heuristic)

        assert [s.name for s in sections] == ["Partnership Notices", "Grand Court Notices"]
        assert [s.ordinal for s in sections] == [0, 1]


class TestCaseFilingSegmentation:

    def test_line_anchored_headings(self, heuristic):
        sections = segment(PETITION, CASE_FILING_TEMPLATE, heuristic)

        assert [s.name for s in sections] == ["The Company", "Share Capital", "Background", "Grounds"]
        assert "incorporated on 3 March 2010" in sections[0].content

    def test_running_text_is_not_a_heading(self, heuristic):
        text = "The Company was incorporated in 2010 and its Background is set out below.\n"
        with pytest.raises(SegmentationFailed):
            segment(text, CASE_FILING_TEMPLATE, heuristic)

    def test_stop_heading_excludes_affidavit(self, heuristic):
        sections = segment(PETITION, CASE_FILING_TEMPLATE, heuristic)
        assert "Sworn statement" not in sections[-1].content

    def test_custom_template(self, heuristic):
        template = SectionTemplate(name="memo", headings=("Summary", "Details"), line_anchored=True)
        text = "Summary\nshort\nDetails\nlonger text\n"

        sections = segment(text, template, heuristic)

        assert [s.content for s in sections] == ["Summary\nshort\n", "Details\nlonger text\n"]
