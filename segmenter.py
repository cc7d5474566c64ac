"""Split acquired plain text into the named sections of a fixed template."""

import logging
import re
from dataclasses import dataclass
from typing import List, Optional, Tuple

from constants import (
    CASE_FILING_HEADINGS,
    CASE_FILING_STOP_HEADINGS,
    CONTENTS_ENTRY_LOOKAHEAD_CHARS,
    GAZETTE_REGION_END,
    GAZETTE_REGION_START,
    GAZETTE_STOP_SUBSECTIONS,
    GAZETTE_TARGET_SUBSECTIONS,
)
from errors import SegmentationFailed
from estimator import TokenEstimator

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SectionTemplate:
    """Ordered heading contract for one document kind."""
    name: str
    headings: Tuple[str, ...]
    terminal_headings: Tuple[str, ...] = ()
    region_start: Optional[str] = None
    region_end_markers: Tuple[str, ...] = ()
    # Headings must open a line (after optional numbering or markdown markup)
    line_anchored: bool = False


@dataclass(frozen=True)
class Section:
    name: str
    ordinal: int
    char_start: int
    char_end: int
    content: str
    estimated_tokens: int


GAZETTE_TEMPLATE = SectionTemplate(
    name="gazette-commercial",
    headings=GAZETTE_TARGET_SUBSECTIONS,
    terminal_headings=GAZETTE_STOP_SUBSECTIONS,
    region_start=GAZETTE_REGION_START,
    region_end_markers=GAZETTE_REGION_END,
)

CASE_FILING_TEMPLATE = SectionTemplate(
    name="case-petition",
    headings=CASE_FILING_HEADINGS,
    terminal_headings=CASE_FILING_STOP_HEADINGS,
    line_anchored=True,
)


_CONTENTS_ENTRY = re.compile(r'^[\s.…·_\-]*(?:Pg\.?\s*\d+|Page\s+\d+|None)\b', re.IGNORECASE)
_LINE_PREFIX = r'(?:^|\n)[ \t>#*_\-]*(?:(?:\d{1,2}|[A-Z]|[ivxIVX]{1,4})[.)]\s+)?'


def _heading_pattern(heading: str, line_anchored: bool, case_sensitive: bool = False) -> re.Pattern:
    # Extracted PDF text wraps long headings, so any whitespace run matches a space
    words = [re.escape(word) for word in heading.split()]
    body = r'\s+'.join(words)
    flags = 0 if case_sensitive else re.IGNORECASE
    if line_anchored:
        # Headings stand on their own line; "The Company was..." in running text is not one
        return re.compile(_LINE_PREFIX + rf'(?P<heading>{body})[ \t:.*_#]*(?=\r?\n|$)', flags)
    return re.compile(rf'\b(?P<heading>{body})\b', flags)


def _is_contents_entry(text: str, match_end: int) -> bool:
    """Heading followed by leader dots and a page number (or "None") on a contents page."""
    following = text[match_end:match_end + CONTENTS_ENTRY_LOOKAHEAD_CHARS]
    return bool(_CONTENTS_ENTRY.match(following))


def _find_heading(
    text: str,
    pattern: re.Pattern,
    start: int = 0,
    end: Optional[int] = None,
) -> Optional[Tuple[int, int]]:
    """First non-contents occurrence of a heading as (start, end) of the heading text."""
    end = len(text) if end is None else end
    for match in pattern.finditer(text, start, end):
        if _is_contents_entry(text, match.end()):
            continue
        return match.start("heading"), match.end("heading")
    return None


def extract_region(text: str, template: SectionTemplate) -> Tuple[int, int]:
    """Bounds of the part of the document the template applies to."""
    if not template.region_start:
        return 0, len(text)

    start_pattern = _heading_pattern(template.region_start, line_anchored=False, case_sensitive=True)
    found = _find_heading(text, start_pattern)
    if found is None:
        logger.warning("%s region not found, segmenting the full text", template.region_start)
        return 0, len(text)

    region_start = found[0]
    region_end = len(text)
    for marker in template.region_end_markers:
        marker_pattern = _heading_pattern(marker, line_anchored=False, case_sensitive=True)
        stop = _find_heading(text, marker_pattern, found[1])
        if stop is not None:
            region_end = min(region_end, stop[0])
    return region_start, region_end


def _first_terminal(text: str, template: SectionTemplate, start: int, end: int) -> int:
    stop_at = end
    for heading in template.terminal_headings:
        found = _find_heading(text, _heading_pattern(heading, template.line_anchored), start, stop_at)
        if found is not None:
            stop_at = found[0]
    return stop_at


def identify_sections(
    text: str,
    template: SectionTemplate,
    estimator: TokenEstimator,
) -> List[Section]:
    """Locate each expected heading in order; missing ones are skipped."""
    region_start, region_end = extract_region(text, template)

    # Everything after the first terminal heading is out of scope
    region_end = _first_terminal(text, template, region_start, region_end)

    located: List[Tuple[str, int, int]] = []
    cursor = region_start
    for heading in template.headings:
        found = _find_heading(text, _heading_pattern(heading, template.line_anchored), cursor, region_end)
        if found is None:
            logger.info("Subsection not found: %s", heading)
            continue
        located.append((heading, found[0], found[1]))
        cursor = found[1]

    sections: List[Section] = []
    for i, (heading, start, _) in enumerate(located):
        end = located[i + 1][1] if i + 1 < len(located) else region_end
        content = text[start:end]
        sections.append(Section(
            name=heading,
            ordinal=i,
            char_start=start,
            char_end=end,
            content=content,
            estimated_tokens=estimator.estimate_text(content),
        ))
    return sections


def segment(text: str, template: SectionTemplate, estimator: TokenEstimator) -> List[Section]:
    """Identify sections or fail the run when no boundary exists at all."""
    sections = identify_sections(text, template, estimator)

    if not sections:
        raise SegmentationFailed(
            f"Could not identify any expected section of template '{template.name}'. "
            f"The document may not follow the expected layout."
        )

    logger.info("Subsections found: %d of %d", len(sections), len(template.headings))
    for section in sections:
        logger.info(
            "  - Section %d: %s (~%s tokens)",
            section.ordinal + 1, section.name[:60], f"{section.estimated_tokens:,}",
        )
    return sections
