# Gazette COMMERCIAL subsections in the order they are printed
GAZETTE_TARGET_SUBSECTIONS = (
    "Liquidation Notices, Notices of Winding Up, Appointment of Voluntary Liquidators and Notices to Creditors",
    "Notices of Final Meeting of Shareholders",
    "Partnership Notices",
    "Bankruptcy Notices",
    "Receivership Notices",
    "Dividend Notices",
    "Grand Court Notices",
)

# Subsections that end the extraction scope
GAZETTE_STOP_SUBSECTIONS = (
    "Dormant Accounts Notices",
    "Notice of Special Strike",
    "Reduction of Capital",
    "Certificate of Merger Notices",
    "Transfer of Companies",
    "Struck-off List",
    "Demand Notices",
    "Regulatory Agency Notices",
    "General Commercial Notices",
)

GAZETTE_REGION_START = "COMMERCIAL"
GAZETTE_REGION_END = ("GOVERNMENT",)

FINAL_MEETING_SECTION = GAZETTE_TARGET_SUBSECTIONS[1]

# Petition headings, in filing order
CASE_FILING_HEADINGS = (
    "The Company",
    "Share Capital",
    "Background",
    "Resolutions",
    "Grounds",
    "Relief Sought",
)

CASE_FILING_STOP_HEADINGS = (
    "Affidavit",
    "Exhibit",
    "Schedule of Documents",
)

# A heading followed by leader dots and a page reference is a contents-page entry
CONTENTS_ENTRY_LOOKAHEAD_CHARS = 60

# Values the model uses when it found nothing
PLACEHOLDER_VALUES = frozenset({
    "",
    "n/a",
    "na",
    "none",
    "null",
    "unknown",
    "not mentioned",
    "not mentioned in document",
    "not specified",
    "not provided",
    "not applicable",
})

# Stripped from entity names before cross-referencing
CORPORATE_SUFFIXES = (
    "limited",
    "ltd",
    "inc",
    "incorporated",
    "llc",
    "lp",
    "l.p",
    "spc",
    "corp",
    "corporation",
)

RESPONSE_PREVIEW_CHARS = 500
