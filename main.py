import argparse
import json
import sys
from dataclasses import replace
from pathlib import Path
from typing import List, Optional

# Fix Windows console encoding
if sys.platform == "win32":
    sys.stdout.reconfigure(encoding='utf-8')
    sys.stderr.reconfigure(encoding='utf-8')

from config import ExtractionConfig, DEFAULT_CONFIG, get_model_by_name
from documents import Document, DocumentKind
from errors import ExtractionError
from logs import setup_logging
from pipeline import process_document
from storage import JsonFileStore, JsonlReviewQueue


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Extract structured records from court filings and gazettes",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    python main.py gazette_ex84.pdf --kind gazette-issue --issue-number Ex84/2025
    python main.py petition.pdf --kind case-filing --case-id FSD-123-2025 -v
        """
    )

    parser.add_argument(
        "file_path",
        help="Path to the document file (PDF, or plain text already extracted)"
    )
    parser.add_argument(
        "-k", "--kind",
        required=True,
        choices=[k.value for k in DocumentKind],
        help="Declared document kind"
    )
    parser.add_argument("--issue-number", help="Gazette issue number (overrides the extracted one)")
    parser.add_argument("--issue-date", help="Gazette issue date, YYYY-MM-DD")
    parser.add_argument("--gazette-type", choices=["regular", "extraordinary"], help="Gazette type")
    parser.add_argument("--case-id", help="Case identifier from the upstream registry")
    parser.add_argument("--model", help="Model name (default from EXTRACTOR_MODEL)")
    parser.add_argument("-o", "--output", help="Output JSON path (default: next to the input)")
    parser.add_argument("--results-dir", help="Also store results as JSON files in this directory")
    parser.add_argument("--review-queue", help="Append review items to this JSON-lines file")
    parser.add_argument("--debug", action="store_true", help="Save acquired and batch text to the debug dir")
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Log intermediate processing steps"
    )
    return parser


def build_config(args: argparse.Namespace, base: ExtractionConfig = DEFAULT_CONFIG) -> ExtractionConfig:
    config = base
    if args.model:
        config = replace(config, model=get_model_by_name(args.model))
    if args.debug:
        config = replace(config, debug_enabled=True)
    return config.validate()


def build_document(args: argparse.Namespace) -> Document:
    return Document.from_path(
        args.file_path,
        DocumentKind(args.kind),
        issue_number=args.issue_number,
        issue_date=args.issue_date,
        gazette_type=args.gazette_type,
        case_id=args.case_id,
    )


def main(argv: Optional[List[str]] = None):
    """Main entry point for CLI usage."""
    args = build_parser().parse_args(argv)
    setup_logging("DEBUG" if args.verbose else None)

    try:
        config = build_config(args)
        document = build_document(args)

        store = JsonFileStore(args.results_dir) if args.results_dir else None
        review_queue = JsonlReviewQueue(args.review_queue) if args.review_queue else None
        outcome, item_id = process_document(document, config, store=store, review_queue=review_queue)
        result = outcome.result

        # Format as JSON
        output_json = json.dumps(result.model_dump(mode="json"), indent=2, ensure_ascii=False)

        # Same name as input, but .json extension
        output_path = Path(args.output) if args.output else Path(args.file_path).with_suffix(".json")
        with open(output_path, "w", encoding="utf-8") as f:
            f.write(output_json)

        print(f"✓ {len(result.records)} records ({result.processing_mode}), quality {result.quality_score:.1f}")
        if result.batch_diagnostics:
            print(f"  {len(result.batch_diagnostics)} batch(es) failed, see batch_diagnostics")
        if result.requires_review:
            print("  Flagged for review")
        if item_id:
            print(f"  Stored as {item_id}")
        print(f"✓ Results saved to: {output_path}")

    except FileNotFoundError as e:
        print(f"✗ Error: {e}", file=sys.stderr)
        sys.exit(1)
    except ValueError as e:
        print(f"✗ Validation Error: {e}", file=sys.stderr)
        sys.exit(1)
    except ExtractionError as e:
        print(f"✗ Extraction failed ({e.code}): {e}", file=sys.stderr)
        sys.exit(2)
    except OSError as e:
        print(f"✗ Could not write results: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
