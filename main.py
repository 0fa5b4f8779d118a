#!/usr/bin/env python3
"""
Invoice Engine - Main Entry Point.

Command-line interface for processing a single invoice, either a photo
(recognized, extracted and arbitrated) or a text file (extracted and
arbitrated). The structured result is printed as JSON.

Usage:
    Command Line:
        python main.py --input receipt.jpg
        python main.py --input invoice.txt --text --vendor sysco
        python main.py --input invoice.txt --text --arbitrate-only

    Python:
        from main import run_pipeline
        result = run_pipeline("receipt.jpg")
"""

import argparse
import json
import sys
from pathlib import Path
from typing import Any, Dict, Optional

from invoice_engine.arbitration import find_best_total
from invoice_engine.config import ConfigurationManager
from invoice_engine.pipeline import InvoicePipeline
from invoice_engine.utils.logger import get_logger, setup_logger_from_config

TEXT_EXTENSIONS = {'.txt', '.text'}


def parse_arguments(argv: Optional[list] = None) -> argparse.Namespace:
    """
    Parse command-line arguments.

    Returns:
        Parsed argument namespace.
    """
    parser = argparse.ArgumentParser(
        description="Invoice total arbitration and extraction engine",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    Process a photo:
        python main.py --input receipt.jpg --user-id 42

    Process recognized text with a known vendor:
        python main.py --input invoice.txt --text --vendor cintas

    Only arbitrate the grand total of a text file:
        python main.py --input invoice.txt --arbitrate-only --parser-total 10850
        """
    )

    parser.add_argument(
        "--input", "-i",
        type=str,
        required=True,
        help="Invoice image or text file"
    )

    parser.add_argument(
        "--text",
        action="store_true",
        help="Treat the input as text (implied for .txt files)"
    )

    parser.add_argument(
        "--vendor",
        type=str,
        default=None,
        help="Known vendor key for text input (e.g. cintas, sysco)"
    )

    parser.add_argument(
        "--arbitrate-only",
        action="store_true",
        help="Run total arbitration on text input and print its trace"
    )

    parser.add_argument(
        "--parser-total",
        type=int,
        default=None,
        help="Parser total in cents, for --arbitrate-only"
    )

    parser.add_argument(
        "--user-id",
        type=str,
        default=None,
        help="User id stored with the run record"
    )

    parser.add_argument(
        "--config", "-c",
        type=str,
        default=None,
        help="Path to custom configuration file"
    )

    parser.add_argument(
        "--no-database",
        action="store_true",
        help="Do not write a run record"
    )

    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging"
    )

    return parser.parse_args(argv)


def initialize_system(args: argparse.Namespace) -> ConfigurationManager:
    """
    Load configuration, apply command-line overrides and set up logging.

    Logging goes to stderr unless ``logging.console.stream`` says otherwise;
    stdout is reserved for the JSON result.
    """
    config = ConfigurationManager(args.config)
    if args.debug:
        config.set("logging.level", "DEBUG")
    if args.no_database:
        config.set("output.database.enabled", False)

    logger = setup_logger_from_config()
    logger.info(f"Invoice engine {config.get('project.version', '1.0.0')}, input: {args.input}")
    return config


def run_pipeline(
    input_path: str,
    as_text: bool = False,
    vendor_key: Optional[str] = None,
    user_id: Optional[str] = None,
    record_runs: Optional[bool] = None
) -> Dict[str, Any]:
    """
    Process one invoice file through the pipeline.

    Args:
        input_path: Path to an image or text file.
        as_text: Force text processing.
        vendor_key: Known vendor key for text input.
        user_id: User id stored with the run record.
        record_runs: Override ``output.database.enabled``.

    Returns:
        PipelineResult as a dictionary.
    """
    path = Path(input_path)
    metadata = {'filename': path.name, 'file_size': path.stat().st_size}
    pipeline = InvoicePipeline(record_runs=record_runs)

    if as_text or path.suffix.lower() in TEXT_EXTENSIONS:
        text = path.read_text(encoding='utf-8', errors='replace')
        result = pipeline.process_text(text, vendor_key=vendor_key, metadata=metadata, user_id=user_id)
    else:
        result = pipeline.process_image(path.read_bytes(), metadata=metadata, user_id=user_id)

    return result.to_dict()


def run_arbitration(input_path: str, parser_total_cents: Optional[int] = None,
                    vendor_key: Optional[str] = None) -> Dict[str, Any]:
    """Arbitrate the grand total of a text file and return the decision trace."""
    text = Path(input_path).read_text(encoding='utf-8', errors='replace')
    return find_best_total(text, parser_total_cents=parser_total_cents, vendor_key=vendor_key).to_dict()


def main(argv: Optional[list] = None) -> int:
    """
    Main function - entry point for command-line execution.

    Returns:
        Exit code (0 when the result is ok, 2 when it is not, 1 on errors).
    """
    try:
        args = parse_arguments(argv)
        initialize_system(args)
        logger = get_logger(__name__)

        input_path = Path(args.input)
        if not input_path.is_file():
            raise FileNotFoundError(f"Input file not found: {input_path}")

        if args.arbitrate_only:
            output = run_arbitration(args.input, args.parser_total, args.vendor)
            print(json.dumps(output, indent=2))
            return 0

        output = run_pipeline(
            args.input,
            as_text=args.text,
            vendor_key=args.vendor,
            user_id=args.user_id,
        )
        print(json.dumps(output, indent=2))

        logger.info(f"Run {output['pipeline_id']} finished, ok={output['ok']}")
        return 0 if output['ok'] else 2

    except FileNotFoundError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    except KeyboardInterrupt:
        print("\nOperation cancelled by user", file=sys.stderr)
        return 130

    except Exception as e:
        print(f"Unexpected error: {e}", file=sys.stderr)
        if "--debug" in (argv if argv is not None else sys.argv[1:]):
            import traceback
            traceback.print_exc()
        return 1


if __name__ == "__main__":
    sys.exit(main())
