#!/usr/bin/env python3
"""
office2pdf - Office Document to PDF Converter

Command line entry point.
"""

import sys
import os
import logging
import argparse
import json
from pathlib import Path
from typing import Optional, List


def get_log_directory() -> Path:
    """Get the log directory (OFFICE2PDF_LOG_DIR or the user's local share)."""
    configured = os.environ.get('OFFICE2PDF_LOG_DIR')
    if configured:
        log_dir = Path(configured)
    elif sys.platform == 'win32':
        log_dir = Path(os.environ.get('LOCALAPPDATA', Path.home())) / 'office2pdf' / 'logs'
    elif sys.platform == 'darwin':
        log_dir = Path.home() / 'Library' / 'Logs' / 'office2pdf'
    else:
        log_dir = Path.home() / '.local' / 'share' / 'office2pdf' / 'logs'

    try:
        log_dir.mkdir(parents=True, exist_ok=True)
    except OSError:
        # Fallback to temp directory if we can't create the preferred location
        import tempfile
        log_dir = Path(tempfile.gettempdir()) / 'office2pdf' / 'logs'
        log_dir.mkdir(parents=True, exist_ok=True)

    return log_dir


def setup_logging(verbose: bool = False, log_to_file: bool = True):
    """Configure application logging."""
    handlers: List[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    log_file = None
    if log_to_file:
        log_file = get_log_directory() / "office2pdf.log"
        handlers.append(logging.FileHandler(log_file))

    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=handlers
    )

    if log_file:
        logging.getLogger(__name__).debug(f"Log file location: {log_file}")

    # Reduce noise from some libraries
    logging.getLogger('PIL').setLevel(logging.WARNING)
    logging.getLogger('fontTools').setLevel(logging.WARNING)
    logging.getLogger('pikepdf').setLevel(logging.WARNING)


def check_dependencies(orchestrator):
    """Check for optional dependencies and return warnings for missing ones."""
    warnings = []

    presence = orchestrator.probe.probe()
    if not presence.available:
        warnings.append(
            "LibreOffice not found. Documents will be converted with reduced fidelity.\n"
            "Install from: https://www.libreoffice.org/download/ "
            "or set OFFICE2PDF_ENGINE_PATH"
        )

    return warnings


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='office2pdf',
        description='Convert Word, PowerPoint and Excel documents to PDF.'
    )
    parser.add_argument('--config', help='JSON settings file')
    parser.add_argument('-v', '--verbose', action='store_true', help='Debug logging')
    parser.add_argument('--no-log-file', action='store_true', help='Log to stderr only')

    subparsers = parser.add_subparsers(dest='command', required=True)

    convert_parser = subparsers.add_parser('convert', help='Convert a document to PDF')
    convert_parser.add_argument('input', help='Document to convert')
    convert_parser.add_argument('-o', '--output', help='Output PDF (default: next to the input)')
    convert_parser.add_argument(
        '--category',
        help='word, powerpoint or excel (default: from the file extension)'
    )
    convert_parser.add_argument('--timeout-ms', type=int, help='External engine time budget')

    subparsers.add_parser('capabilities', help='Show which conversion tiers are available')
    subparsers.add_parser('diagnostics', help='Print a diagnostic report')

    return parser


def run_convert(orchestrator, args) -> int:
    from converter import FormatCategory, ConversionFailed, InvalidRequest
    from utils.file_utils import pdf_output_path

    logger = logging.getLogger(__name__)
    input_path = Path(args.input)

    if args.category:
        try:
            category = FormatCategory.parse(args.category)
        except ValueError as e:
            print(f"Error: {e}", file=sys.stderr)
            return 2
    else:
        category = FormatCategory.from_filename(input_path.name)
        if category is None:
            print(f"Error: Unsupported file type: {input_path.suffix or input_path.name}", file=sys.stderr)
            return 2

    output_path = Path(args.output) if args.output else pdf_output_path(input_path)

    try:
        result = orchestrator.convert(input_path, output_path, category, args.timeout_ms)
    except InvalidRequest as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2
    except ConversionFailed as e:
        logger.exception(f"Conversion failed: {e}")
        print(f"Error: {e}", file=sys.stderr)
        return 1

    print(f"{result.output_path} ({result.tier_used})")
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(argv)
    setup_logging(verbose=args.verbose, log_to_file=not args.no_log_file)
    logger = logging.getLogger(__name__)

    from converter import ConversionOrchestrator, load_config
    from utils.system_info import generate_diagnostic_report, log_system_info

    try:
        config = load_config(args.config)
    except (OSError, ValueError) as e:
        print(f"Error: could not load settings: {e}", file=sys.stderr)
        return 2

    orchestrator = ConversionOrchestrator(config)

    if args.command == 'convert':
        log_system_info()
        for warning in check_dependencies(orchestrator):
            logger.warning(warning)
        return run_convert(orchestrator, args)

    if args.command == 'capabilities':
        print(json.dumps(orchestrator.capabilities().as_dict(), indent=2))
        return 0

    if args.command == 'diagnostics':
        print(generate_diagnostic_report(orchestrator))
        return 0

    logger.error(f"Unknown command: {args.command}")
    return 2


if __name__ == "__main__":
    sys.exit(main())
