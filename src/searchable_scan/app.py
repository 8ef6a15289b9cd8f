from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from .config import Settings, get_settings
from .pipeline import BatchItem, DocumentInput, process_batch


def _default_output_path(input_path: Path, output_dir: Path | None = None) -> Path:
    directory = output_dir if output_dir is not None else input_path.parent
    return directory / f"{input_path.stem}_searchable.pdf"


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="searchable-scan",
        description=(
            "Recognize text in scanned images and PDFs and write searchable PDFs with an "
            "invisible text layer (works with Ctrl+F in PDF readers)."
        ),
    )
    parser.add_argument("inputs", type=Path, nargs="+", help="Images or PDFs to process")
    parser.add_argument(
        "-o",
        "--output-dir",
        type=Path,
        default=None,
        help="Directory for the output PDFs (default: next to each input)",
    )
    parser.add_argument(
        "--engine",
        choices=("azure", "tesseract"),
        default=None,
        help="Recognition engine (default: from settings, azure)",
    )
    parser.add_argument(
        "-l",
        "--lang",
        default=None,
        help="Tesseract language(s), e.g. eng, rus+eng (tesseract engine only)",
    )
    parser.add_argument(
        "--max-attempts",
        type=int,
        default=None,
        help="Maximum number of status polls before giving up (default: 30)",
    )
    verbosity = parser.add_mutually_exclusive_group()
    verbosity.add_argument("--quiet", action="store_true", help="Only log warnings and errors")
    verbosity.add_argument("--verbose", action="store_true", help="Log per-line placement details")
    return parser


def _validate_args(args: argparse.Namespace) -> None:
    for input_path in args.inputs:
        if not input_path.exists():
            raise FileNotFoundError(f"Input file not found: {input_path}")
    if args.max_attempts is not None and args.max_attempts < 1:
        raise ValueError("--max-attempts must be >= 1")


def _configure_logging(args: argparse.Namespace) -> None:
    level = logging.INFO
    if args.quiet:
        level = logging.WARNING
    elif args.verbose:
        level = logging.DEBUG
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")


def _settings_from_args(args: argparse.Namespace) -> Settings:
    overrides: dict[str, object] = {}
    if args.engine is not None:
        overrides["engine"] = args.engine
    if args.lang is not None:
        overrides["tesseract_lang"] = args.lang
    if args.max_attempts is not None:
        overrides["max_poll_attempts"] = args.max_attempts
    settings = get_settings()
    return settings.model_copy(update=overrides) if overrides else settings


def _print_item(item: BatchItem) -> None:
    if not item.success:
        print(f"Error: {item.name}: {item.error}", file=sys.stderr)
        return

    summary = item.document.summary()
    status = "reused existing text" if summary["skippedRecognition"] else f"engine {summary['engine']}"
    print(f"{item.name}: {summary['pages']} page(s), confidence {summary['confidence']}%, {status}")
    if item.document.outcome is not None:
        print(f"  searchable PDF written to {item.document.outcome.path} ({item.document.outcome.method})")


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    try:
        _validate_args(args)
        documents = [DocumentInput.from_path(input_path) for input_path in args.inputs]
    except (FileNotFoundError, ValueError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 2

    _configure_logging(args)
    settings = _settings_from_args(args)
    items = process_batch(
        documents,
        settings,
        output_path_for=lambda document: _default_output_path(document.source, args.output_dir),
    )

    for item in items:
        _print_item(item)

    failed = sum(1 for item in items if not item.success)
    if failed:
        print(f"{failed} of {len(items)} document(s) failed", file=sys.stderr)
        return 2
    print(f"Done: {len(items)} document(s) processed")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
