#!/usr/bin/env python
"""
Command-line interface for document layout structuring.

Usage:
    doclayout <pdf_or_image> [--output <output_dir>] [options]

Examples:
    # Analyze a PDF
    doclayout document.pdf --output ./output

    # Stricter detections, no OCR
    doclayout document.pdf --confidence-threshold 0.7 --no-ocr
"""

import argparse
import logging
import sys
import time
from typing import List, Optional

from . import __version__
from .config import LOG_FORMAT, get_config

logger = logging.getLogger("doclayout")


def setup_argparser() -> argparse.ArgumentParser:
    """Create argument parser."""
    parser = argparse.ArgumentParser(
        prog="doclayout",
        description="Document layout analysis - detections to a structured document",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  Analyze a PDF:
    doclayout document.pdf --output ./output

  Only the first three pages, without annotated images:
    doclayout document.pdf --pages 1-3 --no-annotate
        """
    )

    parser.add_argument(
        "input",
        help="Input PDF file or page image"
    )

    parser.add_argument(
        "--output", "-o",
        default=None,
        help="Output directory (default: ./output)"
    )

    parser.add_argument(
        "--confidence-threshold",
        type=float,
        default=None,
        help="Minimum detection score to keep (default: 0.50)"
    )

    parser.add_argument(
        "--row-tolerance",
        type=int,
        default=None,
        help="Vertical center distance (px) treated as one row (default: 20)"
    )

    parser.add_argument(
        "--dpi",
        type=int,
        default=None,
        help="DPI for PDF rasterization (default: 200)"
    )

    parser.add_argument(
        "--pages",
        type=str,
        default=None,
        help="Page range to process, e.g., '1-5' or '1,3,5' (default: all)"
    )

    parser.add_argument(
        "--language",
        default=None,
        help="Tesseract language (default: eng)"
    )

    parser.add_argument(
        "--no-ocr",
        action="store_true",
        help="Skip text extraction (regions get placeholder text)"
    )

    parser.add_argument(
        "--no-annotate",
        action="store_true",
        help="Do not write annotated page images"
    )

    parser.add_argument(
        "--model-path",
        default=None,
        help="Local ONNX layout model (default: download from the Hub)"
    )

    parser.add_argument(
        "--use-gpu",
        action="store_true",
        help="Use GPU for model inference if available"
    )

    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose output"
    )

    parser.add_argument(
        "--quiet", "-q",
        action="store_true",
        help="Suppress non-error output"
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}"
    )

    return parser


def parse_page_range(page_str: str) -> List[int]:
    """Parse a page range string ('1-3,5') to sorted page numbers."""
    pages = []

    for part in page_str.split(","):
        part = part.strip()
        if not part:
            continue
        if "-" in part:
            start, end = part.split("-", 1)
            pages.extend(range(int(start), int(end) + 1))
        else:
            pages.append(int(part))

    selected = sorted(set(p for p in pages if p >= 1))
    if not selected:
        raise ValueError(f"No pages selected by {page_str!r}")
    return selected


def build_config(args):
    """Pipeline configuration from environment plus command-line overrides."""
    config = get_config()

    if args.output:
        config.output.output_dir = args.output
    if args.confidence_threshold is not None:
        config.detection.confidence_threshold = args.confidence_threshold
    if args.row_tolerance is not None:
        config.detection.row_tolerance = args.row_tolerance
    if args.dpi is not None:
        config.dpi = args.dpi
    if args.language:
        config.ocr.language = args.language
    if args.no_ocr:
        config.ocr.enabled = False
    if args.no_annotate:
        config.output.annotate = False
    if args.model_path:
        config.detection.model_path = args.model_path
    if args.use_gpu:
        config.use_gpu = True

    return config


def print_summary(result, elapsed: float) -> None:
    metadata = result.document["metadata"]
    extraction = metadata["textExtraction"]

    print("\n" + "=" * 60)
    print("PROCESSING SUMMARY")
    print("=" * 60)
    print(f"Source: {metadata['pdfPath']}")
    print(f"Pages processed: {metadata['totalPages']}")
    print(f"Total time: {elapsed:.2f}s")
    print(f"Elements found: {metadata['totalDetections']}")
    print(f"Text extractions: {extraction['successful']}/{extraction['total']} "
          f"({extraction['successRate']:.1%})")
    if result.ocr_stats:
        print(f"OCR regions: {result.ocr_stats['attempted']} attempted, "
              f"{result.ocr_stats['failed']} failed after retries")
    print(f"Top-level sections: {len(result.document['documentStructure'])}")
    print()
    print("Page-by-page:")
    for page in result.pages:
        print(f"  Page {page.page_number}: {page.processing_time}s "
              f"({len(page.detections)} elements)")
    print()
    print("Output files:")
    for fmt, path in result.output_paths.items():
        print(f"  {fmt}: {path}")
    print("=" * 60)


def run_pipeline(args) -> int:
    """Run the layout pipeline."""
    from .utils.hierarchy import StructureError
    from .utils.pipeline import LayoutPipeline

    start_time = time.time()
    config = build_config(args)
    if config.debug_mode and not args.quiet:
        logging.getLogger().setLevel(logging.DEBUG)

    try:
        pages: Optional[List[int]] = parse_page_range(args.pages) if args.pages else None
    except ValueError as e:
        logger.error(f"Invalid page range: {e}")
        return 1

    pipeline = LayoutPipeline(config=config)

    try:
        result = pipeline.run(args.input, pages=pages)
    except FileNotFoundError as e:
        logger.error(str(e))
        return 1
    except StructureError as e:
        logger.error(f"Document structure is invalid, no output written: {e}")
        return 1

    if not args.quiet:
        print_summary(result, time.time() - start_time)

    return 0


def main(argv: Optional[List[str]] = None):
    """Main entry point."""
    parser = setup_argparser()
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO, format=LOG_FORMAT)
    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)
    elif args.quiet:
        logging.getLogger().setLevel(logging.ERROR)

    try:
        exit_code = run_pipeline(args)
        sys.exit(exit_code)
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        sys.exit(130)
    except Exception as e:
        logger.error(f"Unexpected error: {e}")
        if args.verbose:
            raise
        sys.exit(1)


if __name__ == "__main__":
    main()
