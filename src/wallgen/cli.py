"""
Command-line interface for the wall centerline generator.

Reads a JSON document with wall segments, optional axes and optional
processor overrides, runs the WallSegmentProcessor and writes the result.
"""

import sys
import json
import argparse
import logging
from pathlib import Path
from typing import List, Optional

from pydantic import ValidationError

from src.services.config_service import ConfigService
from src.services.logging_service import LoggingService
from src.utils.env_loader import load_env_automatically
from src.wallgen.core.segment_processor import WallSegmentProcessor
from src.wallgen.models.pipeline import ProcessingInput, ProcessingResult
from src.wallgen.output.json_exporter import JsonExporter

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Wall centerline generator - turn wall face segments into centerlines")
    parser.add_argument("input_path", type=str, help="Path to input JSON (segments, axes, config overrides)")
    parser.add_argument(
        "--output",
        "-o",
        type=str,
        default=None,
        help="Output JSON path (default: <input>_centerlines.json next to the input)"
    )
    parser.add_argument(
        "--config",
        type=str,
        default=None,
        help="Path to configuration file (default: $WALLGEN_CONFIG or config.yaml)"
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable verbose logging"
    )
    parser.add_argument(
        "--trace-dir",
        type=str,
        default=None,
        help="Directory for per-stage pipeline trace logs"
    )
    return parser


def load_input(input_path: Path) -> ProcessingInput:
    """
    Parse an input document.

    Raises:
        OSError: If the file cannot be read
        json.JSONDecodeError: If the file is not valid JSON
        ValidationError: If the document does not match ProcessingInput
    """
    with input_path.open("r", encoding="utf-8") as f:
        data = json.load(f)
    return ProcessingInput.model_validate(data)


def default_output_path(input_path: Path) -> Path:
    return input_path.with_name(f"{input_path.stem}_centerlines.json")


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entry point. Returns the process exit code."""
    load_env_automatically()

    args = build_parser().parse_args(argv)

    config_service = ConfigService(config_path=Path(args.config) if args.config else None)
    logging_config = config_service.get_config().logging

    log_level = logging.DEBUG if args.verbose else logging_config.level
    LoggingService.setup_logging(
        log_level=log_level,
        log_file=Path(logging_config.log_file) if logging_config.log_file else None
    )

    trace_dir = args.trace_dir or logging_config.trace_dir
    if trace_dir:
        LoggingService.setup_trace_logging(log_dir=Path(trace_dir))

    input_path = Path(args.input_path)
    try:
        processing_input = load_input(input_path)
        if processing_input.config:
            config_service.update_config({"processor": processing_input.config})
    except ValidationError as e:
        logger.error(f"Invalid input document {input_path}: {e}")
        return 1
    except json.JSONDecodeError as e:
        logger.error(f"Input is not valid JSON ({input_path}): {e}")
        return 1
    except OSError as e:
        logger.error(f"Cannot read input file {input_path}: {e}")
        return 1

    processor_config = config_service.get_processor_config()
    processor = WallSegmentProcessor(processor_config)

    logger.info(f"Processing {len(processing_input.segments)} segments from: {input_path}")
    centerlines = processor.process(processing_input.segments, processing_input.axes)

    result = ProcessingResult(
        centerlines=centerlines,
        stats=processor.get_stats(),
        config=processor_config.model_dump()
    )

    output_path = Path(args.output) if args.output else default_output_path(input_path)
    try:
        JsonExporter().export_json(result, output_path)
    except OSError as e:
        logger.error(f"Cannot write output file {output_path}: {e}")
        return 1

    # Print results summary
    stats = result.stats
    logger.info("=" * 60)
    logger.info("Centerline generation complete!")
    logger.info("=" * 60)
    logger.info(f"Input segments: {stats.input_segments}")
    logger.info(f"Wall pairs: {stats.detected_pairs}")
    logger.info(f"Single lines: {stats.single_centerlines}")
    logger.info(f"Gaps recovered: {stats.recovered_gaps}")
    logger.info(f"Centerlines: {stats.output_centerlines}")
    logger.info(f"Results saved to: {output_path}")
    logger.info("=" * 60)
    return 0


if __name__ == "__main__":
    sys.exit(main())
