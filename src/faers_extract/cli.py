#!/usr/bin/env python3
"""
CLI interface for FAERS single-drug extraction.

Unpacks the FAERS quarterly ASCII archives found in the working directory,
keeps the cases that report exactly one drug, restricts them to reports
from the requested reporter occupations and normalizes ages to days.

Directory Structure (under the working directory, or a temporary one):
    ├── DEMO/ REAC/ DRUG/ INDI/        # routed source tables
    ├── INDEX1PS/                      # single-drug index per quarter
    ├── DEMO1PS/ REAC1PS/ INDI1PS/     # tables restricted to single-drug cases
    ├── F_COREDATA_1PS_PROF/           # occupation-filtered cohort
    └── F_COREDATA_1PS_PROF_STU/       # normalized cohort

Usage:
    # Full run on 4 workers
    faers-extract --working-dir ./faers --max-workers 4

    # Only extract the single-drug partitions of the first two quarters
    faers-extract --working-dir ./faers --max-workers 2 --start-file 1 --end-file 2 --only-extract

    # Keep physicians and pharmacists only
    faers-extract --working-dir ./faers --max-workers 4 --occupations MD PH
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from .config import DEFAULT_OCCUPATIONS, ExtractionConfig
from .pipeline import run_pipeline


def setup_logging(level: str) -> None:
    """Configure logging with specified level."""
    numeric_level = getattr(logging, level.upper(), None)
    if not isinstance(numeric_level, int):
        raise ValueError(f'Invalid log level: {level}')

    logging.basicConfig(
        level=numeric_level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description='Extract single-drug FAERS reports submitted by healthcare professionals'
    )

    parser.add_argument(
        '--working-dir',
        type=Path,
        required=True,
        help='Directory containing the faers_ascii_*.zip archives'
    )

    parser.add_argument(
        '--use-temp-dir',
        action='store_true',
        help='Write processed files to a temporary directory instead of the working directory'
    )

    parser.add_argument(
        '--max-workers',
        type=int,
        required=True,
        help='Number of parallel workers for the per-quarter stages'
    )

    parser.add_argument(
        '--start-file',
        type=int,
        help='Index (1-based) of the first DRUG file to process'
    )

    parser.add_argument(
        '--end-file',
        type=int,
        help='Index (1-based) of the last DRUG file to process'
    )

    parser.add_argument(
        '--only-extract',
        action='store_true',
        help='Stop after writing the single-drug partitions'
    )

    parser.add_argument(
        '--occupations',
        nargs='+',
        default=list(DEFAULT_OCCUPATIONS),
        help=f"Reporter occupation codes to keep (default: {' '.join(DEFAULT_OCCUPATIONS)})"
    )

    parser.add_argument(
        '--use-dask',
        action='store_true',
        help='Use Dask to concatenate the per-quarter files'
    )

    parser.add_argument(
        '--log-level',
        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
        default='INFO',
        help='Set logging level'
    )

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entrypoint."""
    args = build_parser().parse_args(argv)
    setup_logging(args.log_level)

    try:
        config = ExtractionConfig(
            working_dir=args.working_dir,
            max_workers=args.max_workers,
            use_temp_dir=args.use_temp_dir,
            start_file=args.start_file,
            end_file=args.end_file,
            only_extract=args.only_extract,
            occupations=tuple(args.occupations),
            use_dask=args.use_dask,
        )
        result = run_pipeline(config)
    except Exception as e:
        logging.error(f"Pipeline failed: {str(e)}")
        return 1

    logging.info(f"All requested steps completed successfully: {result}")
    return 0


if __name__ == '__main__':
    sys.exit(main())
