#!/usr/bin/env python3

import argparse
import logging
import sys
from pathlib import Path

from faers_extract.cli import setup_logging
from faers_extract.config import DEFAULT_OCCUPATIONS, ExtractionConfig
from faers_extract.pipeline import filter_by_occupation, normalize_cohort, run_pipeline


def main():
    parser = argparse.ArgumentParser(description='Run FAERS single-drug extraction step by step')

    parser.add_argument(
        '--working-dir',
        type=Path,
        default=Path(__file__).parent,
        help='Directory containing the faers_ascii_*.zip archives'
    )

    parser.add_argument(
        '--steps',
        nargs='+',
        choices=['extract', 'filter', 'normalize', 'all'],
        default=['all'],
        help='Processing steps to execute'
    )

    parser.add_argument(
        '--max-workers',
        type=int,
        default=1,
        help='Number of parallel workers for the extract step (default: 1)'
    )

    parser.add_argument(
        '--occupations',
        nargs='+',
        default=list(DEFAULT_OCCUPATIONS),
        help='Reporter occupation codes kept by the filter step'
    )

    parser.add_argument(
        '--log-level',
        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
        default='INFO',
        help='Set logging level'
    )

    args = parser.parse_args()
    setup_logging(args.log_level)

    steps = args.steps if 'all' not in args.steps else ['extract', 'filter', 'normalize']

    if 'extract' in steps:
        logging.info("Extracting single-drug cases from all archives...")
        run_pipeline(ExtractionConfig(
            working_dir=args.working_dir,
            max_workers=args.max_workers,
            only_extract=True,
        ))

    if 'filter' in steps:
        logging.info("Filtering data by reporter occupation...")
        filter_by_occupation(args.working_dir, occupations=args.occupations)

    if 'normalize' in steps:
        logging.info("Changing all age units to days...")
        normalize_cohort(args.working_dir)

    logging.info("All requested steps completed successfully")


if __name__ == "__main__":
    sys.exit(main())
