"""Per-quarter workers deriving single-drug cases.

Each worker receives a :class:`QuarterTask` by value, reads exactly one
input file (plus the quarter's index for join tasks) and writes exactly one
output file. Workers keep no state between calls.
"""
import logging
import time

import pandas as pd

from ..models.faers_data import QuarterSummary, QuarterTask
from ..utils.helpers import read_extract_table, read_source_table, write_extract_table
from .validator import DataValidationError, DataValidator

logger = logging.getLogger(__name__)


def build_single_drug_index(drug_df: pd.DataFrame) -> pd.DataFrame:
    """Keep the drug rows of cases reporting exactly one drug.

    Cases with two or more drug rows are excluded whatever their content;
    among the rest, a row with an empty active ingredient is dropped.
    Input order is preserved.
    """
    drug_counts = drug_df.groupby('primaryid').size()
    single_ids = drug_counts.index[drug_counts == 1]
    single = drug_df[drug_df['primaryid'].isin(single_ids)]
    return single[single['prod_ai'] != '']


def filter_by_index(df: pd.DataFrame, index_df: pd.DataFrame) -> pd.DataFrame:
    """Semi-join: keep rows whose primaryid is in the index, in input order."""
    return df[df['primaryid'].isin(set(index_df['primaryid']))]


def run_index_task(task: QuarterTask) -> QuarterSummary:
    """Build and write one quarter's single-drug index."""
    start_time = time.time()
    logger.info(f"Processing DRUG file {task.quarter_index} ({task.input_path.name})")

    drug_df = read_source_table(task.input_path)
    DataValidator().require_valid(drug_df, 'DRUG', task.input_path.name)

    index_df = build_single_drug_index(drug_df)
    write_extract_table(index_df, task.output_path)

    logger.info(f"Finished DRUG file {task.quarter_index}: {len(index_df)}/{len(drug_df)} single-drug rows")
    return QuarterSummary(
        quarter_index=task.quarter_index,
        quarter=task.quarter,
        category=task.category,
        input_rows=len(drug_df),
        output_rows=len(index_df),
        processing_time=time.time() - start_time,
    )


def run_join_task(task: QuarterTask) -> QuarterSummary:
    """Filter one quarter file of DEMO, REAC or INDI against that quarter's index."""
    start_time = time.time()
    logger.info(f"Processing {task.category} file {task.quarter_index} ({task.input_path.name})")

    if not task.input_path.exists():
        raise DataValidationError(
            f"No {task.category} file for quarter {task.quarter} (expected {task.input_path})"
        )
    if task.index_path is None or not task.index_path.exists():
        raise DataValidationError(
            f"No single-drug index for quarter {task.quarter} (expected {task.index_path})"
        )

    validator = DataValidator()
    df = read_source_table(task.input_path)
    validator.require_valid(df, task.category, task.input_path.name)
    index_df = read_extract_table(task.index_path)
    validator.require_valid(index_df, 'INDEX', task.index_path.name)

    filtered = filter_by_index(df, index_df)
    write_extract_table(filtered, task.output_path)

    logger.info(f"Finished {task.category} file {task.quarter_index}: {len(filtered)}/{len(df)} rows kept")
    return QuarterSummary(
        quarter_index=task.quarter_index,
        quarter=task.quarter,
        category=task.category,
        input_rows=len(df),
        output_rows=len(filtered),
        processing_time=time.time() - start_time,
    )
