"""End-to-end and stepwise entry points for FAERS single-drug extraction."""
import logging
from pathlib import Path
from typing import Iterable, Optional

from .config import COHORT_BUNDLE, ExtractionConfig, WorkspaceLayout, normalize_occupations
from .models.faers_data import CohortTables
from .services.cohort import CohortBuilder
from .services.processor import FAERSProcessor
from .services.standardizer import DataStandardizer
from .services.storage import load_table_bundle, save_table_bundle

logger = logging.getLogger(__name__)


def filter_by_occupation(working_dir: Path, occupations: Optional[Iterable[str]] = None,
                         save: bool = True, use_dask: bool = False) -> CohortTables:
    """Build the occupation-filtered cohort from a directory holding the *1PS folders.

    Args:
        working_dir: Directory containing INDEX1PS, DEMO1PS, REAC1PS and INDI1PS
        occupations: Reporter occupation codes to keep (default MD, HP, PH, OT)
        save: Persist the cohort as the F_COREDATA_1PS_PROF bundle
        use_dask: Concatenate quarter files with dask

    Returns:
        The six cohort tables
    """
    layout = WorkspaceLayout(Path(working_dir))
    builder = CohortBuilder(normalize_occupations(occupations), use_dask=use_dask)
    cohort = builder.build(layout)
    if save:
        save_table_bundle(cohort.as_dict(), layout.cohort_bundle)
    return cohort


def normalize_cohort(working_dir: Path, cohort: Optional[CohortTables] = None) -> Path:
    """Normalize a cohort and save it as the F_COREDATA_1PS_PROF_STU bundle.

    When ``cohort`` is not given, the F_COREDATA_1PS_PROF bundle saved in
    ``working_dir`` by :func:`filter_by_occupation` is used.

    Returns:
        Path of the saved bundle
    """
    layout = WorkspaceLayout(Path(working_dir))
    if cohort is None:
        cohort = CohortTables.from_dict(load_table_bundle(layout.base / COHORT_BUNDLE))

    normalized = DataStandardizer().normalize(cohort)
    bundle = save_table_bundle(normalized.as_dict(), layout.normalized_bundle)
    logger.info(f"Processed file that can be used for further analysis is in: {bundle}")
    return bundle


def run_pipeline(config: ExtractionConfig) -> Path:
    """Run every stage for a validated configuration.

    Returns:
        The workspace directory when ``only_extract`` is set, otherwise the
        path of the normalized bundle
    """
    processor = FAERSProcessor(config)
    processor.process()

    if config.only_extract:
        logger.info(
            f"Processing complete. Single-drug partitions are in: {processor.layout.base}. "
            "Run filter_by_occupation() and normalize_cohort() on this directory to finish."
        )
        return processor.layout.base

    logger.info("Filtering data by reporter occupation")
    cohort = filter_by_occupation(
        processor.layout.base,
        occupations=config.occupations,
        save=config.save_cohort,
        use_dask=config.use_dask,
    )
    logger.info("Changing all age units to days")
    return normalize_cohort(processor.layout.base, cohort=cohort)


def extract_faers_data(working_dir: Path, max_workers: int, use_temp_dir: bool = False,
                       start_file: Optional[int] = None, end_file: Optional[int] = None,
                       only_extract: bool = False, occupations: Optional[Iterable[str]] = None,
                       use_dask: bool = False) -> Path:
    """Extract single-drug, professionally reported cases from FAERS ASCII archives."""
    config = ExtractionConfig(
        working_dir=working_dir,
        max_workers=max_workers,
        use_temp_dir=use_temp_dir,
        start_file=start_file,
        end_file=end_file,
        only_extract=only_extract,
        occupations=normalize_occupations(occupations),
        use_dask=use_dask,
    )
    return run_pipeline(config)
