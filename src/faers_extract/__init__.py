"""Single-drug extraction of FAERS quarterly data."""
from .config import ExtractionConfig
from .pipeline import extract_faers_data, filter_by_occupation, normalize_cohort, run_pipeline

__version__ = "0.1.0"

__all__ = [
    'ExtractionConfig',
    'extract_faers_data',
    'filter_by_occupation',
    'normalize_cohort',
    'run_pipeline',
]
