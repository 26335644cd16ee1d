"""Configuration for the FAERS single-drug extraction pipeline."""
import logging
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Final, Iterable, Optional, Tuple, Union

# Source file format
DELIMITER: Final[str] = '$'
ENCODING: Final[str] = 'latin-1'
ARCHIVE_PATTERN: Final[str] = r'faers_ascii.*\.zip$'

# Category markers, checked in this order against the file name
CATEGORY_MARKERS: Final[Tuple[str, ...]] = ('DEMO', 'REAC', 'DRUG', 'INDI')

# Categories filtered against the single-drug index
JOINED_CATEGORIES: Final[Tuple[str, ...]] = ('DEMO', 'REAC', 'INDI')

# MD (Medical Doctor), HP (Health Professional), PH (Pharmacist), OT (Other)
DEFAULT_OCCUPATIONS: Final[Tuple[str, ...]] = ('MD', 'HP', 'PH', 'OT')

# Multipliers converting an age value to days
AGE_UNIT_DAYS: Final[Dict[str, float]] = {
    'DEC': 3600,
    'YR': 360,
    'MON': 30,
    'WK': 7,
    'DY': 1,
    'HR': 1 / 24,
}

COUNTRY_FIXES: Final[Dict[str, str]] = {
    '': 'N.R.',
    ' ': 'N.R.',
    'TW': 'CN',
}

COHORT_BUNDLE: Final[str] = 'F_COREDATA_1PS_PROF'
NORMALIZED_BUNDLE: Final[str] = 'F_COREDATA_1PS_PROF_STU'


class ConfigurationError(ValueError):
    """Raised when pipeline options are missing or malformed."""


def normalize_occupations(codes: Union[str, Iterable[str], None]) -> Tuple[str, ...]:
    """Uppercase and strip occupation codes; a bare string is one code.

    Blank codes are dropped, and an empty selection falls back to
    DEFAULT_OCCUPATIONS.
    """
    if isinstance(codes, str):
        codes = (codes,)
    normalized = tuple(code.strip().upper() for code in (codes or ()) if code.strip())
    return normalized or DEFAULT_OCCUPATIONS


@dataclass
class ExtractionConfig:
    """Options recognized by the extraction pipeline.

    Validation happens on construction so a bad option stops the run
    before any file is touched.
    """
    working_dir: Optional[Path]
    max_workers: int
    use_temp_dir: bool = False
    start_file: Optional[int] = None
    end_file: Optional[int] = None
    only_extract: bool = False
    occupations: Tuple[str, ...] = DEFAULT_OCCUPATIONS
    use_dask: bool = False
    save_cohort: bool = True

    def __post_init__(self):
        if self.working_dir is None or str(self.working_dir) == '':
            raise ConfigurationError(
                "'working_dir' is not provided. Please specify the directory containing FAERS ASCII archives."
            )
        self.working_dir = Path(self.working_dir)

        if isinstance(self.max_workers, bool) or not isinstance(self.max_workers, int):
            raise ConfigurationError(
                f"'max_workers' must be an integer number of workers, got {self.max_workers!r}"
            )
        if self.max_workers < 1:
            raise ConfigurationError(f"'max_workers' must be at least 1, got {self.max_workers}")

        for name in ('start_file', 'end_file'):
            value = getattr(self, name)
            if value is None:
                continue
            if isinstance(value, bool) or not isinstance(value, int) or value < 1:
                raise ConfigurationError(f"'{name}' must be a positive integer, got {value!r}")
        if self.start_file and self.end_file and self.start_file > self.end_file:
            raise ConfigurationError(
                f"'start_file' ({self.start_file}) is greater than 'end_file' ({self.end_file})"
            )

        self.occupations = normalize_occupations(self.occupations)


@dataclass
class WorkspaceLayout:
    """Directory structure used by one pipeline run.

    base/
    ├── ascii/        # flattened .txt files from all archives
    ├── DEMO/ REAC/ DRUG/ INDI/            # routed source partitions
    ├── INDEX1PS/                          # single-drug index per quarter
    ├── DEMO1PS/ REAC1PS/ INDI1PS/         # index-filtered partitions
    ├── F_COREDATA_1PS_PROF/               # cohort bundle
    └── F_COREDATA_1PS_PROF_STU/           # normalized bundle
    """
    base: Path
    partitions: Dict[str, Path] = field(init=False)
    filtered: Dict[str, Path] = field(init=False)

    def __post_init__(self):
        self.base = Path(self.base)
        self.ascii = self.base / 'ascii'
        self.partitions = {category: self.base / category for category in CATEGORY_MARKERS}
        self.index = self.base / 'INDEX1PS'
        self.filtered = {category: self.base / f"{category}1PS" for category in JOINED_CATEGORIES}
        self.cohort_bundle = self.base / COHORT_BUNDLE
        self.normalized_bundle = self.base / NORMALIZED_BUNDLE

    @classmethod
    def for_config(cls, config: ExtractionConfig) -> 'WorkspaceLayout':
        """Place the run under the working directory or a fresh temporary one."""
        if config.use_temp_dir:
            base = Path(tempfile.mkdtemp(prefix='faers_extract_'))
            logging.getLogger(__name__).info(f"Using temporary storage: {base}")
            return cls(base)
        return cls(config.working_dir)

    def create(self) -> None:
        """Ensure all partition directories exist."""
        for directory in [self.ascii, self.index, *self.partitions.values(), *self.filtered.values()]:
            directory.mkdir(parents=True, exist_ok=True)
