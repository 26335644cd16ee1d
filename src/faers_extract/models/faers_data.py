"""Models for FAERS data structures."""
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional

import pandas as pd

# Columns kept from the merged demographic files
DEMO_COLUMNS = [
    'primaryid', 'caseid', 'caseversion', 'i_f_code', 'fda_dt', 'rept_cod',
    'age', 'age_cod', 'age_grp', 'sex', 'e_sub', 'wt', 'wt_cod', 'sysyear',
    'occp_cod', 'reporter_country', 'occr_country'
]

# Columns kept from the merged single-drug index files
INDEX_COLUMNS = ['primaryid', 'caseid', 'drugname', 'prod_ai']


@dataclass(frozen=True)
class QuarterTask:
    """One unit of parallel work: a single quarter file of a single category.

    For index tasks ``index_path`` is None; join-filter tasks read the
    quarter's index from it.
    """
    quarter_index: int
    quarter: str
    category: str
    input_path: Path
    output_path: Path
    index_path: Optional[Path] = None


@dataclass
class QuarterSummary:
    """Row counts for one processed quarter file."""
    quarter_index: int
    quarter: str
    category: str
    input_rows: int = 0
    output_rows: int = 0
    processing_time: float = 0.0

    @property
    def retention_rate(self) -> float:
        return (self.output_rows / self.input_rows * 100) if self.input_rows > 0 else 0.0


@dataclass
class StageResult:
    """Completion signal returned once every task of a stage has finished."""
    stage: str
    summaries: List[QuarterSummary] = field(default_factory=list)

    @property
    def total_output_rows(self) -> int:
        return sum(summary.output_rows for summary in self.summaries)


@dataclass
class CohortTables:
    """The six named tables making up a cohort bundle."""
    drug_index: pd.DataFrame
    drug_names: pd.DataFrame
    reaction_terms: pd.DataFrame
    reactions: pd.DataFrame
    indications: pd.DataFrame
    demographics: pd.DataFrame

    TABLE_NAMES = (
        'drug_index', 'drug_names', 'reaction_terms',
        'reactions', 'indications', 'demographics'
    )

    def as_dict(self) -> Dict[str, pd.DataFrame]:
        return {name: getattr(self, name) for name in self.TABLE_NAMES}

    @classmethod
    def from_dict(cls, tables: Dict[str, pd.DataFrame]) -> 'CohortTables':
        missing = [name for name in cls.TABLE_NAMES if name not in tables]
        if missing:
            raise ValueError(f"Cohort bundle is missing tables: {missing}")
        return cls(**{name: tables[name] for name in cls.TABLE_NAMES})
