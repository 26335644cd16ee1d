"""Merging extracted quarters into an occupation-filtered cohort."""
import logging
from pathlib import Path
from typing import Iterable, List

import dask.dataframe as dd
import pandas as pd

from ..config import DEFAULT_OCCUPATIONS, DELIMITER, ENCODING, WorkspaceLayout, normalize_occupations
from ..models.faers_data import DEMO_COLUMNS, INDEX_COLUMNS, CohortTables
from ..utils.helpers import expand_year, get_quarter_from_filename, list_quarter_files, read_extract_table
from .deduplicator import FAERSDeduplicator
from .validator import DataValidationError, DataValidator


def quarter_tag(file_path: Path) -> str:
    """Quarter tag of a file, or characters 5-8 of its name when it has none."""
    return get_quarter_from_filename(file_path) or Path(file_path).stem[4:8]


def clean_drug_names(names: pd.Series) -> pd.Series:
    """Drop the racemate marker ", (+/-)-" and use forward slashes."""
    return (names.str.replace(', (+/-)-', '', regex=False)
                 .str.replace('\\', '/', regex=False))


class CohortBuilder:
    """Builds the occupation-restricted cohort from the index-filtered partitions."""

    def __init__(self, occupations: Iterable[str] = DEFAULT_OCCUPATIONS, use_dask: bool = False):
        self.occupations = normalize_occupations(occupations)
        self.use_dask = use_dask
        self.validator = DataValidator()
        self.deduplicator = FAERSDeduplicator()
        self.logger = logging.getLogger(__name__)

    def _read_quarter_files(self, files: List[Path], tag_quarter: bool = False) -> pd.DataFrame:
        """Concatenate per-quarter files in the given order.

        Args:
            files: Files to read, already in quarter order
            tag_quarter: Add a ``sysyear`` column holding each file's quarter tag
        """
        if self.use_dask:
            ddf = dd.read_csv(
                [str(f) for f in files],
                sep=DELIMITER,
                dtype=str,
                encoding=ENCODING,
                keep_default_na=False,
                na_values=[],
                blocksize=None,
                include_path_column='source_path' if tag_quarter else False,
            )
            df = ddf.compute().reset_index(drop=True)
            if tag_quarter:
                df['sysyear'] = df['source_path'].astype(str).map(lambda p: quarter_tag(Path(p)))
                df = df.drop(columns=['source_path'])
            return df

        frames = []
        for f in files:
            df = read_extract_table(f)
            if tag_quarter:
                df['sysyear'] = quarter_tag(f)
            frames.append(df)
        return pd.concat(frames, ignore_index=True)

    def _load_partition(self, directory: Path, data_type: str, tag_quarter: bool = False) -> pd.DataFrame:
        files = list_quarter_files(directory) if Path(directory).exists() else []
        if not files:
            raise DataValidationError(f"No {data_type} files found in {directory}")
        self.logger.info(f"Loading {len(files)} {data_type} files from {directory}")
        return self._read_quarter_files(files, tag_quarter=tag_quarter)

    def load_demographics(self, directory: Path) -> pd.DataFrame:
        """Merge DEMO1PS files, keep the demographic columns and drop duplicate rows."""
        demos = self._load_partition(directory, 'DEMO', tag_quarter=True)
        self.validator.require_valid(demos, 'COHORT_DEMO', str(directory))

        for column in DEMO_COLUMNS:
            if column not in demos.columns:
                self.logger.warning(f"Demographic column '{column}' not found, adding with default value: ''")
                demos[column] = ''
        demos = demos[DEMO_COLUMNS].drop_duplicates()
        return self.deduplicator.deduplicate_primaryids(demos).reset_index(drop=True)

    def load_drug_index(self, directory: Path) -> pd.DataFrame:
        """Merge INDEX1PS files into one drug table with cleaned active ingredients."""
        index = self._load_partition(directory, 'INDEX')
        self.validator.require_valid(index, 'DRUG', str(directory))

        columns = [column for column in INDEX_COLUMNS if column in index.columns]
        index = index[columns].drop_duplicates().reset_index(drop=True)
        index['prod_ai'] = clean_drug_names(index['prod_ai'])
        return index

    def load_reactions(self, directory: Path) -> pd.DataFrame:
        reactions = self._load_partition(directory, 'REAC')
        self.validator.require_valid(reactions, 'REAC', str(directory))
        return reactions

    def load_indications(self, directory: Path) -> pd.DataFrame:
        indications = self._load_partition(directory, 'INDI')
        self.validator.require_valid(indications, 'INDI', str(directory))
        return indications

    def check_occupations(self, demographics: pd.DataFrame) -> None:
        """Log an advisory when a requested occupation code is absent from the data."""
        available = sorted(set(demographics['occp_cod']))
        missing = [code for code in self.occupations if code not in available]
        if missing:
            self.logger.warning(
                f"Using occp_cod: {', '.join(self.occupations)}. "
                f"Not present in the data: {', '.join(missing)}. "
                f"Available occp_cod are: {', '.join(available)}"
            )

    def assemble(self, demographics: pd.DataFrame, reactions: pd.DataFrame,
                 indications: pd.DataFrame, drug_index: pd.DataFrame) -> CohortTables:
        """Restrict all tables to cases reported by the configured occupations.

        The demographic table must already hold one row per primaryid.
        """
        self.check_occupations(demographics)

        demos_prof = demographics[demographics['occp_cod'].isin(self.occupations)].reset_index(drop=True)
        cohort_ids = set(demos_prof['primaryid'])
        self.logger.info(f"{len(demos_prof):,} of {len(demographics):,} cases reported by {', '.join(self.occupations)}")

        reac_prof = reactions[reactions['primaryid'].isin(cohort_ids)].reset_index(drop=True)
        indi_prof = indications[indications['primaryid'].isin(cohort_ids)].reset_index(drop=True)
        index_prof = drug_index[drug_index['primaryid'].isin(cohort_ids)].reset_index(drop=True)

        sysyear = demos_prof.set_index('primaryid')['sysyear']
        reac_prof['sysyear'] = reac_prof['primaryid'].map(sysyear).map(expand_year)

        drug_names = pd.DataFrame({'prod_ai': index_prof['prod_ai'].drop_duplicates().reset_index(drop=True)})
        reaction_terms = pd.DataFrame({'pt': reac_prof['pt'].drop_duplicates().reset_index(drop=True)})

        indi_prof['indi_pt'] = indi_prof['indi_pt'].str.lower()
        reac_prof['pt'] = reac_prof['pt'].str.lower()

        return CohortTables(
            drug_index=index_prof,
            drug_names=drug_names,
            reaction_terms=reaction_terms,
            reactions=reac_prof,
            indications=indi_prof,
            demographics=demos_prof,
        )

    def build(self, layout: WorkspaceLayout) -> CohortTables:
        """Load every index-filtered partition of a workspace and assemble the cohort."""
        demographics = self.load_demographics(layout.filtered['DEMO'])
        reactions = self.load_reactions(layout.filtered['REAC'])
        indications = self.load_indications(layout.filtered['INDI'])
        drug_index = self.load_drug_index(layout.index)
        return self.assemble(demographics, reactions, indications, drug_index)
