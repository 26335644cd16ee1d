"""Service for handling deduplication of FAERS data."""

import logging

import numpy as np
import pandas as pd

from ..models.faers_data import CohortTables


class FAERSDeduplicator:
    """Collapses repeated reports to a single row per report and per case."""

    def __init__(self):
        """Initialize the deduplicator service."""
        self.logger = logging.getLogger(__name__)

    def deduplicate_primaryids(self, df: pd.DataFrame) -> pd.DataFrame:
        """Remove duplicated primaryids keeping only the most recent quarter entry.

        A report re-released in a later quarter keeps its primaryid, so the
        row from the latest ``sysyear`` quarter wins. Ties keep the later
        row in input order.

        Args:
            df: Demographics with potential duplicate primaryids

        Returns:
            DataFrame with one row per primaryid, in input order
        """
        if 'sysyear' not in df.columns:
            ordered = df
        else:
            ordered = df.sort_values('sysyear', kind='mergesort')
        keep = ordered.drop_duplicates(subset=['primaryid'], keep='last').index
        df_deduped = df.loc[df.index.isin(keep)]

        removed_rows = len(df) - len(df_deduped)
        if removed_rows > 0:
            self.logger.info(
                f"Removed {removed_rows} duplicate primaryid entries, keeping {len(df_deduped)} unique entries"
            )
        return df_deduped

    def latest_case_versions(self, demo_df: pd.DataFrame) -> pd.Series:
        """Return the primaryids of the latest reported version of each case.

        Versions are ordered by numeric caseversion, then numeric fda_dt, then
        input order, and the last one is kept. Rows without a caseid are
        treated as separate cases and always kept.
        """
        def numeric(column: str) -> pd.Series:
            if column not in demo_df.columns:
                return pd.Series(np.nan, index=demo_df.index)
            return pd.to_numeric(demo_df[column], errors='coerce')

        ranked = pd.DataFrame({
            'primaryid': demo_df['primaryid'],
            'caseid': demo_df['caseid'],
            'version': numeric('caseversion'),
            'fda_dt': numeric('fda_dt'),
            'position': np.arange(len(demo_df)),
        }, index=demo_df.index)

        has_case = ranked['caseid'].notna() & (ranked['caseid'] != '')
        latest = (ranked[has_case]
                  .sort_values(['caseid', 'version', 'fda_dt', 'position'], na_position='first')
                  .groupby('caseid')
                  .tail(1))
        return pd.concat([latest['primaryid'], ranked.loc[~has_case, 'primaryid']])

    def keep_latest_versions(self, cohort: CohortTables) -> CohortTables:
        """Drop every row belonging to a superseded case version.

        The four record tables are restricted to the surviving primaryids and
        both vocabularies are derived again from what remains.
        """
        demo = cohort.demographics
        keep_ids = set(self.latest_case_versions(demo))

        def restrict(df: pd.DataFrame) -> pd.DataFrame:
            return df[df['primaryid'].isin(keep_ids)].reset_index(drop=True)

        drug_index = restrict(cohort.drug_index)
        reactions = restrict(cohort.reactions)
        result = CohortTables(
            drug_index=drug_index,
            drug_names=pd.DataFrame({'prod_ai': drug_index['prod_ai'].drop_duplicates().reset_index(drop=True)}),
            reaction_terms=pd.DataFrame({'pt': reactions['pt'].drop_duplicates().reset_index(drop=True)}),
            reactions=reactions,
            indications=restrict(cohort.indications),
            demographics=restrict(demo),
        )

        removed = len(demo) - len(result.demographics)
        if removed > 0:
            self.logger.info(
                f"Removed {removed} superseded case versions, keeping {len(result.demographics)} cases"
            )
            dropped = demo.loc[~demo['primaryid'].isin(keep_ids), ['primaryid', 'caseid']].head(3)
            for _, row in dropped.iterrows():
                self.logger.debug(f"Dropped primaryid {row['primaryid']} of caseid {row['caseid']}")
        return result
