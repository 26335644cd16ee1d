"""Unit and field normalization for the single-drug cohort."""
import logging
from typing import Optional

import numpy as np
import pandas as pd

from ..config import AGE_UNIT_DAYS, COUNTRY_FIXES
from ..models.faers_data import CohortTables
from ..utils.helpers import expand_year
from .deduplicator import FAERSDeduplicator


def to_sentence_case(terms: pd.Series) -> pd.Series:
    """Lowercase a term, then capitalize its first letter ("HEAD PAIN" -> "Head pain")."""
    return terms.str.lower().str.capitalize()


class DataStandardizer:
    """Standardizes cohort tables to consistent units and spellings."""

    def __init__(self, deduplicator: Optional[FAERSDeduplicator] = None):
        self.deduplicator = deduplicator or FAERSDeduplicator()
        self.logger = logging.getLogger(__name__)

    def standardize_year(self, df: pd.DataFrame) -> pd.DataFrame:
        """Convert the sysyear quarter tag ("15Q1") to a four-digit year ("2015")."""
        df = df.copy()
        df['sysyear'] = df['sysyear'].map(expand_year)
        return df

    def standardize_age(self, df: pd.DataFrame) -> pd.DataFrame:
        """Convert age to days based on the age code.

        DEC, YR, MON, WK, DY and HR are converted with 360-day years and
        30-day months. Any other code, or an age that is not a number,
        leaves ``age_day`` unset (NaN).
        """
        df = df.copy()
        age = pd.to_numeric(df['age'], errors='coerce')

        conditions = [df['age_cod'] == code for code in AGE_UNIT_DAYS]
        choices = list(AGE_UNIT_DAYS.values())
        df['age_day'] = age * np.select(conditions, choices, default=np.nan)

        unmapped = sorted(set(df['age_cod'].dropna()) - set(AGE_UNIT_DAYS) - {''})
        if unmapped:
            count = int(df['age_cod'].isin(unmapped).sum())
            self.logger.warning(f"{count} rows have unmapped age codes {unmapped}; age_day left unset")
        return df

    def standardize_country(self, countries: pd.Series) -> pd.Series:
        """Replace blank and legacy country codes; other codes pass through."""
        return countries.replace(COUNTRY_FIXES)

    def annotate_reaction_frequency(self, reactions: pd.DataFrame) -> pd.DataFrame:
        """Add ``count``: how many reaction rows carry the same term."""
        reactions = reactions.copy()
        reactions['count'] = reactions['pt'].map(reactions['pt'].value_counts())
        return reactions

    def attach_country(self, reactions: pd.DataFrame, demographics: pd.DataFrame) -> pd.DataFrame:
        """Copy occr_country from demographics onto each reaction row."""
        reactions = reactions.copy()
        countries = demographics.set_index('primaryid')['occr_country']
        reactions['occr_country'] = self.standardize_country(reactions['primaryid'].map(countries))
        return reactions

    def normalize(self, cohort: CohortTables) -> CohortTables:
        """Produce the normalized cohort.

        Superseded case versions are dropped first so that reaction counts
        only reflect the reports that remain.
        """
        cohort = self.deduplicator.keep_latest_versions(cohort)

        demographics = self.standardize_age(self.standardize_year(cohort.demographics))
        demographics['occr_country'] = self.standardize_country(demographics['occr_country'])

        reactions = self.annotate_reaction_frequency(cohort.reactions)
        reactions = self.attach_country(reactions, demographics)
        reactions['pt'] = to_sentence_case(reactions['pt'])

        reaction_terms = pd.DataFrame({
            'pt': to_sentence_case(cohort.reaction_terms['pt']).drop_duplicates().reset_index(drop=True)
        })

        self.logger.info(
            f"Normalized cohort: {len(demographics):,} cases, {len(reactions):,} reactions, "
            f"{len(reaction_terms):,} distinct terms"
        )
        return CohortTables(
            drug_index=cohort.drug_index,
            drug_names=cohort.drug_names,
            reaction_terms=reaction_terms,
            reactions=reactions,
            indications=cohort.indications,
            demographics=demographics,
        )
