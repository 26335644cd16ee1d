"""FAERS data validation service."""
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Set

import pandas as pd

from ..config import AGE_UNIT_DAYS


class DataValidationError(ValueError):
    """Raised when a FAERS table cannot be processed."""


@dataclass
class ValidationResult:
    """Results of data validation."""
    valid: bool
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)


class DataValidator:
    """Checks FAERS tables for the columns each pipeline stage relies on."""

    REQUIRED_COLUMNS: Dict[str, Set[str]] = {
        'DRUG': {'primaryid', 'prod_ai'},
        'DEMO': {'primaryid'},
        'REAC': {'primaryid', 'pt'},
        'INDI': {'primaryid', 'indi_pt'},
        'INDEX': {'primaryid'},
        # Merged demographics feed occupation filtering and normalization
        'COHORT_DEMO': {'primaryid', 'caseid', 'occp_cod', 'age', 'age_cod', 'occr_country'},
    }

    def __init__(self):
        """Initialize the validator."""
        self.logger = logging.getLogger(__name__)
        self.valid_age_codes = set(AGE_UNIT_DAYS)
        self.valid_occupations = {'MD', 'CN', 'OT', 'PH', 'HP', 'LW', 'RN'}

    def validate_data(self, df: pd.DataFrame, data_type: str) -> ValidationResult:
        """Validate a table of the given type."""
        required = self.REQUIRED_COLUMNS.get(data_type)
        if required is None:
            return ValidationResult(valid=False, errors=[f"Unknown data type: {data_type}"])

        result = ValidationResult(valid=True)
        missing_cols = required - set(df.columns)
        if missing_cols:
            result.valid = False
            result.errors.append(f"Missing required columns: {sorted(missing_cols)}")
            return result

        if data_type == 'COHORT_DEMO':
            self._check_codes(df, 'age_cod', self.valid_age_codes, 'Unmapped age codes', result)
            self._check_codes(df, 'occp_cod', self.valid_occupations, 'Unknown occupation codes', result)

        return result

    def _check_codes(self, df: pd.DataFrame, column: str, valid: Set[str], label: str,
                     result: ValidationResult) -> None:
        values = set(df[column].dropna().unique()) - {''}
        invalid = values - valid
        if invalid:
            result.warnings.append(f"{label} found: {sorted(invalid)}")

    def require_valid(self, df: pd.DataFrame, data_type: str, source: str) -> None:
        """Raise DataValidationError on errors and log warnings.

        Args:
            df: Table to check
            data_type: One of REQUIRED_COLUMNS' keys
            source: File name or table label used in messages
        """
        result = self.validate_data(df, data_type)
        for warning in result.warnings:
            self.logger.warning(f"Validation warning in {source}: {warning}")
        if not result.valid:
            message = f"Validation error in {source}: {'; '.join(result.errors)}"
            self.logger.error(message)
            raise DataValidationError(message)
