"""Utility functions for FAERS data processing."""
import csv
import re
from pathlib import Path
from typing import List

import pandas as pd

from ..config import DELIMITER, ENCODING

QUARTER_PATTERN = re.compile(r'(\d{2})Q([1-4])', re.IGNORECASE)


def read_source_table(file_path: Path) -> pd.DataFrame:
    """Read a raw FAERS ASCII table.

    Every column is kept as a string and empty fields stay empty strings.
    Raw files carry stray quote characters, so quoting is disabled.
    Rows with the wrong number of fields raise ``pandas.errors.ParserError``.
    """
    return pd.read_csv(
        file_path,
        sep=DELIMITER,
        dtype=str,
        encoding=ENCODING,
        keep_default_na=False,
        na_values=[],
        quoting=csv.QUOTE_NONE,
    )


def read_extract_table(file_path: Path) -> pd.DataFrame:
    """Read a table previously written by :func:`write_extract_table`."""
    return pd.read_csv(
        file_path,
        sep=DELIMITER,
        dtype=str,
        encoding=ENCODING,
        keep_default_na=False,
        na_values=[],
    )


def write_extract_table(df: pd.DataFrame, file_path: Path) -> None:
    file_path.parent.mkdir(parents=True, exist_ok=True)
    df.to_csv(file_path, sep=DELIMITER, index=False, encoding=ENCODING)


def get_quarter_from_filename(file_path: Path) -> str:
    """Extract the quarter tag from a FAERS filename (e.g. "15Q1" from "DEMO15Q1.txt")."""
    match = QUARTER_PATTERN.search(Path(file_path).stem)
    if not match:
        return ''
    year, quarter = match.groups()
    return f"{year}Q{quarter}"


def expand_year(quarter_tag: str) -> str:
    """Turn a two-digit year prefix into a four-digit year ("15Q1" -> "2015")."""
    return f"20{str(quarter_tag)[:2]}"


def list_quarter_files(directory: Path) -> List[Path]:
    """List .txt files in a partition ordered by quarter, then by name."""
    files = [f for f in Path(directory).iterdir() if f.is_file() and f.suffix.lower() == '.txt']
    return sorted(files, key=lambda f: (get_quarter_from_filename(f), f.name))
