"""Saving and loading named-table bundles as Parquet."""
import logging
from pathlib import Path
from typing import Dict

import pandas as pd

logger = logging.getLogger(__name__)


def save_table_bundle(tables: Dict[str, pd.DataFrame], bundle_dir: Path) -> Path:
    """Save each table to ``bundle_dir/<name>.parquet``.

    Tables already in the directory but not in ``tables`` are removed so a
    bundle always holds exactly the tables it was saved with.
    """
    bundle_dir = Path(bundle_dir)
    bundle_dir.mkdir(parents=True, exist_ok=True)
    for stale in bundle_dir.glob('*.parquet'):
        if stale.stem not in tables:
            stale.unlink()

    for name, df in tables.items():
        try:
            df.to_parquet(
                bundle_dir / f"{name}.parquet",
                engine='pyarrow',
                compression='snappy',
                index=False
            )
        except Exception as e:
            logger.error(f"Error saving table {name} to {bundle_dir}: {str(e)}")
            raise

    logger.info(f"Saved {len(tables)} tables to {bundle_dir}")
    return bundle_dir


def load_table_bundle(bundle_dir: Path) -> Dict[str, pd.DataFrame]:
    bundle_dir = Path(bundle_dir)
    if not bundle_dir.is_dir():
        raise FileNotFoundError(f"Table bundle not found: {bundle_dir}")
    tables = {
        path.stem: pd.read_parquet(path, engine='pyarrow')
        for path in sorted(bundle_dir.glob('*.parquet'))
    }
    logger.info(f"Loaded {len(tables)} tables from {bundle_dir}")
    return tables
