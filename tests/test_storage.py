"""Unit tests for Parquet table bundles."""
import shutil
import tempfile
import unittest
from pathlib import Path

import pandas as pd

from faers_extract.services.storage import load_table_bundle, save_table_bundle


class TestTableBundle(unittest.TestCase):
    """Test cases for saving and loading named tables."""

    def setUp(self):
        self.test_dir = Path(tempfile.mkdtemp())
        self.bundle_dir = self.test_dir / 'F_COREDATA_1PS_PROF'

    def tearDown(self):
        shutil.rmtree(self.test_dir)

    def test_save_and_load(self):
        tables = {
            'demographics': pd.DataFrame({'primaryid': ['1', '2'], 'occp_cod': ['MD', '']}),
            'reactions': pd.DataFrame({'primaryid': ['1'], 'pt': ['Headache'], 'count': [1]}),
        }

        save_table_bundle(tables, self.bundle_dir)
        loaded = load_table_bundle(self.bundle_dir)

        self.assertEqual(sorted(loaded), ['demographics', 'reactions'])
        self.assertEqual(list(loaded['demographics']['occp_cod']), ['MD', ''])
        self.assertEqual(int(loaded['reactions']['count'].iloc[0]), 1)

    def test_stale_tables_removed(self):
        save_table_bundle({'old': pd.DataFrame({'a': [1]})}, self.bundle_dir)
        save_table_bundle({'new': pd.DataFrame({'a': [2]})}, self.bundle_dir)

        self.assertEqual(list(load_table_bundle(self.bundle_dir)), ['new'])
        self.assertFalse((self.bundle_dir / 'old.parquet').exists())

    def test_missing_bundle(self):
        with self.assertRaises(FileNotFoundError):
            load_table_bundle(self.test_dir / 'nothing')


if __name__ == '__main__':
    unittest.main()
