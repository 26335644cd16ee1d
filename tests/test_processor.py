"""Unit tests for FAERS single-drug extraction runs."""
import shutil
import tempfile
import unittest
import zipfile
from pathlib import Path

from faers_extract.cli import main
from faers_extract.config import ConfigurationError, ExtractionConfig
from faers_extract.pipeline import filter_by_occupation, normalize_cohort, run_pipeline
from faers_extract.services.processor import FAERSProcessor, QuarterTaskError
from faers_extract.services.storage import load_table_bundle
from faers_extract.services.validator import DataValidationError
from faers_extract.utils.helpers import read_extract_table

DEMO_HEADER = 'primaryid$caseid$caseversion$i_f_code$fda_dt$age$age_cod$sex$occp_cod$reporter_country$occr_country'
DRUG_HEADER = 'primaryid$caseid$drug_seq$role_cod$drugname$prod_ai'

QUARTERS = {
    '2015q1': {
        'DEMO15Q1.txt': [
            DEMO_HEADER,
            '10011$1001$1$I$20150110$2$DEC$F$MD$US$TW',
            '10021$1002$1$I$20150110$30$YR$M$MD$US$US',
            '10031$1003$1$I$20150110$30$YR$M$MD$US$US',
            '10041$1004$1$I$20150110$50$YR$M$CN$US$US',
        ],
        'DRUG15Q1.txt': [
            DRUG_HEADER,
            '10011$1001$1$PS$BAYER$ASPIRIN',
            '10021$1002$1$PS$ADVIL$IBUPROFEN',
            '10021$1002$2$C$TYLENOL$ACETAMINOPHEN',
            '10031$1003$1$PS$MYSTERY$',
            '10041$1004$1$PS$ZOCOR$SIMVASTATIN',
        ],
        'REAC15Q1.txt': ['primaryid$caseid$pt', '10011$1001$Headache', '10021$1002$Rash', '10041$1004$Cough'],
        'INDI15Q1.txt': ['primaryid$caseid$indi_pt', '10011$1001$Pain', '10041$1004$Hyperlipidaemia'],
        'OUTC15Q1.txt': ['primaryid$caseid$outc_cod', '10011$1001$OT'],
    },
    '2015q2': {
        'DEMO15Q2.txt': [
            DEMO_HEADER,
            '10012$1001$2$F$20150410$18$YR$F$MD$US$',
            '10051$1005$1$I$20150410$6$MON$F$PH$US$US',
        ],
        'DRUG15Q2.txt': [
            DRUG_HEADER,
            '10012$1001$1$PS$BAYER$ASPIRIN',
            '10051$1005$1$PS$TYLENOL$ACETAMINOPHEN',
        ],
        'REAC15Q2.txt': ['primaryid$caseid$pt', '10012$1001$HEADACHE', '10051$1005$headache'],
        'INDI15Q2.txt': ['primaryid$caseid$indi_pt', '10012$1001$Pain', '10051$1005$Fever'],
    },
}


def build_archives(directory: Path, omit=(), replace=None):
    """Write faers_ascii_<quarter>.zip archives laid out like the FDA downloads."""
    replace = replace or {}
    for quarter, files in QUARTERS.items():
        with zipfile.ZipFile(directory / f'faers_ascii_{quarter}.zip', 'w') as archive:
            for name, lines in files.items():
                if name in omit:
                    continue
                lines = replace.get(name, lines)
                archive.writestr(f'ascii/{name}', '\n'.join(lines) + '\n')
            archive.writestr('ascii/ASC_NTS.pdf', 'notes')
            archive.writestr('Readme.pdf', 'readme')


class TestFAERSProcessor(unittest.TestCase):
    """Test cases for archive intake and the parallel stages."""

    def setUp(self):
        """Set up test environment."""
        self.test_dir = Path(tempfile.mkdtemp())
        self.extra_dirs = []

    def tearDown(self):
        """Clean up test environment."""
        shutil.rmtree(self.test_dir)
        for directory in self.extra_dirs:
            shutil.rmtree(directory, ignore_errors=True)

    def make_processor(self, **options) -> FAERSProcessor:
        options.setdefault('max_workers', 2)
        return FAERSProcessor(ExtractionConfig(working_dir=self.test_dir, **options))

    def test_process_writes_single_drug_partitions(self):
        build_archives(self.test_dir)
        results = self.make_processor().process()

        self.assertEqual([r.stage for r in results], ['index', 'join'])
        index = read_extract_table(self.test_dir / 'INDEX1PS' / 'DRUG15Q1.txt')
        self.assertEqual(list(index['primaryid']), ['10011', '10041'])
        index = read_extract_table(self.test_dir / 'INDEX1PS' / 'DRUG15Q2.txt')
        self.assertEqual(list(index['primaryid']), ['10012', '10051'])

        demo = read_extract_table(self.test_dir / 'DEMO1PS' / 'DEMO15Q1.txt')
        self.assertEqual(list(demo['primaryid']), ['10011', '10041'])
        self.assertEqual(list(demo.columns), DEMO_HEADER.split('$'))
        reac = read_extract_table(self.test_dir / 'REAC1PS' / 'REAC15Q1.txt')
        self.assertEqual(list(reac['pt']), ['Headache', 'Cough'])
        indi = read_extract_table(self.test_dir / 'INDI1PS' / 'INDI15Q2.txt')
        self.assertEqual(list(indi['indi_pt']), ['Pain', 'Fever'])

    def test_process_routes_and_cleans_up(self):
        build_archives(self.test_dir)
        self.make_processor().process()

        self.assertTrue((self.test_dir / 'DEMO' / 'DEMO15Q2.txt').exists())
        self.assertFalse((self.test_dir / 'ascii').exists())
        self.assertFalse(any(self.test_dir.rglob('OUTC*.txt')))
        reports = list(self.test_dir.glob('faers_extraction_report_*.md'))
        self.assertEqual(len(reports), 1)
        self.assertIn('# FAERS Single-Drug Extraction Report', reports[0].read_text())

    def test_summary_counts(self):
        build_archives(self.test_dir)
        processor = self.make_processor()
        index_result, join_result = processor.process()

        self.assertEqual([s.quarter for s in index_result.summaries], ['15Q1', '15Q2'])
        self.assertEqual(index_result.summaries[0].input_rows, 5)
        self.assertEqual(index_result.total_output_rows, 4)
        self.assertEqual(len(join_result.summaries), 6)

        stats = processor.processing_summary.get_summary_stats()
        self.assertEqual(stats['total_quarters'], 2)
        self.assertEqual(stats['output_rows']['DEMO'], 4)

    def test_file_range(self):
        build_archives(self.test_dir)
        index_result, _ = self.make_processor(start_file=2, end_file=2).process()

        self.assertEqual([f.name for f in (self.test_dir / 'INDEX1PS').iterdir()], ['DRUG15Q2.txt'])
        self.assertEqual([f.name for f in (self.test_dir / 'DEMO1PS').iterdir()], ['DEMO15Q2.txt'])
        self.assertEqual(index_result.summaries[0].quarter_index, 2)

    def test_end_file_beyond_available(self):
        build_archives(self.test_dir)
        processor = self.make_processor(end_file=5)
        processor.prepare_partitions()
        with self.assertLogs('faers_extract.services.processor', level='WARNING'):
            selected = processor.select_quarter_files()
        self.assertEqual([f.name for f in selected], ['DRUG15Q1.txt', 'DRUG15Q2.txt'])

    def test_start_file_beyond_available(self):
        build_archives(self.test_dir)
        processor = self.make_processor(start_file=5)

        with self.assertRaises(ConfigurationError) as context:
            processor.process()
        self.assertIn('start_file 5', str(context.exception))
        self.assertEqual(list((self.test_dir / 'INDEX1PS').iterdir()), [])

    def test_start_file_beyond_available_when_only_extracting(self):
        build_archives(self.test_dir)
        config = ExtractionConfig(working_dir=self.test_dir, max_workers=2, start_file=3, only_extract=True)

        with self.assertRaises(ConfigurationError):
            run_pipeline(config)

    def test_no_archives(self):
        with self.assertRaises(DataValidationError):
            self.make_processor().process()

    def test_malformed_drug_file_halts_run(self):
        broken = QUARTERS['2015q2']['DRUG15Q2.txt'] + ['10061$1006$1$PS$X$Y$EXTRA']
        build_archives(self.test_dir, replace={'DRUG15Q2.txt': broken})

        with self.assertRaises(QuarterTaskError) as context:
            self.make_processor().process()
        self.assertEqual(context.exception.task.category, 'DRUG')
        self.assertEqual(context.exception.task.quarter, '15Q2')
        self.assertFalse((self.test_dir / 'DEMO1PS' / 'DEMO15Q1.txt').exists())

    def test_missing_partner_file_halts_run(self):
        build_archives(self.test_dir, omit=('INDI15Q2.txt',))

        with self.assertRaises(QuarterTaskError) as context:
            self.make_processor().process()
        self.assertEqual(context.exception.task.category, 'INDI')
        self.assertIsInstance(context.exception.cause, DataValidationError)

    def test_temp_dir(self):
        build_archives(self.test_dir)
        processor = self.make_processor(use_temp_dir=True)
        self.extra_dirs.append(processor.layout.base)

        processor.process()

        self.assertNotEqual(processor.layout.base, self.test_dir)
        self.assertTrue((processor.layout.base / 'INDEX1PS' / 'DRUG15Q1.txt').exists())
        self.assertFalse((self.test_dir / 'INDEX1PS').exists())


class TestPipeline(unittest.TestCase):
    """Test cases for the full extraction pipeline."""

    def setUp(self):
        self.test_dir = Path(tempfile.mkdtemp())
        build_archives(self.test_dir)

    def tearDown(self):
        shutil.rmtree(self.test_dir)

    def check_normalized(self, bundle: Path):
        tables = load_table_bundle(bundle)
        self.assertEqual(
            sorted(tables),
            ['demographics', 'drug_index', 'drug_names', 'indications', 'reaction_terms', 'reactions']
        )

        demo = tables['demographics'].set_index('primaryid')
        # Case 1001 is represented by its second version only; 10041 is a consumer report
        self.assertEqual(sorted(demo.index), ['10012', '10051'])
        self.assertEqual(demo.loc['10012', 'age_day'], 6480)
        self.assertEqual(demo.loc['10051', 'age_day'], 180)
        self.assertEqual(demo.loc['10012', 'occr_country'], 'N.R.')
        self.assertEqual(demo.loc['10051', 'occr_country'], 'US')
        self.assertEqual(demo.loc['10012', 'sysyear'], '2015')

        reactions = tables['reactions']
        self.assertEqual(list(reactions['pt']), ['Headache', 'Headache'])
        self.assertEqual([int(c) for c in reactions['count']], [2, 2])
        self.assertEqual(sorted(tables['drug_index']['primaryid']), ['10012', '10051'])
        self.assertEqual(sorted(tables['indications']['indi_pt']), ['fever', 'pain'])

    def test_run_pipeline(self):
        bundle = run_pipeline(ExtractionConfig(working_dir=self.test_dir, max_workers=3))

        self.assertEqual(bundle, self.test_dir / 'F_COREDATA_1PS_PROF_STU')
        self.check_normalized(bundle)
        cohort = load_table_bundle(self.test_dir / 'F_COREDATA_1PS_PROF')
        self.assertEqual(sorted(cohort['demographics']['primaryid']), ['10011', '10012', '10051'])

    def test_stepwise_after_only_extract(self):
        result = run_pipeline(ExtractionConfig(working_dir=self.test_dir, max_workers=1, only_extract=True))
        self.assertEqual(result, self.test_dir)
        self.assertFalse((self.test_dir / 'F_COREDATA_1PS_PROF').exists())

        cohort = filter_by_occupation(self.test_dir)
        self.assertTrue(cohort.demographics['occp_cod'].isin(['MD', 'HP', 'PH', 'OT']).all())
        self.check_normalized(normalize_cohort(self.test_dir))

    def test_normalize_without_cohort(self):
        with self.assertRaises(FileNotFoundError):
            normalize_cohort(self.test_dir)

    def test_cli(self):
        code = main(['--working-dir', str(self.test_dir), '--max-workers', '2', '--log-level', 'WARNING'])
        self.assertEqual(code, 0)
        self.check_normalized(self.test_dir / 'F_COREDATA_1PS_PROF_STU')

    def test_cli_failure(self):
        shutil.rmtree(self.test_dir)
        self.test_dir.mkdir()
        code = main(['--working-dir', str(self.test_dir), '--max-workers', '2', '--log-level', 'ERROR'])
        self.assertEqual(code, 1)


if __name__ == '__main__':
    unittest.main()
