"""Service for extracting single-drug FAERS cases from quarterly archives."""
import logging
import shutil
from collections import defaultdict
from concurrent.futures import ThreadPoolExecutor, as_completed
from datetime import datetime
from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence

from tqdm import tqdm

from ..config import JOINED_CATEGORIES, ConfigurationError, ExtractionConfig, WorkspaceLayout
from ..models.faers_data import QuarterSummary, QuarterTask, StageResult
from ..utils.helpers import get_quarter_from_filename, list_quarter_files
from .archive import ArchiveExtractor
from .extractor import run_index_task, run_join_task
from .router import CategoryRouter
from .validator import DataValidationError


class QuarterTaskError(RuntimeError):
    """A quarter task failed; the run is halted."""

    def __init__(self, task: QuarterTask, cause: Exception):
        self.task = task
        self.cause = cause
        super().__init__(
            f"{task.category} task for quarter {task.quarter} ({task.input_path.name}) failed: {cause}"
        )


class ExtractionSummary:
    """Tracks and generates summary reports for single-drug extraction."""

    def __init__(self):
        self.stages: Dict[str, StageResult] = {}
        self.logger = logging.getLogger(__name__)

    def add_stage(self, result: StageResult):
        self.stages[result.stage] = result

    def get_summary_stats(self) -> Dict:
        """Row totals per category across all stages."""
        input_rows = defaultdict(int)
        output_rows = defaultdict(int)
        quarters = set()
        total_time = 0.0
        for result in self.stages.values():
            for summary in result.summaries:
                input_rows[summary.category] += summary.input_rows
                output_rows[summary.category] += summary.output_rows
                quarters.add(summary.quarter)
                total_time += summary.processing_time
        return {
            'total_quarters': len(quarters),
            'total_time': total_time,
            'input_rows': dict(input_rows),
            'output_rows': dict(output_rows),
        }

    def log_summary(self):
        stats = self.get_summary_stats()
        self.logger.info("\nExtraction Summary:")
        self.logger.info(f"Total Quarters Processed: {stats['total_quarters']}")
        self.logger.info(f"Total Task Time: {stats['total_time']:.2f} seconds")
        for category, total in stats['input_rows'].items():
            kept = stats['output_rows'].get(category, 0)
            self.logger.info(f"{category}: kept {kept:,} of {total:,} rows")

    def generate_markdown_report(self, output_dir: Path) -> str:
        """Write a markdown report of all stages and return its text."""
        report = ["# FAERS Single-Drug Extraction Report\n"]
        report.append(f"Generated: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}\n")

        stats = self.get_summary_stats()
        report.append("## Overall Statistics")
        report.append(f"- Total Quarters Processed: {stats['total_quarters']}")
        report.append(f"- Total Task Time: {stats['total_time']:.2f} seconds\n")

        for stage, result in self.stages.items():
            report.append(f"\n## Stage: {stage}")
            report.append("| Quarter | Category | Input Rows | Output Rows | Retained | Time (s) |")
            report.append("|---------|----------|------------|-------------|----------|----------|")
            for summary in result.summaries:
                report.append(
                    f"| {summary.quarter} | {summary.category} | {summary.input_rows:,} | "
                    f"{summary.output_rows:,} | {summary.retention_rate:.1f}% | {summary.processing_time:.2f} |"
                )

        report_text = "\n".join(report)
        report_path = Path(output_dir) / f"faers_extraction_report_{datetime.now().strftime('%Y%m%d_%H%M%S')}.md"
        report_path.write_text(report_text)

        self.logger.info(f"Saved extraction report to: {report_path}")
        return report_text


class FAERSProcessor:
    """Runs archive intake, routing and the parallel single-drug stages."""

    def __init__(self, config: ExtractionConfig, layout: Optional[WorkspaceLayout] = None):
        self.config = config
        self.layout = layout or WorkspaceLayout.for_config(config)
        self.logger = logging.getLogger(__name__)
        self.processing_summary = ExtractionSummary()

    def prepare_partitions(self) -> Dict[str, List[Path]]:
        """Unpack the archives and route their tables into category partitions."""
        self.layout.create()
        ArchiveExtractor(self.config.working_dir).extract_all(self.layout.ascii)

        router = CategoryRouter(self.layout.partitions)
        routed = router.route(sorted(p for p in self.layout.ascii.iterdir() if p.is_file()))

        if not self.config.use_temp_dir:
            shutil.rmtree(self.layout.ascii, ignore_errors=True)
        self.logger.info("Files have been organized.")
        return routed

    def select_quarter_files(self) -> List[Path]:
        """DRUG files in quarter order, narrowed to [start_file, end_file] (1-based)."""
        drug_files = list_quarter_files(self.layout.partitions['DRUG'])
        if not drug_files:
            raise DataValidationError(f"No DRUG files found in {self.layout.partitions['DRUG']}")

        start = self.config.start_file or 1
        if start > len(drug_files):
            raise ConfigurationError(
                f"start_file {start} is beyond the {len(drug_files)} DRUG files available in "
                f"{self.layout.partitions['DRUG']}"
            )
        end = self.config.end_file or len(drug_files)
        if end > len(drug_files):
            self.logger.warning(f"end_file {end} exceeds the {len(drug_files)} DRUG files available")
            end = len(drug_files)
        selected = drug_files[start - 1:end]
        self.logger.info(f"Processing quarter files {start}..{end}: {[f.name for f in selected]}")
        return selected

    def build_index_tasks(self, drug_files: Sequence[Path]) -> List[QuarterTask]:
        start = self.config.start_file or 1
        return [
            QuarterTask(
                quarter_index=start + position,
                quarter=get_quarter_from_filename(drug_file),
                category='DRUG',
                input_path=drug_file,
                output_path=self.layout.index / drug_file.name,
            )
            for position, drug_file in enumerate(drug_files)
        ]

    def build_join_tasks(self, index_tasks: Sequence[QuarterTask]) -> List[QuarterTask]:
        """One task per quarter and category, paired with the quarter's index by quarter tag."""
        tasks = []
        for category in JOINED_CATEGORIES:
            partition = self.layout.partitions[category]
            category_files = list_quarter_files(partition) if partition.exists() else []
            by_quarter = {get_quarter_from_filename(f): f for f in category_files}

            for index_task in index_tasks:
                input_path = by_quarter.get(index_task.quarter) if index_task.quarter else None
                if input_path is None:
                    # Untagged names fall back to their position in the sorted partition
                    position = index_task.quarter_index - 1
                    if not index_task.quarter and position < len(category_files):
                        input_path = category_files[position]
                    else:
                        input_path = partition / f"{category}{index_task.quarter}.txt"
                tasks.append(QuarterTask(
                    quarter_index=index_task.quarter_index,
                    quarter=index_task.quarter,
                    category=category,
                    input_path=input_path,
                    output_path=self.layout.filtered[category] / input_path.name,
                    index_path=index_task.output_path,
                ))
        return tasks

    def run_stage(self, stage: str, tasks: Sequence[QuarterTask],
                  worker: Callable[[QuarterTask], QuarterSummary]) -> StageResult:
        """Run every task of a stage on a bounded pool and wait for all of them.

        The pool lives for this stage only. The first failing task cancels the
        tasks still queued and is re-raised as QuarterTaskError.
        """
        self.logger.info(f"Starting {stage} stage: {len(tasks)} tasks on {self.config.max_workers} workers")
        summaries = []

        executor = ThreadPoolExecutor(max_workers=self.config.max_workers)
        try:
            future_to_task = {executor.submit(worker, task): task for task in tasks}
            with tqdm(total=len(future_to_task), desc=f"{stage} stage", unit='file') as pbar:
                for future in as_completed(future_to_task):
                    task = future_to_task[future]
                    try:
                        summaries.append(future.result())
                    except Exception as e:
                        self.logger.error(f"({task.quarter}) Error processing {task.input_path.name}: {str(e)}")
                        executor.shutdown(wait=True, cancel_futures=True)
                        raise QuarterTaskError(task, e) from e
                    pbar.update(1)
        finally:
            executor.shutdown(wait=True)

        summaries.sort(key=lambda s: (s.quarter_index, s.category))
        result = StageResult(stage=stage, summaries=summaries)
        self.processing_summary.add_stage(result)
        self.logger.info(f"Finished {stage} stage: {result.total_output_rows:,} rows written")
        return result

    def extract_single_drug_cases(self) -> List[StageResult]:
        """Build the per-quarter indexes, then filter DEMO, REAC and INDI against them."""
        drug_files = self.select_quarter_files()
        index_tasks = self.build_index_tasks(drug_files)

        index_result = self.run_stage('index', index_tasks, run_index_task)
        # Join tasks read the index files, so they start only after the barrier above
        join_result = self.run_stage('join', self.build_join_tasks(index_tasks), run_join_task)
        return [index_result, join_result]

    def process(self) -> List[StageResult]:
        """Run intake, routing and both parallel stages; write the extraction report."""
        self.prepare_partitions()
        results = self.extract_single_drug_cases()
        self.processing_summary.log_summary()
        self.processing_summary.generate_markdown_report(self.layout.base)
        return results
