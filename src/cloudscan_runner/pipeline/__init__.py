"""Scan pipeline: parallel scanner execution and the job state machine."""

from cloudscan_runner.pipeline.executor import JobOutcome, ScanJob, run_job
from cloudscan_runner.pipeline.parallel import ParallelScannerExecutor

__all__ = ["JobOutcome", "ScanJob", "run_job", "ParallelScannerExecutor"]
