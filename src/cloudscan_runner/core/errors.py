"""Exception hierarchy for the scan runner.

Fatal errors (FetchError, NoScannersError) stop the job before any scanner
runs. ScannerError stays inside the failing scanner's result slot.
ReportingError is logged and never changes the outcome of the job.
"""

from __future__ import annotations


class RunnerError(Exception):
    """Base class for all runner errors."""


class ConfigError(RunnerError):
    """Configuration loading or validation error."""


class FetchError(RunnerError):
    """Source acquisition failed (download, clone or extraction)."""


class NoScannersError(RunnerError):
    """None of the requested scan categories maps to an available scanner."""


class ScannerError(RunnerError):
    """A scanner failed to run or its output could not be parsed."""


class ScanCancelledError(ScannerError):
    """A tool was stopped because the job deadline expired or was cancelled."""


class ReportingError(RunnerError):
    """A call to the orchestrator status service failed."""
