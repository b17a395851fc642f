"""Status reporting to the orchestrator that owns the scan record."""

from cloudscan_runner.reporting.base import StatusReporter
from cloudscan_runner.reporting.grpc_client import GrpcStatusClient

__all__ = ["StatusReporter", "GrpcStatusClient"]
