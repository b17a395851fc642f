"""gRPC client for the orchestrator scan service."""

from __future__ import annotations

from typing import Optional, Sequence

import grpc

from cloudscan_runner.core.errors import ReportingError
from cloudscan_runner.core.logging import get_logger
from cloudscan_runner.core.models import Finding, ScanStatus
from cloudscan_runner.reporting import proto
from cloudscan_runner.reporting.base import StatusReporter

LOGGER = get_logger(__name__)

DEFAULT_CONNECT_TIMEOUT = 10.0


class GrpcStatusClient(StatusReporter):
    """StatusReporter over a single insecure gRPC channel.

    The runner lives inside the cluster network next to the orchestrator,
    so the channel is plaintext.
    """

    def __init__(self, channel: grpc.Channel, endpoint: str = "") -> None:
        self._channel = channel
        self._endpoint = endpoint
        self._closed = False
        self._update_scan = channel.unary_unary(
            proto.UPDATE_SCAN_METHOD,
            request_serializer=proto.UpdateScanRequest.SerializeToString,
            response_deserializer=proto.UpdateScanResponse.FromString,
        )
        self._create_findings = channel.unary_unary(
            proto.CREATE_FINDINGS_METHOD,
            request_serializer=proto.CreateFindingsRequest.SerializeToString,
            response_deserializer=proto.CreateFindingsResponse.FromString,
        )

    @classmethod
    def connect(
        cls,
        endpoint: str,
        timeout: float = DEFAULT_CONNECT_TIMEOUT,
    ) -> "GrpcStatusClient":
        """Open a channel to ``endpoint`` and wait until it is ready.

        Raises:
            ReportingError: If the channel is not ready within ``timeout``.
        """
        LOGGER.info(f"Connecting to orchestrator at {endpoint}")
        channel = grpc.insecure_channel(endpoint)
        try:
            grpc.channel_ready_future(channel).result(timeout=timeout)
        except grpc.FutureTimeoutError as e:
            channel.close()
            raise ReportingError(
                f"failed to connect to orchestrator at {endpoint} within {timeout:g}s"
            ) from e

        LOGGER.info("Successfully connected to orchestrator")
        return cls(channel, endpoint)

    def update_status(
        self,
        scan_id: str,
        status: ScanStatus,
        message: str = "",
        timeout: Optional[float] = None,
    ) -> None:
        LOGGER.debug(f"Updating scan {scan_id} status to {status.value}")

        request = proto.UpdateScanRequest(id=scan_id, status=proto.status_value(status))
        if message:
            request.error_message = message

        self._call(self._update_scan, request, timeout, "update scan status")
        LOGGER.info(f"Scan status updated to {status.value}")

    def create_findings(
        self,
        scan_id: str,
        findings: Sequence[Finding],
        timeout: Optional[float] = None,
    ) -> int:
        LOGGER.info(f"Creating {len(findings)} findings for scan {scan_id}")
        if not findings:
            LOGGER.info("No findings to create")
            return 0

        request = proto.CreateFindingsRequest(
            scan_id=scan_id,
            findings=[proto.finding_to_message(finding) for finding in findings],
        )
        response = self._call(self._create_findings, request, timeout, "create findings")

        LOGGER.info(f"Findings created successfully: {response.created_count}")
        return int(response.created_count)

    def update_findings_count(
        self,
        scan_id: str,
        count: int,
        timeout: Optional[float] = None,
    ) -> None:
        LOGGER.debug(f"Updating findings count of scan {scan_id} to {count}")
        request = proto.UpdateScanRequest(id=scan_id, total_findings=count)
        self._call(self._update_scan, request, timeout, "update findings count")

    def close(self) -> None:
        if self._closed:
            return
        LOGGER.info("Closing orchestrator connection")
        self._closed = True
        self._channel.close()

    def _call(self, method, request, timeout: Optional[float], action: str):
        if self._closed:
            raise ReportingError(f"failed to {action}: connection is closed")
        try:
            return method(request, timeout=timeout)
        except grpc.RpcError as e:
            code = e.code() if hasattr(e, "code") else None
            detail = e.details() if hasattr(e, "details") else str(e)
            LOGGER.error(f"Failed to {action}: {code} {detail}")
            raise ReportingError(f"failed to {action}: {detail}") from e
