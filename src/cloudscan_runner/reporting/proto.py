"""Protocol buffer messages of the orchestrator scan service.

The schema mirrors ``proto/scan_service.proto``. It is assembled into a
private descriptor pool at import time, so no generated ``_pb2`` modules
have to be kept in sync with the protobuf runtime.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Tuple

from google.protobuf import descriptor_pb2, descriptor_pool
from google.protobuf.message_factory import GetMessageClass

from cloudscan_runner.core.models import Category, Finding, ScanStatus, Severity

PACKAGE = "cloudscan.orchestrator.v1"
SERVICE = f"{PACKAGE}.ScanService"

UPDATE_SCAN_METHOD = f"/{SERVICE}/UpdateScan"
CREATE_FINDINGS_METHOD = f"/{SERVICE}/CreateFindings"

_Field = descriptor_pb2.FieldDescriptorProto

SCAN_STATUS_VALUES: Dict[str, int] = {
    "SCAN_STATUS_UNSPECIFIED": 0,
    "PENDING": 1,
    "RUNNING": 2,
    "COMPLETED": 3,
    "FAILED": 4,
}

SCAN_TYPE_VALUES: Dict[str, int] = {
    "SCAN_TYPE_UNSPECIFIED": 0,
    "SAST": 1,
    "SCA": 2,
    "SECRETS": 3,
    "LICENSE": 4,
}

SEVERITY_VALUES: Dict[str, int] = {
    "SEVERITY_UNSPECIFIED": 0,
    "LOW": 1,
    "MEDIUM": 2,
    "HIGH": 3,
    "CRITICAL": 4,
}

# (name, number, type, enum/message type name, repeated, proto3 optional)
_FieldSpec = Tuple[str, int, int, Optional[str], bool, bool]

_MESSAGES: Dict[str, List[_FieldSpec]] = {
    "Finding": [
        ("scan_type", 1, _Field.TYPE_ENUM, "ScanType", False, False),
        ("severity", 2, _Field.TYPE_ENUM, "Severity", False, False),
        ("title", 3, _Field.TYPE_STRING, None, False, False),
        ("description", 4, _Field.TYPE_STRING, None, False, False),
        ("file_path", 5, _Field.TYPE_STRING, None, False, False),
        ("line_number", 6, _Field.TYPE_INT32, None, False, False),
        ("code_snippet", 7, _Field.TYPE_STRING, None, False, False),
        ("cwe_id", 8, _Field.TYPE_STRING, None, False, False),
        ("cve_id", 9, _Field.TYPE_STRING, None, False, False),
    ],
    "UpdateScanRequest": [
        ("id", 1, _Field.TYPE_STRING, None, False, False),
        ("status", 2, _Field.TYPE_ENUM, "ScanStatus", False, True),
        ("error_message", 3, _Field.TYPE_STRING, None, False, True),
        ("total_findings", 4, _Field.TYPE_INT32, None, False, True),
    ],
    "UpdateScanResponse": [],
    "CreateFindingsRequest": [
        ("scan_id", 1, _Field.TYPE_STRING, None, False, False),
        ("findings", 2, _Field.TYPE_MESSAGE, "Finding", True, False),
    ],
    "CreateFindingsResponse": [
        ("created_count", 1, _Field.TYPE_INT32, None, False, False),
    ],
}


def build_file_descriptor() -> descriptor_pb2.FileDescriptorProto:
    """Describe ``scan_service.proto`` as a FileDescriptorProto."""
    file_proto = descriptor_pb2.FileDescriptorProto(
        name="cloudscan/orchestrator/v1/scan_service.proto",
        package=PACKAGE,
        syntax="proto3",
    )

    for enum_name, values in (
        ("ScanStatus", SCAN_STATUS_VALUES),
        ("ScanType", SCAN_TYPE_VALUES),
        ("Severity", SEVERITY_VALUES),
    ):
        enum_proto = file_proto.enum_type.add(name=enum_name)
        for value_name, number in values.items():
            enum_proto.value.add(name=value_name, number=number)

    for message_name, fields in _MESSAGES.items():
        message = file_proto.message_type.add(name=message_name)
        for name, number, field_type, type_name, repeated, optional in fields:
            field = message.field.add(
                name=name,
                number=number,
                type=field_type,
                label=_Field.LABEL_REPEATED if repeated else _Field.LABEL_OPTIONAL,
            )
            if type_name:
                field.type_name = f".{PACKAGE}.{type_name}"
            if optional:
                # proto3 "optional" is a synthetic single-field oneof
                field.proto3_optional = True
                field.oneof_index = len(message.oneof_decl)
                message.oneof_decl.add(name=f"_{name}")

    service = file_proto.service.add(name="ScanService")
    service.method.add(
        name="UpdateScan",
        input_type=f".{PACKAGE}.UpdateScanRequest",
        output_type=f".{PACKAGE}.UpdateScanResponse",
    )
    service.method.add(
        name="CreateFindings",
        input_type=f".{PACKAGE}.CreateFindingsRequest",
        output_type=f".{PACKAGE}.CreateFindingsResponse",
    )
    return file_proto


_POOL = descriptor_pool.DescriptorPool()
_POOL.AddSerializedFile(build_file_descriptor().SerializeToString())


def _message_class(name: str) -> Any:
    return GetMessageClass(_POOL.FindMessageTypeByName(f"{PACKAGE}.{name}"))


FindingMessage = _message_class("Finding")
UpdateScanRequest = _message_class("UpdateScanRequest")
UpdateScanResponse = _message_class("UpdateScanResponse")
CreateFindingsRequest = _message_class("CreateFindingsRequest")
CreateFindingsResponse = _message_class("CreateFindingsResponse")


def status_value(status: ScanStatus) -> int:
    return SCAN_STATUS_VALUES[status.value]


def finding_to_message(finding: Finding) -> Any:
    """Convert a Finding into its wire message."""
    return FindingMessage(
        scan_type=SCAN_TYPE_VALUES[Category(finding.category).value],
        severity=SEVERITY_VALUES[Severity(finding.severity).value],
        title=finding.title,
        description=finding.description,
        file_path=finding.file_path,
        line_number=finding.line_number,
        code_snippet=finding.code_snippet,
        cwe_id=finding.cwe_id,
        cve_id=finding.cve_id,
    )
