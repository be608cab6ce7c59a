"""Shared data models for estimate requests and results."""

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from gcp_calculator.shared import display_names
from gcp_calculator.core.config import DEFAULT_SERVICE, DEFAULT_TIMEOUT_MS


class OperatingSystem(str, Enum):
    LINUX = "Linux"
    WINDOWS = "Windows"
    RHEL = "Red Hat Enterprise Linux"
    RHEL_SAP = "Red Hat Enterprise Linux for SAP"
    SLES = "SUSE Linux Enterprise Server"
    SLES_SAP = "SUSE Linux Enterprise Server for SAP"
    UBUNTU_PRO = "Ubuntu Pro"


class ProvisioningModel(str, Enum):
    REGULAR = "Regular"
    SPOT = "Spot"


class CommittedUseTerm(str, Enum):
    NONE = "none"
    ONE_YEAR = "1 year"
    THREE_YEARS = "3 years"


MIN_HOURS = 1
MAX_HOURS = 744  # 31 days


def whole_number(value: Any) -> int:
    """
    Convert an instance count to int without truncating.

    Raises:
        ValueError: For booleans, fractional or non-finite numbers, and
            strings that are not integers
    """
    if isinstance(value, bool):
        raise ValueError(f"Instance count must be a whole number, got {value!r}")
    if isinstance(value, float) and not (math.isfinite(value) and value.is_integer()):
        raise ValueError(f"Instance count must be a whole number, got {value!r}")
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValueError(f"Instance count must be a whole number, got {value!r}") from None


@dataclass(frozen=True)
class InstanceDescriptor:
    """One fully-specified instance configuration to enter into the estimate."""

    instance_count: int
    total_hours: float
    operating_system: OperatingSystem
    provisioning_model: ProvisioningModel
    series: str  # e.g. "E2"
    machine_type: str  # e.g. "e2-standard-2"
    region: str  # Calculator display label, e.g. "Iowa (us-central1)"
    committed_use: CommittedUseTerm = CommittedUseTerm.NONE

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "InstanceDescriptor":
        """
        Build a descriptor from a camelCase request dictionary.

        Accepts ``numberOfInstances`` for ``instanceCount`` and ``os`` for
        ``operatingSystem``. Region codes are mapped onto calculator labels and
        OS / commitment variations onto their canonical values.

        Raises:
            ValueError: If a field is missing or cannot be converted
        """
        count = data.get("instanceCount", data.get("numberOfInstances"))
        hours = data.get("totalHours", data.get("runningHours"))
        if count is None or hours is None:
            raise ValueError("instanceCount and totalHours are required")

        os_raw = data.get("operatingSystem", data.get("os"))
        os_name = display_names.normalize_operating_system(os_raw)
        if os_name is None:
            raise ValueError(f"Unknown operating system: {os_raw}")

        committed_raw = data.get("committedUse", data.get("discountModel"))
        provisioning_raw = data.get("provisioningModel")

        return cls(
            instance_count=whole_number(count),
            total_hours=float(hours),
            operating_system=OperatingSystem(os_name),
            provisioning_model=ProvisioningModel(
                display_names.provisioning_model(provisioning_raw, committed_raw)
            ),
            series=display_names.series_code(str(data["series"])),
            machine_type=str(data["machineType"]).strip(),
            region=display_names.region_display_name(str(data["region"])),
            committed_use=CommittedUseTerm(
                display_names.committed_use_term(committed_raw)
            ),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the camelCase wire format."""
        return {
            "instanceCount": self.instance_count,
            "totalHours": self.total_hours,
            "operatingSystem": self.operating_system.value,
            "provisioningModel": self.provisioning_model.value,
            "series": self.series,
            "machineType": self.machine_type,
            "region": self.region,
            "committedUse": self.committed_use.value,
        }


@dataclass(frozen=True)
class EstimateOptions:
    headless: bool = True
    timeout_ms: int = DEFAULT_TIMEOUT_MS
    want_csv_link: bool = False
    collect_artifacts: bool = False


@dataclass(frozen=True)
class EstimateRequest:
    """Ordered instances plus the calculator product they belong to."""

    instances: Tuple[InstanceDescriptor, ...]
    service: str = DEFAULT_SERVICE
    options: EstimateOptions = field(default_factory=EstimateOptions)


@dataclass
class LineItemSummary:
    """Echo of one descriptor plus what the calculator showed for it."""

    service: str
    region: str
    series: str
    machine_type: str
    instances: int
    total_hours: float
    committed_use: str
    os: str
    provisioning_model: str
    subtotal_text: Optional[str] = None
    committed: bool = False
    skipped_stages: List[str] = field(default_factory=list)
    field_discrepancies: List[str] = field(default_factory=list)
    error: Optional[str] = None

    @classmethod
    def from_descriptor(cls, descriptor: InstanceDescriptor, service: str) -> "LineItemSummary":
        return cls(
            service=service,
            region=descriptor.region,
            series=descriptor.series,
            machine_type=descriptor.machine_type,
            instances=descriptor.instance_count,
            total_hours=descriptor.total_hours,
            committed_use=descriptor.committed_use.value,
            os=descriptor.operating_system.value,
            provisioning_model=descriptor.provisioning_model.value,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON response."""
        result = {
            "service": self.service,
            "region": self.region,
            "series": self.series,
            "machineType": self.machine_type,
            "instances": self.instances,
            "totalHours": self.total_hours,
            "committedUse": self.committed_use,
            "os": self.os,
            "provisioningModel": self.provisioning_model,
            "subtotalText": self.subtotal_text,
            "committed": self.committed,
        }
        if self.skipped_stages:
            result["skippedStages"] = list(self.skipped_stages)
        if self.field_discrepancies:
            result["fieldDiscrepancies"] = list(self.field_discrepancies)
        if self.error:
            result["error"] = self.error
        return result


@dataclass
class EstimateSummary:
    line_items: List[LineItemSummary]
    total_text: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "lineItems": [item.to_dict() for item in self.line_items],
            "totalText": self.total_text,
        }


@dataclass
class ArtifactBundle:
    """Paths of diagnostics written during a session (only when enabled)."""

    screenshots: Dict[str, str] = field(default_factory=dict)
    console_log: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {"screenshots": dict(self.screenshots)}
        if self.console_log:
            result["consoleLogs"] = self.console_log
        return result


# Sentinel distinguishing "CSV link not requested" from "requested, not found"
CSV_NOT_REQUESTED = object()


@dataclass
class EstimateResult:
    """Outcome of one automation session."""

    success: bool
    share_url: Optional[str] = None
    csv_download_url: Any = CSV_NOT_REQUESTED
    estimate_summary: Optional[EstimateSummary] = None
    error: Optional[str] = None
    error_code: Optional[str] = None
    failed_stage: Optional[str] = None
    error_help: Optional[str] = None
    artifacts: Optional[ArtifactBundle] = None

    @classmethod
    def failure(
        cls,
        error: str,
        error_code: str,
        failed_stage: Optional[str] = None,
        error_help: Optional[str] = None,
        artifacts: Optional[ArtifactBundle] = None,
        estimate_summary: Optional[EstimateSummary] = None,
    ) -> "EstimateResult":
        return cls(
            success=False,
            error=error,
            error_code=error_code,
            failed_stage=failed_stage,
            error_help=error_help,
            artifacts=artifacts,
            estimate_summary=estimate_summary,
        )

    @property
    def line_items(self) -> List[LineItemSummary]:
        return self.estimate_summary.line_items if self.estimate_summary else []

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON response."""
        result: Dict[str, Any] = {"success": self.success}
        if self.share_url:
            result["shareUrl"] = self.share_url
        if self.csv_download_url is not CSV_NOT_REQUESTED:
            result["csvDownloadUrl"] = self.csv_download_url
        if self.estimate_summary is not None:
            result["estimateSummary"] = self.estimate_summary.to_dict()
        if self.artifacts is not None:
            result["artifacts"] = self.artifacts.to_dict()
        if not self.success:
            result["error"] = self.error or "Unknown automation error"
            if self.error_code:
                result["errorCode"] = self.error_code
            if self.failed_stage:
                result["failedStage"] = self.failed_stage
            if self.error_help:
                result["errorHelp"] = self.error_help
        return result
