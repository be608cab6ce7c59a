"""Web request/response models for the Flask route."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from gcp_calculator.core.models import CSV_NOT_REQUESTED, EstimateResult


def _count_configurations(payload: Any) -> int:
    if not isinstance(payload, dict):
        return 0
    items = payload.get("configurations", payload.get("instances")) or []
    return len(items) if isinstance(items, list) else 0


@dataclass
class GenerateUrlResponse:
    """Response of POST /api/generate-gcp-url."""

    result: EstimateResult
    configurations_processed: int = 0
    timestamp: str = field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")
    )

    @classmethod
    def from_result(cls, result: EstimateResult, payload: Any) -> "GenerateUrlResponse":
        """Create from an engine result and the request payload it answered."""
        return cls(result=result, configurations_processed=_count_configurations(payload))

    @property
    def status_code(self) -> int:
        if self.result.success:
            return 200
        if self.result.error_code == "ValidationError":
            return 400
        return 500

    def _summary(self) -> Optional[Dict[str, Any]]:
        summary = self.result.estimate_summary
        if summary is None:
            return None
        return {
            "totalCost": summary.total_text,
            "lineItems": [
                {
                    "service": item.service,
                    "region": item.region,
                    "machineType": item.machine_type,
                    "instances": item.instances,
                    "subtotal": item.subtotal_text,
                }
                for item in summary.line_items
            ],
        }

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON response."""
        result = self.result
        if not result.success:
            response = {
                "success": False,
                "error": result.error or "Unknown automation error",
                "errorCode": result.error_code,
                "failedStage": result.failed_stage,
                "errorHelp": result.error_help,
            }
        else:
            response = {
                "success": True,
                "shareUrl": result.share_url,
                "details": {
                    "configurationsProcessed": self.configurations_processed,
                    "timestamp": self.timestamp,
                    "summary": self._summary(),
                },
            }
            if result.csv_download_url is not CSV_NOT_REQUESTED:
                response["csvDownloadUrl"] = result.csv_download_url
            response["estimateSummary"] = result.estimate_summary.to_dict() if result.estimate_summary else None
        if result.artifacts is not None:
            response["artifacts"] = result.artifacts.to_dict()
        return response
