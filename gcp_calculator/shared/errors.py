"""Shared exception definitions for the calculator automation engine."""

from enum import Enum
from typing import Dict, Optional


class ErrorCode(str, Enum):
    """Failure kinds reported on an EstimateResult."""

    VALIDATION_ERROR = "ValidationError"
    CONTROL_NOT_FOUND = "ControlNotFound"
    COMMIT_FAILED = "CommitFailed"
    EXTRACTION_FAILED = "ExtractionFailed"
    RESOURCE_ERROR = "ResourceError"
    TIMEOUT = "Timeout"
    INTERNAL = "InternalError"


class GcpCalculatorError(Exception):
    """Base exception for GCP calculator automation errors."""

    pass


class ConfigurationError(GcpCalculatorError):
    """Raised when configuration is missing or invalid."""

    pass


class EstimateError(GcpCalculatorError):
    """Base for errors raised while fulfilling an estimate request.

    Carries the stage that failed so the runner can report it without
    inspecting the message.
    """

    code: ErrorCode = ErrorCode.INTERNAL

    def __init__(self, message: str, stage: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.stage = stage


class ValidationError(EstimateError):
    """Raised when a request is malformed; always before any browser launch."""

    code = ErrorCode.VALIDATION_ERROR

    def __init__(self, message: str, problems: Optional[Dict[str, list]] = None):
        super().__init__(message, stage="Validation")
        self.problems = problems or {}


class ControlNotFound(EstimateError):
    """Raised when a stage's target control or option cannot be located."""

    code = ErrorCode.CONTROL_NOT_FOUND


class ControlStructureError(ControlNotFound):
    """Raised when a control lacks the relationship to its option list."""

    pass


class CommitFailed(EstimateError):
    """Raised when an instance could not be added to the estimate.

    ``line_item`` carries the partially filled summary of the instance so the
    session can still report its skipped stages.
    """

    code = ErrorCode.COMMIT_FAILED

    def __init__(self, message: str, stage: Optional[str] = None, line_item=None):
        super().__init__(message, stage=stage)
        self.line_item = line_item


class ExtractionFailed(EstimateError):
    """Raised when the total or share URL cannot be read within the timeout."""

    code = ErrorCode.EXTRACTION_FAILED


class ResourceError(EstimateError):
    """Raised when browser, context or page acquisition fails."""

    code = ErrorCode.RESOURCE_ERROR


class StageTimeout(EstimateError):
    """Raised when a stage exceeds its time budget."""

    code = ErrorCode.TIMEOUT


# Stage names whose timeouts are reported as extraction failures
_EXTRACTION_STAGES = {
    "TotalValidated",
    "ShareSurfaceOpen",
    "ShareUrlExtracted",
    "CsvLinkExtracted",
}

_COMMIT_STAGES = {"ConfiguringInstances", "Commit"}

_RESOURCE_STAGES = {"Idle", "BrowserSession"}

_PICKER_STAGES = {"ProductPickerOpen", "ProductSelected"}


def _error_for_stage(stage: Optional[str], text: str, default=StageTimeout) -> EstimateError:
    if stage in _EXTRACTION_STAGES:
        return ExtractionFailed(text, stage=stage)
    if stage in _COMMIT_STAGES:
        return CommitFailed(text, stage=stage)
    if stage in _RESOURCE_STAGES:
        return ResourceError(text, stage=stage)
    if stage in _PICKER_STAGES:
        return ControlNotFound(text, stage=stage)
    return default(text, stage=stage)


def reclassify_timeout(stage: Optional[str], message: str) -> EstimateError:
    """Map a timeout in ``stage`` to the stage-appropriate error kind."""
    return _error_for_stage(stage, f"Timed out during {stage or 'unknown stage'}: {message}")


def classify_driver_error(stage: Optional[str], message: str) -> EstimateError:
    """Map a browser driver error raised in ``stage`` to an error kind."""
    return _error_for_stage(
        stage,
        f"Browser error during {stage or 'unknown stage'}: {message}",
        default=ResourceError,
    )


ERROR_HELP: Dict[str, str] = {
    "Failed to click Add to estimate": (
        "The GCP Calculator page may have changed. Try refreshing and trying again."
    ),
    "Product not found": (
        "Could not find the requested product in the picker. Make sure the "
        "GCP Calculator is reachable and the product name is correct."
    ),
    "No instances were committed": (
        "None of the configurations could be added. Check that the machine "
        "type, series and region combination exists in the calculator."
    ),
    "Failed to capture share URL": (
        "Could not get the shareable URL. The sharing functionality may have changed."
    ),
    "Share control not found": (
        "The share button did not appear. The estimate may be empty or the page changed."
    ),
    "Total not found": (
        "Could not find the total cost on the page. The calculation may not have completed."
    ),
    "Browser session could not be started": (
        "The automation browser could not be started. Check that Playwright "
        "Chromium is installed (playwright install chromium)."
    ),
    "validation failed": (
        "Please check that all configurations have valid machine types, regions, "
        "and other required fields."
    ),
}

DEFAULT_ERROR_HELP = (
    "An unexpected error occurred during automation. "
    "Please check the logs for more details."
)


def get_error_help(message: str) -> str:
    """Return operator help text for a failure message."""
    for pattern, help_text in ERROR_HELP.items():
        if pattern in (message or ""):
            return help_text
    return DEFAULT_ERROR_HELP
