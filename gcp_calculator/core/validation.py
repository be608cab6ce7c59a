"""Request validation and the spreadsheet configuration adapter.

Two request shapes are accepted:

* the native shape, ``{"instances": [...], "service": ..., "headless": ...}``
  whose items use the ``InstanceDescriptor`` wire keys, and
* the spreadsheet shape, ``{"configurations": [VmConfig, ...], "options": {...}}``
  where each ``VmConfig`` row carries ``name`` (machine type), ``series``,
  ``regionLocation``, ``discountModel``, ``quantity``, ``runningHours`` and
  optionally ``os`` / ``provisioningModel``.

Everything is validated before a browser is launched.
"""

import logging
import math
from typing import Any, Dict, List, Optional

from gcp_calculator.core.config import (
    DEFAULT_SERVICE,
    get_default_timeout_ms,
    get_headless,
)
from gcp_calculator.core.models import (
    MAX_HOURS,
    MIN_HOURS,
    EstimateOptions,
    EstimateRequest,
    InstanceDescriptor,
)
from gcp_calculator.shared import display_names
from gcp_calculator.shared.errors import ValidationError

logger = logging.getLogger(__name__)

DEFAULT_RUNNING_HOURS = 730
GENERAL = "General"


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _is_whole(value: Any) -> bool:
    if isinstance(value, float):
        return math.isfinite(value) and value.is_integer()
    return _is_number(value)


def _is_blank(value: Any) -> bool:
    return not isinstance(value, str) or value.strip() == ""


def _format_problems(problems: Dict[str, List[str]]) -> str:
    return "; ".join(f"{name}: {', '.join(errors)}" for name, errors in problems.items())


def _raise_if_problems(prefix: str, problems: Dict[str, List[str]]) -> None:
    if problems:
        message = f"{prefix} validation failed: {_format_problems(problems)}"
        logger.warning(message)
        raise ValidationError(message, problems=problems)


def validate_request(request: EstimateRequest) -> None:
    """
    Bounds-check every descriptor of a request.

    Args:
        request: Request about to be handed to the automation engine

    Raises:
        ValidationError: Listing every problem found, keyed by instance
    """
    problems: Dict[str, List[str]] = {}

    if not request.instances:
        problems[GENERAL] = ["At least one instance is required"]
    if not request.service or not request.service.strip():
        problems.setdefault(GENERAL, []).append("Service name is required")
    if not _is_number(request.options.timeout_ms) or request.options.timeout_ms <= 0:
        problems.setdefault(GENERAL, []).append("Timeout must be a positive number of milliseconds")

    for index, descriptor in enumerate(request.instances):
        errors: List[str] = []
        if not _is_number(descriptor.instance_count) or descriptor.instance_count < 1:
            errors.append("Instance count must be a positive number")
        elif not _is_whole(descriptor.instance_count):
            errors.append("Instance count must be a whole number")
        if not _is_number(descriptor.total_hours) or not (
            MIN_HOURS <= descriptor.total_hours <= MAX_HOURS
        ):
            errors.append(
                f"Total hours must be between {MIN_HOURS} and {MAX_HOURS} (max hours per month)"
            )
        if _is_blank(descriptor.series):
            errors.append("Machine series is required")
        if _is_blank(descriptor.machine_type):
            errors.append("Machine type is required")
        if _is_blank(descriptor.region):
            errors.append("Region is required")
        if errors:
            problems[f"instances[{index}]"] = errors

    _raise_if_problems("Request", problems)


def validate_vm_config(config: Dict[str, Any]) -> List[str]:
    """Return the problems of a single spreadsheet row (empty when valid)."""
    errors: List[str] = []

    if _is_blank(config.get("name")):
        errors.append("Machine type name is required")
    if _is_blank(config.get("series")):
        errors.append("Machine series is required")
    if _is_blank(config.get("regionLocation")):
        errors.append("Region location is required")
    if _is_blank(config.get("discountModel")):
        errors.append("Discount model is required")

    quantity = config.get("quantity")
    if quantity is not None and (not _is_number(quantity) or quantity < 1):
        errors.append("Quantity must be a positive number")
    elif quantity is not None and not _is_whole(quantity):
        errors.append("Quantity must be a whole number")

    hours = config.get("runningHours")
    if hours is not None and (not _is_number(hours) or not MIN_HOURS <= hours <= MAX_HOURS):
        errors.append("Running hours must be between 1 and 744 (max hours per month)")

    os_name = config.get("os")
    if os_name and display_names.normalize_operating_system(os_name) is None:
        errors.append(f"Unknown operating system: {os_name}")

    return errors


def validate_vm_configs(configs: Optional[List[Dict[str, Any]]]) -> None:
    """
    Validate spreadsheet rows.

    Raises:
        ValidationError: When the list is empty or any row has problems
    """
    if not configs:
        _raise_if_problems(
            "Configuration", {GENERAL: ["At least one configuration is required"]}
        )

    problems: Dict[str, List[str]] = {}
    for index, config in enumerate(configs):
        if not isinstance(config, dict):
            problems[f"configurations[{index}]"] = ["Configuration must be an object"]
            continue
        errors = validate_vm_config(config)
        if errors:
            name = config.get("name") or "Unnamed Configuration"
            problems.setdefault(str(name), []).extend(errors)

    _raise_if_problems("Configuration", problems)


def vm_config_to_descriptor(config: Dict[str, Any]) -> InstanceDescriptor:
    """
    Convert a spreadsheet row to an instance descriptor.

    Quantity defaults to 1 and running hours to a full month (730).
    """
    return InstanceDescriptor.from_dict(
        {
            "instanceCount": config.get("quantity") or 1,
            "totalHours": config.get("runningHours") or DEFAULT_RUNNING_HOURS,
            "operatingSystem": config.get("os"),
            "provisioningModel": config.get("provisioningModel"),
            "series": config.get("series", ""),
            "machineType": config.get("name", ""),
            "region": config.get("regionLocation", ""),
            "committedUse": config.get("discountModel"),
        }
    )


def vm_configs_to_request(
    configs: List[Dict[str, Any]],
    headless: Optional[bool] = None,
    timeout_ms: Optional[int] = None,
    service: str = DEFAULT_SERVICE,
    want_csv_link: bool = False,
    collect_artifacts: bool = False,
) -> EstimateRequest:
    """Validate spreadsheet rows and convert them into an EstimateRequest."""
    validate_vm_configs(configs)
    request = EstimateRequest(
        instances=tuple(vm_config_to_descriptor(config) for config in configs),
        service=service or DEFAULT_SERVICE,
        options=EstimateOptions(
            headless=get_headless() if headless is None else bool(headless),
            timeout_ms=timeout_ms or get_default_timeout_ms(),
            want_csv_link=bool(want_csv_link),
            collect_artifacts=bool(collect_artifacts),
        ),
    )
    validate_request(request)
    return request


def request_from_payload(payload: Any) -> EstimateRequest:
    """
    Build a validated EstimateRequest from a decoded JSON payload.

    Args:
        payload: Either the native ``instances`` shape or the spreadsheet
            ``configurations`` shape

    Returns:
        A request that passed validation

    Raises:
        ValidationError: For malformed payloads or invalid instances
    """
    if not isinstance(payload, dict):
        _raise_if_problems("Request", {GENERAL: ["Request body must be a JSON object"]})

    if "configurations" in payload:
        configs = payload.get("configurations")
        if configs is not None and not isinstance(configs, list):
            _raise_if_problems("Configuration", {GENERAL: ["configurations must be a list"]})
        options = payload.get("options") or {}
        if not isinstance(options, dict):
            _raise_if_problems("Configuration", {GENERAL: ["options must be an object"]})
        return vm_configs_to_request(
            configs or [],
            headless=options.get("headless"),
            timeout_ms=options.get("timeout"),
            service=payload.get("service") or DEFAULT_SERVICE,
            want_csv_link=options.get("wantCsvLink", False),
            collect_artifacts=options.get("collectArtifacts", False),
        )

    raw_instances = payload.get("instances")
    if raw_instances is not None and not isinstance(raw_instances, list):
        _raise_if_problems("Request", {GENERAL: ["instances must be a list"]})

    problems: Dict[str, List[str]] = {}
    instances: List[InstanceDescriptor] = []
    for index, item in enumerate(raw_instances or []):
        try:
            instances.append(InstanceDescriptor.from_dict(item))
        except (KeyError, TypeError, ValueError, OverflowError, AttributeError) as e:
            detail = f"Missing field {e}" if isinstance(e, KeyError) else str(e)
            problems[f"instances[{index}]"] = [detail]
    _raise_if_problems("Request", problems)

    headless = payload.get("headless")
    request = EstimateRequest(
        instances=tuple(instances),
        service=payload.get("service") or DEFAULT_SERVICE,
        options=EstimateOptions(
            headless=get_headless() if headless is None else bool(headless),
            timeout_ms=payload.get("timeoutMs") or get_default_timeout_ms(),
            want_csv_link=bool(payload.get("wantCsvLink", False)),
            collect_artifacts=bool(payload.get("collectArtifacts", False)),
        ),
    )
    validate_request(request)
    return request
