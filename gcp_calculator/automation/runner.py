"""Entry point of the automation engine.

``run_estimate`` validates the request, opens a browser session, drives the
calculator and converts every outcome into an ``EstimateResult``. Nothing
raised inside the engine escapes this function.
"""

import asyncio
import logging
import uuid
from typing import Any, Callable, Dict, Optional, Union

from gcp_calculator.automation.browser import BrowserConfig, BrowserSessionManager
from gcp_calculator.automation.controller import EstimateSessionController
from gcp_calculator.automation.diagnostics import create_diagnostics
from gcp_calculator.core.config import get_artifacts_dir, get_calculator_url, get_session_budget_ms
from gcp_calculator.core.models import EstimateRequest, EstimateResult
from gcp_calculator.core.validation import request_from_payload, validate_request
from gcp_calculator.shared.errors import (
    ErrorCode,
    EstimateError,
    ResourceError,
    ValidationError,
    get_error_help,
    reclassify_timeout,
)
from gcp_calculator.shared.metrics import increment_errors, increment_estimates

logger = logging.getLogger(__name__)


def _failure(error: EstimateError) -> EstimateResult:
    return EstimateResult.failure(
        error=error.message,
        error_code=error.code.value,
        failed_stage=error.stage,
        error_help=get_error_help(error.message),
    )


def _record(result: EstimateResult, service: str) -> EstimateResult:
    increment_estimates(result.success, service=service)
    if not result.success:
        increment_errors(result.error_code or ErrorCode.INTERNAL.value, stage=result.failed_stage)
    return result


async def run_estimate(
    request: Union[EstimateRequest, Dict[str, Any]],
    session_factory: Optional[Callable[[BrowserConfig], Any]] = None,
    controller_factory: Callable[..., EstimateSessionController] = EstimateSessionController,
    session_budget_ms: Optional[int] = None,
    artifacts_dir: Optional[str] = None,
    calculator_url: Optional[str] = None,
) -> EstimateResult:
    """
    Fulfil one estimate request end to end.

    Args:
        request: An EstimateRequest or a decoded JSON payload
        session_factory: Builds the browser session context manager from a
            BrowserConfig (defaults to BrowserSessionManager)
        controller_factory: Builds the session controller
        session_budget_ms: Overall budget; defaults to GCP_CALC_SESSION_BUDGET_MS
        artifacts_dir: Where diagnostics are written when requested
        calculator_url: Calculator URL override

    Returns:
        EstimateResult describing success or the failure
    """
    request_id = uuid.uuid4().hex[:12]
    try:
        if isinstance(request, EstimateRequest):
            validate_request(request)
        else:
            request = request_from_payload(request)
    except ValidationError as e:
        # Nothing launched yet
        service = request.service if isinstance(request, EstimateRequest) else None
        return _record(_failure(e), service or "unknown")

    options = request.options
    calculator_url = calculator_url or get_calculator_url()
    budget_ms = session_budget_ms or get_session_budget_ms()
    config = BrowserConfig(
        headless=options.headless,
        timeout_ms=options.timeout_ms,
        calculator_url=calculator_url,
    )
    try:
        session = (session_factory or BrowserSessionManager)(config)
        diagnostics = create_diagnostics(options.collect_artifacts, artifacts_dir or get_artifacts_dir())
    except EstimateError as e:
        return _record(_failure(e), request.service)
    except OSError as e:
        logger.error(f"[{request_id}] Could not prepare the session: {e}")
        return _record(
            _failure(ResourceError(f"Could not prepare the session: {e}", stage="BrowserSession")),
            request.service,
        )

    logger.info(
        f"[{request_id}] Starting estimate: {len(request.instances)} instance(s) of "
        f"{request.service} (headless={options.headless}, timeout={options.timeout_ms}ms)"
    )

    try:
        async with session as page:
            diagnostics.attach(page)
            controller = controller_factory(
                page,
                request,
                diagnostics=diagnostics,
                calculator_url=calculator_url,
                request_id=request_id,
            )
            try:
                result = await asyncio.wait_for(controller.run(), timeout=budget_ms / 1000)
            except asyncio.TimeoutError:
                logger.error(f"[{request_id}] Session budget of {budget_ms}ms exceeded")
                result = await controller.fail(
                    reclassify_timeout(controller.stage.value, f"session budget of {budget_ms}ms exceeded")
                )
    except EstimateError as e:
        result = _failure(e)
    except Exception as e:
        logger.exception(f"[{request_id}] Unexpected automation failure")
        result = EstimateResult.failure(
            error=f"Unexpected automation error: {e}",
            error_code=ErrorCode.INTERNAL.value,
            error_help=get_error_help(str(e)),
        )
    finally:
        diagnostics.close()

    result.artifacts = diagnostics.bundle()
    if result.success:
        logger.info(f"[{request_id}] Estimate succeeded: {result.share_url}")
    else:
        logger.warning(f"[{request_id}] Estimate failed ({result.error_code}): {result.error}")
    return _record(result, request.service)
