"""HTTP route handlers for the Web API."""

import logging
from typing import Any, Dict, Optional, Tuple

from gcp_calculator.automation.runner import run_estimate
from gcp_calculator.web.models import GenerateUrlResponse

# Get logger (setup handled by application entry point)
logger = logging.getLogger(__name__)


class WebHandlers:
    """Handlers for Web API endpoints."""

    def __init__(self, runner=run_estimate, runner_kwargs: Optional[Dict[str, Any]] = None):
        """
        Initialize handlers.

        Args:
            runner: Coroutine function fulfilling an estimate request
            runner_kwargs: Extra keyword arguments passed to the runner
        """
        self.runner = runner
        self.runner_kwargs = runner_kwargs or {}

    async def handle_generate_url(self, payload: Any) -> Tuple[Dict[str, Any], int]:
        """
        Handle the generate-URL endpoint.

        Args:
            payload: Decoded JSON body, either ``{"instances": [...]}`` or
                ``{"configurations": [...], "options": {...}}``

        Returns:
            Tuple of (response dictionary, HTTP status code)
        """
        logger.info("Starting GCP Calculator automation request")
        result = await self.runner(payload, **self.runner_kwargs)
        response = GenerateUrlResponse.from_result(result, payload)

        if result.success:
            logger.info(
                f"Generated GCP calculator URL for {response.configurations_processed} "
                f"configuration(s): {result.share_url}"
            )
        else:
            logger.warning(f"GCP URL generation failed ({result.error_code}): {result.error}")
        return response.to_dict(), response.status_code

    def handle_health(self) -> Dict[str, Any]:
        """Health check payload."""
        return {"status": "healthy"}
