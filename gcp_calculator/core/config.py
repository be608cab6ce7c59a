"""Shared configuration helpers for the GCP calculator link generator."""

import os
from dotenv import load_dotenv

from gcp_calculator.shared.calculator_urls import CALCULATOR_URL

DEFAULT_TIMEOUT_MS = 45000
DEFAULT_SESSION_BUDGET_MS = 300000
DEFAULT_ARTIFACTS_DIR = "artifacts"
DEFAULT_SERVICE = "Compute Engine"


def load_environment() -> None:
    """Load environment variables from .env if present."""
    load_dotenv()


def _get_int(name: str, default: int) -> int:
    try:
        value = int(os.getenv(name, default))
    except ValueError:
        return default
    return value if value > 0 else default


def _get_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def get_calculator_url() -> str:
    """Return the calculator URL; overridable for staging mirrors."""
    return os.getenv("GCP_CALCULATOR_URL", CALCULATOR_URL)


def get_default_timeout_ms() -> int:
    """Return the per-interaction timeout applied to the page."""
    return _get_int("GCP_CALC_TIMEOUT_MS", DEFAULT_TIMEOUT_MS)


def get_session_budget_ms() -> int:
    """
    Return the overall budget for one automation session.

    Exceeding it tears the browser down and fails the request.
    """
    return _get_int("GCP_CALC_SESSION_BUDGET_MS", DEFAULT_SESSION_BUDGET_MS)


def get_headless() -> bool:
    """Return whether Chromium runs headless (default true)."""
    return _get_bool("GCP_CALC_HEADLESS", True)


def get_artifacts_dir() -> str:
    """Return the directory screenshots and console logs are written to."""
    return os.getenv("GCP_CALC_ARTIFACTS_DIR", DEFAULT_ARTIFACTS_DIR)


def get_port(default: int = 8000) -> int:
    """Return the desired port for local hosting."""
    try:
        return int(os.getenv("PORT", default))
    except ValueError:
        return default
