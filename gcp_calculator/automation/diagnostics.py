"""Optional screenshots and browser console capture for automation sessions.

Disabled by default: ``create_diagnostics(False, ...)`` returns
``NullDiagnostics`` whose methods do nothing. When enabled, each session gets
its own directory under the artifacts root with:

* ``console.log`` written by a dedicated per-session logger
* ``estimate.png`` after the last successful commit
* ``share.png`` when the share surface opens
* ``error.png`` at the failure point
"""

import itertools
import logging
import time
from pathlib import Path
from typing import Dict, Optional

from playwright.async_api import ConsoleMessage, Page
from playwright.async_api import Error as PlaywrightError

from gcp_calculator.core.models import ArtifactBundle

logger = logging.getLogger(__name__)

# Artifact name -> file name
SCREENSHOT_FILES = {
    "estimatePanel": "estimate.png",
    "shareMenu": "share.png",
    "lastError": "error.png",
}

CONSOLE_LOG_FILE = "console.log"

_session_ids = itertools.count(1)


class NullDiagnostics:
    """Inert collector used when artifact collection is off."""

    enabled = False

    def attach(self, page: Page) -> None:
        return None

    async def capture(self, page: Page, name: str) -> Optional[str]:
        return None

    def bundle(self) -> Optional[ArtifactBundle]:
        return None

    def close(self) -> None:
        return None


class DiagnosticsCollector:
    """Writes screenshots and console messages for one session."""

    enabled = True

    def __init__(self, artifacts_dir: str, session_id: Optional[str] = None):
        self.session_id = session_id or f"{time.strftime('%Y%m%d-%H%M%S')}-{next(_session_ids)}"
        self.directory = Path(artifacts_dir) / self.session_id
        self.directory.mkdir(parents=True, exist_ok=True)
        self.console_log_path = self.directory / CONSOLE_LOG_FILE
        self.screenshots: Dict[str, str] = {}

        # Per-session logger; never propagates into the application log
        self.console_logger = logging.getLogger(f"gcp_calculator.console.{self.session_id}")
        self.console_logger.setLevel(logging.DEBUG)
        self.console_logger.propagate = False
        self._handler = logging.FileHandler(self.console_log_path, encoding="utf-8")
        self._handler.setFormatter(logging.Formatter("[%(asctime)s] %(message)s"))
        self.console_logger.addHandler(self._handler)

    def attach(self, page: Page) -> None:
        """Stream the page's console messages into the session log."""
        page.on("console", self._on_console)

    def _on_console(self, message: ConsoleMessage) -> None:
        self.console_logger.info(f"{message.type.upper()} {message.text}")

    async def capture(self, page: Page, name: str) -> Optional[str]:
        """
        Save a screenshot for artifact ``name``.

        Returns:
            Path of the screenshot, or None if the page could not be captured
        """
        path = self.directory / SCREENSHOT_FILES.get(name, f"{name}.png")
        try:
            await page.screenshot(path=str(path), full_page=False)
        except PlaywrightError as e:
            logger.warning(f"Screenshot '{name}' failed: {e}")
            return None
        self.screenshots[name] = str(path)
        logger.debug(f"Saved {name} screenshot to {path}")
        return str(path)

    def bundle(self) -> ArtifactBundle:
        return ArtifactBundle(
            screenshots=dict(self.screenshots),
            console_log=str(self.console_log_path),
        )

    def close(self) -> None:
        self.console_logger.removeHandler(self._handler)
        self._handler.close()


def create_diagnostics(enabled: bool, artifacts_dir: str):
    """Return a DiagnosticsCollector when enabled, else NullDiagnostics."""
    if not enabled:
        return NullDiagnostics()
    return DiagnosticsCollector(artifacts_dir)
