"""Top-level flow of one estimate session.

The controller walks the calculator through a fixed sequence of states:

    Idle -> ProductPickerOpen -> ProductSelected -> ConfiguringInstances
         -> TotalValidated -> ShareSurfaceOpen -> ShareUrlExtracted
         -> [CsvLinkExtracted] -> Done

and lands in Failed from any state on an escalated error. Instances are
committed strictly in request order. A failed commit is recorded on its line
item and the session continues; the session only fails when no instance was
committed or when the total or share link cannot be read.
"""

import asyncio
import logging
from contextlib import contextmanager
from enum import Enum
from typing import Awaitable, Callable, List, Optional, Sequence, Tuple

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import Locator, Page
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from gcp_calculator.automation import calculator_ui as ui
from gcp_calculator.automation.diagnostics import NullDiagnostics
from gcp_calculator.automation.field_setter import FormFieldSetter
from gcp_calculator.automation.selector import ResilientSelector
from gcp_calculator.automation.sequencer import CLICK_BACKOFFS_MS, InstanceSequencer, click_with_retry
from gcp_calculator.core.models import (
    CSV_NOT_REQUESTED,
    EstimateRequest,
    EstimateResult,
    EstimateSummary,
    LineItemSummary,
)
from gcp_calculator.shared.calculator_urls import (
    CALCULATOR_URL,
    is_absolute_url,
    is_valid_share_url,
    share_hosts_for,
)
from gcp_calculator.shared.errors import (
    CommitFailed,
    ControlNotFound,
    EstimateError,
    ExtractionFailed,
    classify_driver_error,
    get_error_help,
    reclassify_timeout,
)
from gcp_calculator.shared.metrics import increment_instances_committed
from gcp_calculator.shared.tracing import stage_span

logger = logging.getLogger(__name__)

POLL_INTERVAL_MS = 500
NETWORK_IDLE_MS = 20000


class SessionState(str, Enum):
    IDLE = "Idle"
    PRODUCT_PICKER_OPEN = "ProductPickerOpen"
    PRODUCT_SELECTED = "ProductSelected"
    CONFIGURING_INSTANCES = "ConfiguringInstances"
    TOTAL_VALIDATED = "TotalValidated"
    SHARE_SURFACE_OPEN = "ShareSurfaceOpen"
    SHARE_URL_EXTRACTED = "ShareUrlExtracted"
    CSV_LINK_EXTRACTED = "CsvLinkExtracted"
    DONE = "Done"
    FAILED = "Failed"


async def dismiss_overlays(page: Page) -> int:
    """Click away consent and cookie banners; returns how many were dismissed."""
    dismissed = 0
    candidates: List[Locator] = [page.get_by_role("button", name=pattern) for pattern in ui.OVERLAY_BUTTONS]
    candidates += [page.locator(selector) for selector in ui.COOKIE_BUTTONS]
    for candidate in candidates:
        try:
            if await candidate.count() == 0:
                continue
            await candidate.first.click(timeout=1000)
            dismissed += 1
            await asyncio.sleep(0.2)
        except PlaywrightError as e:
            logger.debug(f"Overlay button not clickable: {e}")
    if dismissed:
        logger.info(f"Dismissed {dismissed} overlay(s)")
    return dismissed


class EstimateSessionController:
    """Drives one EstimateRequest through the calculator on an open page."""

    def __init__(
        self,
        page: Page,
        request: EstimateRequest,
        selector: Optional[ResilientSelector] = None,
        setter: Optional[FormFieldSetter] = None,
        sequencer: Optional[InstanceSequencer] = None,
        diagnostics=None,
        calculator_url: str = CALCULATOR_URL,
        click_backoffs_ms: Sequence[int] = CLICK_BACKOFFS_MS,
        poll_interval_ms: int = POLL_INTERVAL_MS,
        request_id: Optional[str] = None,
    ):
        self.page = page
        self.request = request
        self.timeout_ms = request.options.timeout_ms
        self.selector = selector or ResilientSelector(page)
        self.setter = setter or FormFieldSetter(page)
        self.sequencer = sequencer or InstanceSequencer(
            page, self.selector, self.setter, request.service, click_backoffs_ms=click_backoffs_ms
        )
        self.diagnostics = diagnostics or NullDiagnostics()
        self.calculator_url = calculator_url
        self.share_hosts = share_hosts_for(calculator_url)
        self.click_backoffs_ms = tuple(click_backoffs_ms)
        self.poll_interval_ms = poll_interval_ms
        self.request_id = request_id

        self.state = SessionState.IDLE
        # Stage in progress; timeouts are classified by it
        self.stage = SessionState.IDLE
        self.line_items: List[LineItemSummary] = []
        self.total_text: Optional[str] = None

    def _transition(self, state: SessionState) -> None:
        logger.debug(f"Session state {self.state.value} -> {state.value}")
        self.state = state

    def _summary(self) -> EstimateSummary:
        return EstimateSummary(line_items=list(self.line_items), total_text=self.total_text)

    async def run(self) -> EstimateResult:
        """
        Run the whole session.

        Returns:
            EstimateResult; escalated errors are converted into a failed result
            carrying the failing stage, error code and help text
        """
        try:
            return await self._drive()
        except PlaywrightTimeoutError as e:
            error = reclassify_timeout(self.stage.value, str(e))
        except EstimateError as e:
            error = e
        except PlaywrightError as e:
            error = classify_driver_error(self.stage.value, str(e))
        return await self.fail(error)

    async def fail(self, error: EstimateError) -> EstimateResult:
        """Enter Failed, capture the failure screenshot and build the result."""
        failed_stage = error.stage or self.stage.value
        self._transition(SessionState.FAILED)
        logger.error(f"Session failed in {failed_stage}: {error.message}")
        await self.diagnostics.capture(self.page, "lastError")
        return EstimateResult.failure(
            error=error.message,
            error_code=error.code.value,
            failed_stage=failed_stage,
            error_help=get_error_help(error.message),
            estimate_summary=self._summary() if self.line_items else None,
        )

    @contextmanager
    def _stage(self, stage: SessionState, **attrs):
        """Mark ``stage`` as in progress and trace it."""
        self.stage = stage
        with stage_span(stage.value, request_id=self.request_id, **attrs):
            yield

    async def _drive(self) -> EstimateResult:
        with self._stage(SessionState.PRODUCT_PICKER_OPEN):
            await self._open_product_picker()
        with self._stage(SessionState.PRODUCT_SELECTED, service=self.request.service):
            await self._select_product()
        with self._stage(SessionState.CONFIGURING_INSTANCES, instances=len(self.request.instances)):
            await self._configure_instances()
        with self._stage(SessionState.TOTAL_VALIDATED):
            self.total_text = await self._validate_total()
        with self._stage(SessionState.SHARE_SURFACE_OPEN):
            surface = await self._open_share_surface()
        with self._stage(SessionState.SHARE_URL_EXTRACTED):
            share_url = await self._extract_share_url(surface)

        csv_url = CSV_NOT_REQUESTED
        if self.request.options.want_csv_link:
            with self._stage(SessionState.CSV_LINK_EXTRACTED):
                csv_url = await self._extract_csv_link()

        self._transition(SessionState.DONE)
        logger.info(f"Estimate ready: {share_url}")
        return EstimateResult(
            success=True,
            share_url=share_url,
            csv_download_url=csv_url,
            estimate_summary=self._summary(),
        )

    async def _click(self, target: Callable[[], Locator], name: str) -> None:
        await click_with_retry(target, name, self.click_backoffs_ms)

    async def _open_product_picker(self) -> None:
        await self.page.goto(self.calculator_url, wait_until="domcontentloaded")
        try:
            await self.page.wait_for_load_state("networkidle", timeout=min(NETWORK_IDLE_MS, self.timeout_ms))
        except PlaywrightTimeoutError:
            logger.debug("Calculator never reached network idle; continuing")
        await dismiss_overlays(self.page)

        await self._click(
            lambda: self.page.get_by_role("button", name=ui.ADD_TO_ESTIMATE).first,
            "Add to estimate",
        )
        await self.page.locator(ui.PRODUCT_DIALOG).first.wait_for(state="visible")
        self._transition(SessionState.PRODUCT_PICKER_OPEN)

    async def _select_product(self) -> None:
        """Pick the product by accessible name or aria-label, never by position."""
        service = self.request.service
        dialog = self.page.locator(ui.PRODUCT_DIALOG).first
        name = ui.exact_name(service)
        attempts: Tuple[Tuple[str, Callable[[], Locator]], ...] = (
            ("button name", lambda: dialog.get_by_role("button", name=name)),
            ("aria-label", lambda: dialog.locator(f'[aria-label="{service}" i]')),
            ("link name", lambda: dialog.get_by_role("link", name=name)),
            ("option name", lambda: dialog.get_by_role("option", name=name)),
            ("button mention", lambda: dialog.get_by_role("button", name=ui.mentions(service))),
        )
        for description, build in attempts:
            locator = build()
            if await locator.count() == 0:
                continue
            logger.debug(f"Product '{service}' located by {description}")
            await self._click(lambda: locator.first, f"product card: {service}")
            self._transition(SessionState.PRODUCT_SELECTED)
            await self._prepare_form()
            return
        raise ControlNotFound(f"Product not found in picker: {service}")

    async def _prepare_form(self) -> None:
        """Best-effort: Instances service type selected, advanced settings off."""
        toggle = ui.radio(self.page, ui.INSTANCES_TOGGLE).or_(
            self.page.get_by_role("button", name=ui.INSTANCES_TOGGLE)
        )
        try:
            if await toggle.count():
                first = toggle.first
                if await first.get_attribute("aria-checked") != "true":
                    await first.click(timeout=2000)
        except PlaywrightError as e:
            logger.debug(f"Instances toggle not set: {e}")
        await self._set_advanced_off()

    async def _set_advanced_off(self) -> None:
        candidates = (
            self.page.get_by_role("switch", name=ui.ADVANCED_SETTINGS),
            self.page.get_by_role("button", name=ui.ADVANCED_SETTINGS),
            self.page.get_by_label(ui.ADVANCED_SETTINGS),
        )
        for candidate in candidates:
            try:
                if await candidate.count() == 0:
                    continue
                control = candidate.first
                pressed = await control.get_attribute("aria-pressed")
                checked = await control.get_attribute("aria-checked")
                if pressed == "true" or checked == "true":
                    await control.click(timeout=2000)
                    logger.debug("Turned advanced settings off")
                return
            except PlaywrightError as e:
                logger.debug(f"Advanced settings probe failed: {e}")
        # Not rendered means off

    async def _configure_instances(self) -> None:
        self._transition(SessionState.CONFIGURING_INSTANCES)
        committed = 0
        first_error: Optional[str] = None
        total = len(self.request.instances)

        for index, descriptor in enumerate(self.request.instances):
            try:
                summary = await self.sequencer.configure(descriptor, index)
            except CommitFailed as e:
                summary = e.line_item or LineItemSummary.from_descriptor(descriptor, self.request.service)
                summary.error = summary.error or e.message
                first_error = first_error or e.message
                self.line_items.append(summary)
                logger.warning(f"Instance {index + 1}/{total} not committed; continuing")
            else:
                self.line_items.append(summary)
                committed += 1
                increment_instances_committed()
                await self.diagnostics.capture(self.page, "estimatePanel")
            # The form resets after each add
            if index < total - 1:
                await self._prepare_form()

        logger.info(f"Committed {committed}/{total} instance(s)")
        if committed == 0:
            raise CommitFailed(
                f"No instances were committed: {first_error}",
                stage=SessionState.CONFIGURING_INSTANCES.value,
            )

    async def _poll(self, probe: Callable[[], Awaitable[Optional[str]]]) -> Optional[str]:
        """Call ``probe`` until it returns a value or the stage timeout elapses."""
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.timeout_ms / 1000
        while True:
            value = await probe()
            if value:
                return value
            if loop.time() >= deadline:
                return None
            await asyncio.sleep(self.poll_interval_ms / 1000)

    async def _read_text(self, locator: Locator) -> Optional[str]:
        try:
            if await locator.count() == 0:
                return None
            return (await locator.first.inner_text(timeout=1500)).strip()
        except PlaywrightError:
            return None

    async def _find_total(self) -> Optional[str]:
        candidates = [self.page.get_by_text(pattern) for pattern in ui.TOTAL_PATTERNS]
        candidates.append(self.page.locator(ui.TOTAL_CURRENCY_TEXT))
        for candidate in candidates:
            text = await self._read_text(candidate)
            if text and ui.CURRENCY_RE.search(text):
                return text
        return None

    async def _validate_total(self) -> str:
        total = await self._poll(self._find_total)
        if not total:
            raise ExtractionFailed(
                "Total not found or not formatted as currency",
                stage=SessionState.TOTAL_VALIDATED.value,
            )
        self._transition(SessionState.TOTAL_VALIDATED)
        logger.info(f"Estimate total: {total}")
        return total

    async def _open_share_surface(self) -> Locator:
        try:
            await self._click(
                lambda: self.page.get_by_role("button", name=ui.SHARE_BUTTON).first,
                "Share button",
            )
        except ControlNotFound as e:
            raise ExtractionFailed(
                f"Share control not found: {e.message}", stage=SessionState.SHARE_SURFACE_OPEN.value
            ) from e

        surface = self.page.locator(ui.SHARE_SURFACE).last
        try:
            await surface.wait_for(state="visible", timeout=min(5000, self.timeout_ms))
        except PlaywrightTimeoutError:
            logger.debug("No share dialog detected; reading share link from the page")
            surface = self.page.locator("body")
        self._transition(SessionState.SHARE_SURFACE_OPEN)
        await self.diagnostics.capture(self.page, "shareMenu")
        return surface

    def _copy_affordances(self, surface: Locator) -> Tuple[Tuple[str, Locator], ...]:
        return (
            ("copy link button", surface.get_by_role("button", name=ui.COPY_LINK)),
            ("copy link label", surface.get_by_label(ui.COPY_LINK)),
            ("copy button", surface.get_by_role("button", name=ui.COPY_ANY)),
            ("page copy link button", self.page.get_by_role("button", name=ui.COPY_LINK)),
        )

    async def _locate_copy_affordance(self, surface: Locator) -> Optional[Locator]:
        for description, candidate in self._copy_affordances(surface):
            try:
                if await candidate.count():
                    logger.debug(f"Copy affordance located by {description}")
                    return candidate.first
            except PlaywrightError:
                continue
        return None

    async def _first_input_value(self, inputs: Locator) -> Optional[str]:
        try:
            for index in range(await inputs.count()):
                value = (await inputs.nth(index).input_value()).strip()
                if is_valid_share_url(value, self.share_hosts):
                    return value
        except PlaywrightError:
            return None
        return None

    async def _read_readonly_field(self, surface: Locator, affordance: Optional[Locator]) -> Optional[str]:
        return await self._first_input_value(surface.locator("input[readonly]"))

    async def _read_adjacent_input(self, surface: Locator, affordance: Optional[Locator]) -> Optional[str]:
        if affordance is None:
            return None
        return await self._first_input_value(affordance.locator("xpath=..").locator("input"))

    async def _read_share_link(self, surface: Locator, affordance: Optional[Locator]) -> Optional[str]:
        for links in (surface.locator("a[href]"), self.page.locator(ui.CALCULATOR_LINKS)):
            try:
                for index in range(await links.count()):
                    href = await links.nth(index).get_attribute("href")
                    # Skip help and terms links in the same dialog
                    if is_valid_share_url(href, self.share_hosts) and "calculator" in href:
                        return href.strip()
            except PlaywrightError:
                continue
        return None

    async def _read_clipboard(self, surface: Locator, affordance: Optional[Locator]) -> Optional[str]:
        try:
            text = await self.page.evaluate("() => navigator.clipboard.readText()")
        except PlaywrightError as e:
            logger.debug(f"Clipboard not readable: {e}")
            return None
        text = (text or "").strip()
        return text if is_valid_share_url(text, self.share_hosts) else None

    async def _extract_share_url(self, surface: Locator) -> str:
        affordance = await self._locate_copy_affordance(surface)
        if affordance is not None:
            try:
                await affordance.click(timeout=2000)
            except PlaywrightError as e:
                logger.debug(f"Copy affordance click failed: {e}")

        # DOM-visible sources first, clipboard last
        sources = (
            ("readonly field", self._read_readonly_field),
            ("adjacent input", self._read_adjacent_input),
            ("share link", self._read_share_link),
            ("clipboard", self._read_clipboard),
        )

        async def probe() -> Optional[str]:
            for description, source in sources:
                url = await source(surface, affordance)
                if url:
                    logger.debug(f"Share URL read from {description}")
                    return url
            return None

        share_url = await self._poll(probe)
        if not share_url:
            raise ExtractionFailed(
                "Failed to capture share URL from Share UI",
                stage=SessionState.SHARE_URL_EXTRACTED.value,
            )
        self._transition(SessionState.SHARE_URL_EXTRACTED)
        return share_url

    async def _extract_csv_link(self) -> Optional[str]:
        """Return an absolute CSV export href, or None when there is none."""
        link = self.page.locator("a", has_text=ui.CSV_LINK)
        href = None
        try:
            if await link.count():
                href = await link.first.get_attribute("href")
        except PlaywrightError as e:
            logger.debug(f"CSV link not readable: {e}")
        self._transition(SessionState.CSV_LINK_EXTRACTED)
        if href and is_absolute_url(href):
            return href.strip()
        logger.info("No CSV export link available")
        return None
