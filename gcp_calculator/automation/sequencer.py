"""Per-instance configuration of the Compute Engine form.

One descriptor is entered into the calculator form stage by stage and then
committed with the pane's "Add to estimate" button. Every stage before the
commit is best-effort: options depend on the machine/region pairing, so a
stage that cannot be completed is logged and recorded in
``LineItemSummary.skipped_stages``. Only a failed commit raises.
"""

import asyncio
import logging
import re
from enum import Enum
from typing import Awaitable, Callable, Optional, Sequence

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import Locator, Page

from gcp_calculator.automation import calculator_ui as ui
from gcp_calculator.automation.field_setter import FormFieldSetter
from gcp_calculator.automation.selector import OptionQuery, ResilientSelector
from gcp_calculator.core.models import InstanceDescriptor, LineItemSummary
from gcp_calculator.shared import display_names
from gcp_calculator.shared.errors import CommitFailed, ControlNotFound
from gcp_calculator.shared.tracing import stage_span

logger = logging.getLogger(__name__)

CLICK_BACKOFFS_MS = (300, 800, 1500)
SERIES_SETTLE_MS = 1500
COMMIT_WAIT_MS = 10000


class ConfigStage(str, Enum):
    SELECT_REGION = "SELECT_REGION"
    SELECT_PROVISIONING_MODEL = "SELECT_PROVISIONING_MODEL"
    SELECT_SERIES = "SELECT_SERIES"
    SELECT_MACHINE_TYPE = "SELECT_MACHINE_TYPE"
    SET_INSTANCE_COUNT = "SET_INSTANCE_COUNT"
    SET_USAGE_HOURS = "SET_USAGE_HOURS"
    SET_UNITS = "SET_UNITS"
    SET_TIME_PERIOD = "SET_TIME_PERIOD"
    SELECT_OPERATING_SYSTEM = "SELECT_OPERATING_SYSTEM"
    SELECT_COMMITTED_USE = "SELECT_COMMITTED_USE"
    COMMIT = "COMMIT"


async def click_with_retry(
    target: Callable[[], Locator],
    name: str,
    backoffs_ms: Sequence[int] = CLICK_BACKOFFS_MS,
    timeout_ms: int = 5000,
) -> None:
    """
    Click a freshly resolved locator, sleeping between attempts.

    Args:
        target: Builds the locator for each attempt
        name: Control name used in the error message
        backoffs_ms: Delay after each failed attempt; one attempt per entry

    Raises:
        ControlNotFound: After every attempt failed, with message
            "Failed to click <name>: <last error>"
    """
    last_error: Optional[Exception] = None
    for delay in backoffs_ms:
        try:
            locator = target()
            await locator.scroll_into_view_if_needed(timeout=timeout_ms)
            await locator.wait_for(state="visible", timeout=timeout_ms)
            await locator.click(timeout=timeout_ms)
            return
        except PlaywrightError as e:
            last_error = e
            logger.debug(f"Click on {name} failed, retrying in {delay}ms: {e}")
            await asyncio.sleep(delay / 1000)
    raise ControlNotFound(f"Failed to click {name}: {last_error}")


class InstanceSequencer:
    """Runs the ordered configuration stages for one instance and commits it."""

    def __init__(
        self,
        page: Page,
        selector: ResilientSelector,
        setter: FormFieldSetter,
        service: str,
        settle_ms: int = SERIES_SETTLE_MS,
        commit_wait_ms: int = COMMIT_WAIT_MS,
        click_backoffs_ms: Sequence[int] = CLICK_BACKOFFS_MS,
    ):
        self.page = page
        self.selector = selector
        self.setter = setter
        self.service = service
        self.settle_ms = settle_ms
        self.commit_wait_ms = commit_wait_ms
        self.click_backoffs_ms = tuple(click_backoffs_ms)

    async def configure(self, descriptor: InstanceDescriptor, index: int) -> LineItemSummary:
        """
        Enter ``descriptor`` into the form and add it to the estimate.

        Args:
            descriptor: Instance to configure
            index: Position in the request, used for logging

        Returns:
            LineItemSummary with ``committed=True``

        Raises:
            CommitFailed: If the instance could not be added; the exception's
                ``line_item`` holds the partial summary
        """
        summary = LineItemSummary.from_descriptor(descriptor, self.service)
        logger.info(
            f"Configuring instance {index + 1}: {descriptor.instance_count}x "
            f"{descriptor.machine_type} in {descriptor.region}"
        )

        stages = (
            (ConfigStage.SELECT_REGION, self._select_region),
            (ConfigStage.SELECT_PROVISIONING_MODEL, self._select_provisioning_model),
            (ConfigStage.SELECT_SERIES, self._select_series),
            (ConfigStage.SELECT_MACHINE_TYPE, self._select_machine_type),
            (ConfigStage.SET_INSTANCE_COUNT, self._set_instance_count),
            (ConfigStage.SET_USAGE_HOURS, self._set_usage_hours),
            (ConfigStage.SET_UNITS, self._set_units),
            (ConfigStage.SET_TIME_PERIOD, self._set_time_period),
            (ConfigStage.SELECT_OPERATING_SYSTEM, self._select_operating_system),
            (ConfigStage.SELECT_COMMITTED_USE, self._select_committed_use),
        )
        for stage, action in stages:
            await self._run_best_effort(stage, action, descriptor, summary, index)
            if stage is ConfigStage.SELECT_SERIES:
                # Machine type list repopulates after the series changes
                await asyncio.sleep(self.settle_ms / 1000)

        with stage_span(ConfigStage.COMMIT.value, instance_index=index):
            try:
                await self._commit(descriptor)
            except (ControlNotFound, PlaywrightError) as e:
                summary.error = f"Commit failed for {descriptor.machine_type}: {e}"
                logger.error(f"Instance {index + 1}: {summary.error}")
                raise CommitFailed(summary.error, stage="Commit", line_item=summary) from e

        summary.committed = True
        summary.subtotal_text = await self._scrape_subtotal()
        logger.info(f"Instance {index + 1} committed (subtotal: {summary.subtotal_text or 'n/a'})")
        return summary

    async def _run_best_effort(
        self,
        stage: ConfigStage,
        action: Callable[[InstanceDescriptor, LineItemSummary], Awaitable[None]],
        descriptor: InstanceDescriptor,
        summary: LineItemSummary,
        index: int,
    ) -> None:
        with stage_span(stage.value, instance_index=index):
            try:
                await action(descriptor, summary)
            except (ControlNotFound, PlaywrightError) as e:
                logger.warning(f"Instance {index + 1}: skipping {stage.value}: {e}")
                summary.skipped_stages.append(stage.value)

    async def _select(self, label: re.Pattern, query: OptionQuery) -> None:
        outcome = await self.selector.select(ui.combobox(self.page, label), query)
        if not outcome.found:
            raise ControlNotFound(f"Option not found in dropdown: '{query.label}'")

    async def _click_radio(self, label: re.Pattern) -> bool:
        """Click a radio when the form renders one; False when absent."""
        radio = ui.radio(self.page, label)
        if await radio.count() == 0:
            return False
        target = radio.first
        if await target.get_attribute("aria-checked") != "true":
            await target.click()
        return True

    async def _set_field(self, label: re.Pattern, value, name: str, summary: LineItemSummary) -> None:
        result = await self.setter.set_value(ui.field(self.page, label), value, name=name)
        if result.discrepancy:
            summary.field_discrepancies.append(result.discrepancy)

    async def _select_region(self, descriptor: InstanceDescriptor, summary: LineItemSummary) -> None:
        query = OptionQuery(label=descriptor.region, value=display_names.region_code(descriptor.region))
        await self._select(ui.FIELD_LABELS["region"], query)

    async def _select_provisioning_model(self, descriptor: InstanceDescriptor, summary: LineItemSummary) -> None:
        model = descriptor.provisioning_model.value
        if await self._click_radio(re.compile(rf"^\s*{model}", re.I)):
            return
        await self._select(ui.FIELD_LABELS["provisioning_model"], OptionQuery(label=model))

    async def _select_series(self, descriptor: InstanceDescriptor, summary: LineItemSummary) -> None:
        await self._select(
            ui.FIELD_LABELS["series"], OptionQuery(label=descriptor.series, value=descriptor.series)
        )

    async def _select_machine_type(self, descriptor: InstanceDescriptor, summary: LineItemSummary) -> None:
        await self._select(
            ui.FIELD_LABELS["machine_type"],
            OptionQuery(label=descriptor.machine_type, value=descriptor.machine_type),
        )

    async def _set_instance_count(self, descriptor: InstanceDescriptor, summary: LineItemSummary) -> None:
        await self._set_field(
            ui.FIELD_LABELS["instance_count"], descriptor.instance_count, "Number of instances", summary
        )

    async def _set_usage_hours(self, descriptor: InstanceDescriptor, summary: LineItemSummary) -> None:
        await self._set_field(
            ui.FIELD_LABELS["usage_hours"], descriptor.total_hours, "Total instance usage time", summary
        )

    async def _set_units(self, descriptor: InstanceDescriptor, summary: LineItemSummary) -> None:
        await self._select(ui.FIELD_LABELS["units"], OptionQuery(label=ui.USAGE_UNIT))

    async def _set_time_period(self, descriptor: InstanceDescriptor, summary: LineItemSummary) -> None:
        await self._select(ui.FIELD_LABELS["time_period"], OptionQuery(label=ui.USAGE_TIME_PERIOD))

    async def _select_operating_system(self, descriptor: InstanceDescriptor, summary: LineItemSummary) -> None:
        label = display_names.operating_system_option_label(descriptor.operating_system.value)
        await self._select(ui.FIELD_LABELS["operating_system"], OptionQuery(label=label))

    async def _select_committed_use(self, descriptor: InstanceDescriptor, summary: LineItemSummary) -> None:
        term = descriptor.committed_use.value
        if await self._click_radio(ui.COMMITTED_USE_RADIOS[term]):
            return
        # Some layouts render the term as a dropdown instead of radios
        label = "None" if term == "none" else term
        await self._select(ui.FIELD_LABELS["committed_use"], OptionQuery(label=label))

    async def _commit(self, descriptor: InstanceDescriptor) -> None:
        await click_with_retry(
            lambda: self.page.get_by_role("button", name=ui.ADD_TO_ESTIMATE).last,
            "Add to estimate (pane)",
            self.click_backoffs_ms,
        )
        panel = self.page.locator(ui.ESTIMATE_PANEL).first
        await panel.wait_for(state="visible", timeout=self.commit_wait_ms)
        await self.page.get_by_text(ui.mentions(descriptor.machine_type)).first.wait_for(
            state="visible", timeout=self.commit_wait_ms
        )

    async def _scrape_subtotal(self) -> Optional[str]:
        try:
            text = await self.page.locator(ui.CURRENCY_TEXT).last.inner_text(timeout=1500)
        except PlaywrightError as e:
            logger.debug(f"Subtotal not readable: {e}")
            return None
        return text.strip() or None
