"""Resilient option selection for calculator dropdowns.

The calculator renders its dropdowns as ARIA comboboxes whose listbox is
virtualized: only a window of options exists in the DOM at a time. Selecting
an option therefore means opening the control, matching against the rendered
window, scrolling to reveal more options, and finally falling back to keyboard
navigation.

Not finding an option is a normal outcome (``SelectionOutcome.found`` is
False). Only structural problems raise: a missing control raises
``ControlNotFound`` and a control without a listbox relationship raises
``ControlStructureError``.
"""

import logging
import re
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import Locator, Page

from gcp_calculator.automation.calculator_ui import mentions
from gcp_calculator.shared.errors import ControlNotFound, ControlStructureError

logger = logging.getLogger(__name__)

LABEL_SCROLL_CAP = 40
CODE_SCROLL_CAP = 60
KEYBOARD_CAP = 60
MAX_REOPENS = 2

# A "for ..." qualifier after a contained label marks a different product
_QUALIFIED_VARIANT = re.compile(r"\bfor\b", re.I)

# Scrolls the listbox by most of its height; returns whether it moved
_SCROLL_SCRIPT = """(el) => {
    const before = el.scrollTop;
    el.scrollTop = before + Math.max(el.clientHeight * 0.8, 40);
    return el.scrollTop !== before;
}"""


@dataclass(frozen=True)
class OptionQuery:
    """Which option to select.

    ``label`` is the display text; ``value`` is the structural code (region
    code, machine type) when one exists.
    """

    label: str
    value: Optional[str] = None


@dataclass(frozen=True)
class RenderedOption:
    """Snapshot of one option currently present in the DOM."""

    locator: Locator
    text: str
    value: Optional[str] = None
    selected: bool = False


@dataclass
class SelectionOutcome:
    found: bool
    changed: bool = False
    strategy: Optional[str] = None
    iterations: int = 0
    label: Optional[str] = None


@dataclass
class ScrollProbe:
    """Explicit state of the virtualization scroll loop."""

    cap: int
    iterations: int = 0
    last_signature: Optional[Tuple] = None
    stale: int = 0
    reopens: int = 0

    @property
    def exhausted(self) -> bool:
        return self.iterations >= self.cap

    def advance(self, signature: Tuple) -> None:
        """Record one scroll increment and whether the window moved."""
        self.iterations += 1
        if signature == self.last_signature:
            self.stale += 1
        else:
            self.stale = 0
        self.last_signature = signature

    @property
    def at_end(self) -> bool:
        # Window unchanged after two increments in a row
        return self.stale >= 2


def _normalize(text: Optional[str]) -> str:
    return " ".join((text or "").split()).lower()


class AttributeMatch:
    """Exact match of the query code against the option's value attribute."""

    name = "attribute"

    def find(self, options: Sequence[RenderedOption], query: OptionQuery) -> Optional[RenderedOption]:
        if not query.value:
            return None
        wanted = _normalize(query.value)
        for option in options:
            if option.value and _normalize(option.value) == wanted:
                return option
        return None


class LabelMatch:
    """Case-insensitive label match: exact first, then bounded contains.

    The contains pass skips qualified variants ("SLES 12 for SAP" when asked
    for "SLES") and prefers the shortest remaining option text.
    """

    name = "label"

    def find(self, options: Sequence[RenderedOption], query: OptionQuery) -> Optional[RenderedOption]:
        wanted = _normalize(query.label)
        if not wanted:
            return None
        for option in options:
            if _normalize(option.text) == wanted:
                return option
        pattern = mentions(query.label)
        candidates = []
        for option in options:
            match = pattern.search(option.text or "")
            if match and not _QUALIFIED_VARIANT.search(option.text[match.end():]):
                candidates.append(option)
        if not candidates:
            return None
        return min(candidates, key=lambda option: len(option.text))


DEFAULT_STRATEGIES = (AttributeMatch(), LabelMatch())


def match_option(
    options: Sequence[RenderedOption],
    query: OptionQuery,
    strategies: Sequence = DEFAULT_STRATEGIES,
) -> Tuple[Optional[RenderedOption], Optional[str]]:
    """Run strategies in order; the first one that matches wins."""
    for strategy in strategies:
        option = strategy.find(options, query)
        if option is not None:
            return option, strategy.name
    return None, None


def displays(text: Optional[str], query: OptionQuery) -> bool:
    """True when a control's displayed text already shows the queried option.

    Accepts the structural code anywhere in the text, but the label only as an
    exact match: a longer option that merely contains the label is a
    different selection.
    """
    if not text:
        return False
    if query.value and mentions(query.value).search(text):
        return True
    return _normalize(text) == _normalize(query.label)


class ResilientSelector:
    """Selects one option in a possibly virtualized ARIA combobox."""

    def __init__(
        self,
        page: Page,
        strategies: Sequence = DEFAULT_STRATEGIES,
        label_scroll_cap: int = LABEL_SCROLL_CAP,
        code_scroll_cap: int = CODE_SCROLL_CAP,
        keyboard_cap: int = KEYBOARD_CAP,
        max_reopens: int = MAX_REOPENS,
        open_timeout_ms: int = 5000,
    ):
        self.page = page
        self.strategies = tuple(strategies)
        self.label_scroll_cap = label_scroll_cap
        self.code_scroll_cap = code_scroll_cap
        self.keyboard_cap = keyboard_cap
        self.max_reopens = max_reopens
        self.open_timeout_ms = open_timeout_ms

    async def select(self, control: Locator, query: OptionQuery) -> SelectionOutcome:
        """
        Select ``query`` in ``control``.

        Args:
            control: Locator of the combobox
            query: Option to select

        Returns:
            SelectionOutcome; ``found`` is False when every strategy was exhausted

        Raises:
            ControlNotFound: If the control is not on the page
            ControlStructureError: If the control has no listbox relationship
        """
        if await control.count() == 0:
            raise ControlNotFound(f"Control not found for option '{query.label}'")

        current = await self._displayed_text(control)
        if displays(current, query):
            logger.debug(f"'{query.label}' already selected; leaving control untouched")
            return SelectionOutcome(found=True, changed=False, strategy="already-selected", label=current)

        listbox = await self._open(control)

        cap = self.code_scroll_cap if query.value else self.label_scroll_cap
        probe = ScrollProbe(cap=cap)
        outcome = await self._scroll_search(control, listbox, query, probe)
        if outcome is not None:
            return outcome

        outcome = await self._keyboard_search(control, query)
        if outcome is not None:
            return outcome

        logger.info(f"Option '{query.label}' not found after exhausting all strategies")
        await self._close()
        return SelectionOutcome(found=False, iterations=probe.iterations)

    async def _displayed_text(self, control: Locator) -> str:
        try:
            text = await control.inner_text()
        except PlaywrightError:
            return ""
        return (text or "").strip()

    async def _open(self, control: Locator) -> Locator:
        await control.click()
        list_id = await control.get_attribute("aria-controls") or await control.get_attribute("aria-owns")
        if not list_id:
            await self._close()
            raise ControlStructureError(
                "Control has no aria-controls/aria-owns relationship to an option list"
            )
        return self.page.locator(f'[id="{list_id}"]')

    async def _close(self) -> None:
        try:
            await self.page.keyboard.press("Escape")
        except PlaywrightError as e:
            logger.debug(f"Escape after selection failed: {e}")

    async def _snapshot(self, listbox: Locator) -> List[RenderedOption]:
        """Read the rendered option window; empty when the list is detached."""
        options: List[RenderedOption] = []
        try:
            await listbox.wait_for(state="visible", timeout=self.open_timeout_ms)
            rendered = listbox.locator('[role="option"]')
            for index in range(await rendered.count()):
                option = rendered.nth(index)
                value = await option.get_attribute("data-value") or await option.get_attribute("value")
                options.append(
                    RenderedOption(
                        locator=option,
                        text=(await option.inner_text() or "").strip(),
                        value=value,
                        selected=(await option.get_attribute("aria-selected")) == "true",
                    )
                )
        except PlaywrightError as e:
            logger.debug(f"Option list unavailable: {e}")
            return []
        return options

    async def _scroll(self, listbox: Locator) -> None:
        moved = False
        try:
            moved = bool(await listbox.evaluate(_SCROLL_SCRIPT))
        except PlaywrightError as e:
            logger.debug(f"Direct scroll failed: {e}")
        if not moved:
            await self.page.keyboard.press("PageDown")

    async def _choose(self, control: Locator, option: RenderedOption, strategy: str, iterations: int) -> SelectionOutcome:
        # The single selection click of this call
        try:
            await option.locator.click()
        except PlaywrightError as e:
            logger.warning(f"Click on option '{option.text}' failed: {e}")
            current = await self._displayed_text(control)
            found = option.text != "" and _normalize(option.text) in _normalize(current)
            return SelectionOutcome(found=found, changed=found, strategy=strategy, iterations=iterations, label=option.text)
        logger.debug(f"Selected '{option.text}' via {strategy} match after {iterations} scroll(s)")
        return SelectionOutcome(found=True, changed=True, strategy=strategy, iterations=iterations, label=option.text)

    async def _scroll_search(
        self, control: Locator, listbox: Locator, query: OptionQuery, probe: ScrollProbe
    ) -> Optional[SelectionOutcome]:
        while not probe.exhausted:
            options = await self._snapshot(listbox)
            if not options:
                if probe.reopens >= self.max_reopens:
                    logger.debug("Option list stayed empty; giving up on scroll search")
                    return None
                probe.reopens += 1
                probe.iterations += 1
                logger.debug(f"Option list empty or detached; reopening ({probe.reopens}/{self.max_reopens})")
                await self._close()
                listbox = await self._open(control)
                continue

            option, strategy = match_option(options, query, self.strategies)
            if option is not None:
                return await self._choose(control, option, strategy, probe.iterations)

            await self._scroll(listbox)
            probe.advance((len(options), options[0].text, options[-1].text))
            if probe.at_end:
                logger.debug(f"Reached end of option list after {probe.iterations} scroll(s)")
                return None
        return None

    async def _keyboard_search(self, control: Locator, query: OptionQuery) -> Optional[SelectionOutcome]:
        for press in range(1, self.keyboard_cap + 1):
            await self.page.keyboard.press("ArrowDown")
            try:
                active_id = await control.get_attribute("aria-activedescendant")
                if not active_id:
                    continue
                active = self.page.locator(f'[id="{active_id}"]')
                text = (await active.inner_text() or "").strip()
                value = await active.get_attribute("data-value") or await active.get_attribute("value")
            except PlaywrightError:
                continue
            option, strategy = match_option(
                [RenderedOption(locator=active, text=text, value=value)], query, self.strategies
            )
            if option is not None:
                await self.page.keyboard.press("Enter")
                logger.debug(f"Selected '{text}' via keyboard after {press} press(es)")
                return SelectionOutcome(found=True, changed=True, strategy=f"keyboard-{strategy}", iterations=press, label=text)
        return None
