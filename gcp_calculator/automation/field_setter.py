"""Layered writes to free-text and numeric calculator fields.

Calculator inputs are Angular-bound and sometimes ignore a plain ``fill``:
the value is rewritten on blur, clamped, or only committed on a key event.
Each write therefore runs through up to three layers, moving on only when
the value read back from the field does not match:

1. focus, select-all, ``fill``, ``Enter``
2. clear, type character by character, ``Tab``
3. press the field's increment/decrement stepper ``|delta|`` times

The field is always read once more at the end. A remaining mismatch is
reported on the returned ``FieldResult`` rather than raised.
"""

import logging
from dataclasses import dataclass, field as dataclass_field
from typing import List, Optional, Union

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import Locator, Page

from gcp_calculator.automation.calculator_ui import STEPPER_DECREMENT, STEPPER_INCREMENT
from gcp_calculator.shared.errors import ControlNotFound

logger = logging.getLogger(__name__)

MAX_STEPPER_PRESSES = 20

Value = Union[int, float, str]


@dataclass
class FieldResult:
    name: str
    requested: str
    actual: Optional[str] = None
    verified: bool = False
    layer: Optional[str] = None
    attempts: List[str] = dataclass_field(default_factory=list)

    @property
    def discrepancy(self) -> Optional[str]:
        """Human-readable mismatch, or None when the field holds the value."""
        if self.verified:
            return None
        return f"{self.name}: requested {self.requested}, field shows {self.actual!r}"


def format_value(value: Value) -> str:
    """Render numbers without a trailing .0 (730.0 -> "730")."""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def _as_number(text: Optional[str]) -> Optional[float]:
    if text is None:
        return None
    try:
        return float(text.replace(",", "").strip())
    except ValueError:
        return None


def values_match(actual: Optional[str], requested: str) -> bool:
    """Compare numerically when both sides parse as numbers, else as text."""
    actual_number, requested_number = _as_number(actual), _as_number(requested)
    if actual_number is not None and requested_number is not None:
        return actual_number == requested_number
    return (actual or "").strip().lower() == requested.strip().lower()


class FormFieldSetter:
    """Writes values into calculator inputs with layered verification."""

    def __init__(self, page: Page, max_stepper_presses: int = MAX_STEPPER_PRESSES):
        self.page = page
        self.max_stepper_presses = max_stepper_presses

    async def set_value(self, field: Locator, value: Value, name: str = "field") -> FieldResult:
        """
        Write ``value`` into ``field``.

        Args:
            field: Locator of the input
            value: Desired value
            name: Field name used in logs and discrepancy messages

        Returns:
            FieldResult with the value read back from the page

        Raises:
            ControlNotFound: If the field is not on the page
        """
        if await field.count() == 0:
            raise ControlNotFound(f"Field not found: {name}")

        requested = format_value(value)
        result = FieldResult(name=name, requested=requested)

        layers = (
            ("fill", self._fill_and_confirm),
            ("type", self._type_and_tab),
            ("stepper", self._step),
        )
        for layer_name, layer in layers:
            try:
                applied = await layer(field, requested)
            except PlaywrightError as e:
                result.attempts.append(f"{layer_name}: error {e}")
                logger.debug(f"{name}: {layer_name} layer raised {e}")
                continue
            if applied is False:
                result.attempts.append(f"{layer_name}: not applicable")
                continue

            actual = await self._read(field)
            result.attempts.append(f"{layer_name}: read {actual!r}")
            logger.debug(f"{name}: {layer_name} layer wrote {requested!r}, read {actual!r}")
            if values_match(actual, requested):
                result.layer = layer_name
                break

        # Authoritative re-read
        result.actual = await self._read(field)
        result.verified = values_match(result.actual, requested)
        if not result.verified:
            logger.warning(f"{name}: value not applied ({result.discrepancy}); attempts={result.attempts}")
        return result

    async def _read(self, field: Locator) -> Optional[str]:
        try:
            return (await field.input_value()).strip()
        except PlaywrightError as e:
            logger.debug(f"Could not read field value: {e}")
            return None

    async def _fill_and_confirm(self, field: Locator, text: str) -> None:
        await field.focus()
        await field.select_text()
        await field.fill(text)
        await field.press("Enter")

    async def _type_and_tab(self, field: Locator, text: str) -> None:
        await field.fill("")
        await field.press_sequentially(text, delay=20)
        await field.press("Tab")

    async def _step(self, field: Locator, text: str) -> bool:
        target = _as_number(text)
        current = _as_number(await self._read(field))
        if target is None or current is None:
            return False

        delta = int(round(target - current))
        if delta == 0 or abs(delta) > self.max_stepper_presses:
            logger.debug(f"Stepper skipped for delta {delta}")
            return False

        container = field.locator("xpath=..")
        label = STEPPER_INCREMENT if delta > 0 else STEPPER_DECREMENT
        button = container.get_by_role("button", name=label).first
        if await button.count() == 0:
            return False

        for _ in range(abs(delta)):
            await button.click()
        return True
