"""Shared fixtures and in-memory stand-ins for calculator controls."""

from typing import List, Optional

import pytest
from playwright.async_api import Error as PlaywrightError

from gcp_calculator.core.models import (
    CommittedUseTerm,
    EstimateOptions,
    EstimateRequest,
    InstanceDescriptor,
    OperatingSystem,
    ProvisioningModel,
)


@pytest.fixture
def descriptor() -> InstanceDescriptor:
    return InstanceDescriptor(
        instance_count=2,
        total_hours=730,
        operating_system=OperatingSystem.LINUX,
        provisioning_model=ProvisioningModel.REGULAR,
        series="E2",
        machine_type="e2-standard-2",
        region="Iowa (us-central1)",
    )


@pytest.fixture
def windows_descriptor() -> InstanceDescriptor:
    return InstanceDescriptor(
        instance_count=1,
        total_hours=200,
        operating_system=OperatingSystem.WINDOWS,
        provisioning_model=ProvisioningModel.REGULAR,
        series="N2",
        machine_type="n2-standard-8",
        region="Mumbai (asia-south1)",
        committed_use=CommittedUseTerm.ONE_YEAR,
    )


@pytest.fixture
def request_factory(descriptor):
    def build(*instances, **options) -> EstimateRequest:
        return EstimateRequest(
            instances=tuple(instances) or (descriptor,),
            options=EstimateOptions(**{"timeout_ms": 50, **options}),
        )

    return build


# Fake combobox / virtualized listbox ---------------------------------------


class FakeKeyboard:
    def __init__(self, page: "FakePage"):
        self.page = page
        self.pressed: List[str] = []

    async def press(self, key: str) -> None:
        self.pressed.append(key)
        control = self.page.control
        if key == "ArrowDown" and control is not None:
            control.active_index = min(control.active_index + 1, len(self.page.listbox.options) - 1)
        elif key == "Enter" and control is not None and control.active_index >= 0:
            self.page.listbox.options[control.active_index].choose()
        elif key == "Escape" and control is not None:
            control.open = False
        elif key == "PageDown":
            self.page.listbox.offset = min(
                self.page.listbox.offset + self.page.listbox.window, self.page.listbox.max_offset
            )


class FakeOption:
    def __init__(self, listbox: "FakeListbox", index: int, text: str, value: Optional[str] = None):
        self.listbox = listbox
        self.index = index
        self.text = text
        self.value = value
        self.clicks = 0

    async def get_attribute(self, name: str) -> Optional[str]:
        if name == "data-value":
            return self.value
        if name == "aria-selected":
            return "true" if self.listbox.control.displayed == self.text else "false"
        return None

    async def inner_text(self) -> str:
        return self.text

    async def click(self) -> None:
        self.clicks += 1
        self.listbox.clicks += 1
        self.choose()

    def choose(self) -> None:
        self.listbox.control.displayed = self.text
        self.listbox.control.open = False


class FakeOptionWindow:
    """The options currently rendered in the DOM."""

    def __init__(self, options: List[FakeOption]):
        self.options = options

    async def count(self) -> int:
        return len(self.options)

    def nth(self, index: int) -> FakeOption:
        return self.options[index]


class FakeListbox:
    """Virtualized listbox rendering ``window`` options at a time."""

    def __init__(self, labels, window: int = 10, values=None, visible: bool = True):
        values = values or [None] * len(labels)
        self.options = [FakeOption(self, i, label, value) for i, (label, value) in enumerate(zip(labels, values))]
        self.window = window
        self.offset = 0
        self.visible = visible
        self.clicks = 0
        self.scrolls = 0
        self.control: Optional["FakeControl"] = None

    @property
    def max_offset(self) -> int:
        return max(len(self.options) - self.window, 0)

    async def wait_for(self, state: str = "visible", timeout: float = None) -> None:
        if not self.visible or not self.control.open:
            raise PlaywrightError("listbox not visible")

    def locator(self, selector: str) -> FakeOptionWindow:
        return FakeOptionWindow(self.options[self.offset:self.offset + self.window])

    async def evaluate(self, script: str) -> bool:
        self.scrolls += 1
        before = self.offset
        self.offset = min(self.offset + self.window, self.max_offset)
        return self.offset != before


class FakeControl:
    def __init__(self, listbox: FakeListbox, displayed: str = "", list_id: Optional[str] = "listbox-1", present: bool = True):
        self.listbox = listbox
        listbox.control = self
        self.displayed = displayed
        self.list_id = list_id
        self.present = present
        self.open = False
        self.open_count = 0
        self.active_index = -1

    async def count(self) -> int:
        return 1 if self.present else 0

    async def inner_text(self) -> str:
        return self.displayed

    async def click(self) -> None:
        self.open = True
        self.open_count += 1
        self.listbox.offset = 0
        self.active_index = -1

    async def get_attribute(self, name: str) -> Optional[str]:
        if name == "aria-controls":
            return self.list_id
        if name == "aria-activedescendant":
            return f"opt-{self.active_index}" if self.active_index >= 0 else None
        return None


class FakePage:
    def __init__(self, listbox: FakeListbox):
        self.listbox = listbox
        self.control: Optional[FakeControl] = None
        self.keyboard = FakeKeyboard(self)

    def locator(self, selector: str):
        if selector.startswith('[id="opt-'):
            index = int(selector[len('[id="opt-'):-2])
            return self.listbox.options[index]
        return self.listbox


@pytest.fixture
def combobox_factory():
    """Build (page, control) for a combobox holding ``labels``."""

    def build(labels, **kwargs):
        control_kwargs = {key: kwargs.pop(key) for key in ("displayed", "list_id", "present") if key in kwargs}
        listbox = FakeListbox(labels, **kwargs)
        control = FakeControl(listbox, **control_kwargs)
        page = FakePage(listbox)
        page.control = control
        return page, control

    return build
