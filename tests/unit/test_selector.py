"""Tests for resilient option selection in virtualized comboboxes."""

import pytest

from gcp_calculator.automation.selector import (
    OptionQuery,
    RenderedOption,
    ResilientSelector,
    ScrollProbe,
    displays,
    match_option,
)
from gcp_calculator.shared.errors import ControlNotFound, ControlStructureError


def _labels(count: int, prefix: str = "option"):
    return [f"{prefix}-{index}" for index in range(count)]


class TestMatchOption:
    """Test matching strategies against a rendered window."""

    def _options(self, *texts, values=None):
        values = values or [None] * len(texts)
        return [RenderedOption(locator=None, text=text, value=value) for text, value in zip(texts, values)]

    def test_exact_label_preferred_over_contains(self):
        options = self._options("Free: Debian, CentOS, CoreOS, Ubuntu", "Ubuntu")
        option, strategy = match_option(options, OptionQuery(label="ubuntu"))
        assert option.text == "Ubuntu"
        assert strategy == "label"

    def test_attribute_match_wins_over_label(self):
        options = self._options("Iowa", "us-central1 (Iowa)", values=["us-central1", None])
        option, strategy = match_option(options, OptionQuery(label="Iowa (us-central1)", value="us-central1"))
        assert option.text == "Iowa"
        assert strategy == "attribute"

    def test_contains_respects_token_boundaries(self):
        """n2-standard-8 must never select n2-standard-80."""
        options = self._options("n2-standard-80", "n2-standard-8 (8 vCPUs, 32 GB)")
        option, _ = match_option(options, OptionQuery(label="n2-standard-8"))
        assert option.text == "n2-standard-8 (8 vCPUs, 32 GB)"

    def test_no_match(self):
        option, strategy = match_option(self._options("E2", "N2"), OptionQuery(label="C3"))
        assert option is None
        assert strategy is None

    def test_displays_checks_code_and_label(self):
        query = OptionQuery(label="Iowa (us-central1)", value="us-central1")
        assert displays("Iowa (us-central1)", query)
        assert displays("us-central1", query)
        assert not displays("Oregon (us-west1)", query)
        assert not displays("", query)
        assert not displays("n2-standard-80", OptionQuery(label="n2-standard-8", value="n2-standard-8"))

    @pytest.mark.parametrize(
        "shown, label",
        [
            ("Paid: Red Hat Enterprise Linux for SAP with HA", "Red Hat Enterprise Linux"),
            ("Paid: SLES 12 for SAP", "SLES"),
            ("Free: Debian, CentOS, CoreOS, Ubuntu or BYOL", "Ubuntu"),
        ],
    )
    def test_longer_option_containing_label_is_not_displayed(self, shown, label):
        """A different option that contains the label is not the wanted one."""
        assert not displays(shown, OptionQuery(label=label))

    def test_label_displayed_ignoring_case_and_spacing(self):
        assert displays("  paid:  SLES ", OptionQuery(label="Paid: SLES"))

    @pytest.mark.parametrize(
        "texts, label, expected",
        [
            (
                ("Paid: Red Hat Enterprise Linux for SAP with HA", "Paid: Red Hat Enterprise Linux (RHEL)"),
                "Red Hat Enterprise Linux",
                "Paid: Red Hat Enterprise Linux (RHEL)",
            ),
            (("Paid: SLES 12 for SAP", "Paid: SLES"), "SLES", "Paid: SLES"),
            (
                ("Paid: Red Hat Enterprise Linux (RHEL)", "Paid: Red Hat Enterprise Linux for SAP with HA"),
                "Red Hat Enterprise Linux for SAP",
                "Paid: Red Hat Enterprise Linux for SAP with HA",
            ),
        ],
    )
    def test_contains_skips_qualified_variants(self, texts, label, expected):
        option, _ = match_option(self._options(*texts), OptionQuery(label=label))
        assert option.text == expected

    def test_contains_prefers_shortest_candidate(self):
        options = self._options("Windows Server 2022 Datacenter Edition", "Paid: Windows Server 2022")
        option, _ = match_option(options, OptionQuery(label="Windows Server 2022"))
        assert option.text == "Paid: Windows Server 2022"

    def test_only_qualified_variant_is_not_matched(self):
        option, strategy = match_option(self._options("Paid: SLES 12 for SAP"), OptionQuery(label="SLES"))
        assert option is None
        assert strategy is None


class TestScrollProbe:
    """Test the scroll loop state."""

    def test_end_detected_after_two_unchanged_windows(self):
        probe = ScrollProbe(cap=10)
        probe.advance((10, "a", "j"))
        assert not probe.at_end
        probe.advance((10, "a", "j"))
        assert not probe.at_end
        probe.advance((10, "a", "j"))
        assert probe.at_end

    def test_changed_window_resets_staleness(self):
        probe = ScrollProbe(cap=10)
        probe.advance((10, "a", "j"))
        probe.advance((10, "a", "j"))
        probe.advance((10, "k", "t"))
        assert probe.stale == 0
        assert probe.iterations == 3

    def test_exhausted_at_cap(self):
        probe = ScrollProbe(cap=2)
        probe.advance(("x",))
        probe.advance(("y",))
        assert probe.exhausted


class TestResilientSelector:
    """Test ResilientSelector against a fake virtualized listbox."""

    @pytest.mark.asyncio
    async def test_already_selected_is_left_untouched(self, combobox_factory):
        page, control = combobox_factory(["Iowa (us-central1)", "Oregon (us-west1)"], displayed="Iowa (us-central1)")
        selector = ResilientSelector(page)

        outcome = await selector.select(control, OptionQuery(label="Iowa (us-central1)", value="us-central1"))

        assert outcome.found is True
        assert outcome.changed is False
        assert outcome.strategy == "already-selected"
        assert control.open_count == 0
        assert page.listbox.clicks == 0

    @pytest.mark.asyncio
    async def test_different_option_containing_label_is_replaced(self, combobox_factory):
        page, control = combobox_factory(["Paid: SLES 12 for SAP", "Paid: SLES"], displayed="Paid: SLES 12 for SAP")
        selector = ResilientSelector(page)

        outcome = await selector.select(control, OptionQuery(label="SLES"))

        assert outcome.changed is True
        assert outcome.strategy == "label"
        assert control.displayed == "Paid: SLES"
        assert page.listbox.clicks == 1

    @pytest.mark.asyncio
    async def test_selects_option_in_first_window_with_one_click(self, combobox_factory):
        page, control = combobox_factory(["E2", "N1", "N2", "N2D", "C3"])
        selector = ResilientSelector(page)

        outcome = await selector.select(control, OptionQuery(label="N2"))

        assert outcome.found is True
        assert outcome.changed is True
        assert outcome.strategy == "label"
        assert outcome.iterations == 0
        assert control.displayed == "N2"
        assert page.listbox.clicks == 1

    @pytest.mark.asyncio
    async def test_scrolls_to_reveal_option_beyond_window(self, combobox_factory):
        labels = _labels(100, "n2-standard")
        page, control = combobox_factory(labels, window=10)
        selector = ResilientSelector(page)

        outcome = await selector.select(control, OptionQuery(label="n2-standard-35"))

        assert outcome.found is True
        assert outcome.iterations == 3
        assert control.displayed == "n2-standard-35"
        assert page.listbox.clicks == 1

    @pytest.mark.asyncio
    async def test_matches_region_by_code_attribute(self, combobox_factory):
        labels = ["Iowa", "South Carolina", "Mumbai"]
        values = ["us-central1", "us-east1", "asia-south1"]
        page, control = combobox_factory(labels, values=values)
        selector = ResilientSelector(page)

        outcome = await selector.select(control, OptionQuery(label="Mumbai (asia-south1)", value="asia-south1"))

        assert outcome.found is True
        assert outcome.strategy == "attribute"
        assert control.displayed == "Mumbai"

    @pytest.mark.asyncio
    async def test_not_found_stops_at_list_end(self, combobox_factory):
        page, control = combobox_factory(_labels(15), window=10)
        selector = ResilientSelector(page, keyboard_cap=5)

        outcome = await selector.select(control, OptionQuery(label="missing"))

        assert outcome.found is False
        assert outcome.changed is False
        assert outcome.iterations == 4
        assert page.listbox.clicks == 0
        assert page.keyboard.pressed[-1] == "Escape"
        assert control.displayed == ""

    @pytest.mark.asyncio
    async def test_scroll_search_bounded_by_cap(self, combobox_factory):
        page, control = combobox_factory(_labels(500), window=10)
        selector = ResilientSelector(page, label_scroll_cap=3, keyboard_cap=2)

        outcome = await selector.select(control, OptionQuery(label="option-499"))

        assert outcome.found is False
        assert outcome.iterations == 3
        assert page.listbox.scrolls == 3
        assert page.keyboard.pressed.count("ArrowDown") == 2

    @pytest.mark.asyncio
    async def test_keyboard_fallback_after_reopens(self, combobox_factory):
        page, control = combobox_factory(["E2", "N2", "C3"], visible=False)
        selector = ResilientSelector(page, max_reopens=2)

        outcome = await selector.select(control, OptionQuery(label="C3"))

        assert outcome.found is True
        assert outcome.strategy == "keyboard-label"
        assert outcome.iterations == 3
        assert control.displayed == "C3"
        # Initial open plus two reopens
        assert control.open_count == 3

    @pytest.mark.asyncio
    async def test_missing_control_raises(self, combobox_factory):
        page, control = combobox_factory(["E2"], present=False)
        selector = ResilientSelector(page)

        with pytest.raises(ControlNotFound):
            await selector.select(control, OptionQuery(label="E2"))

    @pytest.mark.asyncio
    async def test_control_without_listbox_relationship_raises(self, combobox_factory):
        page, control = combobox_factory(["E2"], list_id=None)
        selector = ResilientSelector(page)

        with pytest.raises(ControlStructureError):
            await selector.select(control, OptionQuery(label="E2"))
        assert page.keyboard.pressed == ["Escape"]

    @pytest.mark.asyncio
    async def test_selecting_twice_is_idempotent(self, combobox_factory):
        page, control = combobox_factory(["E2", "N2"])
        selector = ResilientSelector(page)

        first = await selector.select(control, OptionQuery(label="N2"))
        second = await selector.select(control, OptionQuery(label="N2"))

        assert first.changed is True
        assert second.changed is False
        assert page.listbox.clicks == 1
