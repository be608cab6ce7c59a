"""Tests for the estimate session state machine."""

from unittest.mock import AsyncMock, MagicMock

import pytest
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from gcp_calculator.automation.controller import EstimateSessionController, SessionState
from gcp_calculator.core.models import LineItemSummary
from gcp_calculator.shared.errors import CommitFailed, ControlNotFound

SHARE_URL = "https://cloud.google.com/products/calculator?hl=en&dl=CiRhYmNk"


def _committed(descriptor, index):
    summary = LineItemSummary.from_descriptor(descriptor, "Compute Engine")
    summary.committed = True
    summary.subtotal_text = f"${index + 1}0.00"
    return summary


def _commit_failure(descriptor, index):
    summary = LineItemSummary.from_descriptor(descriptor, "Compute Engine")
    summary.skipped_stages.append("SELECT_MACHINE_TYPE")
    summary.error = f"Commit failed for {descriptor.machine_type}: not clickable"
    return CommitFailed(summary.error, stage="Commit", line_item=summary)


def _controller(request, sequencer=None, **overrides):
    sequencer = sequencer or MagicMock(configure=AsyncMock(side_effect=_committed))
    diagnostics = MagicMock()
    diagnostics.capture = AsyncMock(return_value=None)
    controller = EstimateSessionController(
        MagicMock(),
        request,
        sequencer=sequencer,
        diagnostics=diagnostics,
        click_backoffs_ms=(0, 0, 0),
        poll_interval_ms=0,
    )
    controller._open_product_picker = AsyncMock()
    controller._select_product = AsyncMock()
    controller._prepare_form = AsyncMock()
    controller._validate_total = AsyncMock(return_value="Total estimated cost $97.84 / month")
    controller._open_share_surface = AsyncMock(return_value=MagicMock())
    controller._extract_share_url = AsyncMock(return_value=SHARE_URL)
    controller._extract_csv_link = AsyncMock(return_value=None)
    for name, value in overrides.items():
        setattr(controller, name, value)
    return controller


class TestSessionFlow:
    """Test EstimateSessionController.run outcomes."""

    @pytest.mark.asyncio
    async def test_success_returns_share_url_and_summary(self, request_factory):
        controller = _controller(request_factory())

        result = await controller.run()

        assert result.success is True
        assert result.share_url == SHARE_URL
        assert result.estimate_summary.total_text == "Total estimated cost $97.84 / month"
        assert len(result.line_items) == 1
        assert controller.state is SessionState.DONE
        assert "csvDownloadUrl" not in result.to_dict()
        controller._extract_csv_link.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_csv_link_reported_when_requested(self, request_factory):
        controller = _controller(request_factory(want_csv_link=True))

        result = await controller.run()

        assert result.success is True
        assert result.to_dict()["csvDownloadUrl"] is None

    @pytest.mark.asyncio
    async def test_instances_committed_in_request_order(self, request_factory, descriptor, windows_descriptor):
        sequencer = MagicMock(configure=AsyncMock(side_effect=_committed))
        controller = _controller(request_factory(descriptor, windows_descriptor, descriptor), sequencer)

        result = await controller.run()

        indexes = [call.args[1] for call in sequencer.configure.await_args_list]
        assert indexes == [0, 1, 2]
        assert [item.machine_type for item in result.line_items] == [
            "e2-standard-2",
            "n2-standard-8",
            "e2-standard-2",
        ]
        # Form reset between instances, not after the last
        assert controller._prepare_form.await_count == 2

    @pytest.mark.asyncio
    async def test_failed_commit_recorded_and_session_continues(self, request_factory, descriptor, windows_descriptor):
        sequencer = MagicMock(
            configure=AsyncMock(
                side_effect=[
                    _committed(descriptor, 0),
                    _commit_failure(windows_descriptor, 1),
                    _committed(descriptor, 2),
                ]
            )
        )
        controller = _controller(request_factory(descriptor, windows_descriptor, descriptor), sequencer)

        result = await controller.run()

        assert result.success is True
        assert [item.committed for item in result.line_items] == [True, False, True]
        failed = result.line_items[1]
        assert failed.error.startswith("Commit failed for n2-standard-8")
        assert failed.skipped_stages == ["SELECT_MACHINE_TYPE"]

    @pytest.mark.asyncio
    async def test_no_commits_fails_session(self, request_factory, descriptor):
        def always_fail(instance, index):
            raise _commit_failure(instance, index)

        sequencer = MagicMock(configure=AsyncMock(side_effect=always_fail))
        controller = _controller(request_factory(descriptor, descriptor), sequencer)

        result = await controller.run()

        assert result.success is False
        assert result.error_code == "CommitFailed"
        assert result.failed_stage == "ConfiguringInstances"
        assert result.error.startswith("No instances were committed")
        assert len(result.line_items) == 2
        controller._validate_total.assert_not_awaited()
        assert controller.state is SessionState.FAILED

    @pytest.mark.asyncio
    async def test_missing_share_control_is_extraction_failure(self, request_factory):
        controller = _controller(request_factory())
        del controller._open_share_surface
        controller._click = AsyncMock(side_effect=ControlNotFound("Failed to click Share button: not visible"))

        result = await controller.run()

        assert result.success is False
        assert result.share_url is None
        assert result.error_code == "ExtractionFailed"
        assert result.failed_stage == "ShareSurfaceOpen"
        assert result.error_help.startswith("The share button did not appear")
        controller.diagnostics.capture.assert_awaited_with(controller.page, "lastError")

    @pytest.mark.asyncio
    async def test_timeout_classified_by_stage_in_progress(self, request_factory):
        controller = _controller(
            request_factory(),
            _validate_total=AsyncMock(side_effect=PlaywrightTimeoutError("Timeout 50ms exceeded")),
        )

        result = await controller.run()

        assert result.error_code == "ExtractionFailed"
        assert result.failed_stage == "TotalValidated"
        assert result.error.startswith("Timed out during TotalValidated")

    @pytest.mark.asyncio
    async def test_picker_timeout_is_control_not_found(self, request_factory):
        controller = _controller(
            request_factory(),
            _open_product_picker=AsyncMock(side_effect=PlaywrightTimeoutError("Timeout 50ms exceeded")),
        )

        result = await controller.run()

        assert result.error_code == "ControlNotFound"
        assert result.failed_stage == "ProductPickerOpen"
        assert result.estimate_summary is None


class TestProductSelection:
    """Test product lookup in the picker dialog."""

    @pytest.mark.asyncio
    async def test_unknown_product_raises(self, request_factory):
        controller = _controller(request_factory())
        del controller._select_product

        empty = MagicMock()
        empty.count = AsyncMock(return_value=0)
        dialog = MagicMock()
        dialog.get_by_role.return_value = empty
        dialog.locator.return_value = empty
        controller.page.locator.return_value.first = dialog

        with pytest.raises(ControlNotFound, match="Product not found in picker: Compute Engine"):
            await controller._select_product()


class TestShareUrlExtraction:
    """Test share URL sources."""

    @pytest.mark.asyncio
    async def test_dom_source_preferred_over_clipboard(self, request_factory):
        controller = _controller(request_factory())
        del controller._extract_share_url
        controller._locate_copy_affordance = AsyncMock(return_value=None)
        controller._read_readonly_field = AsyncMock(return_value=SHARE_URL)
        controller._read_clipboard = AsyncMock(return_value="https://cloud.google.com/products/calculator?dl=other")

        url = await controller._extract_share_url(MagicMock())

        assert url == SHARE_URL
        controller._read_clipboard.assert_not_awaited()
        assert controller.state is SessionState.SHARE_URL_EXTRACTED

    @pytest.mark.asyncio
    async def test_clipboard_used_last(self, request_factory):
        controller = _controller(request_factory())
        del controller._extract_share_url
        controller._locate_copy_affordance = AsyncMock(return_value=None)
        controller._read_readonly_field = AsyncMock(return_value=None)
        controller._read_share_link = AsyncMock(return_value=None)
        controller.page.evaluate = AsyncMock(return_value=f"  {SHARE_URL}\n")

        url = await controller._extract_share_url(MagicMock())

        assert url == SHARE_URL

    @pytest.mark.asyncio
    async def test_foreign_clipboard_text_rejected(self, request_factory):
        controller = _controller(request_factory())
        controller.page.evaluate = AsyncMock(return_value="https://example.com/products/calculator")

        assert await controller._read_clipboard(MagicMock(), None) is None

    @pytest.mark.asyncio
    async def test_no_source_raises_after_timeout(self, request_factory):
        controller = _controller(request_factory(timeout_ms=20))
        del controller._extract_share_url
        controller._locate_copy_affordance = AsyncMock(return_value=None)
        for source in ("_read_readonly_field", "_read_adjacent_input", "_read_share_link", "_read_clipboard"):
            setattr(controller, source, AsyncMock(return_value=None))

        result = await controller.run()

        assert result.success is False
        assert result.error_code == "ExtractionFailed"
        assert result.failed_stage == "ShareUrlExtracted"
        assert result.error == "Failed to capture share URL from Share UI"
        assert result.line_items[0].committed is True
