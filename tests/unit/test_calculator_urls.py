"""Tests for calculator URL helpers and configuration getters."""

import os
from unittest.mock import patch

import pytest

from gcp_calculator.core.config import (
    get_calculator_url,
    get_default_timeout_ms,
    get_headless,
    get_session_budget_ms,
)
from gcp_calculator.shared.calculator_urls import (
    CALCULATOR_URL,
    calculator_origin,
    is_absolute_url,
    is_valid_share_url,
    share_hosts_for,
)


class TestShareUrlValidation:
    """Test share URL acceptance."""

    @pytest.mark.parametrize(
        "value",
        [
            "https://cloud.google.com/products/calculator?dl=CiRhYmNk",
            "https://cloud.google.com/products/calculator/estimate-preview/3f1c",
            "  https://cloud.google.com/products/calculator?hl=en&dl=x  ",
        ],
    )
    def test_accepts_calculator_links(self, value):
        assert is_valid_share_url(value)

    @pytest.mark.parametrize(
        "value",
        [
            None,
            "",
            "/products/calculator?dl=x",
            "http://cloud.google.com/products/calculator?dl=x",
            "https://evil.example.com/cloud.google.com",
            "https://cloud.google.com.evil.com/x",
            "Copy link",
        ],
    )
    def test_rejects_other_values(self, value):
        assert not is_valid_share_url(value)

    def test_staging_host_accepted_when_overridden(self):
        hosts = share_hosts_for("https://calculator-staging.example.com/calc")
        assert is_valid_share_url("https://calculator-staging.example.com/calc?dl=1", hosts)
        assert share_hosts_for(CALCULATOR_URL) == ("cloud.google.com",)

    def test_helpers(self):
        assert calculator_origin() == "https://cloud.google.com"
        assert is_absolute_url("https://x.test/file.csv")
        assert not is_absolute_url("blob:/file.csv")


class TestConfig:
    """Test environment driven configuration."""

    def test_defaults(self):
        with patch.dict(os.environ, {}, clear=True):
            assert get_calculator_url() == CALCULATOR_URL
            assert get_default_timeout_ms() == 45000
            assert get_session_budget_ms() == 300000
            assert get_headless() is True

    def test_overrides(self):
        env = {
            "GCP_CALCULATOR_URL": "https://calculator-staging.example.com/calc",
            "GCP_CALC_TIMEOUT_MS": "1500",
            "GCP_CALC_HEADLESS": "no",
        }
        with patch.dict(os.environ, env, clear=True):
            assert get_calculator_url() == "https://calculator-staging.example.com/calc"
            assert get_default_timeout_ms() == 1500
            assert get_headless() is False

    @pytest.mark.parametrize("raw", ["abc", "0", "-5"])
    def test_invalid_numbers_fall_back(self, raw):
        with patch.dict(os.environ, {"GCP_CALC_SESSION_BUDGET_MS": raw}, clear=True):
            assert get_session_budget_ms() == 300000
