"""Tests for calculator display-name mapping."""

import pytest

from gcp_calculator.shared.display_names import (
    committed_use_term,
    normalize_operating_system,
    operating_system_option_label,
    provisioning_model,
    region_code,
    region_display_name,
    series_code,
)


class TestRegionMapping:
    """Test region code and label mapping."""

    @pytest.mark.parametrize(
        "region, expected",
        [
            ("us-central1", "Iowa (us-central1)"),
            ("US-CENTRAL1", "Iowa (us-central1)"),
            ("Iowa (us-central1)", "Iowa (us-central1)"),
            ("mumbai", "Mumbai (asia-south1)"),
            ("europe-west4", "Netherlands (europe-west4)"),
            ("me-central2", "me-central2 (me-central2)"),
        ],
    )
    def test_region_display_name(self, region, expected):
        assert region_display_name(region) == expected

    def test_region_code_from_label(self):
        assert region_code("Tokyo (asia-northeast1)") == "asia-northeast1"
        assert region_code("us-west1") == "us-west1"
        assert region_code("Somewhere") is None
        assert region_code("") is None


class TestOperatingSystemMapping:
    """Test OS normalization."""

    def test_variations(self):
        assert normalize_operating_system("Ubuntu") == "Linux"
        assert normalize_operating_system("SLES_SAP") == "SUSE Linux Enterprise Server for SAP"
        assert normalize_operating_system("Ubuntu Pro") == "Ubuntu Pro"
        assert normalize_operating_system(None) == "Linux"
        assert normalize_operating_system("OS/2") is None

    def test_option_label(self):
        assert operating_system_option_label("Linux").startswith("Free:")
        assert operating_system_option_label("windows") == "Windows Server"


class TestCommitmentMapping:
    """Test discount model mapping."""

    @pytest.mark.parametrize(
        "discount, expected",
        [
            ("1-Year CUD", "1 year"),
            ("3 year", "3 years"),
            ("On-Demand", "none"),
            ("Sustained use", "none"),
            (None, "none"),
        ],
    )
    def test_committed_use_term(self, discount, expected):
        assert committed_use_term(discount) == expected

    def test_provisioning_model(self):
        assert provisioning_model("Spot") == "Spot"
        assert provisioning_model(None, "Preemptible") == "Spot"
        assert provisioning_model("Regular", "1-Year CUD") == "Regular"

    def test_series_code(self):
        assert series_code(" n2d ") == "N2D"
