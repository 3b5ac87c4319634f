"""Tests for the pricing tariff configuration."""

import dataclasses
import json

import pytest

from src.models.enums import DeliveryType, PackageType
from src.services.pricing_config import (
    DeliveryOption,
    PricingConfig,
    WeightTier,
    default_pricing_config,
    get_pricing_config,
)
from src.services.pricing_engine import PricingEngine


def tariff_dict(**overrides):
    """JSON-style tariff equivalent to the defaults."""
    data = {
        "base_rate": 150,
        "tax_rate": 0.16,
        "currency": "KES",
        "weight_tiers": [
            {"tier": "Light", "max_weight": 1, "surcharge": 0},
            {"tier": "Standard", "max_weight": 5, "surcharge": 100},
            {"tier": "Heavy", "max_weight": 20, "surcharge": 300},
            {"tier": "Extra Heavy", "max_weight": 50, "surcharge": 600},
        ],
        "distance_tiers": [
            {"tier": "Local", "max_distance": 10, "surcharge": 0},
            {"tier": "City", "max_distance": 50, "surcharge": 50},
            {"tier": "Regional", "max_distance": 200, "surcharge": 150},
            {"tier": "National", "max_distance": 1000, "surcharge": 300},
        ],
        "package_type_surcharges": {
            "STANDARD_BOX": 0,
            "DOCUMENT": -50,
            "CLOTHING": 0,
            "ELECTRONICS": 100,
            "FRAGILE": 150,
            "LIQUID": 200,
            "PERISHABLE": 250,
        },
        "delivery_options": {
            "STANDARD": {"multiplier": 1.0, "estimated_days": "3-5 business days"},
            "EXPRESS": {"multiplier": 1.5, "estimated_days": "1-2 business days"},
            "SAME_DAY": {"multiplier": 2.5, "estimated_days": "Same day (4-6 hours)"},
            "OVERNIGHT": {"multiplier": 2.0, "estimated_days": "Next business day"},
        },
        "insurance_rates": {
            "NO_INSURANCE": {"fixed_cost": 0, "percentage_rate": 0, "max_coverage": 0},
            "BASIC_COVERAGE": {"fixed_cost": 50, "percentage_rate": 0.005, "max_coverage": 10000},
            "PREMIUM_COVERAGE": {"fixed_cost": 150, "percentage_rate": 0.01, "max_coverage": 50000},
            "CUSTOM_COVERAGE": {"fixed_cost": 100, "percentage_rate": 0.015, "max_coverage": 500000},
        },
    }
    data.update(overrides)
    return data


class TestDefaultTariff:
    """The built-in tariff."""

    def test_default_tariff_matches_dict_form(self):
        assert PricingConfig.from_dict(tariff_dict()) == default_pricing_config()

    def test_every_enum_member_priced(self):
        config = default_pricing_config()
        assert set(config.package_type_surcharges) == set(PackageType)
        assert set(config.delivery_options) == set(DeliveryType)

    def test_config_is_immutable(self):
        config = default_pricing_config()

        with pytest.raises(dataclasses.FrozenInstanceError):
            config.base_rate = 0
        with pytest.raises(TypeError):
            config.package_type_surcharges[PackageType.DOCUMENT] = 0


class TestTariffValidation:
    """Construction-time validation."""

    def test_unsorted_tiers_rejected(self):
        config = default_pricing_config()
        with pytest.raises(ValueError, match="weight_tiers must be strictly ascending"):
            dataclasses.replace(
                config,
                weight_tiers=(WeightTier("Heavy", 20, 300), WeightTier("Light", 1, 0)),
            )

    def test_empty_tiers_rejected(self):
        with pytest.raises(ValueError, match="distance_tiers must not be empty"):
            dataclasses.replace(default_pricing_config(), distance_tiers=())

    def test_missing_package_type_rejected(self):
        surcharges = tariff_dict()["package_type_surcharges"]
        del surcharges["LIQUID"]
        with pytest.raises(ValueError, match="package_type_surcharges missing: LIQUID"):
            PricingConfig.from_dict(tariff_dict(package_type_surcharges=surcharges))

    def test_multiplier_below_one_rejected(self):
        config = default_pricing_config()
        options = dict(config.delivery_options)
        options[DeliveryType.EXPRESS] = DeliveryOption(0.5, "never")
        with pytest.raises(ValueError, match="delivery multiplier for EXPRESS"):
            dataclasses.replace(config, delivery_options=options)

    @pytest.mark.parametrize("tax_rate", [-0.1, 1.0])
    def test_tax_rate_out_of_range_rejected(self, tax_rate):
        with pytest.raises(ValueError, match="tax_rate"):
            dataclasses.replace(default_pricing_config(), tax_rate=tax_rate)

    def test_zero_divisor_rejected(self):
        with pytest.raises(ValueError, match="volumetric_divisor"):
            dataclasses.replace(default_pricing_config(), volumetric_divisor=0)


class TestTariffLoading:
    """get_pricing_config() and JSON files."""

    def test_builtin_tariff_by_default(self):
        assert get_pricing_config() == default_pricing_config()

    def test_tariff_cached(self):
        assert get_pricing_config() is get_pricing_config()

    def test_tariff_from_environment_file(self, tmp_path, monkeypatch):
        path = tmp_path / "tariff.json"
        path.write_text(json.dumps(tariff_dict(base_rate=200)), encoding="utf-8")
        monkeypatch.setenv("SENDIT_PRICING_CONFIG", str(path))

        config = get_pricing_config()

        assert config.base_rate == 200.0
        engine = PricingEngine(config)
        assert engine.quick_estimate(0.5, "kg", "STANDARD_BOX", "STANDARD") == 232.0

    def test_invalid_file_raises(self, tmp_path, monkeypatch):
        path = tmp_path / "tariff.json"
        path.write_text(json.dumps(tariff_dict(weight_tiers=[])), encoding="utf-8")
        monkeypatch.setenv("SENDIT_PRICING_CONFIG", str(path))

        with pytest.raises(ValueError, match="Invalid pricing config"):
            get_pricing_config()
