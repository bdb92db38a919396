"""
Unit tests for usage and parameter normalization.
"""

from decimal import Decimal

import pytest

from billing.core.data import (
    coerce_decimal,
    normalize_parameters,
    normalize_usage,
    parse_provider,
    parse_tariff_structure,
    parse_tier,
    validate_tariff_structure,
)
from billing.core.types import CustomerTier, Provider, TariffStructure
from billing.exceptions import ValidationError

SMALL = CustomerTier.SMALL
MEDIUM = CustomerTier.MEDIUM
LARGE = CustomerTier.LARGE


# Identifier parsing


@pytest.mark.parametrize("value", [3, "3", "type-3", "TYPE_3", "Type 3", CustomerTier.MEDIUM])
def test_parse_tier(value):
    assert parse_tier(value) is CustomerTier.MEDIUM


@pytest.mark.parametrize("value", [1, "type-6", "medium", None, "-3", "--3", "type--3", "3type"])
def test_parse_tier_invalid(value):
    with pytest.raises(ValidationError) as exc_info:
        parse_tier(value)

    assert exc_info.value.fields == ["calculationType"]


def test_parse_provider():
    assert parse_provider("PEA") is Provider.PEA
    assert parse_provider(" mea ") is Provider.MEA

    with pytest.raises(ValidationError) as exc_info:
        parse_provider("egat")
    assert exc_info.value.fields == ["provider"]


def test_parse_tariff_structure():
    assert parse_tariff_structure("TOU") is TariffStructure.TOU

    with pytest.raises(ValidationError) as exc_info:
        parse_tariff_structure("flat")
    assert exc_info.value.fields == ["tariffType"]


def test_validate_tariff_structure():
    validate_tariff_structure(LARGE, TariffStructure.TOD)

    with pytest.raises(ValidationError) as exc_info:
        validate_tariff_structure(MEDIUM, TariffStructure.TOD)
    assert exc_info.value.message_dict["tariffType"] == [
        'Invalid tariff type for Type 3. Must be "normal" or "tou", received: tod'
    ]


# Usage normalization


def test_total_kwh_derived_from_split():
    """
    Expected: total_kwh = on_peak_kwh + off_peak_kwh
    """
    usage = normalize_usage({"on_peak_kwh": 300, "off_peak_kwh": 700}, SMALL, TariffStructure.TOU)

    assert usage.total_kwh == Decimal("1000")
    assert usage.on_peak_kwh == Decimal("300")
    assert usage.off_peak_kwh == Decimal("700")


def test_camel_case_aliases():
    usage = normalize_usage(
        {"onPeakKwh": "300.5", "offPeakKwh": 699.5, "onPeakKw": 80, "offPeakKw": 120},
        MEDIUM,
        TariffStructure.TOU,
    )

    assert usage.total_kwh == Decimal("1000.0")
    assert usage.on_peak_kw == Decimal("80")
    assert usage.overall_peak_kw == Decimal("120")


def test_legacy_kwh_and_demand_aliases():
    usage = normalize_usage({"kwh": 1500, "demand": 75}, MEDIUM, TariffStructure.NORMAL)

    assert usage.total_kwh == Decimal("1500")
    assert usage.overall_peak_kw == Decimal("75")


def test_overall_peak_is_max_of_demand_readings():
    usage = normalize_usage(
        {"total_kwh": 10000, "on_peak_kw": 100, "partial_peak_kw": 180, "off_peak_kw": 50},
        LARGE,
        TariffStructure.TOD,
    )

    assert usage.overall_peak_kw == Decimal("180")


def test_peak_kw_satisfied_by_period_reading():
    """A normal tariff accepts any demand reading as the overall peak."""
    usage = normalize_usage({"total_kwh": 1500, "on_peak_kw": 75}, MEDIUM, TariffStructure.NORMAL)

    assert usage.overall_peak_kw == Decimal("75")


def test_float_values_keep_decimal_text():
    usage = normalize_usage({"total_kwh": 0.1}, SMALL, TariffStructure.NORMAL)

    assert usage.total_kwh == Decimal("0.1")


def test_inconsistent_total_rejected():
    with pytest.raises(ValidationError) as exc_info:
        normalize_usage(
            {"total_kwh": 999, "on_peak_kwh": 300, "off_peak_kwh": 700},
            SMALL,
            TariffStructure.TOU,
        )

    assert "total_kwh" in exc_info.value.message_dict


def test_consistent_total_accepted():
    usage = normalize_usage(
        {"total_kwh": 1000, "on_peak_kwh": 300, "off_peak_kwh": 700}, SMALL, TariffStructure.TOU
    )

    assert usage.total_kwh == Decimal("1000")


def test_missing_fields_reported_together():
    """Every missing field is reported in one error."""
    with pytest.raises(ValidationError) as exc_info:
        normalize_usage({"total_kwh": 10000}, LARGE, TariffStructure.TOD)

    assert set(exc_info.value.message_dict) == {"on_peak_kw", "partial_peak_kw", "off_peak_kw"}
    assert exc_info.value.message_dict["on_peak_kw"] == [
        "Missing required field: on_peak_kw (required for Type 4 tod)"
    ]


@pytest.mark.parametrize("value", [-1, "-0.5", "abc", True, "NaN", "Infinity", [1]])
def test_invalid_values_rejected(value):
    with pytest.raises(ValidationError) as exc_info:
        normalize_usage({"total_kwh": value}, SMALL, TariffStructure.NORMAL)

    assert list(exc_info.value.message_dict) == ["total_kwh"]


def test_oversized_values_rejected():
    """Values too large to bill are rejected under the key they were sent as."""
    with pytest.raises(ValidationError) as exc_info:
        normalize_usage({"totalKwh": "1e25", "peakKw": 75}, MEDIUM, TariffStructure.NORMAL)

    assert exc_info.value.message_dict == {
        "totalKwh": ["totalKwh must not exceed 10,000,000,000, received: 1e25"]
    }


def test_largest_value_accepted():
    usage = normalize_usage({"total_kwh": "1e10"}, SMALL, TariffStructure.NORMAL)

    assert usage.total_kwh == Decimal("10000000000")


def test_parameters_oversized_rejected():
    with pytest.raises(ValidationError) as exc_info:
        normalize_parameters(
            {"ftRateSatang": 0, "peakKvar": "1e30", "highestDemandChargeLast12m": 0}, MEDIUM
        )

    assert exc_info.value.fields == ["peakKvar"]


def test_invalid_value_reported_under_given_key():
    with pytest.raises(ValidationError) as exc_info:
        normalize_usage({"totalKwh": "lots"}, SMALL, TariffStructure.NORMAL)

    assert list(exc_info.value.message_dict) == ["totalKwh"]


def test_empty_values_count_as_missing():
    with pytest.raises(ValidationError) as exc_info:
        normalize_usage({"total_kwh": ""}, SMALL, TariffStructure.NORMAL)

    assert "Missing required field: total_kwh" in str(exc_info.value)


def test_usage_must_be_mapping():
    with pytest.raises(ValidationError) as exc_info:
        normalize_usage([1, 2], SMALL, TariffStructure.NORMAL)

    assert exc_info.value.fields == ["usage"]


def test_structure_checked_before_usage():
    with pytest.raises(ValidationError) as exc_info:
        normalize_usage({}, LARGE, TariffStructure.NORMAL)

    assert exc_info.value.fields == ["tariffType"]


# Parameter normalization


def test_parameters_small_needs_only_ft():
    params = normalize_parameters({"ftRateSatang": "19.72"}, SMALL)

    assert params.fuel_adjustment_rate_satang == Decimal("19.72")
    assert params.peak_reactive_power_kvar is None
    assert params.historical_peak_demand_charge is None


def test_parameters_demand_tier():
    params = normalize_parameters(
        {"ft_rate_satang": 0, "peak_kvar": 60, "highest_demand_charge_last_12m": "30000"}, MEDIUM
    )

    assert params.peak_reactive_power_kvar == Decimal("60")
    assert params.historical_peak_demand_charge == Decimal("30000")


def test_parameters_missing_reported_with_api_names():
    with pytest.raises(ValidationError) as exc_info:
        normalize_parameters({}, LARGE)

    assert set(exc_info.value.message_dict) == {
        "ftRateSatang",
        "peakKvar",
        "highestDemandChargeLast12m",
    }


def test_parameters_negative_rejected():
    with pytest.raises(ValidationError) as exc_info:
        normalize_parameters({"ftRateSatang": -1}, SMALL)

    assert exc_info.value.fields == ["ftRateSatang"]


def test_coerce_decimal():
    assert coerce_decimal("12.50", "amount") == Decimal("12.50")

    with pytest.raises(ValidationError) as exc_info:
        coerce_decimal("x", "amount")
    assert exc_info.value.fields == ["amount"]
