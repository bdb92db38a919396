"""
Unit tests for power factor, fuel adjustment and VAT.
"""

from decimal import Decimal

import pytest

from billing.core.charges.adjustments import (
    excess_reactive_power,
    fuel_adjustment_charge,
    power_factor_charge,
    vat,
)
from billing.core.util import round_to, round_to_integer, satang_to_baht


def test_excess_reactive_power():
    """
    Allowance is 61.97% of peak kW.

    Expected: 60 - 75 × 0.6197 = 13.5225
    """
    assert excess_reactive_power(Decimal("60"), Decimal("75")) == Decimal("13.5225")


def test_excess_reactive_power_never_negative():
    assert excess_reactive_power(Decimal("10"), Decimal("75")) == Decimal("0")


def test_power_factor_charge_rounds_excess_to_whole_kvar():
    """
    Expected: 13.5225 kVAR rounds to 14, charged at 56.07 = 784.98
    """
    assert power_factor_charge(Decimal("60"), Decimal("75")) == Decimal("784.98")


@pytest.mark.parametrize(
    "kvar, expected_kvar",
    [
        # 10 kW allowance is 6.197 kVAR
        ("6.197", 0),
        ("6.696", 0),
        ("6.697", 1),
        ("7.697", 2),
    ],
)
def test_power_factor_half_up(kvar, expected_kvar):
    """Half a kVAR of excess or more rounds up; less rounds down."""
    charge = power_factor_charge(Decimal(kvar), Decimal("10"))

    assert charge == Decimal(expected_kvar) * Decimal("56.07")


def test_fuel_adjustment_charge():
    """
    FT is given in satang per kWh.

    Expected: 1500 kWh × 19.72 satang = 295.80 baht
    """
    assert fuel_adjustment_charge(Decimal("1500"), Decimal("19.72")) == Decimal("295.8")


def test_fuel_adjustment_charge_can_be_zero():
    assert fuel_adjustment_charge(Decimal("1500"), Decimal("0")) == Decimal("0")


def test_vat():
    assert vat(Decimal("3618.58")) == Decimal("253.3006")


@pytest.mark.parametrize(
    "value, places, expected",
    [
        ("1.2345", 3, "1.235"),
        ("1.2344", 3, "1.234"),
        ("16612.45", 1, "16612.5"),
        ("0.000005", 5, "0.00001"),
    ],
)
def test_round_to_half_up(value, places, expected):
    assert round_to(Decimal(value), places) == Decimal(expected)


def test_round_to_integer():
    assert round_to_integer(Decimal("13.5")) == Decimal("14")
    assert round_to_integer(Decimal("13.4999")) == Decimal("13")


def test_satang_to_baht():
    assert satang_to_baht(Decimal("19.72")) == Decimal("0.1972")
