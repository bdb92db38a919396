"""
Shared fixtures for billing tests.

Rate entries come from the shipped MEA/PEA rate tables so that expected
values in the tests match the published tariffs.
"""

from decimal import Decimal

import pytest
from django.conf import settings
from django.core.cache import caches

from billing.core.types import BillingParameters, UsageReading
from tariffs.rate_table import load_rate_table, resolve_rate


@pytest.fixture(scope="session")
def rate_table():
    """Rate table built from settings.TARIFF_RATE_FILES."""
    return load_rate_table(settings.TARIFF_RATE_FILES)


@pytest.fixture
def rate_factory(rate_table):
    """Factory fixture resolving a rate entry, MEA by default.

    Usage:
        rate = rate_factory(3, "normal", "<12kV")
        rate = rate_factory(4, "tod", "<22kV", provider="pea")
    """

    def _rate(tier, tariff_structure, voltage_band, provider="mea"):
        return resolve_rate(rate_table, provider, tier, tariff_structure, voltage_band)

    return _rate


def _decimals(values: dict) -> dict:
    return {k: (None if v is None else Decimal(str(v))) for k, v in values.items()}


@pytest.fixture
def usage_factory():
    """Factory fixture for UsageReading; accepts ints, floats or strings.

    overall_peak_kw defaults to the largest demand reading given.
    """

    def _usage(**values) -> UsageReading:
        values = _decimals(values)
        if "overall_peak_kw" not in values:
            readings = [
                values[name]
                for name in ("on_peak_kw", "off_peak_kw", "partial_peak_kw")
                if values.get(name) is not None
            ]
            values["overall_peak_kw"] = max(readings) if readings else Decimal("0")
        if "total_kwh" not in values:
            values["total_kwh"] = values.get("on_peak_kwh", Decimal("0")) + values.get(
                "off_peak_kwh", Decimal("0")
            )
        return UsageReading(**values)

    return _usage


@pytest.fixture
def params_factory():
    """Factory fixture for BillingParameters (FT defaults to 0 satang)."""

    def _params(ft=0, kvar=None, historical=None) -> BillingParameters:
        values = _decimals(
            {
                "fuel_adjustment_rate_satang": ft,
                "peak_reactive_power_kvar": kvar,
                "historical_peak_demand_charge": historical,
            }
        )
        return BillingParameters(**values)

    return _params


@pytest.fixture
def billing_cache():
    """The billing cache, emptied before and after the test."""
    cache = caches["billing"]
    cache.clear()
    yield cache
    cache.clear()
