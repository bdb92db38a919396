"""Helper functions for billing engine."""

from decimal import ROUND_CEILING, ROUND_HALF_UP, Decimal

# Decimal places per bill field. Applied once, to the final value of each field.
ENERGY_PLACES = 3
BASE_TARIFF_PLACES = 3
SUBTOTAL_PLACES = 3
POWER_FACTOR_PLACES = 3
DEMAND_PLACES = 1
FUEL_ADJUSTMENT_PLACES = 1
VAT_PLACES = 5
TOTAL_PLACES = 5


def round_to(value: Decimal, places: int) -> Decimal:
    """
    Round half away from zero to a fixed number of decimal places.

    Notes:
        Charges are never negative, so this matches half-up rounding of the
        published tariff examples.
    """
    return value.quantize(Decimal(1).scaleb(-places), rounding=ROUND_HALF_UP)


def round_up(value: Decimal, places: int) -> Decimal:
    """Round up to a fixed number of decimal places, so the result never falls below value."""
    return value.quantize(Decimal(1).scaleb(-places), rounding=ROUND_CEILING)


def round_to_integer(value: Decimal) -> Decimal:
    """Round half-up to a whole number (e.g. whole kVAR)."""
    return value.quantize(Decimal(1), rounding=ROUND_HALF_UP)


def satang_to_baht(satang: Decimal) -> Decimal:
    """Convert a rate in satang to baht (100 satang = 1 baht)."""
    return satang / Decimal(100)
