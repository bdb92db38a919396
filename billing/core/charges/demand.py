"""
Logic for computing demand charges.
"""

from decimal import Decimal

from ..types import RateEntry, TariffStructure, UsageReading

# Demand charge can never fall below this share of the highest demand charge
# billed in the trailing 12 months.
MINIMUM_BILL_FACTOR = Decimal("0.70")


def calculated_demand_charge(usage: UsageReading, rate: RateEntry) -> Decimal:
    """
    Compute the demand charge from this period's readings.

    - normal: overall peak kW at the flat demand rate
    - tou: on-peak kW only; off-peak demand is never charged
    - tod: each period's peak kW at its own rate

    Args:
        usage: normalized usage with the demand readings the structure needs
        rate: the resolved rate entry (tiers 3/4/5)

    Returns:
        Unrounded demand charge
    """
    if rate.tariff_structure == TariffStructure.NORMAL:
        return usage.overall_peak_kw * rate.flat_demand_rate

    if rate.tariff_structure == TariffStructure.TOU:
        return usage.on_peak_kw * rate.time_of_use_demand_rate

    rates = rate.time_of_day_demand_rates
    return (
        usage.on_peak_kw * rates.on_peak_rate
        + usage.partial_peak_kw * rates.partial_peak_rate
        + usage.off_peak_kw * rates.off_peak_rate
    )


def minimum_demand_charge(historical_peak_demand_charge: Decimal) -> Decimal:
    """The lowest demand charge that may be billed this period."""
    return historical_peak_demand_charge * MINIMUM_BILL_FACTOR


def effective_demand_charge(calculated: Decimal, historical_peak_demand_charge: Decimal) -> Decimal:
    """Apply the minimum-bill floor to a calculated demand charge."""
    return max(calculated, minimum_demand_charge(historical_peak_demand_charge))
