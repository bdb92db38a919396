"""
Logic for computing energy charges.
"""

from decimal import Decimal

from ..types import EnergyTier, RateEntry, TariffStructure, UsageReading


def tiered_energy_charge(total_kwh: Decimal, tiers: tuple[EnergyTier, ...]) -> Decimal:
    """
    Charge total_kwh against progressive rate bands.

    Bands are delimited by consecutive thresholds: thresholds 0/150/400 give
    (0, 150], (150, 400], (400, inf). Consumption exactly at a threshold is
    billed in the lower band that ends there, so 150 kWh is billed entirely at
    the first rate and the 151st kWh at the second.

    Args:
        total_kwh: energy consumed in the billing period
        tiers: bands ordered by strictly increasing threshold, first threshold 0

    Returns:
        Unrounded energy charge
    """
    charge = Decimal("0")
    upper_bounds = [t.threshold_kwh for t in tiers[1:]] + [None]

    for tier, upper in zip(tiers, upper_bounds):
        if total_kwh <= tier.threshold_kwh:
            break
        band_top = total_kwh if upper is None else min(total_kwh, upper)
        charge += (band_top - tier.threshold_kwh) * tier.rate_per_kwh

    return charge


def time_of_use_energy_charge(usage: UsageReading, rate: RateEntry) -> Decimal:
    """Charge on-peak and off-peak energy at their own rates."""
    rates = rate.time_of_use_energy_rates
    return usage.on_peak_kwh * rates.on_peak_rate + usage.off_peak_kwh * rates.off_peak_rate


def energy_charge(usage: UsageReading, rate: RateEntry) -> Decimal:
    """
    Compute the energy charge for any tariff structure.

    Args:
        usage: normalized usage; tou tariffs need on_peak_kwh and off_peak_kwh
        rate: the resolved rate entry

    Returns:
        Unrounded energy charge
    """
    if rate.tariff_structure == TariffStructure.TOU:
        return time_of_use_energy_charge(usage, rate)
    if rate.tiered_energy_rates is not None:
        return tiered_energy_charge(usage.total_kwh, rate.tiered_energy_rates)
    return usage.total_kwh * rate.flat_energy_rate


def kwh_for_fuel_adjustment(usage: UsageReading, tariff_structure: TariffStructure) -> Decimal:
    """Energy that the fuel adjustment (FT) charge applies to."""
    if tariff_structure == TariffStructure.TOU:
        return usage.on_peak_kwh + usage.off_peak_kwh
    return usage.total_kwh
