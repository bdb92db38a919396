"""
Power factor penalty, fuel adjustment (FT) and VAT.
"""

from decimal import Decimal

from ..util import round_to_integer, satang_to_baht

VAT_RATE = Decimal("0.07")

# Reactive power allowance: kVAR up to 61.97% of peak kW is free.
PF_THRESHOLD_FACTOR = Decimal("0.6197")
# Baht per whole excess kVAR
PF_PENALTY_RATE = Decimal("56.07")


def excess_reactive_power(peak_reactive_power_kvar: Decimal, overall_peak_kw: Decimal) -> Decimal:
    """kVAR above the allowance for this peak demand, never negative."""
    return max(Decimal("0"), peak_reactive_power_kvar - overall_peak_kw * PF_THRESHOLD_FACTOR)


def power_factor_charge(peak_reactive_power_kvar: Decimal, overall_peak_kw: Decimal) -> Decimal:
    """
    Penalty for excessive reactive power.

    The excess is rounded to a whole kVAR before the penalty rate is applied.
    """
    excess = excess_reactive_power(peak_reactive_power_kvar, overall_peak_kw)
    return round_to_integer(excess) * PF_PENALTY_RATE


def fuel_adjustment_charge(kwh: Decimal, rate_satang: Decimal) -> Decimal:
    """FT charge: the monthly fuel-cost passthrough, given in satang per kWh."""
    return kwh * satang_to_baht(rate_satang)


def vat(pre_vat_amount: Decimal) -> Decimal:
    return pre_vat_amount * VAT_RATE
