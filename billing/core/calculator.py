"""
Core billing calculator.

Dispatches on (tier, tariff structure) to the charge formulas and assembles a
rounded, itemized bill.
"""

from decimal import Decimal

from billing.exceptions import ValidationError

from .charges.adjustments import fuel_adjustment_charge, power_factor_charge, vat
from .charges.demand import (
    calculated_demand_charge,
    effective_demand_charge,
    minimum_demand_charge,
)
from .charges.energy import energy_charge, kwh_for_fuel_adjustment
from .data import REQUIRED_USAGE_FIELDS, validate_tariff_structure
from .types import (
    BillingParameters,
    BillResult,
    CustomerTier,
    DemandBillResult,
    RateEntry,
    SimpleBillResult,
    TariffStructure,
    UsageReading,
)
from .util import (
    BASE_TARIFF_PLACES,
    DEMAND_PLACES,
    ENERGY_PLACES,
    FUEL_ADJUSTMENT_PLACES,
    POWER_FACTOR_PLACES,
    SUBTOTAL_PLACES,
    TOTAL_PLACES,
    VAT_PLACES,
    round_to,
    round_up,
)


def _check_inputs(
    tier: CustomerTier,
    tariff_structure: TariffStructure,
    rate: RateEntry,
    usage: UsageReading,
    params: BillingParameters,
) -> None:
    """Reject combinations the formulas cannot be applied to."""
    validate_tariff_structure(tier, tariff_structure)

    if rate.tier != tier or rate.tariff_structure != tariff_structure:
        raise ValidationError(
            {
                "rate": (
                    f"Rate entry {rate.code or rate.key} is for {rate.tier.display_name} "
                    f"{rate.tariff_structure.value}, not {tier.display_name} "
                    f"{tariff_structure.value}"
                )
            }
        )

    errors: dict[str, str] = {}
    for name in REQUIRED_USAGE_FIELDS[(tier, tariff_structure)]:
        if name == "peak_kw" or name == "total_kwh":
            # Always populated on a normalized reading
            continue
        if getattr(usage, name) is None:
            errors[name] = f"Missing required field: {name}"

    if tier.has_demand_charge:
        if params.peak_reactive_power_kvar is None:
            errors["peakKvar"] = "Missing required field: peakKvar"
        if params.historical_peak_demand_charge is None:
            errors["highestDemandChargeLast12m"] = (
                "Missing required field: highestDemandChargeLast12m"
            )

    if errors:
        raise ValidationError(errors)


def _simple_bill(rate: RateEntry, usage: UsageReading, params: BillingParameters) -> SimpleBillResult:
    energy = energy_charge(usage, rate)
    base_tariff = energy + rate.service_charge
    ft = fuel_adjustment_charge(
        kwh_for_fuel_adjustment(usage, rate.tariff_structure),
        params.fuel_adjustment_rate_satang,
    )

    pre_vat = round_to(base_tariff + ft, SUBTOTAL_PLACES)
    vat_amount = round_to(vat(pre_vat), VAT_PLACES)

    return SimpleBillResult(
        energy_charge=round_to(energy, ENERGY_PLACES),
        service_charge=rate.service_charge,
        base_tariff=round_to(base_tariff, BASE_TARIFF_PLACES),
        fuel_adjustment_charge=round_to(ft, FUEL_ADJUSTMENT_PLACES),
        vat=vat_amount,
        total_bill=round_to(pre_vat + vat_amount, TOTAL_PLACES),
    )


def _demand_bill(rate: RateEntry, usage: UsageReading, params: BillingParameters) -> DemandBillResult:
    calculated = calculated_demand_charge(usage, rate)
    energy = energy_charge(usage, rate)
    effective = effective_demand_charge(calculated, params.historical_peak_demand_charge)
    if effective == minimum_demand_charge(params.historical_peak_demand_charge):
        # The floor is billed rounded up so the field never drops below it
        rounded_effective = round_up(effective, DEMAND_PLACES)
    else:
        rounded_effective = round_to(effective, DEMAND_PLACES)
    pf = power_factor_charge(params.peak_reactive_power_kvar, usage.overall_peak_kw)
    ft = fuel_adjustment_charge(
        kwh_for_fuel_adjustment(usage, rate.tariff_structure),
        params.fuel_adjustment_rate_satang,
    )

    subtotal = round_to(effective + energy + pf + rate.service_charge + ft, SUBTOTAL_PLACES)
    vat_amount = round_to(vat(subtotal), VAT_PLACES)

    return DemandBillResult(
        calculated_demand_charge=round_to(calculated, DEMAND_PLACES),
        energy_charge=round_to(energy, ENERGY_PLACES),
        effective_demand_charge=rounded_effective,
        power_factor_charge=round_to(pf, POWER_FACTOR_PLACES),
        service_charge=rate.service_charge,
        fuel_adjustment_charge=round_to(ft, FUEL_ADJUSTMENT_PLACES),
        subtotal=subtotal,
        vat=vat_amount,
        grand_total=round_to(subtotal + vat_amount, TOTAL_PLACES),
    )


def compute_bill(
    tier: CustomerTier,
    tariff_structure: TariffStructure,
    rate: RateEntry,
    usage: UsageReading,
    params: BillingParameters,
) -> BillResult:
    """
    Compute an itemized monthly bill.

    Tier 2 bills energy and the service charge only. Tiers 3/4/5 add the demand
    charge (with the 70% minimum-bill floor) and the power factor penalty.
    Every bill adds the fuel adjustment (FT) charge and 7% VAT.

    Rounding is applied once per field: energy, base tariff, subtotal and power
    factor to 3 places; demand and FT charges to 1 place; VAT and totals to 5
    places. When the minimum-bill floor sets the effective demand charge it is
    rounded up, so it is never billed below 70% of the historical charge. VAT is computed on the rounded pre-VAT amount, so
    ``vat == pre_vat * 0.07`` and ``total == pre_vat + vat`` hold exactly.

    Args:
        tier: customer tier
        tariff_structure: tariff structure offered by the tier
        rate: rate entry resolved for (provider, tier, structure, voltage band)
        usage: normalized usage (see billing.core.data.normalize_usage)
        params: FT rate, and for tiers 3/4/5 peak kVAR and historical peak
            demand charge

    Returns:
        SimpleBillResult for tier 2, DemandBillResult for tiers 3/4/5

    Raises:
        ValidationError: if the structure is not offered by the tier, the rate
            entry belongs to another tier/structure, or required inputs are missing
    """
    _check_inputs(tier, tariff_structure, rate, usage, params)

    if tier.has_demand_charge:
        return _demand_bill(rate, usage, params)
    return _simple_bill(rate, usage, params)


def pre_vat_amount(result: BillResult) -> Decimal:
    """The amount VAT was levied on."""
    if isinstance(result, DemandBillResult):
        return result.subtotal
    return result.total_bill - result.vat
