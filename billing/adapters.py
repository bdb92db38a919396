"""
Adapters between the billing DTOs and JSON payloads.

Requests arrive with the camelCase envelope used by the HTTP API
({tariffType, voltageLevel, ftRateSatang, ..., usage}); responses expose the
itemized bill with the same camelCase naming.
"""

from collections.abc import Mapping
from decimal import Decimal
from typing import Any

from billing.core.types import BillResult, DemandBillResult, RateEntry, SimpleBillResult
from billing.exceptions import ValidationError

# Field name on the bill result -> key in the JSON payload
SIMPLE_BILL_FIELDS = {
    "energy_charge": "energyCharge",
    "service_charge": "serviceCharge",
    "base_tariff": "baseTariff",
    "fuel_adjustment_charge": "ftCharge",
    "vat": "vat",
    "total_bill": "totalBill",
}

DEMAND_BILL_FIELDS = {
    "calculated_demand_charge": "calculatedDemandCharge",
    "energy_charge": "energyCharge",
    "effective_demand_charge": "effectiveDemandCharge",
    "power_factor_charge": "pfCharge",
    "service_charge": "serviceCharge",
    "fuel_adjustment_charge": "ftCharge",
    "subtotal": "subTotal",
    "vat": "vat",
    "grand_total": "grandTotal",
}


def to_number(value: Decimal) -> float | int:
    """Render a Decimal as a JSON number, keeping integers integral."""
    if value == value.to_integral_value():
        return int(value)
    return float(value)


def result_to_payload(result: BillResult) -> dict[str, float | int]:
    """
    Convert a bill result into the camelCase payload returned by the API.

    Tier 2 results carry baseTariff and totalBill; demand-charged results carry
    the demand, power factor (pfCharge), subTotal and grandTotal fields.
    """
    if isinstance(result, DemandBillResult):
        names = DEMAND_BILL_FIELDS
    elif isinstance(result, SimpleBillResult):
        names = SIMPLE_BILL_FIELDS
    else:
        raise TypeError(f"Unsupported bill result: {type(result).__name__}")
    return {key: to_number(getattr(result, name)) for name, key in names.items()}


def rate_entry_to_payload(rate: RateEntry) -> dict[str, Any]:
    """Describe a tariff plan: identity, service charge and charge coefficients."""
    rates: dict[str, Any] = {}
    if rate.flat_energy_rate is not None:
        rates["energyRate"] = to_number(rate.flat_energy_rate)
    if rate.tiered_energy_rates is not None:
        rates["tieredEnergyRates"] = [
            {"thresholdKwh": to_number(t.threshold_kwh), "ratePerKwh": to_number(t.rate_per_kwh)}
            for t in rate.tiered_energy_rates
        ]
    if rate.time_of_use_energy_rates is not None:
        rates["onPeakRate"] = to_number(rate.time_of_use_energy_rates.on_peak_rate)
        rates["offPeakRate"] = to_number(rate.time_of_use_energy_rates.off_peak_rate)
    if rate.flat_demand_rate is not None:
        rates["demandRate"] = to_number(rate.flat_demand_rate)
    if rate.time_of_use_demand_rate is not None:
        rates["demandRate"] = to_number(rate.time_of_use_demand_rate)
    if rate.time_of_day_demand_rates is not None:
        rates["demandOnPeakRate"] = to_number(rate.time_of_day_demand_rates.on_peak_rate)
        rates["demandPartialPeakRate"] = to_number(rate.time_of_day_demand_rates.partial_peak_rate)
        rates["demandOffPeakRate"] = to_number(rate.time_of_day_demand_rates.off_peak_rate)

    return {
        "code": rate.code,
        "provider": rate.provider.value.upper(),
        "calculationType": f"type-{rate.tier.value}",
        "customerSize": rate.tier.size,
        "tariffType": rate.tariff_structure.value,
        "voltageLevel": rate.voltage_band,
        "serviceCharge": to_number(rate.service_charge),
        "rates": rates,
    }


def calculation_metadata(rate: RateEntry) -> dict[str, str]:
    return {
        "provider": rate.provider.value,
        "calculationType": f"type-{rate.tier.value}",
        "tariffType": rate.tariff_structure.value,
        "voltageLevel": rate.voltage_band,
        "planCode": rate.code,
    }


def extract_usage(payload: Mapping[str, Any]) -> Mapping[str, Any]:
    """
    Return the usage member of a request body.

    Raises:
        ValidationError: if the body or its usage member is not an object
    """
    if not isinstance(payload, Mapping):
        raise ValidationError({"body": "Request body must be a JSON object"})

    usage = payload.get("usage")
    if usage is None:
        raise ValidationError({"usage": "Missing required field: usage"})
    if not isinstance(usage, Mapping):
        raise ValidationError({"usage": "usage must be an object"})

    return usage
