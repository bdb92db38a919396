"""
Billing service layer.

Orchestrates resolving the rate entry for a request, normalizing its usage
and parameters, and calculating the bill with the core billing engine.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from billing.cache import cached_compute_bill
from billing.core.data import (
    normalize_parameters,
    normalize_usage,
    parse_provider,
    parse_tariff_structure,
    parse_tier,
    validate_tariff_structure,
)
from billing.core.types import (
    BillResult,
    CustomerTier,
    Provider,
    RateEntry,
    TariffStructure,
)
from tariffs.rate_table import RateTable, get_rate_table, resolve_rate

logger = logging.getLogger(__name__)


@dataclass
class BillCalculation:
    """Result of a billing calculation."""

    rate: RateEntry
    result: BillResult

    @property
    def provider(self) -> Provider:
        return self.rate.provider

    @property
    def tier(self) -> CustomerTier:
        return self.rate.tier

    @property
    def tariff_structure(self) -> TariffStructure:
        return self.rate.tariff_structure

    @property
    def total(self):
        return self.result.total


def _calculate(
    rate: RateEntry,
    usage: Mapping[str, Any],
    parameters: Mapping[str, Any],
) -> BillCalculation:
    normalized_usage = normalize_usage(usage, rate.tier, rate.tariff_structure)
    normalized_params = normalize_parameters(parameters, rate.tier)

    result = cached_compute_bill(
        rate.tier, rate.tariff_structure, rate, normalized_usage, normalized_params
    )
    logger.info(
        "Calculated %s %s %s bill at %s (%s): total %s",
        rate.provider.value.upper(),
        rate.tier.display_name,
        rate.tariff_structure.value,
        rate.voltage_band,
        rate.code,
        result.total,
    )
    return BillCalculation(rate=rate, result=result)


def calculate_bill(
    provider: Provider | str,
    tier: CustomerTier | int | str,
    tariff_structure: TariffStructure | str,
    voltage_band: str,
    usage: Mapping[str, Any],
    parameters: Mapping[str, Any],
    rate_table: RateTable | None = None,
) -> BillCalculation:
    """
    Calculate a bill for a tariff combination.

    Args:
        provider: 'mea' or 'pea'
        tier: customer tier (2-5, or 'type-N')
        tariff_structure: 'normal', 'tou' or 'tod'
        voltage_band: voltage band label from the provider's rate table
        usage: raw usage mapping (see billing.core.data.normalize_usage)
        parameters: raw billing parameters (FT rate, peak kVAR, highest
            demand charge of the last 12 months)
        rate_table: table to resolve against; defaults to the table loaded at
            startup

    Returns:
        BillCalculation with the resolved rate entry and the itemized bill

    Raises:
        ValidationError: if identifiers or inputs are invalid
        RateNotFoundError: if the table has no entry for the combination
    """
    provider = parse_provider(provider)
    tier = parse_tier(tier)
    tariff_structure = parse_tariff_structure(tariff_structure)
    validate_tariff_structure(tier, tariff_structure)

    table = rate_table if rate_table is not None else get_rate_table()
    rate = resolve_rate(table, provider, tier, tariff_structure, voltage_band)
    return _calculate(rate, usage, parameters)


def calculate_plan_bill(
    plan_code: str,
    usage: Mapping[str, Any],
    parameters: Mapping[str, Any],
    rate_table: RateTable | None = None,
) -> BillCalculation:
    """
    Calculate a bill for a tariff plan code such as 'MEA_3.2.1_medium_TOU'.

    Raises:
        ValidationError: if the inputs are invalid
        RateNotFoundError: if no plan has that code
    """
    table = rate_table if rate_table is not None else get_rate_table()
    return _calculate(table.get_plan(plan_code), usage, parameters)
