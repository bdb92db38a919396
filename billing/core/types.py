"""
Define lightweight dataclasses to use for bill calculations.

Rate tables are loaded into these classes by tariffs.yaml_service; request
payloads are converted by billing.adapters and billing.core.data.
"""

from dataclasses import dataclass, fields
from decimal import Decimal
from enum import Enum, IntEnum
from typing import Optional, Union

from billing.exceptions import ValidationError


class Provider(str, Enum):
    """Electricity utility."""

    MEA = "mea"  # Metropolitan Electricity Authority
    PEA = "pea"  # Provincial Electricity Authority


class CustomerTier(IntEnum):
    """Customer-size category."""

    SMALL = 2
    MEDIUM = 3
    LARGE = 4
    SPECIFIC = 5

    @property
    def size(self) -> str:
        return {2: "small", 3: "medium", 4: "large", 5: "specific"}[self.value]

    @property
    def has_demand_charge(self) -> bool:
        return self is not CustomerTier.SMALL

    @property
    def display_name(self) -> str:
        return f"Type {self.value}"


class TariffStructure(str, Enum):
    """The billing time-model of a tariff."""

    NORMAL = "normal"
    TOU = "tou"  # time-of-use: on-peak / off-peak
    TOD = "tod"  # time-of-day: on / partial / off-peak demand


# Tariff structures offered to each tier, in display order
TIER_TARIFF_STRUCTURES: dict[CustomerTier, tuple[TariffStructure, ...]] = {
    CustomerTier.SMALL: (TariffStructure.NORMAL, TariffStructure.TOU),
    CustomerTier.MEDIUM: (TariffStructure.NORMAL, TariffStructure.TOU),
    CustomerTier.LARGE: (TariffStructure.TOD, TariffStructure.TOU),
    CustomerTier.SPECIFIC: (TariffStructure.NORMAL, TariffStructure.TOU),
}


@dataclass(frozen=True, slots=True)
class EnergyTier:
    """One band of a progressive energy rate, starting at threshold_kwh."""

    threshold_kwh: Decimal
    rate_per_kwh: Decimal


@dataclass(frozen=True, slots=True)
class TimeOfUseEnergyRates:
    on_peak_rate: Decimal
    off_peak_rate: Decimal


@dataclass(frozen=True, slots=True)
class TimeOfDayDemandRates:
    on_peak_rate: Decimal
    partial_peak_rate: Decimal
    off_peak_rate: Decimal


@dataclass(frozen=True, slots=True)
class RateEntry:
    """
    Charge coefficients for one (provider, tier, tariff structure, voltage band).

    Exactly one energy shape is populated, and at most one demand shape.
    Which shapes are allowed depends on the tariff structure and tier:

        - normal: flat or tiered energy; flat demand for tiers 3/5, none for tier 2
        - tou: time-of-use energy; time-of-use demand for tiers 3/4/5, none for tier 2
        - tod: flat energy and time-of-day demand, tier 4 only

    Validation:
        - shape matches tariff_structure and tier (ValueError otherwise)
        - tiered thresholds start at 0 and are strictly increasing
        - all coefficients are non-negative
    """

    provider: Provider
    tier: CustomerTier
    tariff_structure: TariffStructure
    voltage_band: str
    service_charge: Decimal
    code: str = ""
    flat_energy_rate: Optional[Decimal] = None
    tiered_energy_rates: Optional[tuple[EnergyTier, ...]] = None
    time_of_use_energy_rates: Optional[TimeOfUseEnergyRates] = None
    flat_demand_rate: Optional[Decimal] = None
    time_of_use_demand_rate: Optional[Decimal] = None
    time_of_day_demand_rates: Optional[TimeOfDayDemandRates] = None

    def __post_init__(self) -> None:
        """Validate that the populated shapes match the declared structure."""
        if self.tariff_structure not in TIER_TARIFF_STRUCTURES[self.tier]:
            raise ValueError(
                f"{self.tier.display_name} does not offer the "
                f"'{self.tariff_structure.value}' tariff structure"
            )

        energy_shapes = [
            name
            for name in ("flat_energy_rate", "tiered_energy_rates", "time_of_use_energy_rates")
            if getattr(self, name) is not None
        ]
        demand_shapes = [
            name
            for name in ("flat_demand_rate", "time_of_use_demand_rate", "time_of_day_demand_rates")
            if getattr(self, name) is not None
        ]
        if len(energy_shapes) != 1:
            raise ValueError(
                f"exactly one energy rate shape is required, got {energy_shapes or 'none'}"
            )
        if len(demand_shapes) > 1:
            raise ValueError(f"at most one demand rate shape is allowed, got {demand_shapes}")

        if self.tariff_structure == TariffStructure.NORMAL:
            allowed_energy = {"flat_energy_rate", "tiered_energy_rates"}
            expected_demand = "flat_demand_rate"
        elif self.tariff_structure == TariffStructure.TOU:
            allowed_energy = {"time_of_use_energy_rates"}
            expected_demand = "time_of_use_demand_rate"
        else:
            allowed_energy = {"flat_energy_rate"}
            expected_demand = "time_of_day_demand_rates"

        if energy_shapes[0] not in allowed_energy:
            raise ValueError(
                f"'{self.tariff_structure.value}' tariffs cannot use {energy_shapes[0]}"
            )

        expected_demand_shapes = [expected_demand] if self.tier.has_demand_charge else []
        if demand_shapes != expected_demand_shapes:
            raise ValueError(
                f"{self.tier.display_name} '{self.tariff_structure.value}' tariffs require "
                f"demand shape {expected_demand_shapes or 'none'}, got {demand_shapes or 'none'}"
            )

        if self.tiered_energy_rates is not None:
            if not self.tiered_energy_rates:
                raise ValueError("tiered_energy_rates cannot be empty")
            if self.tiered_energy_rates[0].threshold_kwh != 0:
                raise ValueError("the first energy tier must start at 0 kWh")
            thresholds = [t.threshold_kwh for t in self.tiered_energy_rates]
            if any(lower >= upper for lower, upper in zip(thresholds, thresholds[1:])):
                raise ValueError("energy tier thresholds must be strictly increasing")

        for name, value in self.coefficients().items():
            if value < 0:
                raise ValueError(f"{name} must be non-negative")

    def coefficients(self) -> dict[str, Decimal]:
        """Flatten all populated coefficients into a name -> value mapping."""
        values: dict[str, Decimal] = {"service_charge": self.service_charge}
        if self.flat_energy_rate is not None:
            values["flat_energy_rate"] = self.flat_energy_rate
        for i, energy_tier in enumerate(self.tiered_energy_rates or ()):
            values[f"tiered_energy_rates[{i}].rate_per_kwh"] = energy_tier.rate_per_kwh
        if self.time_of_use_energy_rates is not None:
            values["time_of_use_energy_rates.on_peak_rate"] = self.time_of_use_energy_rates.on_peak_rate
            values["time_of_use_energy_rates.off_peak_rate"] = self.time_of_use_energy_rates.off_peak_rate
        if self.flat_demand_rate is not None:
            values["flat_demand_rate"] = self.flat_demand_rate
        if self.time_of_use_demand_rate is not None:
            values["time_of_use_demand_rate"] = self.time_of_use_demand_rate
        if self.time_of_day_demand_rates is not None:
            for part in ("on_peak_rate", "partial_peak_rate", "off_peak_rate"):
                values[f"time_of_day_demand_rates.{part}"] = getattr(
                    self.time_of_day_demand_rates, part
                )
        return values

    @property
    def key(self) -> tuple[Provider, CustomerTier, TariffStructure, str]:
        return (self.provider, self.tier, self.tariff_structure, self.voltage_band)


@dataclass(frozen=True, slots=True)
class UsageReading:
    """
    Metered consumption and demand for one billing period, in normalized form.

    total_kwh and overall_peak_kw are always populated; the period-specific
    readings are present only when the tariff structure needs them.
    """

    total_kwh: Decimal
    overall_peak_kw: Decimal = Decimal("0")
    on_peak_kwh: Optional[Decimal] = None
    off_peak_kwh: Optional[Decimal] = None
    on_peak_kw: Optional[Decimal] = None
    off_peak_kw: Optional[Decimal] = None
    partial_peak_kw: Optional[Decimal] = None

    def __post_init__(self) -> None:
        _reject_negative(self)


@dataclass(frozen=True, slots=True)
class BillingParameters:
    """
    Per-invocation scalar inputs that are not part of the metered usage.

    peak_reactive_power_kvar and historical_peak_demand_charge are required for
    demand-charged tiers (3/4/5) and ignored for tier 2.
    """

    fuel_adjustment_rate_satang: Decimal
    peak_reactive_power_kvar: Optional[Decimal] = None
    historical_peak_demand_charge: Optional[Decimal] = None

    def __post_init__(self) -> None:
        _reject_negative(self)


def _reject_negative(instance) -> None:
    errors = {
        f.name: "Ensure this value is greater than or equal to 0."
        for f in fields(instance)
        if getattr(instance, f.name) is not None and getattr(instance, f.name) < 0
    }
    if errors:
        raise ValidationError(errors)


@dataclass(frozen=True, slots=True)
class SimpleBillResult:
    """Itemized bill for tier 2 customers (no demand charge)."""

    energy_charge: Decimal
    service_charge: Decimal
    base_tariff: Decimal
    fuel_adjustment_charge: Decimal
    vat: Decimal
    total_bill: Decimal

    @property
    def total(self) -> Decimal:
        return self.total_bill


@dataclass(frozen=True, slots=True)
class DemandBillResult:
    """Itemized bill for demand-charged customers (tiers 3/4/5)."""

    calculated_demand_charge: Decimal
    energy_charge: Decimal
    effective_demand_charge: Decimal
    power_factor_charge: Decimal
    service_charge: Decimal
    fuel_adjustment_charge: Decimal
    subtotal: Decimal
    vat: Decimal
    grand_total: Decimal

    @property
    def total(self) -> Decimal:
        return self.grand_total


BillResult = Union[SimpleBillResult, DemandBillResult]
