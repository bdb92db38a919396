"""
YAML loading service for rate tables.

Each provider's tariff coefficients live in one YAML document. Loading
validates every entry's shape against its declared tariff structure, so a
malformed table fails at startup instead of per request.

YAML Format:
    provider: mea
    name: "Metropolitan Electricity Authority"
    voltage_bands: ["<12kV", "12-24kV", ">=69kV"]
    rates:
      - tier: 2
        tariff_structure: normal
        voltage_band: "<12kV"
        service_charge: 33.29
        tiered_energy_rates:
          - threshold_kwh: 0
            rate_per_kwh: 3.2484
          - threshold_kwh: 150
            rate_per_kwh: 4.2218
      - tier: 3
        tariff_structure: tou
        voltage_band: ">=69kV"
        service_charge: 312.24
        time_of_use_energy_rates:
          on_peak_rate: 4.1025
          off_peak_rate: 2.5849
        time_of_use_demand_rate: 74.14
      - tier: 4
        tariff_structure: tod
        voltage_band: ">=69kV"
        service_charge: 312.24
        flat_energy_rate: 3.1097
        time_of_day_demand_rates:
          on_peak_rate: 280.00
          partial_peak_rate: 74.14
          off_peak_rate: 0
"""

import logging
from collections import defaultdict
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

import yaml

from billing.core.types import (
    CustomerTier,
    EnergyTier,
    Provider,
    RateEntry,
    TariffStructure,
    TimeOfDayDemandRates,
    TimeOfUseEnergyRates,
)
from billing.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

ENTRY_KEYS = {
    "tier",
    "tariff_structure",
    "voltage_band",
    "service_charge",
    "flat_energy_rate",
    "tiered_energy_rates",
    "time_of_use_energy_rates",
    "flat_demand_rate",
    "time_of_use_demand_rate",
    "time_of_day_demand_rates",
}

# Second component of a tariff plan code, e.g. the "2" in MEA_2.2.1_small_TOU
STRUCTURE_INDEX = {
    TariffStructure.NORMAL: 1,
    TariffStructure.TOD: 1,
    TariffStructure.TOU: 2,
}


def plan_code(
    provider: Provider, tier: CustomerTier, tariff_structure: TariffStructure, band_index: int
) -> str:
    """
    Build a tariff plan code such as 'MEA_2.2.1_small_TOU'.

    Args:
        provider: the utility
        tier: customer tier
        tariff_structure: tariff structure
        band_index: 1-based position of the voltage band among the entries of
            the same tier and structure
    """
    # TOU/TOD suffixes are upper case, normal stays lower case: MEA_3.1.2_medium_normal
    suffix = tariff_structure.value
    if tariff_structure != TariffStructure.NORMAL:
        suffix = suffix.upper()
    return (
        f"{provider.value.upper()}_{tier.value}.{STRUCTURE_INDEX[tariff_structure]}."
        f"{band_index}_{tier.size}_{suffix}"
    )


class RateTableYAMLLoader:
    """Load one provider's rate table from YAML with validation."""

    def __init__(self, yaml_content: str, source: str = "<string>"):
        """
        Initialize loader with YAML content.

        Args:
            yaml_content: YAML string to parse
            source: name used in error messages (usually the file path)
        """
        self.yaml_content = yaml_content
        self.source = source
        self.provider: Provider | None = None
        self.name: str = ""
        self.voltage_bands: tuple[str, ...] = ()

    @classmethod
    def from_path(cls, path: str | Path) -> "RateTableYAMLLoader":
        path = Path(path)
        try:
            content = path.read_text(encoding="utf-8")
        except OSError as e:
            raise ConfigurationError(f"Cannot read rate table: {e}", source=str(path))
        return cls(content, source=str(path))

    def load(self) -> list[RateEntry]:
        """
        Parse and validate all rate entries.

        Returns:
            Rate entries in file order, each with its tariff plan code assigned

        Raises:
            ConfigurationError: on any syntax, schema or shape problem
        """
        data = self._parse_yaml()
        self._validate_schema(data)

        self.provider = self._parse_provider(data["provider"])
        self.name = str(data.get("name", self.provider.value.upper()))
        self.voltage_bands = tuple(str(band) for band in data["voltage_bands"])

        entries: list[RateEntry] = []
        band_counts: dict[tuple[CustomerTier, TariffStructure], int] = defaultdict(int)
        for index, entry_data in enumerate(data["rates"]):
            label = f"rates[{index}]"
            tier, structure = self._parse_identity(entry_data, label)
            band_counts[(tier, structure)] += 1
            code = plan_code(self.provider, tier, structure, band_counts[(tier, structure)])
            entries.append(self._build_entry(entry_data, tier, structure, code, label))

        logger.info(
            "Loaded %d rate entries for %s from %s", len(entries), self.provider.value, self.source
        )
        return entries

    def _error(self, message: str) -> ConfigurationError:
        return ConfigurationError(message, source=self.source)

    def _parse_yaml(self) -> Any:
        """Parse YAML content with error handling."""
        try:
            data = yaml.safe_load(self.yaml_content)
        except yaml.YAMLError as e:
            raise self._error(f"Invalid YAML syntax: {e}")
        if data is None:
            raise self._error("Empty YAML file")
        return data

    def _validate_schema(self, data: Any):
        """Validate top-level YAML structure."""
        if not isinstance(data, dict):
            raise self._error("YAML must contain a dictionary at top level")

        for key in ("provider", "voltage_bands", "rates"):
            if key not in data:
                raise self._error(f"Missing required top-level key: {key}")

        if not isinstance(data["voltage_bands"], list) or not data["voltage_bands"]:
            raise self._error("voltage_bands must be a non-empty list")

        if not isinstance(data["rates"], list):
            raise self._error("rates must be a list")

        if len(data["rates"]) == 0:
            raise self._error("rates list cannot be empty")

    def _parse_provider(self, value: Any) -> Provider:
        try:
            return Provider(str(value).lower())
        except ValueError:
            raise self._error(f"Unknown provider: {value!r}")

    def _parse_identity(self, entry_data: Any, label: str) -> tuple[CustomerTier, TariffStructure]:
        if not isinstance(entry_data, dict):
            raise self._error(f"{label}: rate entry must be a dictionary")

        for key in ("tier", "tariff_structure", "voltage_band", "service_charge"):
            if key not in entry_data:
                raise self._error(f"{label}: missing required field: {key}")

        unknown = set(entry_data) - ENTRY_KEYS
        if unknown:
            raise self._error(f"{label}: unknown fields: {', '.join(sorted(unknown))}")

        try:
            tier = CustomerTier(int(entry_data["tier"]))
        except (TypeError, ValueError):
            raise self._error(f"{label}: invalid tier: {entry_data['tier']!r}")

        try:
            structure = TariffStructure(str(entry_data["tariff_structure"]).lower())
        except ValueError:
            raise self._error(
                f"{label}: invalid tariff_structure: {entry_data['tariff_structure']!r}"
            )

        return tier, structure

    def _build_entry(
        self,
        entry_data: dict,
        tier: CustomerTier,
        structure: TariffStructure,
        code: str,
        label: str,
    ) -> RateEntry:
        """Create and validate a rate entry."""
        band = str(entry_data["voltage_band"])
        if band not in self.voltage_bands:
            raise self._error(
                f"{label}: voltage_band {band!r} is not one of {list(self.voltage_bands)}"
            )

        label = f"{label} ({code}, {band})"
        kwargs: dict[str, Any] = {
            "provider": self.provider,
            "tier": tier,
            "tariff_structure": structure,
            "voltage_band": band,
            "code": code,
            "service_charge": self._parse_decimal(entry_data["service_charge"], label, "service_charge"),
        }

        for key in ("flat_energy_rate", "flat_demand_rate", "time_of_use_demand_rate"):
            if entry_data.get(key) is not None:
                kwargs[key] = self._parse_decimal(entry_data[key], label, key)

        if entry_data.get("tiered_energy_rates") is not None:
            kwargs["tiered_energy_rates"] = self._parse_energy_tiers(
                entry_data["tiered_energy_rates"], label
            )

        if entry_data.get("time_of_use_energy_rates") is not None:
            parts = self._parse_parts(
                entry_data["time_of_use_energy_rates"],
                ("on_peak_rate", "off_peak_rate"),
                label,
                "time_of_use_energy_rates",
            )
            kwargs["time_of_use_energy_rates"] = TimeOfUseEnergyRates(**parts)

        if entry_data.get("time_of_day_demand_rates") is not None:
            parts = self._parse_parts(
                entry_data["time_of_day_demand_rates"],
                ("on_peak_rate", "partial_peak_rate", "off_peak_rate"),
                label,
                "time_of_day_demand_rates",
            )
            kwargs["time_of_day_demand_rates"] = TimeOfDayDemandRates(**parts)

        try:
            return RateEntry(**kwargs)
        except ValueError as e:
            raise self._error(f"{label}: {e}")

    def _parse_energy_tiers(self, tiers_data: Any, label: str) -> tuple[EnergyTier, ...]:
        if not isinstance(tiers_data, list):
            raise self._error(f"{label}: tiered_energy_rates must be a list")
        tiers = []
        for i, tier_data in enumerate(tiers_data):
            field = f"tiered_energy_rates[{i}]"
            parts = self._parse_parts(tier_data, ("threshold_kwh", "rate_per_kwh"), label, field)
            tiers.append(EnergyTier(**parts))
        return tuple(tiers)

    def _parse_parts(
        self, parts_data: Any, keys: tuple[str, ...], label: str, field: str
    ) -> dict[str, Decimal]:
        if not isinstance(parts_data, dict):
            raise self._error(f"{label}: {field} must be a dictionary")
        missing = [key for key in keys if key not in parts_data]
        if missing:
            raise self._error(f"{label}: {field} missing: {', '.join(missing)}")
        return {key: self._parse_decimal(parts_data[key], label, f"{field}.{key}") for key in keys}

    def _parse_decimal(self, value: Any, label: str, field: str) -> Decimal:
        """Convert a YAML number to Decimal, preserving its written precision."""
        if isinstance(value, bool):
            raise self._error(f"{label}: {field} must be a number, got {value!r}")
        try:
            number = Decimal(str(value))
        except InvalidOperation:
            raise self._error(f"{label}: {field} must be a number, got {value!r}")
        if not number.is_finite():
            raise self._error(f"{label}: {field} must be finite, got {value!r}")
        return number
