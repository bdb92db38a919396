"""
Read-only lookup of rate entries.

The table is built once at startup (see tariffs.apps.TariffsConfig.ready) from
the YAML files listed in settings.TARIFF_RATE_FILES.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path
from types import MappingProxyType
from typing import Any, Optional

from billing.core.data import parse_provider, parse_tariff_structure, parse_tier
from billing.core.types import CustomerTier, Provider, RateEntry, TariffStructure
from billing.exceptions import ConfigurationError, RateNotFoundError
from tariffs.yaml_service import RateTableYAMLLoader


@dataclass(frozen=True, slots=True)
class ProviderInfo:
    """Metadata about a provider's rate table."""

    provider: Provider
    name: str
    voltage_bands: tuple[str, ...]


class RateTable:
    """Immutable index of rate entries by (provider, tier, structure, voltage band)."""

    def __init__(self, entries: Iterable[RateEntry], providers: Iterable[ProviderInfo] = ()):
        """
        Build the index.

        Raises:
            ConfigurationError: if two entries share a key or a plan code
        """
        by_key: dict[tuple, RateEntry] = {}
        by_code: dict[str, RateEntry] = {}
        for entry in entries:
            if entry.key in by_key:
                raise ConfigurationError(f"Duplicate rate entry for {entry.key}")
            if entry.code and entry.code.upper() in by_code:
                raise ConfigurationError(f"Duplicate tariff plan code {entry.code}")
            by_key[entry.key] = entry
            if entry.code:
                by_code[entry.code.upper()] = entry

        self._entries = tuple(by_key.values())
        self._by_key = MappingProxyType(by_key)
        self._by_code = MappingProxyType(by_code)
        self._providers = MappingProxyType({info.provider: info for info in providers})

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self):
        return iter(self._entries)

    @property
    def providers(self) -> tuple[ProviderInfo, ...]:
        return tuple(self._providers.values())

    def voltage_bands(self, provider: Provider | str) -> tuple[str, ...]:
        """Voltage bands offered by a provider, in table order."""
        provider = parse_provider(provider)
        if provider in self._providers:
            return self._providers[provider].voltage_bands
        return tuple(dict.fromkeys(e.voltage_band for e in self._entries if e.provider == provider))

    def get(
        self,
        provider: Provider,
        tier: CustomerTier,
        tariff_structure: TariffStructure,
        voltage_band: str,
    ) -> Optional[RateEntry]:
        return self._by_key.get((provider, tier, tariff_structure, voltage_band))

    def get_plan(self, code: str) -> RateEntry:
        """
        Look up a rate entry by tariff plan code (e.g. 'PEA_4.1.3_large_TOD').

        Raises:
            RateNotFoundError: if no entry has that code
        """
        entry = self._by_code.get(str(code).strip().upper())
        if entry is None:
            raise RateNotFoundError(f"Tariff plan not found: {code}", key=(code,))
        return entry

    def plans(
        self,
        provider: Provider | str | None = None,
        tier: CustomerTier | int | str | None = None,
    ) -> list[RateEntry]:
        """Entries with plan codes, optionally filtered, in table order."""
        provider = parse_provider(provider) if provider is not None else None
        tier = parse_tier(tier) if tier is not None else None
        return [
            entry
            for entry in self._entries
            if entry.code
            and (provider is None or entry.provider == provider)
            and (tier is None or entry.tier == tier)
        ]


def resolve_rate(
    table: RateTable,
    provider: Any,
    tier: Any,
    tariff_structure: Any,
    voltage_band: str,
) -> RateEntry:
    """
    Resolve the rate entry for a tariff combination.

    Identifiers may be enum members or their string forms ('mea', 'type-3', 'tou').

    Raises:
        ValidationError: if an identifier cannot be parsed at all
        RateNotFoundError: if the table has no entry for the combination
    """
    provider = parse_provider(provider)
    tier = parse_tier(tier)
    tariff_structure = parse_tariff_structure(tariff_structure)

    entry = table.get(provider, tier, tariff_structure, voltage_band)
    if entry is None:
        raise RateNotFoundError(
            f"No {provider.value.upper()} rate for {tier.display_name} "
            f"{tariff_structure.value} at voltage level {voltage_band!r}. "
            f"Valid voltage levels: {', '.join(table.voltage_bands(provider))}",
            key=(provider, tier, tariff_structure, voltage_band),
        )
    return entry


def load_rate_table(paths: Iterable[str | Path]) -> RateTable:
    """
    Load and validate every provider rate table.

    Raises:
        ConfigurationError: if any file is unreadable or malformed, or two
            files define the same provider
    """
    entries: list[RateEntry] = []
    providers: list[ProviderInfo] = []
    for path in paths:
        loader = RateTableYAMLLoader.from_path(path)
        loaded = loader.load()
        if any(info.provider == loader.provider for info in providers):
            raise ConfigurationError(
                f"Provider {loader.provider.value} is defined more than once", source=str(path)
            )
        providers.append(ProviderInfo(loader.provider, loader.name, loader.voltage_bands))
        entries.extend(loaded)

    if not entries:
        raise ConfigurationError("No rate tables configured (settings.TARIFF_RATE_FILES)")

    return RateTable(entries, providers)


def get_rate_table() -> RateTable:
    """The rate table loaded at startup."""
    from django.apps import apps

    return apps.get_app_config("tariffs").rate_table
