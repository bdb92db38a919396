"""
Normalization and validation of raw billing input.

Raw usage payloads arrive in several shapes (total only, peak/off-peak split,
three demand periods) and with either snake_case or camelCase keys. The
functions here turn them into UsageReading / BillingParameters, or raise a
single ValidationError listing every offending field.
"""

import re
from collections.abc import Mapping
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

from billing.exceptions import ValidationError

from .types import (
    TIER_TARIFF_STRUCTURES,
    BillingParameters,
    CustomerTier,
    Provider,
    TariffStructure,
    UsageReading,
)

USAGE_FIELDS = (
    "total_kwh",
    "on_peak_kwh",
    "off_peak_kwh",
    "peak_kw",
    "on_peak_kw",
    "off_peak_kw",
    "partial_peak_kw",
)

# Accepted spellings for each canonical usage field
USAGE_FIELD_ALIASES: dict[str, tuple[str, ...]] = {
    "total_kwh": ("total_kwh", "totalKwh", "kwh"),
    "on_peak_kwh": ("on_peak_kwh", "onPeakKwh"),
    "off_peak_kwh": ("off_peak_kwh", "offPeakKwh"),
    "peak_kw": ("peak_kw", "peakKw", "demand"),
    "on_peak_kw": ("on_peak_kw", "onPeakKw"),
    "off_peak_kw": ("off_peak_kw", "offPeakKw"),
    "partial_peak_kw": ("partial_peak_kw", "partialPeakKw"),
}

PARAMETER_FIELD_ALIASES: dict[str, tuple[str, ...]] = {
    "fuel_adjustment_rate_satang": ("ft_rate_satang", "ftRateSatang", "fuel_adjustment_rate_satang"),
    "peak_reactive_power_kvar": ("peak_kvar", "peakKvar", "peak_reactive_power_kvar"),
    "historical_peak_demand_charge": (
        "highest_demand_charge_last_12m",
        "highestDemandChargeLast12m",
        "historical_peak_demand_charge",
    ),
}

# Usage fields that must be present (after derivation) for each tier and structure.
# "peak_kw" is satisfied by the overall peak derived from any demand reading.
REQUIRED_USAGE_FIELDS: dict[tuple[CustomerTier, TariffStructure], tuple[str, ...]] = {
    (CustomerTier.SMALL, TariffStructure.NORMAL): ("total_kwh",),
    (CustomerTier.SMALL, TariffStructure.TOU): ("on_peak_kwh", "off_peak_kwh"),
    (CustomerTier.MEDIUM, TariffStructure.NORMAL): ("total_kwh", "peak_kw"),
    (CustomerTier.MEDIUM, TariffStructure.TOU): ("on_peak_kwh", "off_peak_kwh", "on_peak_kw"),
    (CustomerTier.LARGE, TariffStructure.TOD): (
        "total_kwh",
        "on_peak_kw",
        "partial_peak_kw",
        "off_peak_kw",
    ),
    (CustomerTier.LARGE, TariffStructure.TOU): ("on_peak_kwh", "off_peak_kwh", "on_peak_kw"),
    (CustomerTier.SPECIFIC, TariffStructure.NORMAL): ("total_kwh", "peak_kw"),
    (CustomerTier.SPECIFIC, TariffStructure.TOU): ("on_peak_kwh", "off_peak_kwh", "on_peak_kw"),
}

# 3, "type3", "type-3", "type_3", "type 3"
TIER_PATTERN = re.compile(r"(?:type[-_ ]?)?(\d+)")

# Largest accepted usage or parameter value. Every bill field computed from
# values up to this stays within the precision of the default decimal context.
MAX_INPUT_VALUE = Decimal("10000000000")


def parse_provider(value: Any) -> Provider:
    """Coerce 'mea' / 'PEA' / Provider into a Provider."""
    if isinstance(value, Provider):
        return value
    try:
        return Provider(str(value).strip().lower())
    except ValueError:
        choices = ", ".join(f'"{p.value}"' for p in Provider)
        raise ValidationError({"provider": f"Invalid provider {value!r}. Must be one of {choices}"})


def parse_tier(value: Any) -> CustomerTier:
    """Coerce 3 / '3' / 'type-3' / 'TYPE_3' into a CustomerTier."""
    if isinstance(value, CustomerTier):
        return value
    match = TIER_PATTERN.fullmatch(str(value).strip().lower())
    number = int(match.group(1)) if match else None
    if number in {t.value for t in CustomerTier}:
        return CustomerTier(number)

    choices = ", ".join(str(t.value) for t in CustomerTier)
    raise ValidationError(
        {"calculationType": f"Invalid calculation type {value!r}. Must be one of {choices}"}
    )


def parse_tariff_structure(value: Any) -> TariffStructure:
    """Coerce 'tou' / 'TOU' / TariffStructure into a TariffStructure."""
    if isinstance(value, TariffStructure):
        return value
    try:
        return TariffStructure(str(value).strip().lower())
    except ValueError:
        choices = ", ".join(f'"{s.value}"' for s in TariffStructure)
        raise ValidationError(
            {"tariffType": f"Invalid tariff type {value!r}. Must be one of {choices}"}
        )


def validate_tariff_structure(tier: CustomerTier, tariff_structure: TariffStructure) -> None:
    """
    Check that the tier offers the tariff structure.

    Raises:
        ValidationError: e.g. 'Invalid tariff type for Type 4. Must be "tod" or
            "tou", received: normal'
    """
    valid = TIER_TARIFF_STRUCTURES[tier]
    if tariff_structure not in valid:
        choices = '" or "'.join(s.value for s in valid)
        raise ValidationError(
            {
                "tariffType": (
                    f"Invalid tariff type for {tier.display_name}. "
                    f'Must be "{choices}", received: {tariff_structure.value}'
                )
            }
        )


def _to_decimal(value: Any) -> Decimal:
    """
    Convert a JSON/CSV scalar to Decimal.

    Notes:
        Floats go through str() to avoid embedding binary-float artefacts.

    Raises:
        ValueError: for booleans, non-numeric text, NaN and infinities
    """
    if isinstance(value, bool):
        raise ValueError("must be a number")
    if isinstance(value, Decimal):
        number = value
    elif isinstance(value, (int, float)):
        number = Decimal(str(value))
    elif isinstance(value, str):
        try:
            number = Decimal(value.strip())
        except InvalidOperation:
            raise ValueError("must be a number")
    else:
        raise ValueError("must be a number")

    if not number.is_finite():
        raise ValueError("must be a finite number")
    return number


def coerce_decimal(value: Any, field: str) -> Decimal:
    """Convert a single value to a non-negative Decimal or raise ValidationError."""
    errors: dict[str, list[str]] = {}
    number = _coerce_into(value, field, errors)
    if errors:
        raise ValidationError(errors)
    return number


def _coerce_into(value: Any, field: str, errors: dict[str, list[str]]) -> Optional[Decimal]:
    try:
        number = _to_decimal(value)
    except ValueError as e:
        errors.setdefault(field, []).append(f"{field} {e}, received: {value!r}")
        return None
    if number < 0:
        errors.setdefault(field, []).append(f"{field} must be non-negative, received: {value}")
        return None
    if number > MAX_INPUT_VALUE:
        errors.setdefault(field, []).append(
            f"{field} must not exceed {MAX_INPUT_VALUE:,}, received: {value}"
        )
        return None
    return number


def _pick(raw: Mapping, aliases: tuple[str, ...]) -> tuple[Optional[str], Any]:
    """Return (key, value) for the first alias present with a non-empty value."""
    for alias in aliases:
        if alias in raw and raw[alias] is not None and raw[alias] != "":
            return alias, raw[alias]
    return None, None


def normalize_usage(
    raw: Mapping[str, Any],
    tier: CustomerTier,
    tariff_structure: TariffStructure,
) -> UsageReading:
    """
    Validate a raw usage payload and convert it to a UsageReading.

    Derivations:
        - total_kwh = on_peak_kwh + off_peak_kwh when total_kwh is absent
        - overall_peak_kw = max of whichever demand readings are present

    Args:
        raw: usage mapping with snake_case or camelCase keys; values may be
            numbers or numeric strings
        tier: customer tier
        tariff_structure: tariff structure; must be offered by the tier

    Returns:
        UsageReading with all derived fields populated

    Raises:
        ValidationError: listing every missing, non-numeric, negative or
            inconsistent field
    """
    validate_tariff_structure(tier, tariff_structure)
    if not isinstance(raw, Mapping):
        raise ValidationError({"usage": "usage must be an object"})

    errors: dict[str, list[str]] = {}
    values: dict[str, Optional[Decimal]] = {}
    for name in USAGE_FIELDS:
        key, value = _pick(raw, USAGE_FIELD_ALIASES[name])
        values[name] = None if key is None else _coerce_into(value, key, errors)

    on_kwh, off_kwh = values["on_peak_kwh"], values["off_peak_kwh"]
    if values["total_kwh"] is None:
        if on_kwh is not None and off_kwh is not None:
            values["total_kwh"] = on_kwh + off_kwh
    elif on_kwh is not None and off_kwh is not None and values["total_kwh"] != on_kwh + off_kwh:
        errors.setdefault("total_kwh", []).append(
            f"total_kwh ({values['total_kwh']}) must equal on_peak_kwh + off_peak_kwh "
            f"({on_kwh + off_kwh})"
        )

    demand_readings = [
        values[name]
        for name in ("peak_kw", "on_peak_kw", "off_peak_kw", "partial_peak_kw")
        if values[name] is not None
    ]
    overall_peak_kw = max(demand_readings) if demand_readings else None

    for name in REQUIRED_USAGE_FIELDS[(tier, tariff_structure)]:
        present = overall_peak_kw is not None if name == "peak_kw" else values[name] is not None
        if not present and name not in errors and not _has_alias_error(name, errors):
            errors.setdefault(name, []).append(
                f"Missing required field: {name} "
                f"(required for {tier.display_name} {tariff_structure.value})"
            )

    if errors:
        raise ValidationError(errors)

    return UsageReading(
        total_kwh=values["total_kwh"] if values["total_kwh"] is not None else Decimal("0"),
        overall_peak_kw=overall_peak_kw if overall_peak_kw is not None else Decimal("0"),
        on_peak_kwh=on_kwh,
        off_peak_kwh=off_kwh,
        on_peak_kw=values["on_peak_kw"],
        off_peak_kw=values["off_peak_kw"],
        partial_peak_kw=values["partial_peak_kw"],
    )


def _has_alias_error(name: str, errors: dict[str, list[str]]) -> bool:
    return any(alias in errors for alias in USAGE_FIELD_ALIASES[name])


def normalize_parameters(raw: Mapping[str, Any], tier: CustomerTier) -> BillingParameters:
    """
    Validate billing parameters and convert them to BillingParameters.

    The FT rate is always required. Peak kVAR and the highest demand charge of
    the trailing 12 months are required for tiers 3/4/5 and ignored for tier 2.

    Raises:
        ValidationError: listing every missing, non-numeric or negative field
    """
    errors: dict[str, list[str]] = {}
    values: dict[str, Optional[Decimal]] = {}

    required = ["fuel_adjustment_rate_satang"]
    if tier.has_demand_charge:
        required += ["peak_reactive_power_kvar", "historical_peak_demand_charge"]

    for name in required:
        aliases = PARAMETER_FIELD_ALIASES[name]
        key, value = _pick(raw, aliases)
        if key is None:
            errors.setdefault(aliases[1], []).append(f"Missing required field: {aliases[1]}")
            continue
        values[name] = _coerce_into(value, key, errors)

    if errors:
        raise ValidationError(errors)

    return BillingParameters(**values)
