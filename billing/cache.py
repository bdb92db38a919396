"""
Memoization of bill calculations.

compute_bill is pure, so identical inputs can be served from Django's cache
framework. Entries live in the "billing" cache alias and expire after
settings.BILLING_CACHE_TIMEOUT seconds.
"""

import hashlib
import json
import logging
from dataclasses import asdict
from decimal import Decimal

from django.conf import settings
from django.core.cache import caches

from billing.core.calculator import compute_bill
from billing.core.types import (
    BillingParameters,
    BillResult,
    CustomerTier,
    DemandBillResult,
    RateEntry,
    SimpleBillResult,
    TariffStructure,
    UsageReading,
)

logger = logging.getLogger(__name__)

CACHE_ALIAS = "billing"
KEY_PREFIX = "bill"

RESULT_CLASSES = {cls.__name__: cls for cls in (SimpleBillResult, DemandBillResult)}


def _text(value):
    return None if value is None else str(value)


def cache_key(
    tier: CustomerTier,
    tariff_structure: TariffStructure,
    rate: RateEntry,
    usage: UsageReading,
    params: BillingParameters,
) -> str:
    """
    Build a cache key from the full set of calculation inputs.

    The key hashes a canonical JSON document, so it does not depend on the
    order in which the request supplied its fields.
    """
    document = {
        "tier": tier.value,
        "tariff_structure": tariff_structure.value,
        "rate": {
            "key": [_text(part.value if hasattr(part, "value") else part) for part in rate.key],
            "code": rate.code,
            "coefficients": {name: _text(v) for name, v in rate.coefficients().items()},
            "thresholds": [_text(t.threshold_kwh) for t in rate.tiered_energy_rates or ()],
        },
        "usage": {name: _text(v) for name, v in asdict(usage).items()},
        "parameters": {name: _text(v) for name, v in asdict(params).items()},
    }
    canonical = json.dumps(document, sort_keys=True, separators=(",", ":"))
    return f"{KEY_PREFIX}:{hashlib.sha256(canonical.encode()).hexdigest()}"


def _dump(result: BillResult) -> tuple[str, dict[str, str]]:
    return type(result).__name__, {name: str(v) for name, v in asdict(result).items()}


def _load(stored: tuple[str, dict[str, str]]) -> BillResult:
    class_name, values = stored
    return RESULT_CLASSES[class_name](**{name: Decimal(v) for name, v in values.items()})


def cached_compute_bill(
    tier: CustomerTier,
    tariff_structure: TariffStructure,
    rate: RateEntry,
    usage: UsageReading,
    params: BillingParameters,
) -> BillResult:
    """
    compute_bill, served from the billing cache when the same inputs were seen
    within the timeout. Validation errors are never cached.
    """
    if not getattr(settings, "BILLING_CACHE_ENABLED", True):
        return compute_bill(tier, tariff_structure, rate, usage, params)

    cache = caches[CACHE_ALIAS]
    key = cache_key(tier, tariff_structure, rate, usage, params)
    stored = cache.get(key)
    if stored is not None:
        logger.debug("Bill cache hit for %s (%s)", rate.code or rate.key, key)
        return _load(stored)

    result = compute_bill(tier, tariff_structure, rate, usage, params)
    cache.set(key, _dump(result), timeout=getattr(settings, "BILLING_CACHE_TIMEOUT", 300))
    return result
