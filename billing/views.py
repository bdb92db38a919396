"""
JSON HTTP API for bill calculations and tariff plans.

Every response is a JSON object with a "success" flag. Client errors
(ValidationError, RateNotFoundError, malformed JSON) return 400 with the
offending fields; anything else returns 500 and is logged with its traceback.
"""

import json
import logging
from functools import wraps

from django.http import JsonResponse
from django.utils import timezone
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_GET, require_POST

from billing.adapters import (
    calculation_metadata,
    extract_usage,
    rate_entry_to_payload,
    result_to_payload,
)
from billing.exceptions import RateNotFoundError, ValidationError
from billing.forms import BillRequestForm, PlanBillRequestForm
from billing.services import calculate_bill, calculate_plan_bill
from tariffs.rate_table import get_rate_table

logger = logging.getLogger(__name__)


class MalformedRequest(Exception):
    """Raised when a request body is not valid JSON."""


def _error_response(message: str, fields: dict, status: int) -> JsonResponse:
    return JsonResponse(
        {
            "success": False,
            "error": message,
            "fields": fields,
            "timestamp": timezone.now().isoformat(),
        },
        status=status,
    )


def json_api(view):
    """Map billing exceptions raised by a view to JSON error responses."""

    @wraps(view)
    def wrapper(request, *args, **kwargs):
        try:
            return view(request, *args, **kwargs)
        except MalformedRequest as e:
            logger.warning("Malformed request to %s: %s", request.path, e)
            return _error_response(str(e), {}, status=400)
        except ValidationError as e:
            logger.warning("Invalid request to %s: %s", request.path, e)
            return _error_response(str(e), e.message_dict, status=400)
        except RateNotFoundError as e:
            logger.warning("Rate not found for %s: %s", request.path, e)
            return _error_response(str(e), {}, status=400)
        except Exception:
            logger.exception("Unexpected error handling %s", request.path)
            return _error_response("Internal server error", {}, status=500)

    return wrapper


def _json_body(request) -> dict:
    try:
        payload = json.loads(request.body or b"{}")
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise MalformedRequest(f"Malformed JSON body: {e}")
    if not isinstance(payload, dict):
        raise MalformedRequest("Request body must be a JSON object")
    return payload


def _bill_response(calculation) -> JsonResponse:
    return JsonResponse(
        {
            "success": True,
            "data": result_to_payload(calculation.result),
            "metadata": calculation_metadata(calculation.rate),
            "timestamp": timezone.now().isoformat(),
        }
    )


@require_GET
def health(request):
    return JsonResponse({"status": "ok", "rateEntries": len(get_rate_table())})


@csrf_exempt
@require_POST
@json_api
def calculate_by_type(request, provider, tier):
    """Calculate a bill for a provider, customer type, tariff type and voltage level."""
    payload = _json_body(request)
    form = BillRequestForm(data=payload)
    if not form.is_valid():
        raise form.validation_error()

    usage = extract_usage(payload)
    calculation = calculate_bill(
        provider,
        tier,
        form.cleaned_data["tariffType"],
        form.cleaned_data["voltageLevel"],
        usage,
        form.parameters(),
    )
    return _bill_response(calculation)


@csrf_exempt
@require_POST
@json_api
def calculate_by_plan(request, plan_code):
    """Calculate a bill for a tariff plan code such as MEA_2.2.1_small_TOU."""
    payload = _json_body(request)
    form = PlanBillRequestForm(data=payload)
    if not form.is_valid():
        raise form.validation_error()

    usage = extract_usage(payload)
    return _bill_response(calculate_plan_bill(plan_code, usage, form.parameters()))


@require_GET
@json_api
def tariff_plans(request):
    """List tariff plans, optionally filtered by ?provider= and ?tier=."""
    provider = request.GET.get("provider") or None
    tier = request.GET.get("tier") or None
    plans = get_rate_table().plans(provider=provider, tier=tier)
    return JsonResponse(
        {
            "success": True,
            "data": [rate_entry_to_payload(rate) for rate in plans],
            "metadata": {"count": len(plans), "provider": provider, "tier": tier},
        }
    )


@require_GET
@json_api
def tariff_plan_detail(request, plan_code):
    rate = get_rate_table().get_plan(plan_code)
    return JsonResponse({"success": True, "data": rate_entry_to_payload(rate)})
