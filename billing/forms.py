"""Forms for validating the envelope of bill calculation requests."""

from django import forms

from billing.core.data import parse_tariff_structure
from billing.exceptions import ValidationError


class PlanBillRequestForm(forms.Form):
    """Billing parameters shared by every calculation request."""

    ftRateSatang = forms.DecimalField(
        min_value=0,
        help_text="Fuel adjustment (FT) rate in satang per kWh",
    )
    peakKvar = forms.DecimalField(
        required=False,
        min_value=0,
        help_text="Peak reactive power (kVAR); required for types 3, 4 and 5",
    )
    highestDemandChargeLast12m = forms.DecimalField(
        required=False,
        min_value=0,
        help_text="Highest demand charge of the last 12 months; required for types 3, 4 and 5",
    )

    def parameters(self) -> dict:
        """Cleaned billing parameters, without the fields that were left out."""
        return {
            name: self.cleaned_data[name]
            for name in ("ftRateSatang", "peakKvar", "highestDemandChargeLast12m")
            if self.cleaned_data.get(name) is not None
        }

    def validation_error(self) -> ValidationError:
        return ValidationError({field: list(messages) for field, messages in self.errors.items()})


class BillRequestForm(PlanBillRequestForm):
    """Envelope of a request that selects the tariff by type, structure and voltage level."""

    tariffType = forms.CharField(
        max_length=16,
        help_text="normal, tou or tod",
    )
    voltageLevel = forms.CharField(
        max_length=16,
        help_text="Voltage level label, e.g. <12kV",
    )

    def clean_tariffType(self):
        try:
            return parse_tariff_structure(self.cleaned_data["tariffType"])
        except ValidationError as e:
            raise forms.ValidationError(e.message_dict["tariffType"])
