"""
Tests for the JSON HTTP API.
"""

import json
from unittest import mock

from django.test import SimpleTestCase
from django.urls import reverse


class ViewTestCase(SimpleTestCase):
    def post_json(self, url, payload):
        return self.client.post(url, data=json.dumps(payload), content_type="application/json")


class HealthViewTests(SimpleTestCase):
    def test_health(self):
        response = self.client.get("/health")

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["status"], "ok")
        self.assertEqual(response.json()["rateEntries"], 44)


class CalculateByTypeViewTests(ViewTestCase):
    """Test POST /api/<provider>/calculate/type-<tier>."""

    def test_type_2_tou(self):
        response = self.post_json(
            "/api/mea/calculate/type-2",
            {
                "tariffType": "tou",
                "voltageLevel": "<12kV",
                "ftRateSatang": 19.72,
                "usage": {"on_peak_kwh": 300, "off_peak_kwh": 700},
            },
        )

        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertTrue(body["success"])
        self.assertEqual(body["data"]["baseTariff"], 3618.58)
        self.assertEqual(body["data"]["ftCharge"], 197.2)
        self.assertEqual(body["data"]["totalBill"], 4082.8846)
        self.assertEqual(body["metadata"]["planCode"], "MEA_2.2.1_small_TOU")

    def test_type_3_normal(self):
        response = self.post_json(
            "/api/mea/calculate/type-3",
            {
                "tariffType": "normal",
                "voltageLevel": "<12kV",
                "ftRateSatang": 19.72,
                "peakKvar": 0,
                "highestDemandChargeLast12m": 0,
                "usage": {"total_kwh": 1500, "peak_kw": 75},
            },
        )

        self.assertEqual(response.status_code, 200)
        data = response.json()["data"]
        self.assertEqual(data["calculatedDemandCharge"], 16612.5)
        self.assertEqual(data["subTotal"], 21983.19)
        self.assertEqual(data["grandTotal"], 23522.0133)

    def test_type_4_normal_rejected(self):
        response = self.post_json(
            "/api/pea/calculate/type-4",
            {
                "tariffType": "normal",
                "voltageLevel": "<22kV",
                "ftRateSatang": 0,
                "peakKvar": 0,
                "highestDemandChargeLast12m": 0,
                "usage": {"total_kwh": 1000, "peak_kw": 10},
            },
        )

        self.assertEqual(response.status_code, 400)
        body = response.json()
        self.assertFalse(body["success"])
        self.assertIn("tariffType", body["fields"])
        self.assertIn('Must be "tod" or "tou"', body["error"])

    def test_unknown_tier(self):
        response = self.post_json(
            "/api/mea/calculate/type-9",
            {"tariffType": "normal", "voltageLevel": "<12kV", "ftRateSatang": 0, "usage": {}},
        )

        self.assertEqual(response.status_code, 400)
        self.assertIn("calculationType", response.json()["fields"])

    def test_unknown_voltage_level(self):
        response = self.post_json(
            "/api/mea/calculate/type-2",
            {
                "tariffType": "normal",
                "voltageLevel": "<22kV",
                "ftRateSatang": 0,
                "usage": {"total_kwh": 100},
            },
        )

        self.assertEqual(response.status_code, 400)
        self.assertIn("12-24kV", response.json()["error"])

    def test_envelope_errors(self):
        """Missing FT rate and a negative kVAR are both reported by field."""
        response = self.post_json(
            "/api/mea/calculate/type-3",
            {"tariffType": "tou", "voltageLevel": "<12kV", "peakKvar": -1, "usage": {}},
        )

        self.assertEqual(response.status_code, 400)
        self.assertEqual(set(response.json()["fields"]), {"ftRateSatang", "peakKvar"})

    def test_missing_usage_fields(self):
        response = self.post_json(
            "/api/mea/calculate/type-3",
            {
                "tariffType": "tou",
                "voltageLevel": "<12kV",
                "ftRateSatang": 0,
                "peakKvar": 0,
                "highestDemandChargeLast12m": 0,
                "usage": {"on_peak_kwh": 10},
            },
        )

        self.assertEqual(response.status_code, 400)
        self.assertEqual(set(response.json()["fields"]), {"off_peak_kwh", "on_peak_kw"})

    def test_malformed_json(self):
        response = self.client.post(
            "/api/mea/calculate/type-2", data="{not json", content_type="application/json"
        )

        self.assertEqual(response.status_code, 400)
        self.assertIn("Malformed JSON", response.json()["error"])

    def test_get_not_allowed(self):
        response = self.client.get("/api/mea/calculate/type-2")

        self.assertEqual(response.status_code, 405)

    def test_unexpected_error_returns_500(self):
        with mock.patch("billing.views.calculate_bill", side_effect=RuntimeError("boom")):
            with self.assertLogs("billing.views", level="ERROR"):
                response = self.post_json(
                    "/api/mea/calculate/type-2",
                    {
                        "tariffType": "normal",
                        "voltageLevel": "<12kV",
                        "ftRateSatang": 0,
                        "usage": {"total_kwh": 100},
                    },
                )

        self.assertEqual(response.status_code, 500)
        self.assertEqual(response.json()["error"], "Internal server error")


class CalculateByPlanViewTests(ViewTestCase):
    """Test POST /api/calculate/<plan_code>."""

    def test_plan_bill(self):
        response = self.post_json(
            reverse("billing:calculate_by_plan", args=["PEA_4.1.3_large_TOD"]),
            {
                "ftRateSatang": 0,
                "peakKvar": 0,
                "highestDemandChargeLast12m": 0,
                "usage": {
                    "total_kwh": 1000,
                    "on_peak_kw": 10,
                    "partial_peak_kw": 10,
                    "off_peak_kw": 10,
                },
            },
        )

        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(body["metadata"]["voltageLevel"], "<22kV")
        # 10 × 332.71 + 10 × 68.22
        self.assertEqual(body["data"]["calculatedDemandCharge"], 4009.3)

    def test_unknown_plan(self):
        response = self.post_json(
            reverse("billing:calculate_by_plan", args=["MEA_9.9.9_huge_TOU"]),
            {"ftRateSatang": 0, "usage": {}},
        )

        self.assertEqual(response.status_code, 400)
        self.assertIn("Tariff plan not found", response.json()["error"])


class TariffPlanViewTests(SimpleTestCase):
    def test_list_all(self):
        response = self.client.get(reverse("billing:tariff_plans"))

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["metadata"]["count"], 44)

    def test_list_filtered(self):
        response = self.client.get(reverse("billing:tariff_plans"), {"provider": "pea", "tier": "4"})

        codes = [plan["code"] for plan in response.json()["data"]]
        self.assertEqual(len(codes), 6)
        self.assertTrue(all(code.startswith("PEA_4.") for code in codes))

    def test_list_invalid_filter(self):
        response = self.client.get(reverse("billing:tariff_plans"), {"tier": "type-1"})

        self.assertEqual(response.status_code, 400)

    def test_detail(self):
        response = self.client.get(
            reverse("billing:tariff_plan_detail", args=["mea_3.2.3_medium_tou"])
        )

        self.assertEqual(response.status_code, 200)
        data = response.json()["data"]
        self.assertEqual(data["code"], "MEA_3.2.3_medium_TOU")
        self.assertEqual(data["rates"]["demandRate"], 210.8)
