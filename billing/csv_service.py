"""
CSV batch billing service.

Provides BillCSVCalculator for computing many bills from one CSV upload, one
bill per row.
"""

import io
import logging
from typing import Optional

import pandas as pd

from billing.core.data import USAGE_FIELDS
from billing.core.types import DemandBillResult
from billing.exceptions import RateNotFoundError, ValidationError
from billing.services import calculate_bill
from tariffs.rate_table import RateTable

logger = logging.getLogger(__name__)

REQUIRED_COLUMNS = ("account", "tier", "tariff_type", "voltage_level", "ft_rate_satang")
PARAMETER_COLUMNS = ("ft_rate_satang", "peak_kvar", "highest_demand_charge_last_12m")
OPTIONAL_COLUMNS = ("peak_kvar", "highest_demand_charge_last_12m") + USAGE_FIELDS

# Columns of the resulting bills DataFrame, in order
BILL_COLUMNS = [
    "account",
    "plan_code",
    "tier",
    "tariff_type",
    "voltage_level",
    "energy_charge",
    "service_charge",
    "base_tariff",
    "calculated_demand_charge",
    "effective_demand_charge",
    "power_factor_charge",
    "fuel_adjustment_charge",
    "subtotal",
    "vat",
    "total",
]


class BillCSVCalculator:
    """Calculate bills for every row of a CSV file."""

    def __init__(self, csv_content: str, provider: str, rate_table: Optional[RateTable] = None):
        """
        Initialize calculator with CSV content and provider.

        Args:
            csv_content: CSV string, one billing account per row
            provider: 'mea' or 'pea'; applies to every row
            rate_table: table to resolve against; defaults to the table loaded
                at startup
        """
        self.csv_content = csv_content
        self.provider = provider
        self.rate_table = rate_table
        self.results = {
            "bills": pd.DataFrame(columns=BILL_COLUMNS),
            "errors": [],  # [(row_identifier, [error_messages]), ...]
        }

    def calculate(self) -> dict:
        """
        Parse the CSV and calculate one bill per valid row.

        Returns:
            Dictionary with "bills" (DataFrame with BILL_COLUMNS, one row per
            successful calculation) and "errors"
        """
        try:
            df = self._parse_csv()
        except ValueError as e:
            self.results["errors"].append(("CSV File", [str(e)]))
            return self.results

        if df.empty:
            self.results["errors"].append(("CSV File", ["No data rows found in CSV file"]))
            return self.results

        records = []
        for idx, row in df.iterrows():
            row_num = idx + 2  # 1-indexed, skip header
            record = self._calculate_row(row, row_num)
            if record is not None:
                records.append(record)

        if records:
            self.results["bills"] = pd.DataFrame.from_records(records, columns=BILL_COLUMNS)

        logger.info(
            "Calculated %d bills from CSV (%d rows with errors)",
            len(records),
            len(self.results["errors"]),
        )
        return self.results

    def _parse_csv(self) -> pd.DataFrame:
        """
        Parse CSV content with pandas, keeping every cell as text.

        Raises:
            ValueError: If CSV syntax is invalid or the header is wrong
        """
        try:
            df = pd.read_csv(io.StringIO(self.csv_content), dtype=str, keep_default_na=False)
        except pd.errors.EmptyDataError:
            raise ValueError("CSV file is empty or has no header row")
        except pd.errors.ParserError as e:
            raise ValueError(f"Invalid CSV syntax: {str(e)}")

        df.columns = [str(column).strip() for column in df.columns]
        self._validate_schema(df.columns.tolist())
        return df

    def _validate_schema(self, columns: list[str]):
        """
        Validate CSV header structure.

        Raises:
            ValueError: If a required column is missing or a column is unknown
        """
        actual_columns = set(columns)
        missing = set(REQUIRED_COLUMNS) - actual_columns
        extra = actual_columns - set(REQUIRED_COLUMNS) - set(OPTIONAL_COLUMNS)

        error_parts = []
        if missing:
            error_parts.append(f"Missing columns: {', '.join(sorted(missing))}")
        if extra:
            error_parts.append(f"Unexpected columns: {', '.join(sorted(extra))}")
        if error_parts:
            raise ValueError(
                f"Invalid CSV header. Required columns: {','.join(REQUIRED_COLUMNS)}. "
                f"{'; '.join(error_parts)}"
            )

    def _calculate_row(self, row_data: pd.Series, row_num: int) -> Optional[dict]:
        """
        Calculate the bill for a single row.

        Returns:
            Dictionary with BILL_COLUMNS keys if the row is valid, None if errors
        """
        row_dict = {k: str(v).strip() for k, v in row_data.items()}
        account = row_dict.get("account", "")
        row_identifier = f"Row {row_num}" + (f": {account}" if account else "")

        missing = [f"Missing required field '{f}'" for f in REQUIRED_COLUMNS if not row_dict.get(f)]
        if missing:
            self.results["errors"].append((row_identifier, missing))
            return None

        usage = {name: row_dict[name] for name in USAGE_FIELDS if row_dict.get(name)}
        parameters = {name: row_dict[name] for name in PARAMETER_COLUMNS if row_dict.get(name)}

        try:
            calculation = calculate_bill(
                self.provider,
                row_dict["tier"],
                row_dict["tariff_type"],
                row_dict["voltage_level"],
                usage,
                parameters,
                rate_table=self.rate_table,
            )
        except ValidationError as e:
            messages = [
                f"{field}: {message}"
                for field, field_messages in e.message_dict.items()
                for message in field_messages
            ]
            self.results["errors"].append((row_identifier, messages))
            return None
        except RateNotFoundError as e:
            self.results["errors"].append((row_identifier, [str(e)]))
            return None

        result = calculation.result
        record = {
            "account": account,
            "plan_code": calculation.rate.code,
            "tier": calculation.tier.value,
            "tariff_type": calculation.tariff_structure.value,
            "voltage_level": calculation.rate.voltage_band,
            "energy_charge": result.energy_charge,
            "service_charge": result.service_charge,
            "fuel_adjustment_charge": result.fuel_adjustment_charge,
            "vat": result.vat,
            "total": result.total,
        }
        if isinstance(result, DemandBillResult):
            record.update(
                calculated_demand_charge=result.calculated_demand_charge,
                effective_demand_charge=result.effective_demand_charge,
                power_factor_charge=result.power_factor_charge,
                subtotal=result.subtotal,
            )
        else:
            record["base_tariff"] = result.base_tariff
        return record
