from pathlib import Path

from django.core.management.base import BaseCommand, CommandError

from billing.core.types import Provider
from billing.csv_service import BillCSVCalculator


class Command(BaseCommand):
    help = "Calculate electricity bills for every row of a CSV file"

    def add_arguments(self, parser):
        parser.add_argument("csv_path", type=Path, help="CSV file, one billing account per row")
        parser.add_argument(
            "--provider",
            required=True,
            choices=[p.value for p in Provider],
            help="Utility whose rate table applies to every row",
        )
        parser.add_argument(
            "--output",
            type=Path,
            help="Write the bills to this CSV file instead of standard output",
        )

    def handle(self, *args, **options):
        try:
            csv_content = options["csv_path"].read_text(encoding="utf-8")
        except OSError as e:
            raise CommandError(f"Cannot read {options['csv_path']}: {e}")

        results = BillCSVCalculator(csv_content, options["provider"]).calculate()
        bills = results["bills"]

        for row_identifier, messages in results["errors"]:
            for message in messages:
                self.stderr.write(self.style.ERROR(f"{row_identifier}: {message}"))

        if options["output"]:
            bills.to_csv(options["output"], index=False)
            self.stdout.write(
                self.style.SUCCESS(f"Wrote {len(bills)} bills to {options['output']}")
            )
        else:
            self.stdout.write(bills.to_csv(index=False))

        if results["errors"] and bills.empty:
            raise CommandError("No bills calculated")
