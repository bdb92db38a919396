import logging

from django.apps import AppConfig
from django.conf import settings

logger = logging.getLogger(__name__)


class TariffsConfig(AppConfig):
    name = "tariffs"
    verbose_name = "Tariffs"

    rate_table = None

    def ready(self):
        """Load the rate table once; a malformed table stops the process here."""
        from tariffs.rate_table import load_rate_table

        self.rate_table = load_rate_table(settings.TARIFF_RATE_FILES)
        logger.info(
            "Rate table ready: %d entries for %s",
            len(self.rate_table),
            ", ".join(info.provider.value for info in self.rate_table.providers),
        )
