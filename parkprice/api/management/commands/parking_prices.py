"""Management command that prints current prices using the same stack as the API."""
from __future__ import annotations

import json
from typing import Any

from django.core.management.base import BaseCommand, CommandError

from parkprice.core.models import PersistenceError
from parkprice.core.services.factory import get_pipeline


class Command(BaseCommand):
    help = "Print the current dynamic price of every known spot as JSON"

    def add_arguments(self, parser) -> None:  # noqa: D401
        parser.add_argument("--group", type=str, help="Only print spots of this group id")
        parser.add_argument("--indent", type=int, default=None, help="Indent the JSON output")

    def handle(self, *args: Any, **options: Any) -> None:  # noqa: D401
        try:
            quotes = get_pipeline().quote_prices()
        except PersistenceError as exc:
            raise CommandError("Error calculating prices") from exc

        group_id = options.get("group")
        if group_id:
            quotes = [quote for quote in quotes if quote.group_id == group_id]
        payload = [quote.as_dict() for quote in quotes]
        self.stdout.write(json.dumps(payload, indent=options.get("indent")))
