"""Management command that rebuilds spot groups from the event log."""
from __future__ import annotations

from typing import Any

from django.core.management.base import BaseCommand, CommandError

from parkprice.core.models import PersistenceError
from parkprice.core.services.factory import get_pipeline


class Command(BaseCommand):
    help = "Re-cluster all known parking spots and store the resulting groups"

    def handle(self, *args: Any, **options: Any) -> None:  # noqa: D401
        try:
            groups = get_pipeline().recluster()
        except PersistenceError as exc:
            raise CommandError(f"Re-clustering failed: {exc}") from exc
        for group in groups:
            self.stdout.write(f"{group.group_id}\t{len(group.members)} spot(s)")
        self.stdout.write(self.style.SUCCESS(f"{len(groups)} group(s) stored"))
