from datetime import date

from django.core.management.base import BaseCommand, CommandError

from roadworks.exceptions import GeometryParseError
from roadworks.geometry import normalize
from roadworks.services.conflicts import DateRange, find_conflicts


def _parse_date(value: str, label: str) -> date:
    try:
        return date.fromisoformat(value)
    except ValueError as exc:
        raise CommandError(f"Invalid {label} '{value}'. Use YYYY-MM-DD.") from exc


class Command(BaseCommand):
    help = "List active assignments that overlap a candidate road geometry during a date range."

    def add_arguments(self, parser):
        parser.add_argument("geometry", help="WKT, GeoJSON or a JSON array of points/paths.")
        parser.add_argument("start_date", help="First day of the candidate assignment (YYYY-MM-DD).")
        parser.add_argument("end_date", help="Last day of the candidate assignment (YYYY-MM-DD).")
        parser.add_argument("--exclude", type=int, default=None, help="Assignment id to ignore.")

    def handle(self, *args, **options):
        try:
            geometry = normalize(options["geometry"])
        except GeometryParseError as exc:
            raise CommandError(f"Could not parse geometry: {exc}") from exc

        start = _parse_date(options["start_date"], "start date")
        end = _parse_date(options["end_date"], "end date")
        if start > end:
            raise CommandError("Start date must not be after end date.")

        conflicts = find_conflicts(geometry, DateRange(start, end), options["exclude"])
        if not conflicts:
            self.stdout.write(self.style.SUCCESS("No conflicting assignments found."))
            return

        self.stdout.write(self.style.WARNING(f"{len(conflicts)} conflicting assignment(s):"))
        for conflict in conflicts:
            self.stdout.write(
                f"  #{conflict.assignment_id}: {conflict.road_segment_name} | {conflict.contractor_name} | "
                f"{conflict.start_date} to {conflict.end_date} | "
                f"overlap {conflict.overlap_length_meters:.0f} m ({conflict.overlap_percentage}%) | "
                f"{conflict.project_type}"
            )
