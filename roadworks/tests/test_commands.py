from io import StringIO

from django.core.management import CommandError, call_command
from django.test import TestCase

from roadworks.geometry import normalize

from .helpers import FAR_ROAD, MAIN_ROAD, AssignmentDataMixin


class FindConflictsCommandTests(AssignmentDataMixin, TestCase):
    def run_command(self, *args):
        out = StringIO()
        call_command("find_conflicts", *args, stdout=out)
        return out.getvalue()

    def test_lists_conflicts(self):
        existing = self.create_assignment(segment_name="Bole Road maintenance")

        output = self.run_command(normalize(MAIN_ROAD).to_wkt(), "2025-01-15", "2025-01-30")

        self.assertIn("1 conflicting assignment(s)", output)
        self.assertIn(f"#{existing.id}: Bole Road maintenance", output)
        self.assertIn("(100%)", output)
        self.assertIn("Maintenance Work", output)

    def test_no_conflicts(self):
        self.create_assignment()
        output = self.run_command(normalize(FAR_ROAD).to_wkt(), "2025-01-15", "2025-01-30")
        self.assertIn("No conflicting assignments found.", output)

    def test_exclude_option(self):
        existing = self.create_assignment()
        output = self.run_command(normalize(MAIN_ROAD).to_wkt(), "2025-01-15", "2025-01-30", "--exclude", str(existing.id))
        self.assertIn("No conflicting assignments found.", output)

    def test_invalid_arguments(self):
        with self.assertRaisesMessage(CommandError, "Could not parse geometry"):
            self.run_command("POINT(38.75 9.0)", "2025-01-15", "2025-01-30")
        with self.assertRaisesMessage(CommandError, "Invalid start date"):
            self.run_command(normalize(MAIN_ROAD).to_wkt(), "15/01/2025", "2025-01-30")
        with self.assertRaises(CommandError):
            self.run_command(normalize(MAIN_ROAD).to_wkt(), "2025-02-01", "2025-01-30")
