import os

# Tests run against SQLite with the in-process geometry backend; see project/settings_test.py.
os.environ.setdefault("DJANGO_SETTINGS_MODULE", "project.settings_test")
os.environ.setdefault("USE_POSTGIS", "false")
