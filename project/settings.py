from pathlib import Path
import os
import warnings

BASE_DIR = Path(__file__).resolve().parent.parent
SECRET_KEY = os.environ.get('SECRET_KEY', 'change-me-in-production')
DEBUG = os.environ.get('DEBUG', 'true').lower() in ('1', 'true', 'yes')
ALLOWED_HOSTS = os.environ.get('ALLOWED_HOSTS', '*').split(',')
USE_POSTGIS = os.environ.get('USE_POSTGIS', 'true').lower() in ('1', 'true', 'yes')
ALLOW_SPATIAL_FALLBACK = os.environ.get('ALLOW_SPATIAL_FALLBACK', 'false').lower() in ('1', 'true', 'yes')

# -----------------------
# Windows GDAL + GEOS paths (OSGeo4W)
# -----------------------
GDAL_LIBRARY_PATH = os.environ.get("GDAL_LIBRARY_PATH")
GEOS_LIBRARY_PATH = os.environ.get("GEOS_LIBRARY_PATH")

if os.name == "nt":
    GDAL_LIBRARY_PATH = GDAL_LIBRARY_PATH or r"C:\OSGeo4W\bin\gdal312.dll"
    GEOS_LIBRARY_PATH = GEOS_LIBRARY_PATH or r"C:\OSGeo4W\bin\geos_c.dll"
    os.environ.setdefault("GDAL_DATA", r"C:\OSGeo4W\share\gdal")
    os.environ.setdefault("PROJ_LIB", r"C:\OSGeo4W\share\proj")


INSTALLED_APPS = [
    'django.contrib.auth',
    'django.contrib.contenttypes',
    'django.contrib.sessions',
    'django.contrib.staticfiles',
    'corsheaders',
    'rest_framework',
    'roadworks.apps.RoadworksConfig',
]

if USE_POSTGIS:
    def _spatial_libs_available() -> bool:
        try:
            from django.contrib.gis.gdal import libgdal  # noqa: F401
            from django.contrib.gis.geos import geos_version  # noqa: F401

            return True
        except Exception as exc:  # pragma: no cover - environment dependent
            if ALLOW_SPATIAL_FALLBACK:
                warnings.warn(
                    "USE_POSTGIS was requested but spatial libraries could not be loaded; "
                    "falling back to the SQLite configuration and the in-process geometry backend."
                )
                warnings.warn(str(exc))
                return False
            raise RuntimeError(
                "USE_POSTGIS is enabled but required spatial libraries could not be loaded. "
                "Install GDAL/GEOS system packages or set ALLOW_SPATIAL_FALLBACK=true to run without GIS."
            ) from exc

    if _spatial_libs_available():
        INSTALLED_APPS.insert(4, 'django.contrib.gis')
    else:
        USE_POSTGIS = False

MIDDLEWARE = [
    'django.middleware.security.SecurityMiddleware',
    'django.contrib.sessions.middleware.SessionMiddleware',
    'corsheaders.middleware.CorsMiddleware',
    'django.middleware.common.CommonMiddleware',
    'django.middleware.csrf.CsrfViewMiddleware',
    'django.contrib.auth.middleware.AuthenticationMiddleware',
    'django.middleware.clickjacking.XFrameOptionsMiddleware',
]

ROOT_URLCONF = 'project.urls'
TEMPLATES = [
    {
        'BACKEND': 'django.template.backends.django.DjangoTemplates',
        'DIRS': [],
        'APP_DIRS': True,
        'OPTIONS': {
            'context_processors': [
                'django.template.context_processors.debug',
                'django.template.context_processors.request',
                'django.contrib.auth.context_processors.auth',
            ],
        },
    },
]

WSGI_APPLICATION = 'project.wsgi.application'

if USE_POSTGIS:
    DATABASES = {
        'default': {
            'ENGINE': 'django.contrib.gis.db.backends.postgis',
            'NAME': os.environ.get('POSTGRES_DB', 'roadworks'),
            'USER': os.environ.get('POSTGRES_USER', 'postgres'),
            'PASSWORD': os.environ.get('POSTGRES_PASSWORD', 'postgres'),
            'HOST': os.environ.get('POSTGRES_HOST', 'localhost'),
            'PORT': os.environ.get('POSTGRES_PORT', '5432'),
            'TEST': {
                'NAME': os.environ.get('POSTGRES_TEST_DB', 'roadworks_test'),
            },
        }
    }
else:
    DATABASES = {
        'default': {
            'ENGINE': 'django.db.backends.sqlite3',
            'NAME': os.environ.get('SQLITE_NAME', str(BASE_DIR / 'db.sqlite3')),
            # Concurrent assignment writers wait on the database lock instead of failing fast.
            'OPTIONS': {'timeout': 20},
        }
    }

AUTH_PASSWORD_VALIDATORS = []

LANGUAGE_CODE = 'en-us'
TIME_ZONE = 'UTC'
USE_I18N = True
USE_TZ = True

STATIC_URL = '/static/'
STATIC_ROOT = BASE_DIR / "staticfiles"
DEFAULT_AUTO_FIELD = 'django.db.models.BigAutoField'

REST_FRAMEWORK = {
    'DEFAULT_PERMISSION_CLASSES': [
        'rest_framework.permissions.AllowAny',
    ],
    'DEFAULT_AUTHENTICATION_CLASSES': [],
}

CORS_ALLOW_ALL_ORIGINS = True

SESSION_ENGINE = os.environ.get(
    'SESSION_ENGINE', 'django.contrib.sessions.backends.signed_cookies'
)

# -----------------------
# Road snapping service
# -----------------------
GOOGLE_MAPS_API_KEY = os.environ.get('GOOGLE_MAPS_API_KEY', '')
SNAP_REFERER = os.environ.get('SNAP_REFERER', 'http://localhost:8000')
ROADS_API_URL = os.environ.get('ROADS_API_URL', 'https://roads.googleapis.com/v1/snapToRoads')

# -----------------------
# Assignment engine tolerances
# -----------------------
ROAD_ASSIGNMENT = {
    key: os.environ.get(key, default)
    for key, default in {
        'MIN_POINT_SPACING_M': 5.0,
        'MAX_CHUNK_POINTS': 100,
        'SNAP_RETRY_ATTEMPTS': 3,
        'SNAP_RETRY_DELAY_SECONDS': 1.0,
        'SNAP_TIMEOUT_SECONDS': 10.0,
        'PROXIMITY_THRESHOLD_M': 1.0,
        'GRID_SIZE_DEGREES': 0.00001,
        'LOCK_CELL_DEGREES': 0.01,
        'MAX_LOCK_CELLS': 64,
        'GEOMETRY_BACKEND': None,
    }.items()
}

ROADWORKS_LOG_LEVEL = os.environ.get('ROADWORKS_LOG_LEVEL', 'INFO').upper()

LOGGING = {
    'version': 1,
    'disable_existing_loggers': False,
    'formatters': {
        'simple': {
            'format': '%(asctime)s %(levelname)s %(name)s: %(message)s',
        },
    },
    'handlers': {
        'console': {
            'class': 'logging.StreamHandler',
            'formatter': 'simple',
        },
    },
    'loggers': {
        'roadworks': {
            'handlers': ['console'],
            'level': ROADWORKS_LOG_LEVEL,
            'propagate': False,
        },
    },
}
