"""
Django settings for symptom_journal project.
"""

import os
from pathlib import Path
import environ

# Initialize environment variables
env = environ.Env(
    DEBUG=(bool, True),
    ALLOWED_HOSTS=(list, ['localhost', '127.0.0.1', '0.0.0.0']),
)

# Build paths inside the project like this: BASE_DIR / 'subdir'.
BASE_DIR = Path(__file__).resolve().parent.parent

# Read .env file if it exists
environ.Env.read_env(os.path.join(BASE_DIR, '.env'))

# SECURITY WARNING: keep the secret key used in production secret!
import warnings

SECRET_KEY = env('SECRET_KEY', default='')

# Only allow empty/insecure SECRET_KEY in local DEBUG mode
if not SECRET_KEY or SECRET_KEY.startswith('django-insecure'):
    if env.bool('DEBUG', default=False):
        import secrets
        SECRET_KEY = secrets.token_urlsafe(50)
        warnings.warn(
            "SECRET_KEY not set - using random key for this session. "
            "Set SECRET_KEY in .env for persistent sessions."
        )
    else:
        raise ValueError(
            "SECRET_KEY environment variable is required when DEBUG is off! "
            "Generate one with: python -c \"import secrets; print(secrets.token_urlsafe(50))\""
        )

# SECURITY WARNING: don't run with debug turned on in production!
DEBUG = env('DEBUG')

ALLOWED_HOSTS = env.list('ALLOWED_HOSTS')

if not DEBUG:
    if not ALLOWED_HOSTS or '*' in ALLOWED_HOSTS:
        raise ValueError(
            "ALLOWED_HOSTS must be explicitly set when DEBUG is off! "
            "Example: ALLOWED_HOSTS=journal.example.com"
        )

# Application definition
INSTALLED_APPS = [
    'django.contrib.contenttypes',
    'django.contrib.auth',

    # Third-party apps
    'rest_framework',

    # Our apps
    'eligibility.apps.EligibilityConfig',
]

MIDDLEWARE = [
    'django.middleware.security.SecurityMiddleware',
    'django.middleware.common.CommonMiddleware',
    'django.middleware.clickjacking.XFrameOptionsMiddleware',
]

ROOT_URLCONF = 'symptom_journal.urls'

WSGI_APPLICATION = 'symptom_journal.wsgi.application'

# Database
# The engine persists nothing; a database is only configured for Django itself.
_database_url = env('DATABASE_URL', default='')
if _database_url:
    DATABASES = {'default': env.db('DATABASE_URL')}
else:
    DATABASES = {
        'default': {
            'ENGINE': 'django.db.backends.sqlite3',
            'NAME': BASE_DIR / 'db.sqlite3',
        }
    }

# Internationalization
LANGUAGE_CODE = 'en-us'
TIME_ZONE = 'America/New_York'
USE_I18N = True
USE_TZ = True

DEFAULT_AUTO_FIELD = 'django.db.models.BigAutoField'

# ==============================================================================
# LOGGING CONFIGURATION
# ==============================================================================
LOGGING = {
    'version': 1,
    'disable_existing_loggers': False,
    'formatters': {
        'verbose': {
            'format': '{levelname} {asctime} {module} {process:d} {thread:d} {message}',
            'style': '{',
        },
        'simple': {
            'format': '{levelname} {message}',
            'style': '{',
        },
    },
    'handlers': {
        'console': {
            'level': 'INFO',
            'class': 'logging.StreamHandler',
            'formatter': 'simple'
        },
        'file': {
            'level': 'INFO',
            'class': 'logging.FileHandler',
            'filename': BASE_DIR / 'logs' / 'django.log',
            'formatter': 'verbose',
        },
    },
    'root': {
        'handlers': ['console'],
        'level': 'INFO',
    },
    'loggers': {
        'django': {
            'handlers': ['console', 'file'],
            'level': 'INFO',
            'propagate': False,
        },
        'eligibility': {
            'handlers': ['console', 'file'],
            'level': env('ELIGIBILITY_LOG_LEVEL', default='INFO'),
            'propagate': False,
        },
    },
}

# Create logs directory if it doesn't exist
(BASE_DIR / 'logs').mkdir(exist_ok=True)

# ==============================================================================
# SENTRY CONFIGURATION (Error Tracking)
# ==============================================================================
SENTRY_DSN = env('SENTRY_DSN', default='')
if SENTRY_DSN and not DEBUG:
    import sentry_sdk
    from sentry_sdk.integrations.django import DjangoIntegration

    sentry_sdk.init(
        dsn=SENTRY_DSN,
        integrations=[
            DjangoIntegration(),
        ],
        traces_sample_rate=0.1,
        send_default_pii=False,  # Journal entries are health data
    )

# ==============================================================================
# DJANGO REST FRAMEWORK
# ==============================================================================
REST_FRAMEWORK = {
    'DEFAULT_AUTHENTICATION_CLASSES': [],
    'DEFAULT_PERMISSION_CLASSES': [
        'rest_framework.permissions.AllowAny',
    ],
    'DEFAULT_RENDERER_CLASSES': [
        'rest_framework.renderers.JSONRenderer',
    ],
    'DEFAULT_PARSER_CLASSES': [
        'rest_framework.parsers.JSONParser',
    ],
    'UNAUTHENTICATED_USER': None,
}

# ==============================================================================
# SMC ELIGIBILITY SETTINGS
# ==============================================================================

# Rate year used when a caller doesn't pick one (see eligibility.smc_rates)
SMC_RATE_YEAR = env.int('SMC_RATE_YEAR', default=2026)

# ADL factors that, on their own, show a factual need for aid and attendance
ADL_FACTOR_THRESHOLD = env.int('ADL_FACTOR_THRESHOLD', default=3)

# Default recency window for symptom logs passed to the API/command
ADL_RECENT_WINDOW_DAYS = env.int('ADL_RECENT_WINDOW_DAYS', default=90)
