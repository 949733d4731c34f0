from pathlib import Path
import sys
import os
from dotenv import load_dotenv
import dj_database_url
from urllib.parse import urlparse, parse_qsl

# Build paths inside the project like this: BASE_DIR / 'subdir'.
BASE_DIR = Path(__file__).resolve().parent.parent

# Application packages live in listo_core.
CORE_DIR = BASE_DIR / "listo_core"
if CORE_DIR.exists() and str(CORE_DIR) not in sys.path:
    sys.path.insert(0, str(CORE_DIR))

# Load environment variables from .env (default) or .env.example (fallback)
_env_file = os.getenv("ENV_FILE")
if _env_file:
    load_dotenv(_env_file)
    load_dotenv(BASE_DIR / '.env.example', override=False)
else:
    load_dotenv(BASE_DIR / '.env')
    load_dotenv(BASE_DIR / '.env.example', override=False)


def _env_truthy(value, default=False):
    """Return True when the provided environment value represents truthy."""

    if value is None:
        return default
    return str(value).strip().lower() in {'1', 'true', 'yes', 'on'}


def _env_strip(value):
    return value.strip() if value else ''


def _env_int(name, default):
    try:
        value = int(os.getenv(name, str(default)))
    except (TypeError, ValueError):
        return default
    return value if value > 0 else default


def _env_float(name, default):
    try:
        value = float(os.getenv(name, str(default)))
    except (TypeError, ValueError):
        return default
    return value if value >= 0 else default


# SECURITY WARNING: keep the secret key used in production secret!
SECRET_KEY = os.getenv('SECRET_KEY', 'django-insecure-local-development-key')

DEBUG = _env_truthy(os.getenv('DEBUG'), True)

_DEFAULT_ALLOWED_HOSTS = [
    'localhost',
    '127.0.0.1',
    'testserver',
]

_allowed_hosts_env = os.getenv('ALLOWED_HOSTS')
_configured_hosts = (
    [h.strip() for h in _allowed_hosts_env.split(',') if h.strip()]
    if _allowed_hosts_env
    else []
)

ALLOWED_HOSTS = []
for _host in _DEFAULT_ALLOWED_HOSTS + _configured_hosts:
    if _host not in ALLOWED_HOSTS:
        ALLOWED_HOSTS.append(_host)

# CSRF trusted origins (comma-separated) e.g. https://listo.example.com
_csrf_env = os.getenv('CSRF_TRUSTED_ORIGINS', '')
if _csrf_env:
    CSRF_TRUSTED_ORIGINS = [o.strip() for o in _csrf_env.split(',') if o.strip()]
else:
    CSRF_TRUSTED_ORIGINS = [
        'http://localhost:8000',
        'http://127.0.0.1:8000',
    ]

# Branding defaults
DEFAULT_BUSINESS_NAME = _env_strip(os.getenv("DEFAULT_BUSINESS_NAME", "Listo")) or "Listo"
SUPPORT_EMAIL = _env_strip(os.getenv("SUPPORT_EMAIL", "support@listo.local")) or "support@listo.local"

# Callable cloud functions (OCR, translation, email delivery)
LISTO_FUNCTIONS_BASE_URL = _env_strip(os.getenv('LISTO_FUNCTIONS_BASE_URL', ''))
LISTO_FUNCTIONS_TOKEN = _env_strip(os.getenv('LISTO_FUNCTIONS_TOKEN', ''))
LISTO_FUNCTIONS_TIMEOUT = _env_int('LISTO_FUNCTIONS_TIMEOUT', 90)

# Upload and listing limits
LISTO_MAX_LOGO_BYTES = _env_int('LISTO_MAX_LOGO_BYTES', 5 * 1024 * 1024)
LISTO_MAX_DOCUMENT_BYTES = _env_int('LISTO_MAX_DOCUMENT_BYTES', 15 * 1024 * 1024)
LISTO_PAYROLL_ROW_LIMIT = _env_int('LISTO_PAYROLL_ROW_LIMIT', 500)
LISTO_COI_WARNING_DAYS = _env_int('LISTO_COI_WARNING_DAYS', 30)
LISTO_SIGNATURE_DEBOUNCE_SECONDS = _env_float('LISTO_SIGNATURE_DEBOUNCE_SECONDS', 0.1)
LISTO_LANGUAGE_COOKIE = 'listo_lang'

# Application definition

INSTALLED_APPS = [
    'django.contrib.staticfiles',
    'django.contrib.admin',
    'django.contrib.auth',
    'django.contrib.contenttypes',
    'django.contrib.sessions',
    'django.contrib.messages',
    'django.contrib.humanize',
    'portal.apps.PortalConfig',
    'crispy_forms',
    'crispy_bootstrap4',
    'corsheaders',
    'rest_framework',
    'rest_framework.authtoken',
    'api',
]

CRISPY_ALLOWED_TEMPLATE_PACKS = "bootstrap4"
CRISPY_TEMPLATE_PACK = "bootstrap4"

MIDDLEWARE = [
    'corsheaders.middleware.CorsMiddleware',
    'django.middleware.security.SecurityMiddleware',
    'whitenoise.middleware.WhiteNoiseMiddleware',
    'django.contrib.sessions.middleware.SessionMiddleware',
    'django.middleware.common.CommonMiddleware',
    'django.middleware.csrf.CsrfViewMiddleware',
    'django.contrib.auth.middleware.AuthenticationMiddleware',
    'portal.middleware.AuthStateMiddleware',
    'portal.middleware.LanguagePreferenceMiddleware',
    'django.contrib.messages.middleware.MessageMiddleware',
    'django.middleware.clickjacking.XFrameOptionsMiddleware',
]

CORS_ALLOWED_ORIGINS = [
    o.strip() for o in os.getenv('CORS_ALLOWED_ORIGINS', '').split(',') if o.strip()
]
CORS_ALLOW_CREDENTIALS = True

ROOT_URLCONF = 'listo_site.urls'

TEMPLATES = [
    {
        'BACKEND': 'django.template.backends.django.DjangoTemplates',
        'DIRS': [os.path.join(BASE_DIR, 'templates')],
        'APP_DIRS': True,
        'OPTIONS': {
            'context_processors': [
                'django.template.context_processors.debug',
                'django.template.context_processors.csrf',
                'django.template.context_processors.request',
                'django.contrib.auth.context_processors.auth',
                'django.contrib.messages.context_processors.messages',
                'portal.context_processors.branding_defaults',
                'portal.context_processors.listo_session',
            ],
        },
    },
]

WSGI_APPLICATION = 'listo_site.wsgi.application'

# Database

DATABASES = {
    'default': {
        'ENGINE': 'django.db.backends.sqlite3',
        'NAME': BASE_DIR / 'db.sqlite3',
    }
}

_force_sqlite = _env_truthy(os.getenv('FORCE_SQLITE'), False)

# Enable DATABASE_URL parsing when provided; fallback stays SQLite
_raw_db_url = os.getenv('DATABASE_URL', '')
_clean_db_url = _raw_db_url.strip().strip('"').strip("'")
if (not _force_sqlite) and _clean_db_url:
    try:
        DATABASES['default'] = dj_database_url.parse(
            _clean_db_url,
            conn_max_age=600,
            ssl_require=_env_truthy(os.getenv('DB_SSL_REQUIRE'), True),
        )
    except ValueError:
        # Fallback manual parse for Postgres URLs if dj_database_url rejects them
        _u = urlparse(_clean_db_url)
        if _u.scheme in ('postgres', 'postgresql', 'pgsql'):
            _opts = dict(parse_qsl(_u.query or ''))
            if _env_truthy(os.getenv('DB_SSL_REQUIRE'), True) and 'sslmode' not in _opts:
                _opts['sslmode'] = 'require'
            DATABASES['default'] = {
                'ENGINE': 'django.db.backends.postgresql',
                'NAME': (_u.path or '').lstrip('/'),
                'USER': _u.username,
                'PASSWORD': _u.password,
                'HOST': _u.hostname,
                'PORT': _u.port or 5432,
                'OPTIONS': _opts,
            }

if DATABASES['default']['ENGINE'] in {
    'django.db.backends.postgresql',
    'django.db.backends.postgresql_psycopg2',
}:
    DATABASES['default']['DISABLE_SERVER_SIDE_CURSORS'] = True


# Password validation

AUTH_PASSWORD_VALIDATORS = [
    {
        'NAME': 'django.contrib.auth.password_validation.UserAttributeSimilarityValidator',
    },
    {
        'NAME': 'django.contrib.auth.password_validation.MinimumLengthValidator',
        'OPTIONS': {
            'min_length': 8,
        }
    },
    {
        'NAME': 'django.contrib.auth.password_validation.CommonPasswordValidator',
    },
    {
        'NAME': 'django.contrib.auth.password_validation.NumericPasswordValidator',
    },
]

AUTHENTICATION_BACKENDS = [
    'portal.backends.EmailOrUsernameBackend',
    'django.contrib.auth.backends.ModelBackend',
]

REST_FRAMEWORK = {
    'DEFAULT_AUTHENTICATION_CLASSES': [
        'rest_framework.authentication.TokenAuthentication',
        'rest_framework.authentication.SessionAuthentication',
    ],
    'DEFAULT_PERMISSION_CLASSES': [
        'rest_framework.permissions.IsAuthenticated',
    ],
}

# Internationalization

LANGUAGE_CODE = 'en-us'
LANGUAGES = [
    ('en', 'English'),
    ('es', 'Español'),
]

TIME_ZONE = os.getenv('TIME_ZONE', 'America/New_York')

USE_I18N = True

USE_TZ = True

# Static files (CSS, JavaScript, Images)

STATIC_URL = '/static/'
STATICFILES_DIRS = [
    p for p in [os.path.join(BASE_DIR, 'static')] if os.path.isdir(p)
]
STATIC_ROOT = os.path.join(BASE_DIR, 'staticfiles')

STORAGES = {
    'default': {'BACKEND': 'django.core.files.storage.FileSystemStorage'},
    'staticfiles': {'BACKEND': 'django.contrib.staticfiles.storage.StaticFilesStorage'},
}

if not DEBUG:
    STORAGES['staticfiles'] = {'BACKEND': 'whitenoise.storage.CompressedStaticFilesStorage'}
    SECURE_PROXY_SSL_HEADER = ('HTTP_X_FORWARDED_PROTO', 'https')
    SESSION_COOKIE_SECURE = True
    CSRF_COOKIE_SECURE = True
    SECURE_SSL_REDIRECT = _env_truthy(os.getenv('SECURE_SSL_REDIRECT'), False)

# Media files (uploaded documents, logos, generated PDFs)
MEDIA_URL = '/media/'
MEDIA_ROOT = os.getenv('MEDIA_ROOT', os.path.join(BASE_DIR, 'media'))

# Logo uploads can be up to LISTO_MAX_LOGO_BYTES; documents up to 15 MB.
FILE_UPLOAD_MAX_MEMORY_SIZE = 5 * 1024 * 1024
DATA_UPLOAD_MAX_MEMORY_SIZE = LISTO_MAX_DOCUMENT_BYTES + 1024 * 1024

DEFAULT_AUTO_FIELD = 'django.db.models.BigAutoField'

LOGIN_REDIRECT_URL = 'portal:dashboard'
LOGIN_URL = 'portal:login'
LOGOUT_REDIRECT_URL = 'portal:home'

EMAIL_BACKEND = os.getenv('EMAIL_BACKEND', 'django.core.mail.backends.console.EmailBackend')
EMAIL_HOST = _env_strip(os.getenv('EMAIL_HOST', ''))
EMAIL_PORT = _env_int('EMAIL_PORT', 587)
EMAIL_USE_TLS = _env_truthy(os.getenv('EMAIL_USE_TLS'), True)
EMAIL_HOST_USER = _env_strip(os.getenv('EMAIL_HOST_USER', ''))
EMAIL_HOST_PASSWORD = _env_strip(os.getenv('EMAIL_HOST_PASSWORD', ''))
DEFAULT_FROM_EMAIL = _env_strip(os.getenv('DEFAULT_FROM_EMAIL', SUPPORT_EMAIL)) or SUPPORT_EMAIL

LOG_TO_FILE = _env_truthy(os.getenv('LOG_TO_FILE'), False)
LOG_DIR = Path(_env_strip(os.getenv('LOG_DIR', '')) or BASE_DIR / 'logs')
if LOG_TO_FILE:
    LOG_DIR.mkdir(parents=True, exist_ok=True)
LISTO_LOG_LEVEL = (_env_strip(os.getenv('LISTO_LOG_LEVEL', 'INFO')) or 'INFO').upper()
LOGGING = {
    'version': 1,
    'disable_existing_loggers': False,
    'formatters': {
        'verbose': {
            'format': '%(asctime)s %(levelname)s %(name)s: %(message)s',
        },
    },
    'handlers': {
        'console': {
            'class': 'logging.StreamHandler',
            'formatter': 'verbose',
        },
        **({
            'file': {
                'level': 'INFO',
                'class': 'logging.FileHandler',
                'filename': str(LOG_DIR / 'listo.log'),
                'formatter': 'verbose',
            }
        } if LOG_TO_FILE else {})
    },
    'root': {
        'handlers': ['console'],
        'level': 'INFO',
    },
    'loggers': {
        'portal': {
            'handlers': ['file'] if LOG_TO_FILE else [],
            'level': LISTO_LOG_LEVEL,
            'propagate': True,
        },
        'api': {
            'handlers': ['file'] if LOG_TO_FILE else [],
            'level': LISTO_LOG_LEVEL,
            'propagate': True,
        },
    },
}
