# school_fees/settings.py
from pathlib import Path
from datetime import timedelta
from decouple import config, Csv

BASE_DIR = Path(__file__).resolve().parent.parent

SECRET_KEY = config("SECRET_KEY", default="django-insecure-change-this")
DEBUG = config("DEBUG", default=True, cast=bool)

ALLOWED_HOSTS = config("ALLOWED_HOSTS", default="127.0.0.1,localhost,testserver", cast=Csv())

ROOT_URLCONF = "school_fees.urls"
DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"
AUTH_USER_MODEL = "accounts.User"


INSTALLED_APPS = [
    # Django defaults
    'django.contrib.admin',
    'django.contrib.auth',
    'django.contrib.contenttypes',
    'django.contrib.sessions',
    'django.contrib.messages',
    'django.contrib.staticfiles',

    # Third-party apps
    'rest_framework',
    'rest_framework_simplejwt.token_blacklist',

    # Your apps
    'apps.accounts',
    'apps.academics',
    'apps.admissions',
    'apps.finance.apps.FinanceConfig',
]


MIDDLEWARE = [
    'django.middleware.security.SecurityMiddleware',
    'django.contrib.sessions.middleware.SessionMiddleware',
    'django.middleware.common.CommonMiddleware',
    'django.middleware.csrf.CsrfViewMiddleware',
    'django.contrib.auth.middleware.AuthenticationMiddleware',
    'django.contrib.messages.middleware.MessageMiddleware',
    'django.middleware.clickjacking.XFrameOptionsMiddleware',
]

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
                'django.contrib.messages.context_processors.messages',
            ],
        },
    },
]

DATABASES = {
    'default': {
        'ENGINE': config("DATABASE_ENGINE", default='django.db.backends.sqlite3'),
        'NAME': config("DATABASE_NAME", default=str(BASE_DIR / "db.sqlite3")),
        'USER': config("DATABASE_USER", default=''),
        'PASSWORD': config("DATABASE_PASSWORD", default=''),
        'HOST': config("DATABASE_HOST", default=''),
        'PORT': config("DATABASE_PORT", default=''),
    }
}

LANGUAGE_CODE = 'en-us'
TIME_ZONE = config("TIME_ZONE", default='UTC')
USE_I18N = True
USE_TZ = True

STATIC_URL = '/static/'
STATIC_ROOT = BASE_DIR / "staticfiles"

# REST Framework
REST_FRAMEWORK = {
    'DEFAULT_AUTHENTICATION_CLASSES': [
        'rest_framework_simplejwt.authentication.JWTAuthentication',
        'rest_framework.authentication.SessionAuthentication',
    ],
    'DEFAULT_PERMISSION_CLASSES': [
        'rest_framework.permissions.IsAuthenticated',
    ],
    'EXCEPTION_HANDLER': 'apps.finance.exceptions.api_exception_handler',
    'COERCE_DECIMAL_TO_STRING': False,
}

# JWT Settings
SIMPLE_JWT = {
    'ACCESS_TOKEN_LIFETIME': timedelta(hours=1),
    'REFRESH_TOKEN_LIFETIME': timedelta(days=7),
    'ROTATE_REFRESH_TOKENS': True,
    'BLACKLIST_AFTER_ROTATION': True,
    'ALGORITHM': 'HS256',
    'SIGNING_KEY': SECRET_KEY,
    'VERIFYING_KEY': None,
    'AUTH_HEADER_TYPES': ('Bearer',),
    'USER_ID_FIELD': 'id',
    'USER_ID_CLAIM': 'user_id',
    'AUTH_TOKEN_CLASSES': ('rest_framework_simplejwt.tokens.AccessToken',),
    'TOKEN_TYPE_CLAIM': 'token_type',
}

# Fee policy. Every value can be overridden from the environment.
FEES = {
    # decimal rounding mode used for discounts and late fees
    'ROUNDING': config("FEES_ROUNDING", default='ROUND_HALF_UP'),
    # "informational" records the late fee only, "auto_apply" re-invoices it
    'LATE_FEE_POLICY': config("FEES_LATE_FEE_POLICY", default='informational'),
    # whether a completed refund gives the money back to the journal entries
    'REFUND_REOPENS_JOURNAL': config("FEES_REFUND_REOPENS_JOURNAL", default=False, cast=bool),
    'AUTO_ASSIGN_ON_ENROLLMENT': config("FEES_AUTO_ASSIGN_ON_ENROLLMENT", default=True, cast=bool),
    'RECEIPT_PREFIX': config("FEES_RECEIPT_PREFIX", default='RCP'),
}

LOGGING = {
    'version': 1,
    'disable_existing_loggers': False,
    'formatters': {
        'verbose': {
            'format': '{asctime} {levelname} {name} {message}',
            'style': '{',
        },
    },
    'handlers': {
        'console': {
            'class': 'logging.StreamHandler',
            'formatter': 'verbose',
        },
    },
    'loggers': {
        'apps': {
            'handlers': ['console'],
            'level': config("LOG_LEVEL", default='INFO'),
            'propagate': False,
        },
    },
}
