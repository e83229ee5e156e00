"""
Settings for the pytest run. In-memory SQLite, fast hashing, quiet logs.
"""

from .base import *

DEPLOYMENT_MODE = 'test'

DEBUG = False

DATABASES = {
    'default': {
        'ENGINE': 'django.db.backends.sqlite3',
        'NAME': ':memory:',
    }
}

PASSWORD_HASHERS = [
    'django.contrib.auth.hashers.MD5PasswordHasher',
]

JWT_SECRET_KEY = 'test-secret-key-with-enough-length-for-hs256'

# Pinned so the advisory and numbering tests do not depend on the environment
REORDER_BUFFER = 10
SALES_RATE_WINDOW_DAYS = 30
PURCHASE_ORDER_PREFIX = 'PO'
PURCHASE_ORDER_NUMBER_WIDTH = 6

LOGGING = {
    'version': 1,
    'disable_existing_loggers': False,
    'handlers': {
        'null': {
            'class': 'logging.NullHandler',
        },
    },
    'root': {
        'handlers': ['null'],
        'level': 'WARNING',
    },
}
