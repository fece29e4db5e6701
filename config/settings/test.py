# config/settings/test.py

from .base import *

# === TESTES ===

DEBUG = False

SECRET_KEY = 'autoflow-test'

ALLOWED_HOSTS = ['testserver', 'localhost']

DATABASES = {
    'default': {
        'ENGINE': 'django.db.backends.sqlite3',
        'NAME': ':memory:',
    }
}

CACHES = {
    'default': {
        'BACKEND': 'django.core.cache.backends.locmem.LocMemCache',
        'LOCATION': 'autoflow-test-cache',
    }
}

CHANNEL_LAYERS = {
    'default': {
        'BACKEND': 'channels.layers.InMemoryChannelLayer'
    }
}

# Arquivos estáticos sem manifest (não roda collectstatic)
STORAGES['staticfiles'] = {
    'BACKEND': 'django.contrib.staticfiles.storage.StaticFilesStorage',
}

PASSWORD_HASHERS = ['django.contrib.auth.hashers.MD5PasswordHasher']

# Sem arquivo de log em testes
LOGGING['handlers'] = {
    'console': {
        'level': 'WARNING',
        'class': 'logging.StreamHandler',
        'formatter': 'simple',
    },
}
LOGGING['root']['handlers'] = ['console']
LOGGING['root']['level'] = 'WARNING'
LOGGING['loggers'] = {
    'django': {'handlers': ['console'], 'level': 'ERROR', 'propagate': False},
    'apps': {'handlers': ['console'], 'level': 'CRITICAL', 'propagate': False},
}
