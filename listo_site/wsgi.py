"""
WSGI config for the Listo project.

It exposes the WSGI callable as a module-level variable named ``application``.
"""

import logging
import os

from django.conf import settings
from django.core.wsgi import get_wsgi_application
from whitenoise import WhiteNoise

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'listo_site.settings')

logger = logging.getLogger(__name__)

django_application = get_wsgi_application()

# OCR, translation and email features need the callable functions endpoint.
logger.info(
    "LISTO_FUNCTIONS_BASE_URL configured=%s",
    bool(getattr(settings, "LISTO_FUNCTIONS_BASE_URL", "")),
)

# Static assets are served in-process.
application = WhiteNoise(django_application)

static_root = getattr(settings, 'STATIC_ROOT', None)
if static_root and os.path.isdir(static_root):
    application.add_files(static_root, prefix='static/')

for extra_dir in getattr(settings, 'STATICFILES_DIRS', []):
    application.add_files(extra_dir, prefix='static/')
