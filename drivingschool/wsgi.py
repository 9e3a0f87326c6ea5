"""
WSGI config for the driving school booking backend.
"""
import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'drivingschool.settings.production')

application = get_wsgi_application()
