from os import getenv

if getenv('DJANGO_ENV') == 'production':
    from .production import *  # noqa: F401,F403
else:
    from .base import *  # noqa: F401,F403
