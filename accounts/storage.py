import logging
import os
import time
from django.conf import settings
from django.core.files.storage import default_storage
from django.utils.crypto import get_random_string
from django.utils.text import slugify

from utils import with_retry
from .exceptions import UploadFailed

logger = logging.getLogger(__name__)


class IdDocumentStorage:
    """
    Stores ID images in the configured Django storage backend and returns
    their durable URLs. Backend errors are retried a bounded number of times
    before surfacing as ``UploadFailed``.
    """

    def __init__(self, storage=None, max_retries=None, retry_delay=None, directory=None):
        config = settings.ID_VERIFICATION
        self.storage = storage or default_storage
        self.max_retries = config['UPLOAD_MAX_RETRIES'] if max_retries is None else max_retries
        self.retry_delay = config['UPLOAD_RETRY_DELAY'] if retry_delay is None else retry_delay
        self.directory = (directory or config['UPLOAD_DIRECTORY']).strip('/')

    def generate_path(self, user_id, side, filename):
        basename, extension = os.path.splitext(filename or '')
        slug = slugify(basename) or 'id'
        unique = f"{side}_{slug}_{int(time.time())}_{get_random_string(8)}{extension.lower()}"
        return f"{self.directory}/{user_id}/{unique}"

    def upload(self, file, user_id, side, field=None):
        path = self.generate_path(user_id, side, getattr(file, 'name', ''))
        logger.info(f"Uploading ID {side} image for user {user_id} to {path}")

        @with_retry(max_retries=self.max_retries, delay=self.retry_delay)
        def _save():
            file.seek(0)
            return self.storage.save(path, file)

        try:
            name = _save()
            url = self.storage.url(name)
        except Exception as e:
            logger.error(
                f"ID {side} image upload failed for user {user_id} after "
                f"{self.max_retries + 1} attempts: {e}"
            )
            raise UploadFailed(field=field) from e

        logger.info(f"ID {side} image uploaded for user {user_id}: {url}")
        return url

    def delete_url(self, url):
        """Best-effort removal of a stored image by URL; returns True on success."""
        if not url:
            return False
        name = self._name_from_url(url)
        try:
            self.storage.delete(name)
            return True
        except Exception as e:
            logger.warning(f"Could not delete orphaned ID image {url}: {e}")
            return False

    def _name_from_url(self, url):
        marker = f"{self.directory}/"
        index = url.find(marker)
        return url[index:] if index >= 0 else url
