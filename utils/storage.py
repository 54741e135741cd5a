"""
Filesystem-backed object storage with named buckets.

Uploaded objects are addressed by ``<bucket>/<path>`` and exposed under
``PUBLIC_STORAGE_URL``; the public URL is what callers persist.
"""

import logging
import os
from urllib.parse import urlparse

from werkzeug.utils import secure_filename

logger = logging.getLogger(__name__)

PROFILE_PICTURES_BUCKET = 'profile-pictures'
HEALTH_RECORDS_BUCKET = 'health-records'
BUCKETS = (PROFILE_PICTURES_BUCKET, HEALTH_RECORDS_BUCKET)


class StorageError(Exception):
    """Raised when an object cannot be written or removed"""


class BucketStorage:
    def __init__(self, root, public_url):
        self.root = root
        self.public_url = public_url.rstrip('/')

    def _object_path(self, bucket, object_path):
        if bucket not in BUCKETS:
            raise StorageError(f"Unknown bucket: {bucket}")
        parts = [secure_filename(part) for part in object_path.split('/') if part]
        if not parts or not all(parts):
            raise StorageError(f"Invalid object path: {object_path}")
        return os.path.join(self.root, bucket, *parts), '/'.join(parts)

    def upload(self, bucket, object_path, data: bytes) -> str:
        """Write an object and return its public URL"""
        full_path, clean_path = self._object_path(bucket, object_path)
        if os.path.exists(full_path):
            raise StorageError(f"Object already exists: {bucket}/{clean_path}")
        os.makedirs(os.path.dirname(full_path), exist_ok=True)
        with open(full_path, 'wb') as f:
            f.write(data)
        logger.info(f"Stored {len(data)} bytes at {bucket}/{clean_path}")
        return self.get_public_url(bucket, clean_path)

    def get_public_url(self, bucket, object_path) -> str:
        return f"{self.public_url}/{bucket}/{object_path}"

    def path_from_url(self, bucket, url):
        """Object path inside ``bucket`` for a public URL, or None if it is not one of ours"""
        prefix = f"{urlparse(self.public_url).path.rstrip('/')}/{bucket}/"
        path = urlparse(url).path
        if not path.startswith(prefix):
            return None
        return path[len(prefix):] or None

    def remove(self, bucket, object_paths):
        """
        Delete objects from a bucket.

        Raises:
            StorageError: If any object is missing or cannot be removed
        """
        for object_path in object_paths:
            full_path, clean_path = self._object_path(bucket, object_path)
            try:
                os.remove(full_path)
            except OSError as e:
                raise StorageError(f"Could not remove {bucket}/{clean_path}: {e}") from e
            logger.info(f"Removed {bucket}/{clean_path}")


def get_storage(app_config) -> BucketStorage:
    return BucketStorage(app_config['STORAGE_ROOT'], app_config['PUBLIC_STORAGE_URL'])
