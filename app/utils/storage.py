"""
File storage for uploads.

``STORAGE_BACKEND=local`` (default) writes under UPLOAD_FOLDER and serves the
files from /uploads/<key>. ``STORAGE_BACKEND=s3`` puts objects in an
S3-compatible bucket (MinIO / AWS) and hands out presigned GET URLs.
"""
import io
import os
import logging
from datetime import timedelta

from flask import current_app
from minio import Minio
from minio.error import S3Error

logger = logging.getLogger(__name__)

PRESIGNED_URL_TTL = timedelta(days=7)


class StorageError(Exception):
    pass


def get_minio_client():
    """Get configured MinIO client instance."""
    config = current_app.config
    return Minio(
        config['S3_ENDPOINT'],
        access_key=config['S3_ACCESS_KEY'],
        secret_key=config['S3_SECRET_KEY'],
        secure=config['S3_USE_SSL'],
    )


def _use_s3():
    return current_app.config.get('STORAGE_BACKEND', 'local') == 's3'


def _local_path(key):
    root = os.path.abspath(current_app.config['UPLOAD_FOLDER'])
    path = os.path.abspath(os.path.join(root, key))
    if not path.startswith(root + os.sep):
        raise StorageError(f"Invalid storage key: {key}")
    return path


def save_bytes(key, data, content_type):
    """
    Store bytes under ``key``.

    Returns:
        str: URL of the stored object; relative (/uploads/...) for local storage
    """
    if _use_s3():
        client = get_minio_client()
        bucket = current_app.config['S3_BUCKET']
        try:
            if not client.bucket_exists(bucket):
                client.make_bucket(bucket)
            client.put_object(bucket, key, io.BytesIO(data), length=len(data), content_type=content_type)
            url = client.presigned_get_object(bucket, key, expires=PRESIGNED_URL_TTL)
        except S3Error as e:
            raise StorageError(f"Failed to store object in bucket: {e}")
        logger.info("Stored %s (%d bytes) in bucket %s", key, len(data), bucket)
        return url

    path = _local_path(key)
    os.makedirs(os.path.dirname(path), exist_ok=True)
    with open(path, 'wb') as fh:
        fh.write(data)
    logger.info("Stored %s (%d bytes) on local disk", key, len(data))
    return f"/uploads/{key}"


def absolute_url(url, host_url):
    """Prefix relative local URLs with the request host"""
    if url.startswith('/'):
        return host_url.rstrip('/') + url
    return url
