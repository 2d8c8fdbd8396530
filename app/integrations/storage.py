"""
Artifact storage for export files.

Two providers are supported, selected by ``STORAGE_PROVIDER``:
- ``local``: files under ``STORAGE_LOCAL_DIR`` (default for development and tests)
- anything else (``s3``, ``b2``, ``minio``): an S3-compatible bucket through boto3
"""
import logging
from pathlib import Path

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from app.core.config import settings

logger = logging.getLogger(__name__)


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class StorageConnectionError(StorageError):
    pass


class StorageUploadError(StorageError):
    pass


class StorageDownloadError(StorageError):
    pass


def get_storage_client():
    """
    Get an S3-compatible storage client.

    Raises:
        StorageConnectionError: configuration is incomplete or the client cannot be built
    """
    if not all([settings.storage_access_key_id, settings.storage_secret_access_key, settings.storage_bucket_name]):
        raise StorageConnectionError(
            "Storage configuration is incomplete. Please set STORAGE_ACCESS_KEY_ID, "
            "STORAGE_SECRET_ACCESS_KEY, and STORAGE_BUCKET_NAME in your environment."
        )

    config = Config(
        signature_version='s3v4',
        retries={'max_attempts': 3, 'mode': 'standard'}
    )

    client_kwargs = {
        'service_name': 's3',
        'aws_access_key_id': settings.storage_access_key_id,
        'aws_secret_access_key': settings.storage_secret_access_key,
        'config': config,
    }
    if settings.storage_endpoint_url:
        client_kwargs['endpoint_url'] = settings.storage_endpoint_url
    if settings.storage_region:
        client_kwargs['region_name'] = settings.storage_region

    try:
        return boto3.client(**client_kwargs)
    except (BotoCoreError, ValueError) as e:
        logger.error(f"Failed to create storage client: {e}")
        raise StorageConnectionError(f"Failed to connect to storage: {str(e)}")


def _local_path(file_path: str) -> Path:
    root = Path(settings.storage_local_dir).resolve()
    target = (root / file_path).resolve()
    if root != target and root not in target.parents:
        raise StorageError(f"Refusing to access a path outside the storage root: {file_path}")
    return target


def _use_s3() -> bool:
    return settings.storage_provider.lower() != "local"


def save_file(file_content: bytes, file_name: str, folder: str = "exports") -> str:
    """
    Store ``file_content`` and return its storage path (``folder/file_name``).

    Raises:
        StorageUploadError: if the write fails
    """
    file_path = f"{folder}/{file_name}"
    if _use_s3():
        client = get_storage_client()
        try:
            client.put_object(
                Bucket=settings.storage_bucket_name,
                Key=file_path,
                Body=file_content
            )
        except ClientError as e:
            error_code = e.response.get('Error', {}).get('Code', 'Unknown')
            logger.error(f"Storage upload failed: {error_code} - {str(e)}")
            raise StorageUploadError(f"Upload failed: {str(e)}")
    else:
        target = _local_path(file_path)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(file_content)
        except OSError as e:
            logger.error(f"Local storage write failed for {file_path}: {e}")
            raise StorageUploadError(f"Upload failed: {str(e)}")

    logger.info("Stored %s (%d bytes)", file_path, len(file_content))
    return file_path


def read_file(file_path: str) -> bytes:
    """
    Read a previously stored file.

    Raises:
        StorageDownloadError: if the file is missing or cannot be read
    """
    if _use_s3():
        client = get_storage_client()
        try:
            response = client.get_object(
                Bucket=settings.storage_bucket_name,
                Key=file_path
            )
            return response['Body'].read()
        except ClientError as e:
            error_code = e.response.get('Error', {}).get('Code', 'Unknown')
            if error_code == 'NoSuchKey':
                raise StorageDownloadError(f"File not found: {file_path}")
            logger.error(f"Storage download failed: {error_code} - {str(e)}")
            raise StorageDownloadError(f"Download failed: {str(e)}")

    target = _local_path(file_path)
    if not target.is_file():
        raise StorageDownloadError(f"File not found: {file_path}")
    try:
        return target.read_bytes()
    except OSError as e:
        raise StorageDownloadError(f"Download failed: {str(e)}")


def delete_file(file_path: str) -> bool:
    """Remove a stored file; returns False when nothing was deleted."""
    try:
        if _use_s3():
            get_storage_client().delete_object(
                Bucket=settings.storage_bucket_name,
                Key=file_path
            )
            return True
        target = _local_path(file_path)
        if target.is_file():
            target.unlink()
            return True
        return False
    except (StorageError, ClientError, OSError) as e:
        logger.error(f"Error deleting file from storage: {str(e)}")
        return False
