# connectchain_admin/media.py
"""
External media storage.

The admin backend only needs two calls from a media store: upload bytes and
get back a stable (url, storage_id) pair, and delete by storage_id. The
storage_id is persisted next to the url so deletion never depends on the
url format.
"""
import time
from pathlib import Path
from typing import List, NamedTuple, Optional

from connectchain_admin.config import config
from connectchain_admin.exceptions import UploadError, ConfigError
from connectchain_admin.logging_setup import get_logger

logger = get_logger('media')


class MediaUpload(NamedTuple):
    """An uploaded file received from the HTTP layer."""
    filename: str
    data: bytes
    content_type: Optional[str] = None


class StoredMedia(NamedTuple):
    url: str
    storage_id: str


class MediaStore:
    """Interface for external media stores."""

    def upload(self, data: bytes, folder: str, suggested_id: str) -> StoredMedia:
        raise NotImplementedError

    def delete(self, storage_id: str) -> bool:
        raise NotImplementedError


class LocalMediaStore(MediaStore):
    """Store media as files under a directory served at a public base URL."""

    def __init__(self, directory: str, public_base_url: str = ''):
        self.directory = Path(directory).resolve()
        self.public_base_url = public_base_url.rstrip('/')

    def _path_for(self, storage_id: str) -> Path:
        path = (self.directory / storage_id).resolve()
        if self.directory not in path.parents:
            raise UploadError(f"Invalid storage id: {storage_id}")
        return path

    def upload(self, data: bytes, folder: str, suggested_id: str) -> StoredMedia:
        storage_id = f"{folder}/{suggested_id}"
        path = self._path_for(storage_id)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with open(path, 'wb') as f:
                f.write(data)
        except OSError as e:
            raise UploadError(f"Failed to store {storage_id}: {e}")

        url = f"{self.public_base_url}/{storage_id}" if self.public_base_url else str(path)
        logger.info(f"Stored media {storage_id} ({len(data)} bytes)")
        return StoredMedia(url=url, storage_id=storage_id)

    def delete(self, storage_id: str) -> bool:
        path = self._path_for(storage_id)
        if not path.exists():
            return False
        path.unlink()
        logger.info(f"Deleted media {storage_id}")
        return True


class CloudinaryMediaStore(MediaStore):
    """Media store backed by the Cloudinary upload API."""

    def __init__(self, cloud_name: str, api_key: str, api_secret: str):
        import cloudinary
        import cloudinary.uploader

        cloudinary.config(
            cloud_name=cloud_name,
            api_key=api_key,
            api_secret=api_secret,
            secure=True
        )
        self._uploader = cloudinary.uploader

    def upload(self, data: bytes, folder: str, suggested_id: str) -> StoredMedia:
        try:
            result = self._uploader.upload(
                data,
                folder=folder,
                public_id=suggested_id,
                resource_type='image',
                quality='auto',
                fetch_format='auto'
            )
        except Exception as e:
            raise UploadError(f"Failed to upload {suggested_id}: {e}")

        return StoredMedia(url=result['secure_url'], storage_id=result['public_id'])

    def delete(self, storage_id: str) -> bool:
        result = self._uploader.destroy(storage_id)
        return result.get('result') == 'ok'


def get_media_store() -> MediaStore:
    """Build the media store selected by the MEDIA configuration section."""
    media_config = config.media_config
    backend = media_config['backend']

    if backend == 'local':
        return LocalMediaStore(media_config['local_directory'], media_config['public_base_url'])

    if backend == 'cloudinary':
        if not media_config['cloud_name']:
            raise ConfigError("MEDIA.cloud_name is required for the cloudinary backend")
        return CloudinaryMediaStore(
            media_config['cloud_name'],
            media_config['api_key'],
            media_config['api_secret']
        )

    raise ConfigError(f"Unknown media backend: {backend}")


def upload_all(store: MediaStore, uploads: List[MediaUpload], folder: str, prefix: str) -> List[StoredMedia]:
    """Upload files one by one, undoing earlier uploads if a later one fails.

    Args:
        store: Media store
        uploads: Files to upload
        folder: Target folder
        prefix: Prefix for the suggested storage ids

    Returns:
        Stored media in upload order

    Raises:
        UploadError if any upload fails
    """
    stored = []
    stamp = int(time.time() * 1000)
    try:
        for index, upload in enumerate(uploads):
            suggested_id = f"{prefix}_{stamp}_{index}"
            try:
                stored.append(store.upload(upload.data, folder, suggested_id))
            except UploadError as e:
                raise UploadError(f"Failed to upload {upload.filename}: {e.message}")
            except Exception as e:
                raise UploadError(f"Failed to upload {upload.filename}: {e}")
    except UploadError:
        discard_media(store, [item.storage_id for item in stored])
        raise
    return stored


def discard_media(store: MediaStore, storage_ids: List[str]) -> None:
    """Best-effort single attempt delete, used to compensate failed writes."""
    for storage_id in storage_ids:
        try:
            store.delete(storage_id)
        except Exception as e:
            logger.warning(f"Could not clean up uploaded media {storage_id}: {e}")


def purge_media(store: MediaStore, storage_ids: List[str], max_retries: Optional[int] = None,
                backoff_seconds: Optional[float] = None, sleep=time.sleep) -> List[str]:
    """Delete media that is no longer referenced, retrying with backoff.

    Failures here only leak storage, so they are logged and never raised.

    Args:
        store: Media store
        storage_ids: Storage ids to delete
        max_retries: Attempts per id, defaults to MEDIA.cleanup_max_retries
        backoff_seconds: Base delay, doubled after each failed attempt
        sleep: Sleep function

    Returns:
        Storage ids that could not be deleted
    """
    media_config = config.media_config
    if max_retries is None:
        max_retries = media_config['cleanup_max_retries']
    if backoff_seconds is None:
        backoff_seconds = media_config['cleanup_backoff_seconds']
    max_retries = max(1, max_retries)

    leaked = []
    for storage_id in storage_ids:
        for attempt in range(1, max_retries + 1):
            try:
                store.delete(storage_id)
                break
            except Exception as e:
                logger.warning(f"Media delete failed (attempt {attempt}) id={storage_id}: {e}")
                if attempt < max_retries:
                    sleep(backoff_seconds * (2 ** (attempt - 1)))
                else:
                    logger.error(f"Giving up on media delete id={storage_id}")
                    leaked.append(storage_id)
    return leaked
