"""Local storage for images and videos attached to posts."""

import logging
import uuid
from dataclasses import dataclass
from pathlib import Path

from fastapi import UploadFile

from salon_backend.core import config
from salon_backend.core.errors import StoreUnavailable, ValidationFailed

logger = logging.getLogger(__name__)

ALLOWED_EXTENSIONS = {'.jpeg', '.jpg', '.png', '.gif', '.webp', '.mp4', '.mov', '.avi', '.wmv', '.webm'}
ALLOWED_CONTENT_TYPES = {
    'image/jpeg',
    'image/png',
    'image/gif',
    'image/webp',
    'video/mp4',
    'video/quicktime',
    'video/x-msvideo',
    'video/x-ms-wmv',
    'video/webm',
}
CHUNK_SIZE = 1024 * 1024


@dataclass(frozen=True)
class StoredMedia:
    url: str
    media_type: str
    path: Path


def save_media(upload: UploadFile) -> StoredMedia:
    extension = Path(upload.filename or '').suffix.lower()
    content_type = (upload.content_type or '').lower()
    if extension not in ALLOWED_EXTENSIONS or content_type not in ALLOWED_CONTENT_TYPES:
        raise ValidationFailed('Only images (JPEG, PNG, GIF, WebP) and videos (MP4, MOV, AVI, WMV, WebM) are allowed')

    media_root = Path(config.MEDIA_ROOT)
    filename = f'{uuid.uuid4().hex}{extension}'
    destination = media_root / filename
    max_bytes = config.MEDIA_MAX_BYTES

    try:
        media_root.mkdir(parents=True, exist_ok=True)
        written = 0
        with destination.open('wb') as output:
            while True:
                chunk = upload.file.read(CHUNK_SIZE)
                if not chunk:
                    break
                written += len(chunk)
                if written > max_bytes:
                    raise ValidationFailed(f'File is too large. Maximum size is {max_bytes // (1024 * 1024)}MB')
                output.write(chunk)
    except ValidationFailed:
        destination.unlink(missing_ok=True)
        raise
    except OSError as exc:
        destination.unlink(missing_ok=True)
        logger.exception('Could not store uploaded media %s', upload.filename)
        raise StoreUnavailable('Could not store the uploaded file.') from exc

    logger.info('Stored %s upload %s (%d bytes)', content_type, filename, written)
    return StoredMedia(
        url=f'{config.MEDIA_URL_PREFIX}/{filename}',
        media_type='image' if content_type.startswith('image/') else 'video',
        path=destination,
    )


def delete_media(media_url: str | None) -> bool:
    """Remove a file previously returned by ``save_media``; external URLs are left alone."""
    prefix = f'{config.MEDIA_URL_PREFIX}/'
    if not media_url or not media_url.startswith(prefix):
        return False

    filename = media_url[len(prefix):]
    if not filename or '/' in filename or '\\' in filename or filename.startswith('.'):
        return False

    try:
        (Path(config.MEDIA_ROOT) / filename).unlink()
    except FileNotFoundError:
        return False
    except OSError:
        logger.exception('Could not delete media file %s', filename)
        return False
    return True
