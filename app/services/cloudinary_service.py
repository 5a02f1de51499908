"""
Cloudinary storage provider.
Object keys map to Cloudinary public IDs (the key without its file extension).
"""
import cloudinary
import cloudinary.uploader
from cloudinary.exceptions import Error as CloudinaryError
from app.config import settings
import logging
import asyncio
from typing import Any, Callable, Dict

logger = logging.getLogger(__name__)

cloudinary.config(
    cloud_name=settings.CLOUDINARY_CLOUD_NAME,
    api_key=settings.CLOUDINARY_API_KEY,
    api_secret=settings.CLOUDINARY_API_SECRET,
    secure=True
)


def public_id_for_key(key: str) -> str:
    """2024/05/abc-photo.jpg -> 2024/05/abc-photo"""
    head, _, last = key.rpartition("/")
    if "." in last:
        last = last.rsplit(".", 1)[0]
    return f"{head}/{last}" if head else last


async def _with_retries(action: str, call: Callable[..., Dict[str, Any]], *args, max_retries: int = 3, **kwargs):
    """
    Run a blocking SDK call off the event loop, retrying Cloudinary errors
    with 1s, 2s, 4s... backoff. The last error is re-raised.
    """
    for attempt in range(1, max_retries + 1):
        try:
            return await asyncio.to_thread(call, *args, **kwargs)
        except CloudinaryError as e:
            if attempt == max_retries:
                logger.error(f"Cloudinary {action} gave up after {max_retries} attempts: {e}")
                raise
            logger.warning(f"Cloudinary {action} failed (attempt {attempt}/{max_retries}): {e}")
            await asyncio.sleep(2 ** (attempt - 1))


async def upload_image(data: bytes, key: str, max_retries: int = 3) -> Dict[str, Any]:
    """
    Store image bytes under the public ID derived from `key`.

    Returns url, public_id, format, width, height and bytes from the upload
    response. Raises CloudinaryError once retries are exhausted.
    """
    public_id = public_id_for_key(key)
    result = await _with_retries(
        f"upload of {public_id}",
        cloudinary.uploader.upload,
        data,
        max_retries=max_retries,
        public_id=public_id,
        overwrite=False,
        resource_type="image",
    )
    logger.info(f"Uploaded {result['public_id']} to Cloudinary")
    return {
        "url": result["secure_url"],
        "public_id": result["public_id"],
        "format": result.get("format"),
        "width": result.get("width"),
        "height": result.get("height"),
        "bytes": result.get("bytes"),
    }


async def delete_image(key: str, max_retries: int = 3) -> Dict[str, Any]:
    """Destroy the asset and invalidate CDN copies. "not found" is not an error."""
    public_id = public_id_for_key(key)
    result = await _with_retries(
        f"delete of {public_id}",
        cloudinary.uploader.destroy,
        public_id,
        max_retries=max_retries,
        invalidate=True,
        resource_type="image",
    )
    outcome = result.get("result")
    if outcome in ("ok", "not found"):
        logger.info(f"Cloudinary delete of {public_id}: {outcome}")
    else:
        logger.warning(f"Cloudinary delete of {public_id} returned {result}")
    return result


def get_public_url(key: str) -> str:
    # f_auto/q_auto delivery: the CDN picks format and compression per client
    return cloudinary.CloudinaryImage(public_id_for_key(key)).build_url(
        transformation=[{"quality": "auto", "fetch_format": "auto"}],
        secure=True,
    )


def validate_cloudinary_config() -> bool:
    return bool(
        settings.CLOUDINARY_CLOUD_NAME
        and settings.CLOUDINARY_API_KEY
        and settings.CLOUDINARY_API_SECRET
    )
