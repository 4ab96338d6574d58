"""Image hosting collaborator (Cloudinary) with a time-boxed async wrapper."""
import abc
import asyncio
import functools
from typing import Any, Optional

import cloudinary
import cloudinary.uploader

from .errors import UploadFailed
from .logging_config import configure_logging

logger = configure_logging()

MESSAGE_IMAGE_OPTIONS = {"width": 500, "height": 500, "crop": "fill", "quality": "auto:good"}
PROFILE_IMAGE_OPTIONS = {"width": 500, "height": 500, "crop": "fill"}


class ImageHost(abc.ABC):
    """Accepts an encoded image payload and returns a stable URL."""

    @abc.abstractmethod
    def upload(self, data: str, folder: str, **options: Any) -> str:
        """Return the hosted URL for ``data`` or raise on failure."""


class CloudinaryImageHost(ImageHost):
    def __init__(self, cloud_name: str, api_key: str, api_secret: str, timeout: Optional[float] = None):
        cloudinary.config(cloud_name=cloud_name, api_key=api_key, api_secret=api_secret, secure=True)
        self.timeout = timeout

    def upload(self, data: str, folder: str, **options: Any) -> str:
        if self.timeout is not None:
            options.setdefault("timeout", self.timeout)
        response = cloudinary.uploader.upload(data, folder=folder, **options)
        url = response.get("secure_url") or response.get("url")
        if not url:
            raise RuntimeError("Cloudinary response carried no URL")
        return url


class UnconfiguredImageHost(ImageHost):
    def upload(self, data: str, folder: str, **options: Any) -> str:
        raise RuntimeError("Image hosting is not configured")


async def upload_image(host: ImageHost, data: str, folder: str, timeout: float, **options: Any) -> str:
    """Upload in a worker thread; any error or timeout becomes ``UploadFailed``.

    On timeout the caller stops waiting at once; the abandoned upload may still
    finish in the background but its URL is never stored.
    """
    loop = asyncio.get_running_loop()
    pending = loop.run_in_executor(None, functools.partial(host.upload, data, folder, **options))
    try:
        url = await asyncio.wait_for(pending, timeout=timeout)
    except asyncio.TimeoutError as exc:
        logger.warning("IMAGE_UPLOAD_FAIL folder=%s reason=timeout timeout=%s", folder, timeout)
        raise UploadFailed("Image upload timed out") from exc
    except Exception as exc:  # noqa: BLE001
        logger.warning("IMAGE_UPLOAD_FAIL folder=%s reason=%s", folder, exc)
        raise UploadFailed("Image upload failed") from exc
    if not url:
        logger.warning("IMAGE_UPLOAD_FAIL folder=%s reason=empty_url", folder)
        raise UploadFailed("Image upload failed")
    logger.info("IMAGE_UPLOAD_SUCCESS folder=%s", folder)
    return url
