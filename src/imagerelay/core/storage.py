"""Cloudinary upload of generated images.

Images are sent as ``data:<mime>;base64,<data>`` URIs to the signed upload
endpoint, so nothing is decoded or written locally.  Each upload gets a fresh
public id built from the current epoch milliseconds plus a random suffix, which
keeps identical prompts from overwriting each other.

Signing follows Cloudinary's scheme: the signed parameters (everything except
``file``, ``api_key`` and the signature itself) are sorted by name, joined as
``key=value`` pairs with ``&``, suffixed with the API secret and hashed with
SHA-1.

Uploads are not retried.  Any failure raises
:class:`~imagerelay.core.errors.UploadError` and ends the request.
"""

from __future__ import annotations

import hashlib
import logging
import time
import uuid

import httpx

from imagerelay.core.config import ImageRelayConfig
from imagerelay.core.errors import UploadError, truncate
from imagerelay.core.results import GeneratedImage, StoredImage

logger = logging.getLogger(__name__)

CLOUDINARY_API_BASE = "https://api.cloudinary.com/v1_1"


def unique_public_id() -> str:
    """Return a collision-resistant name such as ``1760872345123-9f2c4a1b``."""
    return f"{int(time.time() * 1000)}-{uuid.uuid4().hex[:8]}"


def sign_params(params: dict[str, str], api_secret: str) -> str:
    """Compute the Cloudinary SHA-1 request signature for *params*."""
    to_sign = "&".join(f"{key}={params[key]}" for key in sorted(params))
    return hashlib.sha1(f"{to_sign}{api_secret}".encode("utf-8")).hexdigest()


class CloudinaryUploader:
    """Upload images to a Cloudinary account and return their HTTPS URLs."""

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        *,
        cloud_name: str,
        api_key: str,
        api_secret: str,
        folder: str,
    ) -> None:
        self._http = http_client
        self._cloud_name = cloud_name
        self._api_key = api_key
        self._api_secret = api_secret
        self.folder = folder

    @classmethod
    def from_config(
        cls, config: ImageRelayConfig, http_client: httpx.AsyncClient
    ) -> CloudinaryUploader:
        return cls(
            http_client,
            cloud_name=config.cloudinary_cloud_name,
            api_key=config.cloudinary_api_key,
            api_secret=config.cloudinary_api_secret,
            folder=config.cloudinary_folder,
        )

    @property
    def configured(self) -> bool:
        return bool(self._cloud_name and self._api_key and self._api_secret)

    async def store(self, image: GeneratedImage) -> StoredImage:
        """Upload *image* under a fresh unique name in the configured folder."""
        return await self.upload(image.as_data_uri(), self.folder, unique_public_id())

    async def upload(self, file: str, folder: str, public_id: str) -> StoredImage:
        """Upload a data URI (or remote URL) to Cloudinary.

        Args:
            file: ``data:`` URI or URL of the image.
            folder: Destination folder.
            public_id: Name of the asset inside *folder*.

        Returns:
            The stored image's secure URL and public id.

        Raises:
            UploadError: On missing credentials, transport failure, non-2xx
                status or a response without ``secure_url``.
        """
        if not self.configured:
            raise UploadError("Image upload failed: storage is not configured")

        params = {"public_id": public_id, "timestamp": str(int(time.time()))}
        if folder:
            params["folder"] = folder
        form = {
            **params,
            "file": file,
            "api_key": self._api_key,
            "signature": sign_params(params, self._api_secret),
        }
        url = f"{CLOUDINARY_API_BASE}/{self._cloud_name}/image/upload"

        try:
            response = await self._http.post(url, data=form)
        except httpx.HTTPError as exc:
            raise UploadError(f"Image upload failed: {exc!r}") from exc

        try:
            body = response.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {}

        if response.status_code >= 400:
            error = body.get("error")
            message = error.get("message") if isinstance(error, dict) else None
            logger.error("Cloudinary upload returned %s: %s", response.status_code, response.text)
            raise UploadError(
                f"Image upload failed: {message or f'HTTP {response.status_code}'}",
                truncate(response.text),
            )

        secure_url = body.get("secure_url")
        if not secure_url:
            raise UploadError("Image upload failed: response did not include secure_url")

        fallback_id = f"{folder}/{public_id}" if folder else public_id
        stored = StoredImage(url=secure_url, public_id=body.get("public_id") or fallback_id)
        logger.info("Uploaded image as %s", stored.public_id)
        return stored
