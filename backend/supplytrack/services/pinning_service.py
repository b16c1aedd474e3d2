# Overview: Client for the content-addressed pinning service (QR images, checkpoint photos).

"""
Pinning Service Client

Files are pinned by POSTing multipart data to ``/pinning/pinFileToIPFS``;
the service answers with the content hash (``IpfsHash``). Pinned content
is served from ``PINNING_GATEWAY_URL/<hash>``.

Every call carries a bounded timeout. Transport errors, non-2xx answers
and answers without a hash all surface as ExternalServiceError; callers
decide whether that is fatal (QR for a new batch item) or skippable
(one photo among several).
"""

from __future__ import annotations

import base64
import binascii

import httpx

from ..errors import ExternalServiceError


class PinningClient:
    def __init__(self, app=None):
        self.api_url = None
        self.gateway_url_base = None
        self.token = None
        self.timeout = 20.0
        if app is not None:
            self.init_app(app)

    def init_app(self, app) -> None:
        self.api_url = app.config["PINNING_API_URL"].rstrip("/")
        self.gateway_url_base = app.config["PINNING_GATEWAY_URL"].rstrip("/")
        self.token = app.config.get("PINNING_JWT")
        self.timeout = float(app.config.get("PINNING_TIMEOUT_SECONDS", 20))
        app.extensions["pinning"] = self

    def _headers(self) -> dict:
        if not self.token:
            return {}
        return {"Authorization": f"Bearer {self.token}"}

    def pin_file(self, content: bytes, filename: str, content_type: str = "application/octet-stream") -> str:
        """Pin one file and return its content hash."""
        if not self.api_url:
            raise ExternalServiceError("Pinning service is not configured")
        try:
            response = httpx.post(
                f"{self.api_url}/pinning/pinFileToIPFS",
                files={"file": (filename, content, content_type)},
                headers=self._headers(),
                timeout=self.timeout,
            )
            response.raise_for_status()
            ipfs_hash = response.json().get("IpfsHash")
        except (httpx.HTTPError, ValueError) as exc:
            raise ExternalServiceError("Failed to pin file", details=str(exc)) from exc

        if not ipfs_hash:
            raise ExternalServiceError("Pinning service returned no content hash")
        return ipfs_hash

    def gateway_url(self, ipfs_hash: str | None) -> str | None:
        if not ipfs_hash:
            return None
        return f"{self.gateway_url_base}/{ipfs_hash}"


def decode_photo(photo: str) -> tuple[bytes, str]:
    """
    Decode a checkpoint photo sent as a data URL ("data:image/jpeg;base64,...")
    or as bare base64. Returns (bytes, content_type).

    Raises ValueError when the payload is not decodable.
    """
    if not isinstance(photo, str) or not photo.strip():
        raise ValueError("empty photo payload")

    content_type = "image/jpeg"
    data = photo.strip()
    if data.startswith("data:"):
        header, _, data = data.partition(",")
        if ";base64" not in header:
            raise ValueError("photo data URL is not base64 encoded")
        content_type = header[5:].split(";", 1)[0] or content_type

    try:
        return base64.b64decode(data, validate=True), content_type
    except (binascii.Error, ValueError) as exc:
        raise ValueError("photo is not valid base64") from exc


EXTENSIONS = {
    "image/jpeg": "jpg",
    "image/png": "png",
    "image/webp": "webp",
    "image/gif": "gif",
    "image/heic": "heic",
}


def photo_filename(product_id: str, index: int, content_type: str) -> str:
    return f"checkpoint-{product_id}-{index + 1}.{EXTENSIONS.get(content_type, 'bin')}"
