import logging
import os
import asyncio
import aiohttp
from typing import Dict, Any, Optional
from urllib.parse import quote

from .config import (
    DEFAULT_IPFS_GATEWAY,
    IPFS_SCHEME,
    MINT_ENDPOINT,
    MINT_TIMEOUT_SECONDS,
    require_env,
)
from .exceptions import ImageDownloadError, IpfsUploadError, MintError, InvalidImageError
from .models import ImageFile, MintResult

logger = logging.getLogger(__name__)


def _error_detail(data: Any, fallback: str) -> str:
    if isinstance(data, dict):
        return data.get("error") or data.get("message") or fallback
    return fallback


class TokenizationClient:
    """Wraps the tokenization API: image download, IPFS upload and batch minting."""

    def __init__(self, base_url: str = None, username: str = None, password: str = None,
                 ipfs_gateway: str = None, mint_timeout: float = MINT_TIMEOUT_SECONDS):
        self.base_url = require_env("TOKENIZATION_API_URL", base_url).rstrip("/")
        self.username = require_env("TOKENIZATION_API_USERNAME", username)
        self.password = require_env("TOKENIZATION_API_PASSWORD", password)
        self.ipfs_gateway = (ipfs_gateway or os.getenv("IPFS_GATEWAY", DEFAULT_IPFS_GATEWAY)).rstrip("/")
        self.mint_timeout = mint_timeout
        self.auth = aiohttp.BasicAuth(self.username, self.password)

    async def download_image(self, image_url: str, filename: str = "image.jpg") -> ImageFile:
        """Downloads the wine's image as a binary payload."""
        if not image_url:
            raise InvalidImageError("Image URL is required")
        if not image_url.startswith("https://"):
            raise InvalidImageError("Invalid image URL. Must be HTTPS")

        logger.info(f"Downloading image from {image_url}")
        try:
            async with aiohttp.ClientSession() as session:
                async with session.get(image_url) as response:
                    if response.status != 200:
                        raise ImageDownloadError(
                            f"Failed to download image: {response.status} {response.reason}"
                        )
                    data = await response.read()
                    content_type = response.headers.get("Content-Type") or "image/jpeg"
        except aiohttp.ClientError as e:
            raise ImageDownloadError(f"Failed to download image: {e}") from e

        logger.info(f"Downloaded {filename} ({len(data)} bytes, {content_type})")
        return ImageFile(data=data, content_type=content_type, filename=filename)

    async def add_image(self, image: ImageFile) -> str:
        """
        Uploads an image to IPFS via POST /add.
        The API answers with a raw text body of the form ipfs://<hash>.
        """
        url = f"{self.base_url}/add"
        form = aiohttp.FormData()
        form.add_field("file", image.data, filename=image.filename, content_type=image.content_type)

        logger.info(f"Uploading {image.filename} to IPFS")
        try:
            async with aiohttp.ClientSession(auth=self.auth) as session:
                async with session.post(url, data=form) as response:
                    if response.status != 200:
                        text = await response.text()
                        raise IpfsUploadError(
                            f"IPFS upload failed: {response.status} {response.reason} - {text}"
                        )
                    raw = await response.text()
        except aiohttp.ClientError as e:
            raise IpfsUploadError(f"IPFS upload failed: {e}") from e

        ipfs_url = raw.strip().strip("\"'")
        if not ipfs_url.startswith(IPFS_SCHEME):
            logger.error(f"Unexpected IPFS response: {raw!r}")
            raise IpfsUploadError("Invalid IPFS response format")

        logger.info(f"IPFS upload complete: {ipfs_url}")
        return ipfs_url

    async def mint_batch(self, payload: Dict[str, Any]) -> MintResult:
        """Submits a mint payload. Returns the transaction id and token reference id."""
        url = f"{self.base_url}{MINT_ENDPOINT}"
        timeout = aiohttp.ClientTimeout(total=self.mint_timeout)
        name = payload.get("batch_meta", {}).get("name")
        logger.info(f"Submitting mint request for '{name}' to {url}")

        try:
            async with aiohttp.ClientSession(auth=self.auth, timeout=timeout) as session:
                async with session.post(url, json=payload) as response:
                    if response.status != 200:
                        try:
                            data = await response.json(content_type=None)
                        except ValueError:
                            data = {"error": await response.text()}
                        detail = _error_detail(data, "Unknown error")
                        raise MintError(
                            f"Minting failed: {response.status} {response.reason} - {detail}",
                            status=response.status,
                        )
                    try:
                        result = await response.json(content_type=None)
                    except ValueError as e:
                        raise MintError("Invalid minting response: body is not valid JSON") from e
        except asyncio.TimeoutError as e:
            logger.error(f"Mint request timed out after {self.mint_timeout} seconds")
            raise MintError(
                f"Request timeout: External API request timed out after {self.mint_timeout:g} seconds",
                status=408,
            ) from e
        except aiohttp.ClientError as e:
            raise MintError(f"Minting failed: {e}") from e

        if not isinstance(result, dict):
            raise MintError("Invalid minting response: expected a JSON object")
        tx_id = result.get("txId")
        token_ref_id = result.get("tokenRefId")
        if not tx_id or not token_ref_id:
            raise MintError("Invalid minting response: missing txId or tokenRefId")

        logger.info(f"Transaction submitted: {tx_id} (token {token_ref_id})")
        return MintResult(tx_id=tx_id, token_ref_id=token_ref_id)

    async def retrieve_asset(self, asset_unit: str) -> Dict[str, Any]:
        """Retrieves asset information by unit via GET /wine/<unit>."""
        url = f"{self.base_url}/wine/{quote(asset_unit, safe='')}"
        try:
            async with aiohttp.ClientSession(auth=self.auth) as session:
                async with session.get(url) as response:
                    if response.status != 200:
                        text = await response.text()
                        raise MintError(
                            f"API request failed: {response.status} {response.reason} - {text}",
                            status=response.status,
                        )
                    try:
                        data = await response.json(content_type=None)
                    except ValueError as e:
                        raise MintError("Invalid asset response: body is not valid JSON") from e
        except aiohttp.ClientError as e:
            raise MintError(f"Asset retrieval failed: {e}") from e

        if not isinstance(data, dict):
            raise MintError("Invalid asset response: expected a JSON object")
        return data

    async def test_connection(self) -> bool:
        url = f"{self.base_url}/health"
        try:
            async with aiohttp.ClientSession(auth=self.auth) as session:
                async with session.get(url) as response:
                    return response.status == 200
        except Exception as e:
            logger.error(f"API connection test failed: {e}")
            return False

    def get_config(self) -> Dict[str, Any]:
        return {
            "base_url": self.base_url,
            "has_credentials": bool(self.username and self.password),
            "ipfs_gateway": self.ipfs_gateway,
        }

    def gateway_url(self, ipfs_uri: str) -> Optional[str]:
        if not ipfs_uri or not ipfs_uri.startswith(IPFS_SCHEME):
            return None
        return f"{self.ipfs_gateway}/{ipfs_uri[len(IPFS_SCHEME):]}"
