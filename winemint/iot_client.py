import json
import logging
import os
import aiohttp
from typing import Dict, Any

from .config import IOT_TIMEOUT_SECONDS, utc_now_iso

logger = logging.getLogger(__name__)


class IotStorageClient:
    """Best-effort access to the IoT sensor snapshot embedded in each mint."""

    def __init__(self, url: str = None, timeout: float = IOT_TIMEOUT_SECONDS):
        self.url = url or os.getenv("IOT_STORAGE_SENSORS_API_URL")
        self.timeout = timeout

    async def get_snapshot(self) -> Dict[str, Any]:
        """Never raises; failures come back as status 'error' with no data."""
        if not self.url:
            logger.warning("IOT_STORAGE_SENSORS_API_URL not configured")
            return {"data": None, "timestamp": utc_now_iso(), "status": "error"}

        timeout = aiohttp.ClientTimeout(total=self.timeout)
        headers = {"Accept": "application/json"}
        try:
            async with aiohttp.ClientSession(timeout=timeout) as session:
                async with session.get(self.url, headers=headers) as response:
                    if response.status != 200:
                        logger.error(f"IoT Storage API request failed: {response.status} {response.reason}")
                        return {"data": None, "timestamp": utc_now_iso(), "status": "error"}
                    storage_data = await response.json(content_type=None)
        except Exception as e:
            logger.error(f"IoT Storage API request failed: {e}")
            return {"data": None, "timestamp": utc_now_iso(), "status": "error"}

        if not isinstance(storage_data, dict):
            logger.error("Invalid response format from IoT Storage API")
            return {"data": None, "timestamp": utc_now_iso(), "status": "error"}

        return {
            "data": storage_data.get("data") or storage_data,
            "timestamp": utc_now_iso(),
            "status": "success",
        }

    async def fetch_mint_data(self) -> Dict[str, Any]:
        snapshot = await self.get_snapshot()
        if snapshot["status"] == "success" and snapshot["data"]:
            logger.info(f"IoT sensor data fetched ({len(json.dumps(snapshot['data']))} characters)")
            return snapshot["data"]
        logger.warning("IoT sensor data unavailable, using empty object")
        return {}


def format_for_minting(data: Dict[str, Any]) -> str:
    if not isinstance(data, dict) or not data:
        return json.dumps({"error": "Invalid IoT data"})
    return json.dumps(data)
