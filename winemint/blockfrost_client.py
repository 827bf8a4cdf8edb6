import asyncio
import logging
import os
import aiohttp

from .config import DEFAULT_BLOCKFROST_URL, STATUS_TIMEOUT_SECONDS, require_env
from .exceptions import StatusCheckError
from .models import TransactionStatus

logger = logging.getLogger(__name__)


class BlockfrostClient:
    def __init__(self, api_key: str = None, url: str = None, timeout: float = STATUS_TIMEOUT_SECONDS):
        self.api_key = require_env("BLOCKFROST_API_KEY", api_key)
        self.url = (url or os.getenv("BLOCKFROST_API_URL", DEFAULT_BLOCKFROST_URL)).rstrip("/")
        self.timeout = timeout

    async def get_transaction_status(self, tx_id: str) -> TransactionStatus:
        """
        Looks a transaction up on Blockfrost.
        A 404 means the transaction has not reached a block yet, so it maps to pending.
        Any other failure raises StatusCheckError.
        """
        if not tx_id:
            raise StatusCheckError("Transaction ID is required")

        headers = {"project_id": self.api_key, "Content-Type": "application/json"}
        timeout = aiohttp.ClientTimeout(total=self.timeout)
        try:
            async with aiohttp.ClientSession(timeout=timeout) as session:
                async with session.get(f"{self.url}/txs/{tx_id}", headers=headers) as response:
                    if response.status == 404:
                        return TransactionStatus(
                            status="pending",
                            details="Transaction not yet found on blockchain",
                        )
                    if response.status != 200:
                        try:
                            data = await response.json(content_type=None)
                        except ValueError:
                            data = {}
                        message = data.get("message", "Unknown error") if isinstance(data, dict) else "Unknown error"
                        raise StatusCheckError(
                            f"Blockfrost API request failed: {response.status} {response.reason} - {message}"
                        )
                    try:
                        tx_data = await response.json(content_type=None)
                    except ValueError:
                        tx_data = None
        except asyncio.TimeoutError as e:
            raise StatusCheckError(f"Request timeout after {self.timeout:g} seconds - network issue") from e
        except aiohttp.ClientError as e:
            raise StatusCheckError(f"Blockfrost API request failed: {e}") from e

        logger.debug(f"Blockfrost response for {tx_id}: {tx_data}")
        if not isinstance(tx_data, dict):
            raise StatusCheckError("Invalid response format from Blockfrost API")

        if tx_data.get("valid_contract") is False:
            return TransactionStatus(status="error", details="Transaction script validation failed")

        if tx_data.get("block") and tx_data.get("block_height"):
            return TransactionStatus(
                status="complete",
                details="Transaction confirmed on blockchain",
                block_height=tx_data["block_height"],
                confirmations=1,
            )

        return TransactionStatus(status="pending", details="Transaction submitted but not yet confirmed")
