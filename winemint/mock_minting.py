import asyncio
import logging
import random
from typing import Awaitable, Callable, List, Set, Tuple

import pycardano

from .config import MOCK_DELAY_RANGE, MOCK_FAILURE_RATE
from .exceptions import MintingInProgress
from .models import MintRequest, MintResponse

logger = logging.getLogger(__name__)


class MockMintingApi:
    """
    Simulates the minting service for test mode: a random delay, an occasional
    network failure, and Cardano-shaped identifiers on success.
    """

    def __init__(self, failure_rate: float = MOCK_FAILURE_RATE,
                 delay_range: Tuple[float, float] = MOCK_DELAY_RANGE,
                 rng: random.Random = None,
                 sleep: Callable[[float], Awaitable] = asyncio.sleep):
        self.failure_rate = failure_rate
        self.delay_range = delay_range
        self.rng = rng or random.Random()
        self.sleep = sleep
        self.minting_queue: Set[str] = set()

    def _random_bytes(self, size: int) -> bytes:
        return bytes(self.rng.getrandbits(8) for _ in range(size))

    def generate_tx_id(self) -> str:
        # 32-byte transaction hash, 64 hex characters
        return pycardano.TransactionId(self._random_bytes(32)).payload.hex()

    def generate_token_ref_id(self) -> str:
        # 28-byte policy hash, 56 hex characters
        return pycardano.ScriptHash(self._random_bytes(28)).payload.hex()

    async def mint_wine(self, request: MintRequest) -> MintResponse:
        request_id = f"{request.winery_id}-{request.wine_id}"
        if request_id in self.minting_queue:
            raise MintingInProgress("Wine is already being minted")

        self.minting_queue.add(request_id)
        try:
            logger.info(f"[MOCK API] Starting mint for wine {request.wine_id} from winery {request.winery_id}")
            await self.sleep(self.rng.uniform(*self.delay_range))

            if self.rng.random() < self.failure_rate:
                error = "Simulated minting failure - network timeout"
                logger.error(f"[MOCK API] Failed to mint wine {request.wine_id}: {error}")
                return MintResponse(success=False, error=error)

            response = MintResponse(
                success=True,
                tx_id=self.generate_tx_id(),
                token_ref_id=self.generate_token_ref_id(),
            )
            logger.info(f"[MOCK API] Successfully minted wine {request.wine_id}: {response.tx_id}")
            return response
        finally:
            self.minting_queue.discard(request_id)

    def queue_status(self) -> List[str]:
        return list(self.minting_queue)

    def clear_queue(self):
        self.minting_queue.clear()
