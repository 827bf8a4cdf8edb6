import asyncio
import logging
from typing import Awaitable, Callable, Dict, List, Optional

from .cancellation import CancellationToken
from .config import THROTTLE_SECONDS
from .exceptions import MintingInProgress, MintingStopped
from .history import MintHistory
from .mock_minting import MockMintingApi
from .models import (
    BatchMintingProgress,
    MintingStatus,
    MintRequest,
    Wine,
    Winery,
    PENDING,
    MINTING,
    SUCCESS,
    FAILED,
)
from .observers import MintingObserver

logger = logging.getLogger(__name__)


class BatchMintingProcessor:
    """Sequentially mints every wine of every winery against the mock minting service."""

    def __init__(self, mint_api: MockMintingApi, observer: MintingObserver = None,
                 history: MintHistory = None, throttle: float = THROTTLE_SECONDS,
                 sleep: Callable[[float], Awaitable] = asyncio.sleep):
        self.mint_api = mint_api
        self.observer = observer or MintingObserver()
        self.history = history
        self.throttle = throttle
        self.sleep = sleep
        self.progress = BatchMintingProgress()
        self._token: Optional[CancellationToken] = None

    @property
    def is_processing(self) -> bool:
        return self._token is not None

    @property
    def current_progress(self) -> BatchMintingProgress:
        return self.progress.snapshot()

    async def start(self, wineries: List[Winery]) -> List[MintingStatus]:
        if self._token is not None:
            raise MintingInProgress("Batch minting is already in progress")

        token = CancellationToken()
        self._token = token
        total_wines = sum(len(w.wines) for w in wineries)
        self.progress = BatchMintingProgress(total_wineries=len(wineries), total_wines=total_wines)

        try:
            logger.info(f"[BATCH PROCESSOR] Starting batch minting for {len(wineries)} wineries with {total_wines} total wines")

            for winery in wineries:
                if token.cancelled:
                    break
                self.progress.current_winery = winery.name
                self._emit()
                logger.info(f"[BATCH PROCESSOR] Processing winery: {winery.name} ({len(winery.wines)} wines)")

                for wine in winery.wines:
                    if token.cancelled:
                        break
                    self.progress.current_wine = wine.label
                    self._emit()
                    try:
                        await self._mint_wine(winery, wine, token)
                        self.progress.processed_wines += 1
                        self._emit()
                        await token.sleep(self.throttle, self.sleep, "Batch minting")
                    except MintingStopped:
                        break

                if token.cancelled:
                    logger.warning("[BATCH PROCESSOR] Batch minting stopped by user")
                    break
                self.progress.processed_wineries += 1
                self._emit()
                logger.info(f"[BATCH PROCESSOR] Completed winery: {winery.name}")
            else:
                logger.info("[BATCH PROCESSOR] Batch minting completed successfully!")
        except Exception as e:
            logger.error(f"[BATCH PROCESSOR] Batch minting failed: {e}")
            raise
        finally:
            self._token = None
            self.observer.on_complete(list(self.progress.minting_statuses))

        return list(self.progress.minting_statuses)

    def stop(self):
        if self._token is not None:
            self._token.cancel()
            logger.info("[BATCH PROCESSOR] Batch minting stopped by user")

    async def _mint_wine(self, winery: Winery, wine: Wine, token: CancellationToken):
        logger.info(f"[BATCH PROCESSOR] Minting wine: {wine.label}")
        index = len(self.progress.minting_statuses)
        status = MintingStatus(wine_id=wine.id, winery_id=winery.id, status=PENDING)
        self.progress.minting_statuses.append(status)
        self._publish(status)

        status = status.advance(MINTING)
        self._replace(index, status)

        request = MintRequest(wine_id=wine.id, winery_id=winery.id, wine=wine)
        try:
            response = await token.run(self.mint_api.mint_wine(request), "Batch minting")
        except MintingStopped:
            raise
        except Exception as e:
            logger.error(f"[BATCH PROCESSOR] Error minting wine {wine.id}: {e}")
            status = status.advance(FAILED, error=str(e) or "Unknown error")
        else:
            if response.success:
                status = status.advance(SUCCESS, tx_id=response.tx_id, token_ref_id=response.token_ref_id)
                logger.info(f"[BATCH PROCESSOR] Successfully minted wine {wine.id}: {response.tx_id}")
            else:
                status = status.advance(FAILED, error=response.error)
                logger.error(f"[BATCH PROCESSOR] Failed to mint wine {wine.id}: {response.error}")

        self._replace(index, status)

    def _replace(self, index: int, status: MintingStatus):
        self.progress.minting_statuses[index] = status
        self._publish(status)

    def _publish(self, status: MintingStatus):
        if self.history is not None:
            self.history.record(status)
        self.observer.on_status(status)
        self._emit()

    def _emit(self):
        self.observer.on_progress(self.progress.snapshot())

    def summary(self) -> Dict[str, int]:
        statuses = self.progress.minting_statuses
        return {
            "total": len(statuses),
            "successful": sum(1 for s in statuses if s.status == SUCCESS),
            "failed": sum(1 for s in statuses if s.status == FAILED),
            "pending": sum(1 for s in statuses if s.status == PENDING),
        }
