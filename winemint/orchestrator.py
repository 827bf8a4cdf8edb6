import logging
from dataclasses import dataclass
from typing import List, Optional, Tuple

from .cancellation import CancellationToken
from .confirmation import ConfirmationPoller, PollState
from .exceptions import ConfirmationError, InvalidImageError, MintingStopped
from .history import MintHistory
from .models import MintingStatus, Wine, Winery, MINTING, CONFIRMING, SUCCESS, FAILED
from .observers import MintingObserver
from .payload import build_mint_payload

logger = logging.getLogger(__name__)

COMPLETED = "completed"
STOPPED = "stopped"
FAILED_RUN = "failed"


@dataclass
class RunReport:
    outcome: str = COMPLETED
    total: int = 0
    processed: int = 0
    start_index: int = 0
    failed_wine_id: Optional[str] = None
    error: Optional[str] = None


class MainNetworkOrchestrator:
    """
    Mints wines one at a time against the live services and waits for
    on-chain confirmation before moving to the next one.

    The run is fail-stop: the first wine that fails ends it. Already
    confirmed wines (per history) are never re-minted.
    """

    def __init__(self, tokenization, status_client, iot_client, history: MintHistory,
                 poller: ConfirmationPoller = None, observer: MintingObserver = None):
        self.tokenization = tokenization
        self.iot_client = iot_client
        self.history = history
        self.poller = poller or ConfirmationPoller(status_client)
        self.observer = observer or MintingObserver()

    def _record(self, status: MintingStatus):
        self.history.record(status)
        self.observer.on_status(status)

    async def _fetch_iot_data(self, token: CancellationToken):
        try:
            return await token.run(self.iot_client.fetch_mint_data(), "IoT data fetch")
        except MintingStopped:
            raise
        except Exception as e:
            logger.warning(f"IoT data fetch failed: {e}. Minting with empty sensor data")
            return {}

    def queue(self, wineries: List[Winery]) -> List[Tuple[Winery, Wine]]:
        return [
            (winery, wine)
            for winery in wineries
            for wine in winery.wines
            if not self.history.is_minted(wine.id)
        ]

    async def run(self, wineries: List[Winery], start_index: int = 0,
                  token: CancellationToken = None) -> RunReport:
        token = token or CancellationToken()
        queue = self.queue(wineries)
        report = RunReport(total=len(queue), start_index=start_index)

        if token.cancelled:
            logger.warning("Minting was stopped before starting")
            report.outcome = STOPPED
            return report

        logger.info(f"Main Network: Processing {len(queue)} wines sequentially with confirmation")

        for i, (winery, wine) in enumerate(queue):
            if token.cancelled:
                report.outcome = STOPPED
                break

            position = start_index + i + 1
            logger.info(f"Processing wine {position}/{start_index + len(queue)}: "
                        f"{wine.general_info.collection_name or wine.id} (winery: {winery.name or winery.id})")
            try:
                await self.mint_wine(winery, wine, token)
            except MintingStopped as e:
                logger.warning(f"{e} - wine {position} left for resume")
                report.outcome = STOPPED
                break
            except Exception as e:
                logger.error(f"Wine {position} failed: {e}. Stopping run")
                report.outcome = FAILED_RUN
                report.failed_wine_id = wine.id
                report.error = str(e)
                break
            report.processed += 1

        if report.outcome == STOPPED:
            logger.warning("Main network minting stopped by user. Mint history preserved for resume")
        elif report.outcome == COMPLETED:
            logger.info("Main network minting completed successfully!")

        self.observer.on_complete([self.history.get(w.id) for _, w in queue if w.id in self.history])
        return report

    async def mint_wine(self, winery: Winery, wine: Wine, token: CancellationToken) -> MintingStatus:
        """Runs the download, upload, mint and confirm pipeline for one wine."""
        token.raise_if_cancelled("Processing")
        status = MintingStatus(wine_id=wine.id, winery_id=winery.id, status=MINTING)

        if not wine.has_valid_image:
            error = "Wine does not have valid image URL"
            self._record(status.advance(FAILED, error=error))
            raise InvalidImageError(error)

        self._record(status)

        try:
            image = await token.run(
                self.tokenization.download_image(wine.general_info.image, f"{wine.id}.jpg"),
                "Image download",
            )
            ipfs_uri = await token.run(self.tokenization.add_image(image), "IPFS upload")
            iot_data = await self._fetch_iot_data(token)
            payload = build_mint_payload(wine, ipfs_uri, iot_data)
            result = await token.run(self.tokenization.mint_batch(payload.to_dict()), "Token minting")
        except MintingStopped:
            raise
        except Exception as e:
            self._record(status.advance(FAILED, error=str(e) or "Unknown error"))
            raise

        status = status.advance(CONFIRMING, tx_id=result.tx_id, token_ref_id=result.token_ref_id)
        self._record(status)
        logger.info(f"Wine {wine.id} minted. TX: {result.tx_id}. Waiting for confirmation...")

        token.raise_if_cancelled("Confirmation")
        confirmation = await self.poller.wait(result.tx_id, token)
        if confirmation.state == PollState.STOPPED:
            raise MintingStopped(confirmation.error_message())
        if not confirmation.confirmed:
            error = f"Confirmation failed: {confirmation.error_message()}"
            self._record(status.advance(FAILED, error=error))
            raise ConfirmationError(error, tx_id=result.tx_id, token_ref_id=result.token_ref_id)

        status = status.advance(SUCCESS)
        self._record(status)
        logger.info(f"Wine {wine.id} fully confirmed on blockchain (block {confirmation.block_height})")
        return status
