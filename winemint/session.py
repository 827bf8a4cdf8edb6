import logging
from typing import List, Optional, Tuple

from .batch_processor import BatchMintingProcessor
from .cancellation import CancellationToken
from .config import MAX_WINERIES_PER_RUN
from .history import MintHistory, ResumeData
from .models import Winery
from .orchestrator import MainNetworkOrchestrator, RunReport, COMPLETED, STOPPED

logger = logging.getLogger(__name__)

TEST_MODE = "test"
MAIN_MODE = "main"


class MintingSession:
    """
    Ties the session's mint history to a runner: the mock processor in
    test mode, the live orchestrator in main mode.
    """

    def __init__(self, wineries: List[Winery], mode: str = TEST_MODE, history: MintHistory = None,
                 processor: BatchMintingProcessor = None, orchestrator: MainNetworkOrchestrator = None,
                 max_wineries: Optional[int] = MAX_WINERIES_PER_RUN):
        if mode not in (TEST_MODE, MAIN_MODE):
            raise ValueError(f"Unknown minting mode: {mode}")
        if mode == TEST_MODE and processor is None:
            raise ValueError("Test mode requires a batch processor")
        if mode == MAIN_MODE and orchestrator is None:
            raise ValueError("Main mode requires an orchestrator")
        self.wineries = wineries
        self.mode = mode
        self.history = history if history is not None else MintHistory()
        self.processor = processor
        self.orchestrator = orchestrator
        self.max_wineries = max_wineries
        self._token: Optional[CancellationToken] = None

    @property
    def is_running(self) -> bool:
        return self._token is not None

    def plan(self) -> Tuple[List[Winery], int, ResumeData]:
        wineries = self.wineries if self.max_wineries is None else self.wineries[:self.max_wineries]
        resume = self.history.resume_data()
        start_index = 0
        if resume.total > 0:
            logger.info(f"Resume check: {resume.completed} completed, {resume.failed} failed, "
                        f"{resume.pending} pending, canResume: {resume.can_resume}")
            if resume.can_resume:
                start_index = self.history.resume_offset()
                logger.info(f"Resuming minting from index {start_index}")
            else:
                logger.info("No resume needed - all assets completed successfully")
        return self.history.filter_unminted(wineries), start_index, resume

    async def start(self) -> RunReport:
        if self._token is not None:
            raise RuntimeError("A minting run is already active")

        wineries, start_index, _ = self.plan()
        total = sum(len(w.wines) for w in wineries)
        logger.info(f"Total assets to mint: {total} ({self.mode} mode)")

        token = CancellationToken()
        self._token = token
        try:
            if self.mode == MAIN_MODE:
                return await self.orchestrator.run(wineries, start_index=start_index, token=token)

            statuses = await self.processor.start(wineries)
            return RunReport(
                outcome=STOPPED if token.cancelled else COMPLETED,
                total=total,
                processed=sum(1 for s in statuses if s.is_terminal),
                start_index=start_index,
            )
        finally:
            self._token = None

    def stop(self):
        logger.warning("Stopping minting process...")
        if self._token is not None:
            self._token.cancel()
        if self.processor is not None:
            self.processor.stop()

    def clear_history(self):
        self.history.clear()
