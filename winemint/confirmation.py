import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, Optional

from .cancellation import CancellationToken
from .config import CONFIRMATION_INTERVAL_SECONDS, CONFIRMATION_MAX_CHECKS
from .exceptions import MintingStopped

logger = logging.getLogger(__name__)


class PollState(str, Enum):
    CHECKING = "checking"
    PENDING = "pending"
    COMPLETE = "complete"
    ERROR = "error"
    TIMEOUT = "timeout"
    STOPPED = "stopped"


@dataclass(frozen=True)
class ConfirmationResult:
    state: PollState
    checks: int
    block_height: Optional[int] = None
    details: str = ""

    @property
    def confirmed(self) -> bool:
        return self.state == PollState.COMPLETE

    def error_message(self) -> Optional[str]:
        if self.state == PollState.ERROR:
            return f"Transaction failed: {self.details}"
        if self.state == PollState.TIMEOUT:
            return self.details
        if self.state == PollState.STOPPED:
            return "Transaction monitoring stopped by user"
        return None


class ConfirmationPoller:
    """
    Polls the chain-status service until a transaction is confirmed.

    Fixed interval, no backoff. Errors raised by the status client are
    transient and retried; an explicit "error" status is terminal. The
    check ceiling guarantees termination.
    """

    def __init__(self, status_client, interval: float = CONFIRMATION_INTERVAL_SECONDS,
                 max_checks: int = CONFIRMATION_MAX_CHECKS,
                 sleep: Callable[[float], Awaitable] = asyncio.sleep):
        self.status_client = status_client
        self.interval = interval
        self.max_checks = max_checks
        self.sleep = sleep

    def _timeout_message(self) -> str:
        total = self.interval * self.max_checks
        if total >= 60 and total % 60 == 0:
            return f"Transaction confirmation timeout after {int(total // 60)} minutes"
        return f"Transaction confirmation timeout after {total:g} seconds"

    async def wait(self, tx_id: str, token: CancellationToken = None) -> ConfirmationResult:
        token = token or CancellationToken()
        checks = 0
        state = PollState.CHECKING

        while True:
            if token.cancelled:
                logger.warning("Transaction monitoring stopped by user")
                return ConfirmationResult(PollState.STOPPED, checks)

            if checks >= self.max_checks:
                message = self._timeout_message()
                logger.error(message)
                return ConfirmationResult(PollState.TIMEOUT, checks, details=message)

            checks += 1
            state = PollState.CHECKING
            logger.info(f"Blockfrost check #{checks} for txId: {tx_id}")
            try:
                status = await token.run(self.status_client.get_transaction_status(tx_id), "Transaction monitoring")
            except MintingStopped:
                logger.warning("Transaction monitoring stopped by user")
                return ConfirmationResult(PollState.STOPPED, checks)
            except Exception as e:
                logger.error(f"Status check failed: {e}")
            else:
                if status.status == "complete":
                    logger.info(f"Transaction confirmed on blockchain! Block height: {status.block_height}")
                    return ConfirmationResult(PollState.COMPLETE, checks, status.block_height, status.details)
                if status.status == "error":
                    logger.error(f"Transaction failed: {status.details}")
                    return ConfirmationResult(PollState.ERROR, checks, details=status.details)
                state = PollState.PENDING
                logger.info(f"Transaction still pending: {status.details}. Checking again in {self.interval:g} seconds...")

            try:
                await token.sleep(self.interval, self.sleep, "Transaction monitoring")
            except MintingStopped:
                logger.warning(f"Transaction monitoring stopped by user while {state.value}")
                return ConfirmationResult(PollState.STOPPED, checks)
