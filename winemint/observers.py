import click
from typing import List

from .models import BatchMintingProgress, MintingStatus

STATUS_ICONS = {
    "pending": "⏳",
    "minting": "🔄",
    "confirming": "🔍",
    "success": "✅",
    "failed": "❌",
}


class MintingObserver:
    """Receives progress from a minting run. Override what you need."""

    def on_progress(self, progress: BatchMintingProgress):
        pass

    def on_status(self, status: MintingStatus):
        pass

    def on_complete(self, statuses: List[MintingStatus]):
        pass


class ConsoleObserver(MintingObserver):
    def __init__(self, echo=click.echo):
        self.echo = echo

    def on_status(self, status: MintingStatus):
        icon = STATUS_ICONS.get(status.status, "•")
        line = f"{icon} {status.wine_id} ({status.winery_id}): {status.status}"
        if status.tx_id:
            line += f" tx={status.tx_id}"
        if status.error:
            line += f" error={status.error}"
        self.echo(line)

    def on_complete(self, statuses: List[MintingStatus]):
        succeeded = sum(1 for s in statuses if s.status == "success")
        self.echo(f"Run finished: {succeeded}/{len(statuses)} succeeded")
