import json
import logging
from dataclasses import dataclass
from typing import Dict, Any, Iterator, List, Optional, Set

from .models import MintingStatus, Winery, SUCCESS, FAILED, PENDING, MINTING, CONFIRMING

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ResumeData:
    completed: int
    failed: int
    pending: int
    confirming: int
    total: int
    can_resume: bool


class MintHistory:
    """
    Latest known MintingStatus per wine id for the current session.

    This is the only record of what has been minted; nothing is written to
    disk, so it is gone once the process exits.
    """

    def __init__(self):
        self._statuses: Dict[str, MintingStatus] = {}

    def record(self, status: MintingStatus):
        self._statuses[status.wine_id] = status

    def get(self, wine_id: str) -> Optional[MintingStatus]:
        return self._statuses.get(wine_id)

    def values(self) -> List[MintingStatus]:
        return list(self._statuses.values())

    def __len__(self) -> int:
        return len(self._statuses)

    def __contains__(self, wine_id: str) -> bool:
        return wine_id in self._statuses

    def __iter__(self) -> Iterator[MintingStatus]:
        return iter(self.values())

    def is_minted(self, wine_id: str) -> bool:
        status = self._statuses.get(wine_id)
        return status is not None and status.status == SUCCESS

    @property
    def minted_assets(self) -> Set[str]:
        return {wine_id for wine_id, s in self._statuses.items() if s.status == SUCCESS}

    def for_winery(self, winery_id: str) -> List[MintingStatus]:
        return [s for s in self._statuses.values() if s.winery_id == winery_id]

    def clear(self):
        self._statuses.clear()
        logger.info("Mint history cleared")

    def _count(self, *statuses: str) -> int:
        return sum(1 for s in self._statuses.values() if s.status in statuses)

    def resume_data(self) -> ResumeData:
        completed = self._count(SUCCESS)
        failed = self._count(FAILED)
        pending = self._count(PENDING, MINTING)
        confirming = self._count(CONFIRMING)
        total = len(self._statuses)
        return ResumeData(
            completed=completed,
            failed=failed,
            pending=pending,
            confirming=confirming,
            total=total,
            can_resume=completed < total,
        )

    def resume_offset(self) -> int:
        return self._count(SUCCESS)

    def filter_unminted(self, wineries: List[Winery]) -> List[Winery]:
        """Drops confirmed successes only; failed or interrupted wines stay queued."""
        return [
            winery.with_wines([w for w in winery.wines if not self.is_minted(w.id)])
            for winery in wineries
        ]

    def build_results(self, wineries: List[Winery], network: str) -> List[Dict[str, Any]]:
        by_id = {w.id: w for w in wineries}
        results = []
        for item in self._statuses.values():
            if item.status != SUCCESS:
                continue
            winery = by_id.get(item.winery_id)
            wine = None
            if winery:
                wine = next((w for w in winery.wines if w.id == item.wine_id), None)
            results.append({
                "wineryId": item.winery_id,
                "wineryName": winery.name if winery else None,
                "wineId": item.wine_id,
                "wineName": wine.general_info.collection_name if wine else None,
                "txId": item.tx_id or None,
                "tokenRefId": item.token_ref_id or None,
                "status": item.status,
                "timestamp": item.timestamp.isoformat(),
                "network": network,
            })
        return results

    def write_results(self, path: str, wineries: List[Winery], network: str) -> int:
        results = self.build_results(wineries, network)
        with open(path, "w") as f:
            json.dump(results, f, indent=2)
        logger.info(f"Exported {len(results)} mint results to {path}")
        return len(results)
