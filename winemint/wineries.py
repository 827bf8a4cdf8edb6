import json
import logging
import os
import requests
from typing import Dict, Any, List

from .models import Winery

logger = logging.getLogger(__name__)

MOCK_WINERIES: List[Dict[str, Any]] = [
    {
        "id": "mock-winery-1",
        "info": {"name": "Mock Winery Alpha"},
        "wines": [
            {
                "uid": "mock-winery-1",
                "id": "mock-wine-1",
                "createdAt": "2024-01-01T00:00:00.000Z",
                "status": "published",
                "generalInfo": {
                    "wineryName": "Mock Winery Alpha",
                    "collectionName": "Premium Collection 2024",
                    "type": "red-wine",
                    "vintage": "2024",
                    "grapeVarieties": [
                        {"name": "Cabernet Sauvignon", "percentage": "100", "vintage": "2024"}
                    ],
                },
            },
            {
                "uid": "mock-winery-1",
                "id": "mock-wine-2",
                "createdAt": "2024-01-02T00:00:00.000Z",
                "status": "published",
                "generalInfo": {
                    "wineryName": "Mock Winery Alpha",
                    "collectionName": "Reserve Collection 2023",
                    "type": "white-wine",
                    "vintage": "2023",
                    "grapeVarieties": [
                        {"name": "Chardonnay", "percentage": "100", "vintage": "2023"}
                    ],
                },
            },
        ],
    },
    {
        "id": "mock-winery-2",
        "info": {"name": "Mock Winery Beta"},
        "wines": [
            {
                "uid": "mock-winery-2",
                "id": "mock-wine-3",
                "createdAt": "2024-01-03T00:00:00.000Z",
                "status": "published",
                "generalInfo": {
                    "wineryName": "Mock Winery Beta",
                    "collectionName": "Classic Collection 2024",
                    "type": "rose-wine",
                    "vintage": "2024",
                    "grapeVarieties": [
                        {"name": "Pinot Noir", "percentage": "100", "vintage": "2024"}
                    ],
                },
            },
        ],
    },
]


def parse_wineries(data: Any) -> List[Winery]:
    if not isinstance(data, list):
        raise ValueError("Wineries data must be a JSON array")
    return [Winery.from_dict(w) for w in data]


def mock_wineries() -> List[Winery]:
    return parse_wineries(MOCK_WINERIES)


def load_wineries(source: str = None) -> List[Winery]:
    """
    Loads the wineries list once per session from a URL or a JSON file.
    Falls back to the built-in mock dataset when the source is unavailable.
    """
    source = source or os.getenv("WINERIES_SOURCE")
    if not source:
        logger.warning("No wineries source configured, using mock dataset")
        return mock_wineries()

    try:
        if source.startswith(("http://", "https://")):
            resp = requests.get(source, headers={"Accept": "application/json"}, timeout=30)
            if resp.status_code != 200:
                raise ValueError(f"Failed to load wineries data: {resp.status_code} {resp.text}")
            data = resp.json()
        else:
            with open(source, "r") as f:
                data = json.load(f)
        wineries = parse_wineries(data)
    except (requests.RequestException, OSError, ValueError, KeyError) as e:
        logger.warning(f"Failed to load wineries from {source}: {e}. Using mock dataset")
        return mock_wineries()

    logger.info(f"Loaded {len(wineries)} wineries from {source}")
    return wineries
