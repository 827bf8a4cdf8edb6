import json
from typing import Dict, Any

from .config import MINT_DESCRIPTION
from .models import MintPayload, Wine


def build_mint_payload(wine: Wine, ipfs_uri: str, iot_data: Dict[str, Any] = None) -> MintPayload:
    """Builds the mint-batch request body for a single wine."""
    return MintPayload(
        info=json.dumps(wine.to_dict()),
        mdata=json.dumps(iot_data or {}),
        minsrc="",
        description=MINT_DESCRIPTION,
        image=ipfs_uri,
        name=wine.general_info.collection_name,
    )
