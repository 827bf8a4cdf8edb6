from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Dict, Any, List, Optional

from .config import utc_now

PENDING = "pending"
MINTING = "minting"
CONFIRMING = "confirming"
SUCCESS = "success"
FAILED = "failed"

TERMINAL_STATUSES = (SUCCESS, FAILED)


@dataclass(frozen=True)
class GrapeVariety:
    name: str
    percentage: str = ""
    vintage: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "GrapeVariety":
        return cls(
            name=data.get("name", ""),
            percentage=str(data.get("percentage", "")),
            vintage=str(data.get("vintage", "")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "percentage": self.percentage, "vintage": self.vintage}


@dataclass(frozen=True)
class GeneralInfo:
    winery_name: str
    collection_name: str
    type: str
    vintage: Optional[str] = None
    image: Optional[str] = None
    grape_varieties: List[GrapeVariety] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "GeneralInfo":
        return cls(
            winery_name=data.get("wineryName", ""),
            collection_name=data.get("collectionName", ""),
            type=data.get("type", ""),
            vintage=data.get("vintage"),
            image=data.get("image"),
            grape_varieties=[GrapeVariety.from_dict(g) for g in data.get("grapeVarieties") or []],
        )

    def to_dict(self) -> Dict[str, Any]:
        info = {
            "wineryName": self.winery_name,
            "collectionName": self.collection_name,
            "type": self.type,
            "vintage": self.vintage,
            "image": self.image,
            "grapeVarieties": [g.to_dict() for g in self.grape_varieties],
        }
        # Optional keys are omitted rather than sent as null
        return {k: v for k, v in info.items() if v is not None}


@dataclass(frozen=True)
class Wine:
    id: str
    general_info: GeneralInfo
    uid: str = ""
    created_at: str = ""
    status: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Wine":
        return cls(
            id=data["id"],
            uid=data.get("uid", ""),
            created_at=data.get("createdAt", ""),
            status=data.get("status", ""),
            general_info=GeneralInfo.from_dict(data.get("generalInfo") or {}),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "uid": self.uid,
            "id": self.id,
            "createdAt": self.created_at,
            "status": self.status,
            "generalInfo": self.general_info.to_dict(),
        }

    @property
    def has_valid_image(self) -> bool:
        image = self.general_info.image
        return isinstance(image, str) and image.startswith("https://")

    @property
    def label(self) -> str:
        return f"{self.general_info.collection_name} - {self.general_info.type}"


@dataclass(frozen=True)
class Winery:
    id: str
    name: str
    wines: List[Wine] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Winery":
        return cls(
            id=data["id"],
            name=(data.get("info") or {}).get("name", ""),
            wines=[Wine.from_dict(w) for w in data.get("wines") or []],
        )

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "info": {"name": self.name}, "wines": [w.to_dict() for w in self.wines]}

    def with_wines(self, wines: List[Wine]) -> "Winery":
        return replace(self, wines=list(wines))


@dataclass(frozen=True)
class MintingStatus:
    wine_id: str
    winery_id: str
    status: str
    tx_id: Optional[str] = None
    token_ref_id: Optional[str] = None
    error: Optional[str] = None
    timestamp: datetime = field(default_factory=utc_now)

    def advance(self, status: str, **changes) -> "MintingStatus":
        """Returns the next record for this wine; records are replaced, never edited."""
        changes.setdefault("timestamp", utc_now())
        return replace(self, status=status, **changes)

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES


@dataclass
class BatchMintingProgress:
    total_wineries: int = 0
    processed_wineries: int = 0
    current_winery: str = ""
    total_wines: int = 0
    processed_wines: int = 0
    current_wine: str = ""
    minting_statuses: List[MintingStatus] = field(default_factory=list)

    def snapshot(self) -> "BatchMintingProgress":
        return replace(self, minting_statuses=list(self.minting_statuses))


@dataclass(frozen=True)
class MintPayload:
    info: str
    mdata: str
    description: str
    image: str
    name: str
    minsrc: str = ""
    batch_quantity: tuple = (1, 1)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "batch_data": {"info": self.info, "mdata": self.mdata, "minsrc": self.minsrc},
            "batch_meta": {"description": self.description, "image": self.image, "name": self.name},
            "batch_quantity": list(self.batch_quantity),
        }


@dataclass(frozen=True)
class MintRequest:
    wine_id: str
    winery_id: str
    wine: Wine


@dataclass(frozen=True)
class MintResponse:
    success: bool
    tx_id: str = ""
    token_ref_id: str = ""
    error: Optional[str] = None


@dataclass(frozen=True)
class MintResult:
    tx_id: str
    token_ref_id: str


@dataclass(frozen=True)
class TransactionStatus:
    status: str  # pending | complete | error
    details: str = ""
    block_height: Optional[int] = None
    confirmations: Optional[int] = None


@dataclass(frozen=True)
class ImageFile:
    data: bytes
    content_type: str
    filename: str
