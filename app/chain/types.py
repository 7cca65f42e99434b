from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class ChainType(str, Enum):
    ETHEREUM = "ethereum"
    FILECOIN = "filecoin"
    FUEL = "fuel"


class Standard(str, Enum):
    ERC721 = "erc721"
    ERC1155 = "erc1155"


class ReconcileOutcome(str, Enum):
    APPLIED = "applied"
    COLLECTION_MISSING = "collection_missing"
    FAILED = "failed"


@dataclass(frozen=True, slots=True)
class CollectionRef:
    id: int
    chain_type: str
    chain_id: int
    contract_address: str
    standard: str


@dataclass(frozen=True, slots=True)
class TransferEvent:
    operator: str
    from_address: str
    to_address: str
    token_id: int
    amount: int
    collection_id: int


@dataclass(frozen=True, slots=True)
class TokenMetadata:
    name: str
    description: str | None
    image: str | None


@dataclass(slots=True)
class ListenerSummary:
    installed: int = 0
    skipped: int = 0
    failed: int = 0

    def as_dict(self) -> dict[str, int]:
        return {"installed": self.installed, "skipped": self.skipped, "failed": self.failed}
