"""
NEAR Indexer Data Types

Plain data structures for receipts, blocks and detected events.
Receipts are consumed read-only; events are immutable once created.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple


class ExecutionStatus(Enum):
    """Receipt execution outcome."""
    SUCCESS_VALUE = "SuccessValue"
    SUCCESS_RECEIPT_ID = "SuccessReceiptId"
    FAILURE = "Failure"
    UNKNOWN = "Unknown"

    @property
    def is_success(self) -> bool:
        return self in (ExecutionStatus.SUCCESS_VALUE, ExecutionStatus.SUCCESS_RECEIPT_ID)

    @classmethod
    def from_view(cls, status: Any) -> "ExecutionStatus":
        """
        Map an RPC/neardata status view to an ExecutionStatus.

        Views look like "Unknown", {"SuccessValue": ""},
        {"SuccessReceiptId": "..."} or {"Failure": {...}}.
        """
        if isinstance(status, str):
            key = status
        elif isinstance(status, dict) and len(status) == 1:
            key = next(iter(status))
        else:
            return cls.UNKNOWN

        for member in cls:
            if member.value == key:
                return member
        return cls.UNKNOWN


DEPLOY_CONTRACT = "DeployContract"


@dataclass(frozen=True)
class ReceiptAction:
    """Single action of an action receipt."""
    kind: str  # e.g. "DeployContract", "FunctionCall", "Transfer"
    args: Dict[str, Any] = field(default_factory=dict, compare=False, hash=False)

    @property
    def is_deploy_contract(self) -> bool:
        return self.kind == DEPLOY_CONTRACT

    @classmethod
    def from_view(cls, view: Any) -> "ReceiptAction":
        """Parse "CreateAccount" or {"DeployContract": {...}} style views."""
        if isinstance(view, str):
            return cls(kind=view)
        if isinstance(view, dict) and len(view) == 1:
            kind, args = next(iter(view.items()))
            return cls(kind=kind, args=args if isinstance(args, dict) else {})
        return cls(kind="Unknown")


@dataclass(frozen=True)
class Receipt:
    """One unit of on-chain execution with its outcome."""
    receipt_id: str
    predecessor_id: str
    receiver_id: str
    actions: Tuple[ReceiptAction, ...]
    logs: Tuple[str, ...]
    status: ExecutionStatus

    @property
    def is_success(self) -> bool:
        return self.status.is_success

    @property
    def deploys_contract(self) -> bool:
        return any(action.is_deploy_contract for action in self.actions)


@dataclass(frozen=True)
class BlockHeader:
    """Containing block of a receipt."""
    height: int
    timestamp_nanosec: int
    hash: str = ""


@dataclass(frozen=True)
class IndexedReceipt:
    """Receipt paired with its parent transaction and block."""
    receipt: Receipt
    transaction_hash: str
    block: BlockHeader


@dataclass(frozen=True)
class EventContext:
    """Provenance attached to every detected event."""
    transaction_id: str
    receipt_id: str
    block_height: int
    block_timestamp_nanosec: int

    @classmethod
    def for_receipt(cls, receipt: Receipt, transaction_hash: str, block: BlockHeader) -> "EventContext":
        return cls(
            transaction_id=transaction_hash,
            receipt_id=receipt.receipt_id,
            block_height=block.height,
            block_timestamp_nanosec=block.timestamp_nanosec,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "transaction_id": self.transaction_id,
            "receipt_id": self.receipt_id,
            "block_height": self.block_height,
            # u128 on the wire, keep it exact
            "block_timestamp_nanosec": str(self.block_timestamp_nanosec),
        }


@dataclass(frozen=True)
class MemeCreationEvent:
    """meme-cooking `create_meme` payload."""
    meme_id: int
    owner: str
    end_timestamp_ms: int
    name: str
    symbol: str
    decimals: int
    total_supply: int
    reference: str
    reference_hash: str
    deposit_token_id: str
    soft_cap: int
    hard_cap: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "meme_id": self.meme_id,
            "owner": self.owner,
            "end_timestamp_ms": self.end_timestamp_ms,
            "name": self.name,
            "symbol": self.symbol,
            "decimals": self.decimals,
            "total_supply": str(self.total_supply),
            "reference": self.reference,
            "reference_hash": self.reference_hash,
            "deposit_token_id": self.deposit_token_id,
            "soft_cap": str(self.soft_cap),
            "hard_cap": str(self.hard_cap) if self.hard_cap is not None else None,
        }


@dataclass(frozen=True)
class TokenCreationEvent:
    """meme-cooking `create_token` payload."""
    meme_id: int
    token_id: str
    total_supply: int
    pool_id: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "meme_id": self.meme_id,
            "token_id": self.token_id,
            "total_supply": str(self.total_supply),
            "pool_id": self.pool_id,
        }
