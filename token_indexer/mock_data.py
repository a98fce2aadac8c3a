"""
Mock collaborators for offline testing.

- MockRpcClient: answers ft_metadata for a configured set of token accounts
- RecordingEventHandler: keeps every emitted event in memory
- make_receipt / nep141_log / meme_cooking_log: receipt and log builders

Use cases:
- Unit testing without RPC or Redis access
- Reproducing race and throttling scenarios deterministically
"""

import asyncio
import json
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Set, Tuple

from .errors import RpcError
from .handler import ContractEventHandler
from .rpc_client import BlockReference
from .types import (
    DEPLOY_CONTRACT,
    BlockHeader,
    EventContext,
    ExecutionStatus,
    MemeCreationEvent,
    Receipt,
    ReceiptAction,
    TokenCreationEvent,
)


@dataclass
class MockRpcConfig:
    """Configuration for the mock RPC."""
    # Accounts whose ft_metadata succeeds
    token_accounts: Set[str] = field(default_factory=set)
    # account -> number of failing calls before ft_metadata starts succeeding
    token_after_calls: Dict[str, int] = field(default_factory=dict)
    # Simulated latency per call (seconds)
    latency: float = 0.0


class MockRpcClient:
    """
    Mock NearRpcClient.call_function.

    Usage:
        client = MockRpcClient(MockRpcConfig(token_accounts={"intel.tkn.near"}))
        await client.call_function("intel.tkn.near", "ft_metadata", {}, BlockReference.final())
    """

    def __init__(self, config: Optional[MockRpcConfig] = None):
        self.config = config or MockRpcConfig()
        self.calls: List[Tuple[str, str, BlockReference]] = []
        self._call_counts: Dict[str, int] = {}

    def calls_for(self, account_id: str) -> int:
        return sum(1 for account, _, _ in self.calls if account == account_id)

    async def call_function(
        self,
        account_id: str,
        method_name: str,
        args: Dict[str, Any],
        block_reference: BlockReference
    ) -> Dict[str, Any]:
        self.calls.append((account_id, method_name, block_reference))
        count = self._call_counts.get(account_id, 0)
        self._call_counts[account_id] = count + 1

        if self.config.latency:
            await asyncio.sleep(self.config.latency)

        if account_id in self.config.token_accounts:
            return self._metadata(account_id)

        threshold = self.config.token_after_calls.get(account_id)
        if threshold is not None and count >= threshold:
            return self._metadata(account_id)

        raise RpcError(
            f"wasm execution failed: MethodNotFound on {account_id}",
            name="HANDLER_ERROR",
            cause="CONTRACT_EXECUTION_ERROR"
        )

    @staticmethod
    def _metadata(account_id: str) -> Dict[str, Any]:
        body = {"spec": "ft-1.0.0", "name": account_id, "symbol": "TKN", "decimals": 18}
        return {"result": list(json.dumps(body).encode()), "logs": []}


class RecordingEventHandler(ContractEventHandler):
    """Handler that records events per kind, in emission order."""

    def __init__(self, testnet: bool = False):
        self.testnet = testnet
        self.new_tokens: List[Tuple[str, EventContext]] = []
        self.memes: List[Tuple[MemeCreationEvent, EventContext]] = []
        self.tokens: List[Tuple[TokenCreationEvent, EventContext]] = []

    async def on_new_token(self, account_id: str, context: EventContext) -> None:
        self.new_tokens.append((account_id, context))

    async def on_meme_created(self, event: MemeCreationEvent, context: EventContext) -> None:
        self.memes.append((event, context))

    async def on_token_created(self, event: TokenCreationEvent, context: EventContext) -> None:
        self.tokens.append((event, context))

    def is_testnet(self) -> bool:
        return self.testnet

    def token_accounts(self) -> List[str]:
        return [account for account, _ in self.new_tokens]


# =========================================================================
# Builders
# =========================================================================

def make_receipt(
    receiver_id: str,
    receipt_id: str = "7MiLFpVunJQKKjzY6o2b58GDqyi1wG3W8f51QFBa83fm",
    deploy: bool = False,
    logs: Iterable[str] = (),
    status: ExecutionStatus = ExecutionStatus.SUCCESS_VALUE,
    predecessor_id: str = "tkn.near",
) -> Receipt:
    actions = [ReceiptAction(kind="CreateAccount")]
    if deploy:
        actions.append(ReceiptAction(kind=DEPLOY_CONTRACT, args={"code": "AGFzbQ=="}))
    actions.append(ReceiptAction(kind="FunctionCall", args={"method_name": "new"}))

    return Receipt(
        receipt_id=receipt_id,
        predecessor_id=predecessor_id,
        receiver_id=receiver_id,
        actions=tuple(actions),
        logs=tuple(logs),
        status=status,
    )


def make_block(height: int, timestamp_nanosec: int = 1710328781107609847) -> BlockHeader:
    return BlockHeader(height=height, timestamp_nanosec=timestamp_nanosec, hash=f"block-{height}")


def event_json(standard: str, event: str, data: Any, version: str = "1.0.0") -> str:
    return "EVENT_JSON:" + json.dumps({
        "standard": standard,
        "version": version,
        "event": event,
        "data": data,
    })


def nep141_log(event: str = "ft_transfer", amount: str = "1000000000000000000") -> str:
    if event == "ft_transfer":
        data = [{"old_owner_id": "alice.near", "new_owner_id": "bob.near", "amount": amount}]
    else:
        data = [{"owner_id": "alice.near", "amount": amount}]
    return event_json("nep141", event, data)


def meme_cooking_log(event: str, data: Dict[str, Any]) -> str:
    return event_json("meme-cooking", event, data)
