"""
Meme Cooking Factory Detector

Parses the meme-cooking factory's own NEP-297 logs:
- create_meme  → MemeCreationEvent
- create_token → TokenCreationEvent

The factory log is authoritative and emitted once per creation, so there is
no verification and no dedup on this path.
"""

import logging
from typing import Any, Optional

from .event_log import (
    U32_MAX,
    U64_MAX,
    U128_MAX,
    FieldError,
    optional_uint,
    parse_event_log,
    require_account_id,
    require_str,
    require_uint,
)
from .handler import ContractEventHandler
from .types import BlockHeader, EventContext, MemeCreationEvent, Receipt, TokenCreationEvent

MEME_COOKING_CONTRACT = "meme-cooking.near"
MEME_COOKING_CONTRACT_TESTNET = "factory.v10.meme-cooking.testnet"

MEME_COOKING_STANDARD = "meme-cooking"
CREATE_MEME = "create_meme"
CREATE_TOKEN = "create_token"


def factory_account(is_testnet: bool) -> str:
    return MEME_COOKING_CONTRACT_TESTNET if is_testnet else MEME_COOKING_CONTRACT


def parse_meme_creation(data: Any) -> MemeCreationEvent:
    """Build a MemeCreationEvent from `data`. Raises FieldError."""
    if not isinstance(data, dict):
        raise FieldError("create_meme data is not an object")

    return MemeCreationEvent(
        meme_id=require_uint(data, "meme_id", U64_MAX),
        owner=require_account_id(data, "owner"),
        end_timestamp_ms=require_uint(data, "end_timestamp_ms", U64_MAX),
        name=require_str(data, "name"),
        symbol=require_str(data, "symbol"),
        decimals=require_uint(data, "decimals", U32_MAX),
        total_supply=require_uint(data, "total_supply", U128_MAX),
        reference=require_str(data, "reference"),
        reference_hash=require_str(data, "reference_hash"),
        deposit_token_id=require_account_id(data, "deposit_token_id"),
        soft_cap=require_uint(data, "soft_cap", U128_MAX),
        hard_cap=optional_uint(data, "hard_cap", U128_MAX),
    )


def parse_token_creation(data: Any) -> TokenCreationEvent:
    """Build a TokenCreationEvent from `data`. Raises FieldError."""
    if not isinstance(data, dict):
        raise FieldError("create_token data is not an object")

    return TokenCreationEvent(
        meme_id=require_uint(data, "meme_id", U64_MAX),
        token_id=require_account_id(data, "token_id"),
        total_supply=require_uint(data, "total_supply", U128_MAX),
        pool_id=require_uint(data, "pool_id", U64_MAX),
    )


def parse_factory_log(log: str) -> Optional[Any]:
    """
    Classify one factory log.

    Returns a MemeCreationEvent, a TokenCreationEvent, or None when the log
    is not a clean match for either schema.
    """
    event = parse_event_log(log)
    if event is None or event.standard != MEME_COOKING_STANDARD:
        return None

    try:
        if event.event == CREATE_MEME:
            return parse_meme_creation(event.data)
        if event.event == CREATE_TOKEN:
            return parse_token_creation(event.data)
    except FieldError as e:
        logging.getLogger("MemeCookingDetector").debug(f"Ignoring malformed {event.event} log: {e}")
    return None


class MemeCookingDetector:
    """Emits factory creation events for receipts executed on the factory."""

    def __init__(self):
        self._logger = logging.getLogger("MemeCookingDetector")
        self._stats = {
            "memes_created": 0,
            "tokens_created": 0,
        }

    async def detect_meme_cooking(
        self,
        receipt: Receipt,
        transaction_hash: str,
        block: BlockHeader,
        handler: ContractEventHandler
    ):
        if not receipt.is_success:
            return
        if receipt.receiver_id != factory_account(handler.is_testnet()):
            return

        for log in receipt.logs:
            event = parse_factory_log(log)
            if event is None:
                continue

            context = EventContext.for_receipt(receipt, transaction_hash, block)
            if isinstance(event, MemeCreationEvent):
                self._stats["memes_created"] += 1
                self._logger.info(f"Meme created: #{event.meme_id} {event.symbol} by {event.owner}")
                await handler.on_meme_created(event, context)
            else:
                self._stats["tokens_created"] += 1
                self._logger.info(f"Meme token created: #{event.meme_id} {event.token_id}")
                await handler.on_token_created(event, context)

    def get_stats(self) -> dict:
        return dict(self._stats)
