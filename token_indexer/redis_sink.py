"""
Redis Stream Sink

Publishes detected events to Redis streams, one stream per event kind:
- newcontract_nep141
- memecooking_create_meme
- memecooking_create_token
(suffixed with _testnet on testnet)

Entries are appended with an explicit ID of `<sequence_key>-*`, where the
sequence key is the block height. Redis rejects IDs smaller than the
stream's last ID, and delayed re-checks can emit after newer blocks were
already published, so each stream keeps a watermark and appends with
max(block_height, watermark).

Append failures raise SinkError and are fatal: the ledger already recorded
the token, so continuing would lose the event silently.
"""

import asyncio
import json
import logging
from typing import Any, Dict

import redis.asyncio as redis
from redis.exceptions import RedisError, ResponseError

from .errors import SinkError
from .handler import ContractEventHandler
from .types import EventContext, MemeCreationEvent, TokenCreationEvent

NEW_CONTRACT_NEP141_STREAM = "newcontract_nep141"
MEME_COOKING_CREATE_MEME_STREAM = "memecooking_create_meme"
MEME_COOKING_CREATE_TOKEN_STREAM = "memecooking_create_token"

TESTNET_SUFFIX = "_testnet"


def stream_name(event_id: str, is_testnet: bool) -> str:
    return event_id + TESTNET_SUFFIX if is_testnet else event_id


class RedisEventStream:
    """
    Append-only Redis stream with a monotonic sequence key.

    The watermark read-modify-write and the XADD happen under one lock, so
    concurrent emitters can't append out of order.
    """

    def __init__(self, connection: redis.Redis, name: str, max_stream_size: int = 1_000):
        self.name = name
        self.max_stream_size = max_stream_size
        self._redis = connection
        self._lock = asyncio.Lock()
        self._watermark = 0
        self._logger = logging.getLogger("RedisEventStream")

    @property
    def watermark(self) -> int:
        return self._watermark

    async def load_watermark(self) -> int:
        """Initialize the watermark from the stream's last generated ID."""
        try:
            info = await self._redis.xinfo_stream(self.name)
        except ResponseError:
            # Stream doesn't exist yet
            return self._watermark
        except RedisError as e:
            raise SinkError(f"Failed to read stream {self.name}: {e}") from e

        last_id = info.get("last-generated-id") or info.get(b"last-generated-id")
        if isinstance(last_id, bytes):
            last_id = last_id.decode()
        if last_id:
            self._watermark = max(self._watermark, int(str(last_id).split("-")[0]))
        self._logger.info(f"Stream {self.name} watermark: {self._watermark}")
        return self._watermark

    async def emit_event(self, block_height: int, payload: Dict[str, Any]) -> int:
        """
        Append one event. Returns the sequence key used.

        Raises SinkError.
        """
        async with self._lock:
            key = max(block_height, self._watermark)
            self._watermark = key
            try:
                await self._redis.xadd(
                    self.name,
                    {"data": json.dumps(payload)},
                    id=f"{key}-*",
                    maxlen=self.max_stream_size,
                    approximate=True
                )
            except RedisError as e:
                raise SinkError(f"Failed to append to {self.name} at {key}: {e}") from e

        if key != block_height:
            self._logger.debug(f"{self.name}: late event from block {block_height} appended at {key}")
        return key


class RedisStreamHandler(ContractEventHandler):
    """
    ContractEventHandler that publishes to Redis streams.

    Usage:
        connection = redis.Redis.from_url(os.environ["REDIS_URL"])
        handler = RedisStreamHandler(connection, max_stream_size=1_000, testnet=False)
        await handler.start()
    """

    def __init__(self, connection: redis.Redis, max_stream_size: int = 1_000, testnet: bool = False):
        self._redis = connection
        self._testnet = testnet
        self._logger = logging.getLogger("RedisStreamHandler")

        self.nep141_stream = RedisEventStream(
            connection, stream_name(NEW_CONTRACT_NEP141_STREAM, testnet), max_stream_size
        )
        self.meme_stream = RedisEventStream(
            connection, stream_name(MEME_COOKING_CREATE_MEME_STREAM, testnet), max_stream_size
        )
        self.token_stream = RedisEventStream(
            connection, stream_name(MEME_COOKING_CREATE_TOKEN_STREAM, testnet), max_stream_size
        )

    @classmethod
    def from_url(cls, redis_url: str, max_stream_size: int = 1_000, testnet: bool = False) -> "RedisStreamHandler":
        return cls(redis.Redis.from_url(redis_url), max_stream_size, testnet)

    async def start(self):
        """Check connectivity and load stream watermarks."""
        try:
            await self._redis.ping()
        except RedisError as e:
            raise SinkError(f"Redis unreachable: {e}") from e

        for stream in (self.nep141_stream, self.meme_stream, self.token_stream):
            await stream.load_watermark()

    async def stop(self):
        await self._redis.aclose()

    async def on_new_token(self, account_id: str, context: EventContext) -> None:
        payload = {"account_id": account_id, **context.to_dict()}
        await self.nep141_stream.emit_event(context.block_height, payload)

    async def on_meme_created(self, event: MemeCreationEvent, context: EventContext) -> None:
        payload = {**event.to_dict(), **context.to_dict()}
        await self.meme_stream.emit_event(context.block_height, payload)

    async def on_token_created(self, event: TokenCreationEvent, context: EventContext) -> None:
        payload = {**event.to_dict(), **context.to_dict()}
        await self.token_stream.emit_event(context.block_height, payload)

    def is_testnet(self) -> bool:
        return self._testnet
