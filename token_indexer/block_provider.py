"""
Neardata Block Provider

Reads NEAR blocks from a neardata server over HTTP and yields their executed
receipts in block order.

Endpoints:
- GET {base}/v0/block/{height}       → block JSON, `null` for skipped heights
- GET {base}/v0/last_block/final     → latest final block JSON

Ranges:
- Fixed: start..=end, then stop
- Auto-continue: resume after the checkpointed block (or at the latest final
  block when there is no checkpoint) and follow the chain head

No reorg handling and no transaction reassembly: each receipt is paired with
the `tx_hash` neardata attaches to it.
"""

import asyncio
import json
import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, AsyncIterator, Dict, List, Optional

import aiohttp

from .errors import ProviderError
from .types import BlockHeader, ExecutionStatus, IndexedReceipt, Receipt, ReceiptAction

MAINNET_NEARDATA_URL = "https://mainnet.neardata.xyz"
TESTNET_NEARDATA_URL = "https://testnet.neardata.xyz"


@dataclass
class NeardataConfig:
    """Configuration for the neardata provider."""
    base_url: str = MAINNET_NEARDATA_URL
    request_timeout: float = 30.0

    # Range; end_block None = follow the chain head
    start_block: Optional[int] = None
    end_block: Optional[int] = None

    # Checkpoint settings
    checkpoint_path: Optional[str] = "indexer_checkpoint.json"
    checkpoint_interval: int = 100  # Save progress every N blocks

    # Retry / tail settings
    max_retries: int = 10
    retry_delay: float = 1.0
    max_retry_delay: float = 30.0
    head_poll_interval: float = 1.0


def parse_block(data: Dict[str, Any]) -> List[IndexedReceipt]:
    """
    Extract executed receipts from a neardata block, in shard order.

    Receipts without a tx_hash (e.g. some system receipts) are dropped.
    """
    header_view = data["block"]["header"]
    header = BlockHeader(
        height=int(header_view["height"]),
        timestamp_nanosec=int(header_view["timestamp_nanosec"]),
        hash=header_view.get("hash", ""),
    )

    receipts = []
    for shard in data.get("shards") or []:
        for outcome_with_receipt in shard.get("receipt_execution_outcomes") or []:
            tx_hash = outcome_with_receipt.get("tx_hash")
            if not tx_hash:
                continue

            receipt_view = outcome_with_receipt["receipt"]
            outcome = outcome_with_receipt["execution_outcome"]["outcome"]

            actions = ()
            body = receipt_view.get("receipt") or {}
            if isinstance(body, dict) and "Action" in body:
                actions = tuple(ReceiptAction.from_view(a) for a in body["Action"].get("actions", []))

            receipt = Receipt(
                receipt_id=receipt_view["receipt_id"],
                predecessor_id=receipt_view.get("predecessor_id", ""),
                receiver_id=receipt_view["receiver_id"],
                actions=actions,
                logs=tuple(outcome.get("logs") or ()),
                status=ExecutionStatus.from_view(outcome.get("status")),
            )
            receipts.append(IndexedReceipt(receipt=receipt, transaction_hash=tx_hash, block=header))

    return receipts


class NeardataProvider:
    """
    Neardata block provider.

    Usage:
        provider = NeardataProvider(NeardataConfig(start_block=..., end_block=...))
        await provider.start()
        async for item in provider.stream():
            process(item)
        await provider.stop()
    """

    def __init__(self, config: Optional[NeardataConfig] = None):
        self.config = config or NeardataConfig()
        self._logger = logging.getLogger("NeardataProvider")
        self._session: Optional[aiohttp.ClientSession] = None
        self._running = False
        self._checkpoint: Dict = {}
        self._latest_final: int = 0

        self._stats = {
            "blocks_fetched": 0,
            "blocks_skipped": 0,
            "receipts_yielded": 0,
            "retries": 0,
        }

    async def start(self):
        """Initialize provider resources."""
        self._running = True
        self._session = aiohttp.ClientSession(
            timeout=aiohttp.ClientTimeout(total=self.config.request_timeout)
        )
        self._load_checkpoint()

    async def stop(self):
        """Clean up resources."""
        self._running = False
        if self._session:
            await self._session.close()
            self._session = None
        self._save_checkpoint()

    # =========================================================================
    # Checkpoint Management
    # =========================================================================

    def _load_checkpoint(self):
        """Load checkpoint from file."""
        if not self.config.checkpoint_path:
            return
        path = Path(self.config.checkpoint_path)
        if path.exists():
            try:
                with open(path, 'r') as f:
                    self._checkpoint = json.load(f)
                self._logger.info(f"Loaded checkpoint: block {self._checkpoint.get('last_indexed_block', 0)}")
            except (OSError, ValueError) as e:
                self._logger.warning(f"Failed to load checkpoint: {e}")
                self._checkpoint = {}

    def _save_checkpoint(self):
        """Save checkpoint to file."""
        if not self.config.checkpoint_path or not self._checkpoint:
            return
        try:
            with open(self.config.checkpoint_path, 'w') as f:
                json.dump(self._checkpoint, f)
        except OSError as e:
            self._logger.error(f"Failed to save checkpoint: {e}")

    def save_progress(self, block_height: int):
        """Record that every receipt of block_height was processed."""
        self._checkpoint['last_indexed_block'] = block_height
        self._checkpoint['timestamp'] = time.time()

        if block_height % self.config.checkpoint_interval == 0:
            self._save_checkpoint()

    def get_last_indexed_block(self) -> int:
        return self._checkpoint.get('last_indexed_block', 0)

    # =========================================================================
    # Fetching
    # =========================================================================

    async def _get_json(self, url: str) -> Any:
        """GET with retries and exponential backoff. Raises ProviderError."""
        delay = self.config.retry_delay
        last_error = None

        for attempt in range(self.config.max_retries + 1):
            try:
                async with self._session.get(url) as response:
                    if response.status == 200:
                        return await response.json(content_type=None)
                    last_error = f"HTTP {response.status}"
            except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
                last_error = str(e) or type(e).__name__

            if attempt < self.config.max_retries:
                self._stats["retries"] += 1
                self._logger.warning(f"GET {url} failed ({last_error}), retrying in {delay:.1f}s")
                await asyncio.sleep(delay)
                delay = min(delay * 2, self.config.max_retry_delay)

        raise ProviderError(f"GET {url} failed after {self.config.max_retries} retries: {last_error}")

    async def fetch_block(self, height: int) -> Optional[Dict[str, Any]]:
        """Fetch one block; None if the height was skipped."""
        data = await self._get_json(f"{self.config.base_url}/v0/block/{height}")
        if data is None:
            self._stats["blocks_skipped"] += 1
            return None
        self._stats["blocks_fetched"] += 1
        return data

    async def get_latest_final_height(self) -> int:
        data = await self._get_json(f"{self.config.base_url}/v0/last_block/final")
        if not data:
            raise ProviderError("Latest final block unavailable")
        self._latest_final = int(data["block"]["header"]["height"])
        return self._latest_final

    async def _resolve_start(self) -> int:
        if self.config.start_block is not None:
            return self.config.start_block
        last = self.get_last_indexed_block()
        if last:
            return last + 1
        return await self.get_latest_final_height()

    async def _wait_for_height(self, height: int):
        """Block until the chain head reaches height (auto-continue mode)."""
        while self._running and height > self._latest_final:
            await self.get_latest_final_height()
            if height > self._latest_final:
                await asyncio.sleep(self.config.head_poll_interval)

    # =========================================================================
    # Streaming
    # =========================================================================

    async def stream(self) -> AsyncIterator[IndexedReceipt]:
        """
        Yield receipts in block order.

        Progress for a block is saved once the consumer has taken all of its
        receipts.
        """
        if self._session is None:
            await self.start()

        height = await self._resolve_start()
        end = self.config.end_block
        self._logger.info(f"Streaming blocks from {height}" + (f" to {end}" if end is not None else ""))

        while self._running and (end is None or height <= end):
            if end is None:
                await self._wait_for_height(height)
                if not self._running:
                    break

            data = await self.fetch_block(height)
            if data is not None:
                for item in parse_block(data):
                    self._stats["receipts_yielded"] += 1
                    yield item

            self.save_progress(height)
            height += 1

        self._save_checkpoint()

    def get_stats(self) -> Dict:
        return {
            **self._stats,
            "last_indexed_block": self.get_last_indexed_block(),
            "latest_final": self._latest_final,
        }
