"""
New Token Indexer

Routes every receipt, in arrival order, through all detectors:
- Nep141Detector: contract deployments and NEP-141 activity
- MemeCookingDetector: meme-cooking factory creation logs

Failed receipts are skipped entirely. Detections from different paths for the
same receipt are independent. Synchronous detections reach the handler before
on_receipt() returns; delayed re-checks emit later, out of band.

Lifecycle:
1. NewTokenIndexer(handler, verifier, ledger)
2. await indexer.run(provider)  (or on_receipt() per receipt)
3. await indexer.stop()
"""

import logging
import time
from typing import Dict, Optional

from .handler import ContractEventHandler
from .ledger import DedupLedger
from .meme_cooking import MemeCookingDetector
from .nep141 import Nep141Config, Nep141Detector
from .types import BlockHeader, Receipt
from .verifier import MetadataVerifier


class NewTokenIndexer:
    """
    Receipt router.

    Usage:
        indexer = NewTokenIndexer(handler, verifier, ledger)
        for item in receipts:
            await indexer.on_receipt(item.receipt, item.transaction_hash, item.block)
        await indexer.wait_pending()
    """

    def __init__(
        self,
        handler: ContractEventHandler,
        verifier: MetadataVerifier,
        ledger: DedupLedger,
        nep141_config: Optional[Nep141Config] = None,
        clock=time.monotonic
    ):
        self.handler = handler
        self.ledger = ledger
        self.nep141_indexer = Nep141Detector(verifier, ledger, nep141_config, clock=clock)
        self.meme_cooking_indexer = MemeCookingDetector()
        self._logger = logging.getLogger("NewTokenIndexer")

        self._stats = {
            "receipts_processed": 0,
            "receipts_skipped": 0,
            "last_block_height": 0,
            "start_time": 0.0,
        }

    async def on_receipt(self, receipt: Receipt, transaction_hash: str, block: BlockHeader):
        """
        Process one receipt.

        Raises BackgroundTaskError if an earlier delayed re-check hit a
        ledger or sink failure, LedgerError/SinkError for failures on this
        receipt.
        """
        self.nep141_indexer.raise_background_failure()
        self._stats["last_block_height"] = block.height

        if not receipt.is_success:
            self._stats["receipts_skipped"] += 1
            return

        self._stats["receipts_processed"] += 1

        await self.nep141_indexer.detect_nep141(receipt, transaction_hash, block, self.handler)
        await self.meme_cooking_indexer.detect_meme_cooking(receipt, transaction_hash, block, self.handler)

    async def run(self, provider):
        """
        Drive the indexer from a block provider until it is exhausted.

        The provider yields IndexedReceipt items in block order.
        """
        self._stats["start_time"] = time.time()
        self._logger.info(f"Indexer started ({len(self.ledger):,} known tokens)")

        async for item in provider.stream():
            await self.on_receipt(item.receipt, item.transaction_hash, item.block)

        await self.wait_pending()
        self.nep141_indexer.raise_background_failure()
        self._logger.info(f"Indexer finished at block {self._stats['last_block_height']}")

    async def wait_pending(self):
        """Wait for in-flight delayed re-checks."""
        await self.nep141_indexer.wait_pending()

    async def stop(self, cancel_pending: bool = True):
        """Stop the indexer; pending re-checks are abandoned unless told otherwise."""
        if cancel_pending:
            await self.nep141_indexer.cancel_pending()
        else:
            await self.nep141_indexer.wait_pending()
        self._logger.info("Indexer stopped")

    def get_stats(self) -> Dict:
        runtime = time.time() - self._stats["start_time"] if self._stats["start_time"] > 0 else 0

        return {
            "receipts_processed": self._stats["receipts_processed"],
            "receipts_skipped": self._stats["receipts_skipped"],
            "last_block_height": self._stats["last_block_height"],
            "known_tokens": len(self.ledger),
            "runtime_seconds": runtime,
            "nep141": self.nep141_indexer.get_stats(),
            "meme_cooking": self.meme_cooking_indexer.get_stats(),
        }
