"""
NEP-141 Token Detector

Finds new fungible token contracts in the receipt stream.

Detection paths:
- Deployment: a DeployContract action on a receiver that answers ft_metadata.
  A failed check is retried once, in the background, after a short delay
  (contracts are often deployed and initialized in back-to-back receipts).
- Events: a receiver emitting ft_transfer / ft_mint / ft_burn logs. Checked
  at most once per receiver per log_check_interval, no delayed retry.

Both paths mark the account in the dedup ledger before emitting, and only
the call that actually inserted it emits.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import List, Optional, Set

from .errors import BackgroundTaskError
from .event_log import has_nep141_activity
from .handler import ContractEventHandler
from .ledger import DedupLedger
from .types import BlockHeader, EventContext, Receipt
from .verifier import MetadataVerifier


@dataclass
class Nep141Config:
    """Configuration for NEP-141 detection."""
    # Grace period before re-checking a deployment that failed verification
    recheck_delay: float = 5.0
    # Minimum time between event-based checks of the same receiver
    log_check_interval: float = 30 * 60.0


class Nep141Detector:
    """
    NEP-141 contract detector.

    Usage:
        detector = Nep141Detector(verifier, ledger)
        await detector.detect_nep141(receipt, tx_hash, block, handler)
        ...
        await detector.wait_pending()
    """

    def __init__(
        self,
        verifier: MetadataVerifier,
        ledger: DedupLedger,
        config: Optional[Nep141Config] = None,
        clock=time.monotonic
    ):
        self.config = config or Nep141Config()
        self._verifier = verifier
        self._ledger = ledger
        self._clock = clock
        self._logger = logging.getLogger("Nep141Detector")

        # receiver -> clock() of last event-based check
        self._last_checked: dict = {}

        # Detached re-check tasks
        self._pending: Set[asyncio.Task] = set()
        self._failures: List[BaseException] = []

        self._stats = {
            "deployments_seen": 0,
            "rechecks_scheduled": 0,
            "detected_by_deploy": 0,
            "detected_by_recheck": 0,
            "detected_by_events": 0,
        }

    async def detect_nep141(
        self,
        receipt: Receipt,
        transaction_hash: str,
        block: BlockHeader,
        handler: ContractEventHandler
    ):
        """Run both detection paths against one successful receipt."""
        await self.detect_deployment(receipt, transaction_hash, block, handler)
        await self.detect_by_events(receipt, transaction_hash, block, handler)

    # =========================================================================
    # Deployment Path
    # =========================================================================

    async def detect_deployment(
        self,
        receipt: Receipt,
        transaction_hash: str,
        block: BlockHeader,
        handler: ContractEventHandler
    ):
        if not receipt.is_success:
            return

        if not receipt.deploys_contract:
            return

        # Every deploy action targets the receiver: one candidate per receipt
        account_id = receipt.receiver_id
        self._stats["deployments_seen"] += 1
        if self._ledger.contains(account_id):
            return

        context = EventContext.for_receipt(receipt, transaction_hash, block)
        if await self._verifier.is_token_like(account_id, block.height, block.timestamp_nanosec):
            if await self._mark_and_emit(account_id, context, handler):
                self._stats["detected_by_deploy"] += 1
        else:
            self._schedule_recheck(account_id, context, handler)

    def _schedule_recheck(self, account_id: str, context: EventContext, handler: ContractEventHandler):
        self._stats["rechecks_scheduled"] += 1
        task = asyncio.create_task(self._delayed_recheck(account_id, context, handler))
        self._pending.add(task)
        task.add_done_callback(self._on_recheck_done)

    async def _delayed_recheck(self, account_id: str, context: EventContext, handler: ContractEventHandler):
        await asyncio.sleep(self.config.recheck_delay)

        if self._ledger.contains(account_id):
            return

        # No timestamp: query latest final state, the deployment block is stale by now
        if not await self._verifier.is_token_like(account_id, context.block_height):
            self._logger.debug(f"{account_id} still not a token after re-check")
            return

        if await self._mark_and_emit(account_id, context, handler):
            self._stats["detected_by_recheck"] += 1

    def _on_recheck_done(self, task: asyncio.Task):
        self._pending.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            self._logger.error(f"Delayed re-check failed: {exc!r}")
            self._failures.append(exc)

    # =========================================================================
    # Event Path
    # =========================================================================

    async def detect_by_events(
        self,
        receipt: Receipt,
        transaction_hash: str,
        block: BlockHeader,
        handler: ContractEventHandler
    ):
        if not receipt.is_success:
            return

        account_id = receipt.receiver_id
        if self._ledger.contains(account_id):
            return

        now = self._clock()
        last_checked = self._last_checked.get(account_id)
        if last_checked is not None and now - last_checked < self.config.log_check_interval:
            return

        if not has_nep141_activity(receipt.logs):
            return

        # Throttle regardless of the outcome below
        self._last_checked[account_id] = now

        if await self._verifier.is_token_like(account_id, block.height, block.timestamp_nanosec):
            context = EventContext.for_receipt(receipt, transaction_hash, block)
            if await self._mark_and_emit(account_id, context, handler):
                self._stats["detected_by_events"] += 1

    # =========================================================================
    # Emission
    # =========================================================================

    async def _mark_and_emit(
        self,
        account_id: str,
        context: EventContext,
        handler: ContractEventHandler
    ) -> bool:
        """Mark, then emit. Returns False if another path marked it first."""
        if not await self._ledger.mark(account_id):
            return False
        self._last_checked.pop(account_id, None)

        self._logger.info(f"Found NEP141: {account_id} (block {context.block_height})")
        await handler.on_new_token(account_id, context)
        return True

    # =========================================================================
    # Background Tasks
    # =========================================================================

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    def raise_background_failure(self):
        """Re-raise the first hard failure of a finished re-check task."""
        if self._failures:
            exc = self._failures.pop(0)
            raise BackgroundTaskError(
                f"Delayed re-check failed: {exc}",
                subsystem=getattr(exc, "subsystem", ""),
            ) from exc

    async def wait_pending(self):
        """Wait for all in-flight re-checks, including ones they spawn."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def cancel_pending(self):
        """Abandon in-flight re-checks (shutdown)."""
        tasks = list(self._pending)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
            self._logger.info(f"Abandoned {len(tasks)} pending re-checks")

    def get_stats(self) -> dict:
        return {
            **self._stats,
            "pending_rechecks": len(self._pending),
            "throttled_receivers": len(self._last_checked),
        }
