"""
Unit tests for the NewTokenIndexer receipt router.

Tests:
- Failed receipts skipped entirely
- All detector paths run on the same receipt
- Provider-driven run with delayed re-checks
- Background failures abort on the next receipt
"""

import pytest

from token_indexer.errors import BackgroundTaskError, LedgerError
from token_indexer.ledger import DedupLedger, LedgerStore, MemoryLedgerStore
from token_indexer.meme_cooking import MEME_COOKING_CONTRACT
from token_indexer.mock_data import (
    MockRpcClient,
    MockRpcConfig,
    RecordingEventHandler,
    make_block,
    make_receipt,
    meme_cooking_log,
    nep141_log,
)
from token_indexer.nep141 import Nep141Config
from token_indexer.router import NewTokenIndexer
from token_indexer.types import ExecutionStatus, IndexedReceipt
from token_indexer.verifier import MetadataVerifier

TOKEN_CREATED = {
    "meme_id": 7,
    "token_id": "lee-7.meme-cooking.near",
    "total_supply": "1000000000000000000000000000",
    "pool_id": 11,
}


class FailingStore(LedgerStore):
    def load(self):
        return set()

    def persist(self, account_id):
        raise LedgerError("disk full")


class ListProvider:
    """Provider yielding a fixed list of receipts."""

    def __init__(self, items):
        self.items = items

    async def stream(self):
        for item in self.items:
            yield item


def build_indexer(rpc_config=None, handler=None, store=None):
    rpc = MockRpcClient(rpc_config or MockRpcConfig())
    ledger = DedupLedger(store or MemoryLedgerStore())
    ledger.load()
    indexer = NewTokenIndexer(
        handler or RecordingEventHandler(),
        MetadataVerifier(rpc),
        ledger,
        Nep141Config(recheck_delay=0.0),
    )
    return indexer, rpc


class TestRouting:
    """Test per-receipt routing."""

    @pytest.mark.asyncio
    async def test_failed_receipt_skipped(self):
        indexer, rpc = build_indexer(MockRpcConfig(token_accounts={"intel.tkn.near"}))
        receipt = make_receipt(
            "intel.tkn.near", deploy=True, logs=[nep141_log("ft_mint")], status=ExecutionStatus.FAILURE
        )

        await indexer.on_receipt(receipt, "tx", make_block(1))

        assert indexer.handler.new_tokens == []
        assert rpc.calls == []
        assert indexer.get_stats()["receipts_skipped"] == 1

    @pytest.mark.asyncio
    async def test_unknown_status_skipped(self):
        indexer, rpc = build_indexer(MockRpcConfig(token_accounts={"intel.tkn.near"}))
        receipt = make_receipt("intel.tkn.near", deploy=True, status=ExecutionStatus.UNKNOWN)

        await indexer.on_receipt(receipt, "tx", make_block(1))

        assert rpc.calls == []

    @pytest.mark.asyncio
    async def test_success_receipt_id_processed(self):
        indexer, _ = build_indexer(MockRpcConfig(token_accounts={"intel.tkn.near"}))
        receipt = make_receipt("intel.tkn.near", deploy=True, status=ExecutionStatus.SUCCESS_RECEIPT_ID)

        await indexer.on_receipt(receipt, "tx", make_block(1))

        assert indexer.handler.token_accounts() == ["intel.tkn.near"]

    @pytest.mark.asyncio
    async def test_factory_and_token_paths_independent(self):
        """A factory receipt that also deploys a token produces events on both paths."""
        indexer, _ = build_indexer(MockRpcConfig(token_accounts={MEME_COOKING_CONTRACT}))
        receipt = make_receipt(
            MEME_COOKING_CONTRACT,
            deploy=True,
            logs=[meme_cooking_log("create_token", TOKEN_CREATED)],
        )

        await indexer.on_receipt(receipt, "tx", make_block(5))

        assert indexer.handler.token_accounts() == [MEME_COOKING_CONTRACT]
        assert [event.meme_id for event, _ in indexer.handler.tokens] == [7]

    @pytest.mark.asyncio
    async def test_synchronous_events_delivered_before_return(self):
        indexer, _ = build_indexer(MockRpcConfig(token_accounts={"a.near", "b.near"}))

        await indexer.on_receipt(make_receipt("a.near", deploy=True), "tx1", make_block(1))
        assert indexer.handler.token_accounts() == ["a.near"]

        await indexer.on_receipt(make_receipt("b.near", deploy=True), "tx2", make_block(2))
        assert indexer.handler.token_accounts() == ["a.near", "b.near"]


class TestRun:
    """Test provider-driven runs."""

    @pytest.mark.asyncio
    async def test_run_waits_for_rechecks(self):
        indexer, _ = build_indexer(MockRpcConfig(token_after_calls={"late.near": 1}))
        provider = ListProvider([
            IndexedReceipt(make_receipt("late.near", deploy=True), "tx1", make_block(100)),
            IndexedReceipt(make_receipt("other.near"), "tx2", make_block(101)),
        ])

        await indexer.run(provider)

        assert indexer.handler.token_accounts() == ["late.near"]
        stats = indexer.get_stats()
        assert stats["receipts_processed"] == 2
        assert stats["last_block_height"] == 101
        assert stats["nep141"]["pending_rechecks"] == 0

    @pytest.mark.asyncio
    async def test_background_failure_aborts_next_receipt(self):
        indexer, _ = build_indexer(MockRpcConfig(token_after_calls={"late.near": 1}), store=FailingStore())

        await indexer.on_receipt(make_receipt("late.near", deploy=True), "tx1", make_block(100))
        await indexer.wait_pending()

        with pytest.raises(BackgroundTaskError):
            await indexer.on_receipt(make_receipt("other.near"), "tx2", make_block(101))

    @pytest.mark.asyncio
    async def test_stop_abandons_pending(self):
        rpc = MockRpcClient()
        ledger = DedupLedger()
        ledger.load()
        indexer = NewTokenIndexer(
            RecordingEventHandler(), MetadataVerifier(rpc), ledger, Nep141Config(recheck_delay=60.0)
        )

        await indexer.on_receipt(make_receipt("slow.near", deploy=True), "tx", make_block(1))
        await indexer.stop()

        assert indexer.get_stats()["nep141"]["pending_rechecks"] == 0
