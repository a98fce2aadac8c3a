"""
Unit tests for the Metadata Verifier.

Tests:
- Success/failure folding to bool
- Block reference selection (finality vs exact height)
- RPC call parameters
"""

import asyncio

import pytest

from token_indexer.errors import RpcError
from token_indexer.mock_data import MockRpcClient, MockRpcConfig
from token_indexer.rpc_client import BlockReference
from token_indexer.verifier import FT_METADATA_METHOD, MetadataVerifier, VerifierConfig

NOW = 1_722_400_000.0
RECENT_NS = int((NOW - 60) * 1e9)
OLD_NS = int((NOW - 3 * 86400) * 1e9)


class ExplodingRpcClient:
    """RPC client raising a non-RPC exception."""

    async def call_function(self, account_id, method_name, args, block_reference):
        raise asyncio.TimeoutError()


class TestTokenDetection:
    """Test bool result of is_token_like."""

    @pytest.fixture
    def rpc(self):
        return MockRpcClient(MockRpcConfig(token_accounts={"intel.tkn.near"}))

    @pytest.fixture
    def verifier(self, rpc):
        return MetadataVerifier(rpc, clock=lambda: NOW)

    @pytest.mark.asyncio
    async def test_token_contract(self, verifier, rpc):
        assert await verifier.is_token_like("intel.tkn.near", 114625057, RECENT_NS)

        account, method, _ = rpc.calls[0]
        assert account == "intel.tkn.near"
        assert method == FT_METADATA_METHOD

    @pytest.mark.asyncio
    async def test_non_token_contract(self, verifier):
        assert not await verifier.is_token_like("game.hot.tg", 116538111, RECENT_NS)

    @pytest.mark.asyncio
    async def test_transport_errors_fold_to_false(self):
        verifier = MetadataVerifier(ExplodingRpcClient(), clock=lambda: NOW)
        assert await verifier.is_token_like("intel.tkn.near", 1) is False

    @pytest.mark.asyncio
    async def test_stats(self, verifier):
        await verifier.is_token_like("intel.tkn.near", 1)
        await verifier.is_token_like("nope.near", 1)

        stats = verifier.get_stats()
        assert stats["calls"] == 2
        assert stats["token_like"] == 1
        assert stats["not_token_like"] == 1


class TestBlockReference:
    """Test finality vs exact height selection."""

    @pytest.fixture
    def verifier(self):
        return MetadataVerifier(MockRpcClient(), clock=lambda: NOW)

    def test_recent_block_uses_height(self, verifier):
        ref = verifier.block_reference_for(124593978, RECENT_NS)
        assert ref == BlockReference.at_height(124593978)
        assert ref.to_params() == {"block_id": 124593978}

    def test_old_block_uses_finality(self, verifier):
        ref = verifier.block_reference_for(114625057, OLD_NS)
        assert ref.to_params() == {"finality": "final"}

    def test_unknown_timestamp_uses_finality(self, verifier):
        assert verifier.block_reference_for(114625057).to_params() == {"finality": "final"}

    def test_forced_finality(self):
        verifier = MetadataVerifier(
            MockRpcClient(), VerifierConfig(force_finality=True), clock=lambda: NOW
        )
        assert verifier.block_reference_for(124593978, RECENT_NS) == BlockReference.final()

    @pytest.mark.asyncio
    async def test_reference_passed_to_rpc(self):
        rpc = MockRpcClient()
        verifier = MetadataVerifier(rpc, clock=lambda: NOW)

        await verifier.is_token_like("a.near", 100, RECENT_NS)
        await verifier.is_token_like("a.near", 100, OLD_NS)

        assert rpc.calls[0][2] == BlockReference.at_height(100)
        assert rpc.calls[1][2] == BlockReference.final()


class TestRpcErrors:
    """Test RpcError details from the mock client."""

    @pytest.mark.asyncio
    async def test_missing_method_error(self):
        rpc = MockRpcClient()
        with pytest.raises(RpcError) as exc_info:
            await rpc.call_function("a.near", FT_METADATA_METHOD, {}, BlockReference.final())
        assert exc_info.value.cause == "CONTRACT_EXECUTION_ERROR"
