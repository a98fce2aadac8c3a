"""
Unit tests for meme-cooking factory event detection.

Tests:
- create_meme / create_token payload parsing
- Exact big-integer parsing of decimal strings
- Schema selectivity (one kind per log, unknown standard/event ignored)
- Factory account selection by network
"""

import pytest

from token_indexer.event_log import FieldError
from token_indexer.meme_cooking import (
    MEME_COOKING_CONTRACT,
    MEME_COOKING_CONTRACT_TESTNET,
    MemeCookingDetector,
    factory_account,
    parse_factory_log,
    parse_meme_creation,
)
from token_indexer.mock_data import (
    RecordingEventHandler,
    event_json,
    make_block,
    make_receipt,
    meme_cooking_log,
)
from token_indexer.types import EventContext, ExecutionStatus, MemeCreationEvent, TokenCreationEvent

MEME_90 = {
    "meme_id": 90,
    "owner": "marior.testnet",
    "end_timestamp_ms": "1728386932500",
    "name": "test",
    "symbol": "test",
    "decimals": 18,
    "total_supply": "1000000000000000000000000000",
    "reference": "QmS33zcxEgb4QSfwA7tH9w7NVmiVaw6ZqkJFA5CiqVmm4W",
    "reference_hash": "47DEQpj8HBSa+/TImW+5JCeuQeRkm5NMpJWZG3hSuFU=",
    "deposit_token_id": "wrap.testnet",
    "soft_cap": "100000000000000000000000000",
    "hard_cap": "1000000000000000000000000000",
}

TOKEN_52 = {
    "meme_id": 52,
    "token_id": "lee-52.factory.v10.meme-cooking.testnet",
    "total_supply": "1000000000000000000000000000",
    "pool_id": 2273,
}


class TestPayloadParsing:
    """Test factory payload parsing."""

    def test_create_meme(self):
        event = parse_factory_log(meme_cooking_log("create_meme", MEME_90))

        assert event == MemeCreationEvent(
            meme_id=90,
            owner="marior.testnet",
            end_timestamp_ms=1728386932500,
            name="test",
            symbol="test",
            decimals=18,
            total_supply=1000000000000000000000000000,
            reference="QmS33zcxEgb4QSfwA7tH9w7NVmiVaw6ZqkJFA5CiqVmm4W",
            reference_hash="47DEQpj8HBSa+/TImW+5JCeuQeRkm5NMpJWZG3hSuFU=",
            deposit_token_id="wrap.testnet",
            soft_cap=100000000000000000000000000,
            hard_cap=1000000000000000000000000000,
        )

    def test_total_supply_exact_integer(self):
        """Decimal string parses to the exact value, not a float approximation."""
        data = dict(MEME_90, total_supply="1000000000000000000000000001")
        event = parse_meme_creation(data)

        assert event.total_supply == 10**27 + 1
        assert isinstance(event.total_supply, int)

    def test_hard_cap_optional(self):
        data = {k: v for k, v in MEME_90.items() if k != "hard_cap"}
        assert parse_meme_creation(data).hard_cap is None

        data["hard_cap"] = None
        assert parse_meme_creation(data).hard_cap is None

    def test_create_token(self):
        event = parse_factory_log(meme_cooking_log("create_token", TOKEN_52))

        assert event == TokenCreationEvent(
            meme_id=52,
            token_id="lee-52.factory.v10.meme-cooking.testnet",
            total_supply=1000000000000000000000000000,
            pool_id=2273,
        )

    def test_invalid_owner_rejected(self):
        with pytest.raises(FieldError):
            parse_meme_creation(dict(MEME_90, owner="Not An Account"))

    def test_missing_field_rejected(self):
        data = {k: v for k, v in MEME_90.items() if k != "soft_cap"}
        assert parse_factory_log(meme_cooking_log("create_meme", data)) is None

    def test_float_supply_rejected(self):
        data = dict(MEME_90, total_supply=1e27)
        assert parse_factory_log(meme_cooking_log("create_meme", data)) is None


class TestSchemaSelectivity:
    """Test that logs match at most one kind."""

    def test_meme_log_is_not_token(self):
        event = parse_factory_log(meme_cooking_log("create_meme", MEME_90))
        assert isinstance(event, MemeCreationEvent)
        assert not isinstance(event, TokenCreationEvent)

    def test_token_payload_under_meme_event_ignored(self):
        """A create_meme envelope carrying a create_token payload matches nothing."""
        assert parse_factory_log(meme_cooking_log("create_meme", TOKEN_52)) is None

    def test_unknown_event_ignored(self):
        assert parse_factory_log(meme_cooking_log("deposit", {"meme_id": 1})) is None

    def test_other_standard_ignored(self):
        assert parse_factory_log(event_json("nep141", "create_meme", MEME_90)) is None

    def test_plain_log_ignored(self):
        assert parse_factory_log("Meme 90 created") is None


class TestFactoryAccount:
    """Test factory selection by network."""

    def test_mainnet(self):
        assert factory_account(False) == MEME_COOKING_CONTRACT == "meme-cooking.near"

    def test_testnet(self):
        assert factory_account(True) == MEME_COOKING_CONTRACT_TESTNET == "factory.v10.meme-cooking.testnet"


class TestDetector:
    """Test MemeCookingDetector emission."""

    @pytest.mark.asyncio
    async def test_emits_meme_with_context(self):
        detector = MemeCookingDetector()
        handler = RecordingEventHandler(testnet=True)
        receipt = make_receipt(
            MEME_COOKING_CONTRACT_TESTNET,
            receipt_id="DuwgFT32JMrTYZuFV6KeEe9orZcMMFYq1Wov3fJHh9cP",
            logs=[meme_cooking_log("create_meme", MEME_90)],
        )
        block = make_block(176213385, 1728300532500808265)

        await detector.detect_meme_cooking(receipt, "9GecMwZehFzuJawDHaapEn2zfvz4nZ4yPKUrvPisga5b", block, handler)

        assert len(handler.memes) == 1
        event, context = handler.memes[0]
        assert event.meme_id == 90
        assert context == EventContext(
            transaction_id="9GecMwZehFzuJawDHaapEn2zfvz4nZ4yPKUrvPisga5b",
            receipt_id="DuwgFT32JMrTYZuFV6KeEe9orZcMMFYq1Wov3fJHh9cP",
            block_height=176213385,
            block_timestamp_nanosec=1728300532500808265,
        )
        assert handler.tokens == []

    @pytest.mark.asyncio
    async def test_emits_token(self):
        detector = MemeCookingDetector()
        handler = RecordingEventHandler(testnet=True)
        receipt = make_receipt(MEME_COOKING_CONTRACT_TESTNET, logs=[meme_cooking_log("create_token", TOKEN_52)])

        await detector.detect_meme_cooking(receipt, "59rYXL82wYisbMf5xMm37mKJ1eeWyJTBQ3hMPjKn2huG", make_block(174820333), handler)

        assert [event.meme_id for event, _ in handler.tokens] == [52]
        assert handler.memes == []

    @pytest.mark.asyncio
    async def test_both_kinds_in_one_receipt(self):
        detector = MemeCookingDetector()
        handler = RecordingEventHandler()
        receipt = make_receipt(MEME_COOKING_CONTRACT, logs=[
            meme_cooking_log("create_meme", dict(MEME_90, owner="marior.near", deposit_token_id="wrap.near")),
            "some plain log",
            meme_cooking_log("create_token", dict(TOKEN_52, token_id="lee-52.meme-cooking.near")),
        ])

        await detector.detect_meme_cooking(receipt, "tx", make_block(1), handler)

        assert len(handler.memes) == 1
        assert len(handler.tokens) == 1

    @pytest.mark.asyncio
    async def test_wrong_network_factory_ignored(self):
        """Testnet factory logs are ignored by a mainnet handler."""
        detector = MemeCookingDetector()
        handler = RecordingEventHandler(testnet=False)
        receipt = make_receipt(MEME_COOKING_CONTRACT_TESTNET, logs=[meme_cooking_log("create_meme", MEME_90)])

        await detector.detect_meme_cooking(receipt, "tx", make_block(1), handler)

        assert handler.memes == []

    @pytest.mark.asyncio
    async def test_other_receiver_ignored(self):
        detector = MemeCookingDetector()
        handler = RecordingEventHandler(testnet=True)
        receipt = make_receipt("impostor.testnet", logs=[meme_cooking_log("create_meme", MEME_90)])

        await detector.detect_meme_cooking(receipt, "tx", make_block(1), handler)

        assert handler.memes == []

    @pytest.mark.asyncio
    async def test_failed_receipt_ignored(self):
        detector = MemeCookingDetector()
        handler = RecordingEventHandler(testnet=True)
        receipt = make_receipt(
            MEME_COOKING_CONTRACT_TESTNET,
            logs=[meme_cooking_log("create_meme", MEME_90)],
            status=ExecutionStatus.FAILURE,
        )

        await detector.detect_meme_cooking(receipt, "tx", make_block(1), handler)

        assert handler.memes == []
