"""
New Token Indexer entry point.

Usage:
    token-indexer                          # auto-continue from checkpoint / chain head
    token-indexer 114_625_047 114_625_058  # fixed inclusive block range
    token-indexer --dry-run                # log events instead of writing to Redis
"""

import argparse
import asyncio
import logging
import sys
from typing import List, Optional

from .block_provider import NeardataConfig, NeardataProvider
from .config import IndexerConfig
from .errors import IndexerError
from .handler import LoggingEventHandler
from .ledger import DedupLedger, MemoryLedgerStore, open_ledger_store
from .nep141 import Nep141Config
from .redis_sink import RedisStreamHandler
from .router import NewTokenIndexer
from .rpc_client import NearRpcClient, RpcClientConfig
from .verifier import MetadataVerifier, VerifierConfig

logger = logging.getLogger("token_indexer")

USAGE = "Usage: `token-indexer` or `token-indexer [start-block] [end-block]`"


def parse_block_height(raw: str) -> int:
    """Accept 114_625_047, 114,625,047, 114.625.047 or '114 625 047'."""
    cleaned = raw
    for separator in ("_", ",", " ", "."):
        cleaned = cleaned.replace(separator, "")
    try:
        return int(cleaned)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid block height: {raw!r}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="token-indexer",
        description="Detect new NEP-141 tokens and meme-cooking launches on NEAR",
        epilog=USAGE,
    )
    parser.add_argument('start_block', nargs='?', type=parse_block_height, help='First block (inclusive)')
    parser.add_argument('end_block', nargs='?', type=parse_block_height, help='Last block (inclusive)')
    parser.add_argument('--dry-run', action='store_true', help='Log events instead of publishing to Redis')
    parser.add_argument('--memory-ledger', action='store_true', help='Do not persist the dedup ledger')
    return parser


def setup_logging(level: str):
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[logging.StreamHandler()]
    )
    # aiohttp access noise
    logging.getLogger("aiohttp").setLevel(logging.WARNING)


def open_ledger(args: argparse.Namespace, config: IndexerConfig) -> DedupLedger:
    """
    Build the dedup ledger for this run.

    A dry run reports nothing, so it starts from the persisted ledger but
    keeps its own marks in memory.
    """
    if args.memory_ledger:
        return DedupLedger(MemoryLedgerStore())

    store = open_ledger_store(config.ledger_path)
    if not args.dry_run:
        return DedupLedger(store)

    try:
        known = store.load()
    finally:
        store.close()
    return DedupLedger(MemoryLedgerStore(known))


async def run(args: argparse.Namespace, config: IndexerConfig):
    ledger = open_ledger(args, config)
    known = ledger.load()
    logger.info(f"Dedup ledger ready: {known:,} known tokens")

    if args.dry_run:
        handler = LoggingEventHandler(testnet=config.testnet)
    else:
        handler = RedisStreamHandler.from_url(
            config.require_redis_url(), config.max_stream_size, config.testnet
        )
        await handler.start()

    rpc_client = NearRpcClient(RpcClientConfig(rpc_url=config.rpc_url))
    await rpc_client.start()
    verifier = MetadataVerifier(rpc_client, VerifierConfig(force_finality=config.force_finality))

    indexer = NewTokenIndexer(
        handler,
        verifier,
        ledger,
        Nep141Config(recheck_delay=config.recheck_delay, log_check_interval=config.log_check_interval),
    )

    provider = NeardataProvider(NeardataConfig(
        base_url=config.neardata_url,
        start_block=args.start_block,
        end_block=args.end_block,
        # Fixed ranges and dry runs must not move the auto-continue checkpoint
        checkpoint_path=None if args.start_block is not None or args.dry_run else config.checkpoint_path,
    ))
    await provider.start()

    try:
        await indexer.run(provider)
    finally:
        await indexer.stop()
        await provider.stop()
        await rpc_client.stop()
        if isinstance(handler, RedisStreamHandler):
            await handler.stop()
        ledger.close()
        logger.info(f"Final stats: {indexer.get_stats()}")


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if (args.start_block is None) != (args.end_block is None):
        parser.error(USAGE)

    try:
        config = IndexerConfig.from_env()
    except IndexerError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 2

    setup_logging(config.log_level)

    try:
        asyncio.run(run(args, config))
    except KeyboardInterrupt:
        logger.info("Interrupted, shutting down")
    except IndexerError as e:
        logger.critical(f"Indexer failed ({e.subsystem}): {e}")
        return 1
    return 0


if __name__ == '__main__':
    sys.exit(main())
