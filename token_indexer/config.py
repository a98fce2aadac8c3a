"""
Indexer configuration.

Values come from the environment, optionally seeded from a `.env` file:

    TESTNET             any value → testnet factory, RPC and neardata
    RPC_URL             JSON-RPC endpoint (default: fastnear free RPC)
    REDIS_URL           Redis connection URL (required unless --dry-run)
    LATEST_BLOCK_META   any value → verify at finality, never at exact height
    LEDGER_PATH         dedup ledger file (default: known_tokens.txt; .db → SQLite)
    MAX_STREAM_SIZE     approximate Redis stream length cap (default: 1000)
    RECHECK_DELAY       seconds before re-checking a failed deployment (default: 5)
    LOG_CHECK_INTERVAL  seconds between event-based checks per contract (default: 1800)
    CHECKPOINT_PATH     provider checkpoint file (default: indexer_checkpoint.json)
    NEARDATA_URL        neardata server (default: per network)
    LOG_LEVEL           logging level (default: INFO)
"""

import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

from .block_provider import MAINNET_NEARDATA_URL, TESTNET_NEARDATA_URL
from .errors import ConfigError
from .rpc_client import MAINNET_RPC_URL, TESTNET_RPC_URL


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError:
        raise ConfigError(f"${name} must be a number, got {raw!r}")


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigError(f"${name} must be an integer, got {raw!r}")


@dataclass
class IndexerConfig:
    """Configuration for the whole indexer process."""
    testnet: bool = False
    rpc_url: str = MAINNET_RPC_URL
    redis_url: Optional[str] = None
    force_finality: bool = False
    ledger_path: str = "known_tokens.txt"
    max_stream_size: int = 1_000
    recheck_delay: float = 5.0
    log_check_interval: float = 30 * 60.0
    checkpoint_path: str = "indexer_checkpoint.json"
    neardata_url: str = MAINNET_NEARDATA_URL
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, dotenv: bool = True) -> "IndexerConfig":
        """Build config from environment variables (and `.env` if present)."""
        if dotenv:
            load_dotenv()

        testnet = "TESTNET" in os.environ
        config = cls(
            testnet=testnet,
            rpc_url=os.environ.get("RPC_URL") or (TESTNET_RPC_URL if testnet else MAINNET_RPC_URL),
            redis_url=os.environ.get("REDIS_URL") or None,
            force_finality="LATEST_BLOCK_META" in os.environ,
            ledger_path=os.environ.get("LEDGER_PATH") or "known_tokens.txt",
            max_stream_size=_env_int("MAX_STREAM_SIZE", 1_000),
            recheck_delay=_env_float("RECHECK_DELAY", 5.0),
            log_check_interval=_env_float("LOG_CHECK_INTERVAL", 30 * 60.0),
            checkpoint_path=os.environ.get("CHECKPOINT_PATH") or "indexer_checkpoint.json",
            neardata_url=os.environ.get("NEARDATA_URL") or (TESTNET_NEARDATA_URL if testnet else MAINNET_NEARDATA_URL),
            log_level=(os.environ.get("LOG_LEVEL") or "INFO").upper(),
        )
        config.validate()
        return config

    def validate(self):
        if self.max_stream_size <= 0:
            raise ConfigError("MAX_STREAM_SIZE must be positive")
        if self.recheck_delay < 0:
            raise ConfigError("RECHECK_DELAY must not be negative")
        if self.log_check_interval < 0:
            raise ConfigError("LOG_CHECK_INTERVAL must not be negative")

    def require_redis_url(self) -> str:
        if not self.redis_url:
            raise ConfigError("No $REDIS_URL environment variable set")
        return self.redis_url
