"""
NEAR New Token Indexer

Watches executed receipts and reports:
- new NEP-141 token contracts (deployments verified via ft_metadata, plus
  NEP-141 activity from contracts not seen deploying)
- meme-cooking factory launches (create_meme / create_token logs)

Components:
- DedupLedger: persistent set of already-reported token contracts
- MetadataVerifier: ft_metadata probe over JSON-RPC
- Nep141Detector: deployment and event-based token detection
- MemeCookingDetector: factory log parsing
- NewTokenIndexer: routes receipts through all detectors
- RedisStreamHandler: publishes events to Redis streams in key order
- NeardataProvider: block source for the CLI
"""

from .types import (
    BlockHeader,
    EventContext,
    ExecutionStatus,
    IndexedReceipt,
    MemeCreationEvent,
    Receipt,
    ReceiptAction,
    TokenCreationEvent,
)
from .errors import (
    BackgroundTaskError,
    ConfigError,
    IndexerError,
    LedgerError,
    ProviderError,
    RpcError,
    SinkError,
)
from .handler import ContractEventHandler, LoggingEventHandler
from .ledger import (
    DedupLedger,
    LedgerStore,
    MemoryLedgerStore,
    SqliteLedgerStore,
    TxtFileLedgerStore,
    open_ledger_store,
)
from .rpc_client import BlockReference, NearRpcClient, RpcClientConfig
from .verifier import MetadataVerifier, VerifierConfig
from .nep141 import Nep141Config, Nep141Detector
from .meme_cooking import MemeCookingDetector
from .router import NewTokenIndexer
from .redis_sink import RedisEventStream, RedisStreamHandler
from .block_provider import NeardataConfig, NeardataProvider
from .config import IndexerConfig

__all__ = [
    "BlockHeader",
    "EventContext",
    "ExecutionStatus",
    "IndexedReceipt",
    "MemeCreationEvent",
    "Receipt",
    "ReceiptAction",
    "TokenCreationEvent",
    "BackgroundTaskError",
    "ConfigError",
    "IndexerError",
    "LedgerError",
    "ProviderError",
    "RpcError",
    "SinkError",
    "ContractEventHandler",
    "LoggingEventHandler",
    "DedupLedger",
    "LedgerStore",
    "MemoryLedgerStore",
    "SqliteLedgerStore",
    "TxtFileLedgerStore",
    "open_ledger_store",
    "BlockReference",
    "NearRpcClient",
    "RpcClientConfig",
    "MetadataVerifier",
    "VerifierConfig",
    "Nep141Config",
    "Nep141Detector",
    "MemeCookingDetector",
    "NewTokenIndexer",
    "RedisEventStream",
    "RedisStreamHandler",
    "NeardataConfig",
    "NeardataProvider",
    "IndexerConfig",
]
