"""
Indexer error hierarchy.

Detection failures never raise (they degrade to "no event"). The errors here
are the hard failures that must reach the operator: a dedup ledger that can't
be read or written, a sink that rejects an append, a block source that keeps
failing, or bad configuration.
"""


class IndexerError(Exception):
    """Base class for all indexer failures."""
    subsystem = "indexer"


class ConfigError(IndexerError):
    """Missing or invalid configuration."""
    subsystem = "config"


class LedgerError(IndexerError):
    """Dedup ledger backing store could not be read or written."""
    subsystem = "ledger"


class SinkError(IndexerError):
    """Event sink rejected or failed an append."""
    subsystem = "sink"


class RpcError(IndexerError):
    """JSON-RPC call failed (transport error or error response)."""
    subsystem = "rpc"

    def __init__(self, message: str, name: str = "", cause: str = ""):
        super().__init__(message)
        self.name = name
        self.cause = cause


class ProviderError(IndexerError):
    """Block provider could not deliver a block."""
    subsystem = "provider"


class BackgroundTaskError(IndexerError):
    """A detached re-check task failed with a hard error."""
    subsystem = "background"

    def __init__(self, message: str, subsystem: str = ""):
        super().__init__(message)
        # Report the subsystem that actually failed (ledger, sink)
        if subsystem:
            self.subsystem = subsystem
