"""
Metadata Verifier

Decides whether a contract behaves like a NEP-141 fungible token by calling
its `ft_metadata` view method. Success of the call is the only signal, the
returned metadata is ignored.

The verifier never raises: any RPC failure means "not token-like".
"""

import logging
import time
from dataclasses import dataclass
from typing import Optional

from .rpc_client import BlockReference, NearRpcClient

FT_METADATA_METHOD = "ft_metadata"


@dataclass
class VerifierConfig:
    """Configuration for the metadata verifier."""
    # Always query at finality (LATEST_BLOCK_META)
    force_finality: bool = False
    # Heights older than this may be garbage collected; query at finality instead
    max_exact_height_age: float = 12 * 3600.0


class MetadataVerifier:
    """
    ft_metadata probe.

    Block reference selection:
    - finality when forced by config
    - finality when the block timestamp is unknown
    - finality when the block is older than max_exact_height_age
    - exact block height otherwise
    """

    def __init__(
        self,
        rpc_client: NearRpcClient,
        config: Optional[VerifierConfig] = None,
        clock=time.time
    ):
        self.config = config or VerifierConfig()
        self._rpc = rpc_client
        self._clock = clock
        self._logger = logging.getLogger("MetadataVerifier")

        self._stats = {
            "calls": 0,
            "token_like": 0,
            "not_token_like": 0,
        }

    def block_reference_for(
        self,
        block_height: int,
        block_timestamp_nanosec: Optional[int] = None
    ) -> BlockReference:
        if self.config.force_finality or block_timestamp_nanosec is None:
            return BlockReference.final()

        age = self._clock() - block_timestamp_nanosec / 1e9
        if age > self.config.max_exact_height_age:
            return BlockReference.final()
        return BlockReference.at_height(block_height)

    async def is_token_like(
        self,
        account_id: str,
        block_height: int,
        block_timestamp_nanosec: Optional[int] = None
    ) -> bool:
        """True iff `ft_metadata` on account_id succeeds."""
        self._stats["calls"] += 1
        reference = self.block_reference_for(block_height, block_timestamp_nanosec)

        try:
            await self._rpc.call_function(account_id, FT_METADATA_METHOD, {}, reference)
        except Exception as e:
            self._stats["not_token_like"] += 1
            self._logger.debug(f"{account_id} is not token-like at {reference.to_params()}: {e}")
            return False

        self._stats["token_like"] += 1
        return True

    def get_stats(self) -> dict:
        return dict(self._stats)
