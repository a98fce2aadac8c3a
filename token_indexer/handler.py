"""
Event handler interface.

The router forwards every detection to one ContractEventHandler. The Redis
sink implements it for production; tests implement it with in-memory lists.
"""

import logging
from abc import ABC, abstractmethod

from .types import EventContext, MemeCreationEvent, TokenCreationEvent


class ContractEventHandler(ABC):
    """Receives detected events together with their provenance."""

    @abstractmethod
    async def on_new_token(self, account_id: str, context: EventContext) -> None:
        """A new NEP-141 token contract was detected."""

    @abstractmethod
    async def on_meme_created(self, event: MemeCreationEvent, context: EventContext) -> None:
        """The meme-cooking factory logged `create_meme`."""

    @abstractmethod
    async def on_token_created(self, event: TokenCreationEvent, context: EventContext) -> None:
        """The meme-cooking factory logged `create_token`."""

    @abstractmethod
    def is_testnet(self) -> bool:
        """Selects the factory account (mainnet or testnet)."""


class LoggingEventHandler(ContractEventHandler):
    """Logs events instead of publishing them (dry runs)."""

    def __init__(self, testnet: bool = False):
        self._testnet = testnet
        self._logger = logging.getLogger("LoggingEventHandler")

    async def on_new_token(self, account_id: str, context: EventContext) -> None:
        self._logger.info(f"new token {account_id} tx={context.transaction_id} block={context.block_height}")

    async def on_meme_created(self, event: MemeCreationEvent, context: EventContext) -> None:
        self._logger.info(f"create_meme #{event.meme_id} {event.symbol} tx={context.transaction_id}")

    async def on_token_created(self, event: TokenCreationEvent, context: EventContext) -> None:
        self._logger.info(f"create_token #{event.meme_id} {event.token_id} tx={context.transaction_id}")

    def is_testnet(self) -> bool:
        return self._testnet
