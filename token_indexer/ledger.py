"""
Dedup Ledger

Persistent set of token contract account ids that were already reported.
A contract in the ledger never produces a second new-token event.

Components:
- LedgerStore: backing store contract (load once, persist per mark)
- TxtFileLedgerStore: append-only text file, one account id per line
- SqliteLedgerStore: SQLite table keyed by account id
- MemoryLedgerStore: no durability (tests, dry runs)
- DedupLedger: in-memory set + lock, the only object detectors talk to

The store write happens inside mark(), before the caller emits anything
referencing the account (insert-before-emit).
"""

import asyncio
import logging
import os
import sqlite3
import time
from abc import ABC, abstractmethod
from pathlib import Path
from threading import RLock
from typing import Iterable, Optional, Set

from .errors import LedgerError


class LedgerStore(ABC):
    """Backing store for the dedup ledger."""

    @abstractmethod
    def load(self) -> Set[str]:
        """Read every persisted account id. Raises LedgerError."""

    @abstractmethod
    def persist(self, account_id: str) -> None:
        """Durably record one account id. Raises LedgerError."""

    def close(self) -> None:
        pass


class MemoryLedgerStore(LedgerStore):
    """Keeps ids in memory only."""

    def __init__(self, initial: Optional[Iterable[str]] = None):
        self.persisted: Set[str] = set(initial or ())

    def load(self) -> Set[str]:
        return set(self.persisted)

    def persist(self, account_id: str) -> None:
        self.persisted.add(account_id)


class TxtFileLedgerStore(LedgerStore):
    """
    Text file store.

    Format: one account id per line, appended on every mark. A missing file
    is an empty ledger.
    """

    def __init__(self, path: str = "known_tokens.txt"):
        self.path = Path(path)
        self._lock = RLock()
        self._logger = logging.getLogger("TxtFileLedgerStore")

    def load(self) -> Set[str]:
        if not self.path.exists():
            self._logger.info(f"No ledger file at {self.path}, starting empty")
            return set()

        try:
            with open(self.path, 'r', encoding='utf-8') as f:
                accounts = {line.strip() for line in f if line.strip()}
        except OSError as e:
            raise LedgerError(f"Failed to read ledger file {self.path}: {e}") from e

        self._logger.info(f"Loaded {len(accounts):,} handled tokens from {self.path}")
        return accounts

    def persist(self, account_id: str) -> None:
        with self._lock:
            try:
                if self.path.parent != Path('.'):
                    self.path.parent.mkdir(parents=True, exist_ok=True)
                with open(self.path, 'a', encoding='utf-8') as f:
                    f.write(account_id + "\n")
                    f.flush()
                    os.fsync(f.fileno())
            except OSError as e:
                raise LedgerError(f"Failed to append {account_id} to {self.path}: {e}") from e


class SqliteLedgerStore(LedgerStore):
    """
    SQLite store.

    Schema:
        handled_tokens (
            account_id TEXT PRIMARY KEY,
            handled_at REAL
        )

    Thread-safe with RLock.
    """

    def __init__(self, db_path: str = "known_tokens.db"):
        self.db_path = db_path
        self._lock = RLock()
        self._logger = logging.getLogger("SqliteLedgerStore")

        try:
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)
            self.conn = sqlite3.connect(db_path, check_same_thread=False)
            self.conn.execute("""
                CREATE TABLE IF NOT EXISTS handled_tokens (
                    account_id TEXT PRIMARY KEY,
                    handled_at REAL
                )
            """)
            self.conn.commit()
        except sqlite3.Error as e:
            raise LedgerError(f"Failed to open ledger database {db_path}: {e}") from e

    def load(self) -> Set[str]:
        with self._lock:
            try:
                cursor = self.conn.execute("SELECT account_id FROM handled_tokens")
                accounts = {row[0] for row in cursor.fetchall()}
            except sqlite3.Error as e:
                raise LedgerError(f"Failed to read ledger database {self.db_path}: {e}") from e

        self._logger.info(f"Loaded {len(accounts):,} handled tokens from {self.db_path}")
        return accounts

    def persist(self, account_id: str) -> None:
        with self._lock:
            try:
                self.conn.execute(
                    "INSERT OR IGNORE INTO handled_tokens (account_id, handled_at) VALUES (?, ?)",
                    (account_id, time.time())
                )
                self.conn.commit()
            except sqlite3.Error as e:
                raise LedgerError(f"Failed to persist {account_id}: {e}") from e

    def close(self) -> None:
        with self._lock:
            self.conn.close()


def open_ledger_store(path: str) -> LedgerStore:
    """Pick a store by file suffix: .db/.sqlite → SQLite, anything else → text."""
    if Path(path).suffix.lower() in (".db", ".sqlite", ".sqlite3"):
        return SqliteLedgerStore(path)
    return TxtFileLedgerStore(path)


class DedupLedger:
    """
    Set of already-reported account ids.

    contains() is a plain lookup. mark() inserts under a lock and persists
    before returning, and tells the caller whether it was the one that
    inserted. Two detections racing on one account can both see
    contains() == False, but only one gets mark() == True.

    Usage:
        ledger = DedupLedger(TxtFileLedgerStore("known_tokens.txt"))
        ledger.load()

        if not ledger.contains(account_id) and await verify(account_id):
            if await ledger.mark(account_id):
                await emit(account_id)
    """

    def __init__(self, store: Optional[LedgerStore] = None):
        self._store = store or MemoryLedgerStore()
        self._handled: Set[str] = set()
        self._lock = asyncio.Lock()
        self._loaded = False
        self._logger = logging.getLogger("DedupLedger")

    def load(self) -> int:
        """Load the backing store. Raises LedgerError; returns the entry count."""
        self._handled = self._store.load()
        self._loaded = True
        return len(self._handled)

    def contains(self, account_id: str) -> bool:
        return account_id in self._handled

    async def mark(self, account_id: str) -> bool:
        """
        Record an account as handled.

        Returns True if this call inserted it, False if it was already there.
        Raises LedgerError if the store write fails; the id is then not
        considered handled.
        """
        async with self._lock:
            if account_id in self._handled:
                return False
            self._handled.add(account_id)
            try:
                # fsync / commit off the event loop
                await asyncio.get_running_loop().run_in_executor(
                    None, self._store.persist, account_id
                )
            except LedgerError:
                self._handled.discard(account_id)
                raise
            self._logger.debug(f"Marked handled: {account_id}")
            return True

    def __len__(self) -> int:
        return len(self._handled)

    @property
    def loaded(self) -> bool:
        return self._loaded

    def close(self) -> None:
        self._store.close()
