"""Balance ledger backing ticket payments and prize payouts."""

from __future__ import annotations

from contextlib import contextmanager
from threading import RLock
from typing import Dict, Iterator

from block_lottery.lottery.errors import InsufficientFunds
from block_lottery.utils.common import shorten_identity
from block_lottery.utils.logger import get_logger

logger = get_logger(__name__)


class Ledger:
    """In-memory balances with an atomic ``transfer`` primitive."""

    def __init__(self, balances: Dict[str, int] | None = None) -> None:
        self._lock = RLock()
        self._balances: Dict[str, int] = {}
        self._tx_depth = 0
        for identity, amount in (balances or {}).items():
            self.credit(identity, amount)

    def balance_of(self, identity: str) -> int:
        with self._lock:
            return self._balances.get(identity, 0)

    def credit(self, identity: str, amount: int) -> None:
        """Mint ``amount`` into ``identity``; used to fund accounts."""
        if amount < 0:
            raise ValueError("credit amount must be non-negative")
        with self._lock:
            self._balances[identity] = self._balances.get(identity, 0) + amount
        logger.debug("[Ledger] credited %s with %s", shorten_identity(identity), amount)

    def transfer(self, amount: int, sender: str, recipient: str) -> bool:
        """Move ``amount`` from ``sender`` to ``recipient``.

        Raises ``InsufficientFunds`` when the sender cannot cover it; nothing
        moves in that case.
        """
        if amount <= 0:
            raise ValueError("transfer amount must be positive")
        with self._lock:
            available = self._balances.get(sender, 0)
            if available < amount:
                raise InsufficientFunds(
                    f"{shorten_identity(sender)} holds {available}, needs {amount}"
                )
            self._balances[sender] = available - amount
            self._balances[recipient] = self._balances.get(recipient, 0) + amount
        logger.debug(
            "[Ledger] %s -> %s: %s", shorten_identity(sender), shorten_identity(recipient), amount
        )
        return True

    @contextmanager
    def transaction(self) -> Iterator["Ledger"]:
        """Undo every balance change made in the block if it raises."""
        with self._lock:
            if self._tx_depth:
                self._tx_depth += 1
                try:
                    yield self
                finally:
                    self._tx_depth -= 1
                return

            saved = dict(self._balances)
            self._tx_depth = 1
            try:
                yield self
            except BaseException:
                self._balances = saved
                logger.debug("[Ledger] transaction rolled back")
                raise
            finally:
                self._tx_depth = 0
