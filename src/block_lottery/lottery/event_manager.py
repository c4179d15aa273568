"""In-memory round storage and event fan-out for the lottery backend."""

from __future__ import annotations

import copy
from collections import defaultdict, deque
from contextlib import contextmanager
from threading import RLock
from typing import Any, Callable, Dict, Iterator, List, Optional, Tuple

from block_lottery.lottery.models import LiveFeedItem, LotteryRound
from block_lottery.utils.common import shorten_identity
from block_lottery.utils.logger import get_logger

logger = get_logger(__name__)


class MemoryStore:
    """Round records, per-identity ticket counts and the live feed.

    Mutations made inside ``transaction()`` are rolled back if the block
    raises; events emitted inside it are held back until commit.
    """

    def __init__(self, *, feed_capacity: int = 100) -> None:
        self._lock = RLock()
        self._listeners: Dict[str, List[Callable[[dict | None], None]]] = defaultdict(list)
        self._feed_capacity = feed_capacity
        self._live_feed: deque[LiveFeedItem] = deque(maxlen=feed_capacity)
        self._rounds: Dict[int, LotteryRound] = {}
        self._ticket_counts: Dict[Tuple[int, str], int] = {}
        self._current_round_id = 0
        self._last_random_seed = 0
        self._tx_depth = 0
        self._pending_events: List[Tuple[str, dict | None]] = []

    # ------------------------------------------------------------------
    # Listener management
    # ------------------------------------------------------------------
    def add_listener(self, event_type: str, callback: Callable[[dict | None], None]) -> None:
        with self._lock:
            self._listeners[event_type].append(callback)
            logger.debug(f"[MemoryStore] Adding listener for event_type={event_type}, callback={callback}")

    def _emit(self, event_type: str, payload: dict | None) -> None:
        if self._tx_depth:
            self._pending_events.append((event_type, payload))
            return
        listeners = list(self._listeners.get(event_type, []))
        for callback in listeners:
            try:
                logger.debug("Emitting %s event to listener", event_type)
                callback(payload)
            except Exception as exc:  # pragma: no cover
                logger.error("Listener for %s failed: %s", event_type, exc)

    # ------------------------------------------------------------------
    # Transactions
    # ------------------------------------------------------------------
    @contextmanager
    def transaction(self) -> Iterator["MemoryStore"]:
        """Run a block of mutations atomically.

        Holds the store lock for the whole block so operations never
        interleave. Nested transactions join the outermost one.
        """
        with self._lock:
            if self._tx_depth:
                self._tx_depth += 1
                try:
                    yield self
                finally:
                    self._tx_depth -= 1
                return

            saved = self._capture()
            self._tx_depth = 1
            try:
                yield self
            except BaseException:
                self._restore(saved)
                self._pending_events.clear()
                logger.debug("[MemoryStore] transaction rolled back")
                raise
            finally:
                self._tx_depth = 0

            pending, self._pending_events = self._pending_events, []
        for event_type, payload in pending:
            self._emit(event_type, payload)

    def _capture(self) -> Dict[str, Any]:
        return {
            "rounds": copy.deepcopy(self._rounds),
            "ticket_counts": dict(self._ticket_counts),
            "current_round_id": self._current_round_id,
            "last_random_seed": self._last_random_seed,
            "live_feed": list(self._live_feed),
        }

    def _restore(self, saved: Dict[str, Any]) -> None:
        self._rounds = saved["rounds"]
        self._ticket_counts = saved["ticket_counts"]
        self._current_round_id = saved["current_round_id"]
        self._last_random_seed = saved["last_random_seed"]
        self._live_feed = deque(saved["live_feed"], maxlen=self._feed_capacity)

    # ------------------------------------------------------------------
    # Round state management
    # ------------------------------------------------------------------
    def next_round_id(self) -> int:
        with self._lock:
            return self._current_round_id + 1

    def put_round(self, round_data: LotteryRound) -> None:
        """Insert or update a round; a new id becomes the current round.

        New ids must follow the current one directly.
        """
        with self._lock:
            round_id = round_data.round_id
            if round_id not in self._rounds and round_id != self._current_round_id + 1:
                raise ValueError(f"round id {round_id} does not follow {self._current_round_id}")
            self._rounds[round_id] = copy.deepcopy(round_data)
            self._current_round_id = max(self._current_round_id, round_id)
            payload = round_data.to_dict()
        self._emit("round_update", payload)
        logger.debug(f"[MemoryStore] put_round round_id={round_data.round_id} status={round_data.status.name}")

    def increment_ticket_count(self, round_id: int, identity: str) -> int:
        with self._lock:
            key = (round_id, identity)
            count = self._ticket_counts.get(key, 0) + 1
            self._ticket_counts[key] = count
        self._emit("ticket_update", {"roundId": round_id, "identity": identity, "tickets": count})
        logger.debug(f"[MemoryStore] {shorten_identity(identity)} holds {count} ticket(s) in round {round_id}")
        return count

    def set_last_random_seed(self, seed: int) -> None:
        with self._lock:
            self._last_random_seed = seed

    def add_live_feed(
        self,
        *,
        event_type: str,
        message: str,
        block_height: int,
        details: Dict[str, int | str] | None = None,
    ) -> None:
        """Append a live-feed item and emit it."""
        feed_item = LiveFeedItem(
            event_type=event_type,
            message=message,
            details=dict(details or {}),
            block_height=block_height,
        )
        with self._lock:
            self._live_feed.append(feed_item)
        logger.info("[MemoryStore] appended live feed item %s: %s", event_type, message)
        self._emit("live_feed", self._serialize_feed_item(feed_item))

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------
    # Round accessors hand out copies; writes go through put_round().
    def get_round(self, round_id: int) -> Optional[LotteryRound]:
        with self._lock:
            return copy.deepcopy(self._rounds.get(round_id))

    def get_current_round(self) -> Optional[LotteryRound]:
        with self._lock:
            return copy.deepcopy(self._rounds.get(self._current_round_id))

    def get_current_round_id(self) -> int:
        with self._lock:
            return self._current_round_id

    def get_ticket_count(self, round_id: int, identity: str) -> Optional[int]:
        with self._lock:
            return self._ticket_counts.get((round_id, identity))

    def get_last_random_seed(self) -> int:
        with self._lock:
            return self._last_random_seed

    def get_round_history(self, limit: Optional[int] = None) -> List[LotteryRound]:
        """Terminal rounds in id order, oldest first."""
        with self._lock:
            items = [copy.deepcopy(r) for _, r in sorted(self._rounds.items()) if r.is_terminal]
        if limit is not None:
            return items[-limit:]
        return items

    def get_live_feed(self, limit: Optional[int] = None) -> List[LiveFeedItem]:
        with self._lock:
            items = list(self._live_feed)
        if limit is not None:
            return items[-limit:]
        return items

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _serialize_feed_item(self, item: LiveFeedItem) -> dict:
        return {
            "id": item.get_item_id(),
            "type": item.event_type,
            "message": item.message,
            "details": item.details,
            "blockHeight": item.block_height,
        }

    def clear_all_data(self) -> None:
        with self._lock:
            self._rounds = {}
            self._ticket_counts = {}
            self._current_round_id = 0
            self._last_random_seed = 0
            self._live_feed.clear()
        self._emit("round_update", None)
        logger.debug("[MemoryStore] clear_all_data called")
