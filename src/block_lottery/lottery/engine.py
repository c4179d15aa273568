"""
Lottery Engine - round lifecycle for the multi-winner lottery
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional

from block_lottery.blockchain.client import BlockSource, Web3BlockSource
from block_lottery.blockchain.ledger import Ledger
from block_lottery.lottery.config_store import ConfigStore
from block_lottery.lottery.errors import (
    InsufficientFunds,
    LotteryEnded,
    LotteryError,
    LotteryInProgress,
    NoLotteryActive,
    NoParticipants,
    RoundFull,
    TooEarly,
)
from block_lottery.lottery.event_manager import MemoryStore
from block_lottery.lottery.models import MAX_PARTICIPANTS, LotteryRound, RoundStatus, Winner
from block_lottery.lottery.randomness import seed_for_height
from block_lottery.lottery.selector import select_winners
from block_lottery.utils.common import shorten_identity
from block_lottery.utils.config import chain_settings, lottery_settings
from block_lottery.utils.logger import get_logger

logger = get_logger(__name__)


class LotteryEngine:
    """Runs lottery rounds: initialize, sell tickets, draw and pay out.

    Every public operation is atomic. If it raises, no round record, ticket
    count or balance it touched is changed.
    """

    def __init__(
        self,
        config: ConfigStore,
        ledger: Ledger,
        block_source: BlockSource,
        store: Optional[MemoryStore] = None,
    ) -> None:
        self.config = config
        self.ledger = ledger
        self.block_source = block_source
        self.store = store if store is not None else MemoryStore()

    @contextmanager
    def _atomic(self) -> Iterator[None]:
        with self.store.transaction(), self.ledger.transaction():
            yield

    # =============== ROUND LIFECYCLE ===============

    def initialize(self, caller: str) -> int:
        """Open a new round. Owner only; the previous round must be finished."""
        try:
            with self._atomic():
                self.config.require_owner(caller)

                current = self.store.get_current_round()
                if current is not None and not current.is_terminal:
                    raise LotteryInProgress(f"round {current.round_id} is still active")

                height = self.block_source.block_height()
                seed = seed_for_height(self.block_source, height)
                new_round = LotteryRound(
                    round_id=self.store.next_round_id(),
                    start_block=height,
                    end_block=height + self.config.min_blocks,
                    random_seed=seed,
                    min_players=self.config.min_players,
                )
                self.store.put_round(new_round)
                self.store.set_last_random_seed(seed)
                self.store.add_live_feed(
                    event_type="round_created",
                    message=f"Round {new_round.round_id} opened until block {new_round.end_block}",
                    block_height=height,
                    details={"roundId": new_round.round_id, "endBlock": new_round.end_block},
                )
        except LotteryError as e:
            logger.error(f"Failed to initialize round: {e}")
            raise

        logger.info(
            f"Round {new_round.round_id} started at block {new_round.start_block} "
            f"(tickets until {new_round.end_block}, seed {seed})"
        )
        return new_round.round_id

    def buy_ticket(self, caller: str) -> bool:
        """Buy one ticket in the current round at the current ticket price."""
        try:
            with self._atomic():
                current = self.store.get_current_round()
                height = self.block_source.block_height()
                if current is None or not current.accepts_tickets_at(height):
                    raise NoLotteryActive(f"no round accepts tickets at block {height}")

                price = self.config.ticket_price
                balance = self.ledger.balance_of(caller)
                if balance < price:
                    raise InsufficientFunds(
                        f"{shorten_identity(caller)} holds {balance}, ticket costs {price}"
                    )

                self.ledger.transfer(price, caller, self.config.pool_address)

                if current.participant_count >= MAX_PARTICIPANTS:
                    raise RoundFull(f"round {current.round_id} already holds {MAX_PARTICIPANTS} tickets")

                ticket_index = current.add_ticket(caller, price)
                self.store.put_round(current)
                tickets = self.store.increment_ticket_count(current.round_id, caller)
                self.store.add_live_feed(
                    event_type="ticket_purchased",
                    message=f"{shorten_identity(caller)} bought ticket #{ticket_index}",
                    block_height=height,
                    details={"roundId": current.round_id, "player": caller, "ticket": ticket_index},
                )
        except LotteryError as e:
            logger.error(f"Ticket purchase by {shorten_identity(caller)} failed: {e}")
            raise

        logger.info(
            f"Ticket #{ticket_index} sold to {shorten_identity(caller)} in round {current.round_id} "
            f"({tickets} held, pot {current.total_pot})"
        )
        return True

    def draw_winners(self, caller: Optional[str] = None) -> List[Winner]:
        """Draw the current round and pay every winner from the pool.

        Anyone may call this once the round has run its minimum number of
        blocks and has enough participants.
        """
        try:
            with self._atomic():
                current = self.store.get_current_round()
                if current is None:
                    raise NoLotteryActive("no round has been initialized")

                height = self.block_source.block_height()
                # end_block == start_block + min_blocks at creation
                if height < current.end_block:
                    raise TooEarly(f"round {current.round_id} can be drawn from block {current.end_block}")
                if current.participant_count < current.min_players:
                    raise NoParticipants(
                        f"round {current.round_id} has {current.participant_count} of "
                        f"{current.min_players} required participants"
                    )
                if current.status is not RoundStatus.ACTIVE:
                    raise LotteryEnded(f"round {current.round_id} is {current.status.name.lower()}")

                seed = seed_for_height(self.block_source, height)
                winners = select_winners(
                    current.participants,
                    seed,
                    self.config.winner_count,
                    current.total_pot,
                )

                current.winners = winners
                current.status = RoundStatus.COMPLETED
                current.random_seed = seed
                self.store.put_round(current)
                self.store.set_last_random_seed(seed)

                for winner in winners:
                    if winner.prize > 0:
                        self.ledger.transfer(winner.prize, self.config.pool_address, winner.identity)

                self.store.add_live_feed(
                    event_type="round_completed",
                    message=f"Round {current.round_id} drawn with {len(winners)} winner(s)",
                    block_height=height,
                    details={"roundId": current.round_id, "winner": winners[0].identity, "totalPot": current.total_pot},
                )
        except LotteryError as e:
            logger.error(f"Error drawing current round: {e}")
            raise

        logger.info(
            f"Round {current.round_id} completed with seed {seed}: "
            + ", ".join(f"{shorten_identity(w.identity)}={w.prize}" for w in winners)
        )
        return list(winners)

    def can_draw(self) -> bool:
        """True when draw_winners() would pass its round checks right now."""
        current = self.store.get_current_round()
        if current is None or current.status is not RoundStatus.ACTIVE:
            return False
        return (
            self.block_source.block_height() >= current.end_block
            and current.participant_count >= current.min_players
        )

    # =============== ADMINISTRATION ===============

    def set_ticket_price(self, caller: str, price: int) -> bool:
        return self._admin("ticket price", self.config.set_ticket_price, caller, price)

    def set_min_players(self, caller: str, min_players: int) -> bool:
        return self._admin("minimum players", self.config.set_min_players, caller, min_players)

    def set_min_blocks(self, caller: str, min_blocks: int) -> bool:
        return self._admin("minimum blocks", self.config.set_min_blocks, caller, min_blocks)

    def set_winner_count(self, caller: str, winner_count: int) -> bool:
        return self._admin("winner count", self.config.set_winner_count, caller, winner_count)

    def _admin(self, name: str, setter, caller: str, value: int) -> bool:
        try:
            # Setters validate before assigning; the transaction only serializes
            # them against round operations running on other threads.
            with self.store.transaction():
                return setter(caller, value)
        except LotteryError as e:
            logger.error(f"Failed to set {name} to {value}: {e}")
            raise

    # =============== STATUS AND INFORMATION METHODS ===============

    def get_lottery_info(self, round_id: int) -> Optional[LotteryRound]:
        return self.store.get_round(round_id)

    def get_participant_tickets(self, round_id: int, identity: str) -> Optional[int]:
        return self.store.get_ticket_count(round_id, identity)

    def get_current_lottery(self) -> Optional[LotteryRound]:
        return self.store.get_current_round()

    def get_current_round_id(self) -> int:
        return self.store.get_current_round_id()

    def get_round_history(self, limit: Optional[int] = None) -> List[LotteryRound]:
        return self.store.get_round_history(limit=limit)

    def get_ticket_price(self) -> int:
        return self.config.ticket_price

    def get_winner_count(self) -> int:
        return self.config.winner_count

    def get_min_players(self) -> int:
        return self.config.min_players

    def get_min_blocks(self) -> int:
        return self.config.min_blocks

    def get_last_random_seed(self) -> int:
        return self.store.get_last_random_seed()

    def get_status(self) -> Dict[str, Any]:
        current = self.store.get_current_round()
        return {
            "block_height": self.block_source.block_height(),
            "current_round": current.to_dict() if current else None,
            "ticket_price": self.config.ticket_price,
            "winner_count": self.config.winner_count,
            "min_players": self.config.min_players,
            "min_blocks": self.config.min_blocks,
            "pool_balance": self.ledger.balance_of(self.config.pool_address),
            "last_random_seed": self.store.get_last_random_seed(),
        }


def build_engine(
    config: Dict[str, Any],
    ledger: Ledger,
    block_source: Optional[BlockSource] = None,
    store: Optional[MemoryStore] = None,
) -> LotteryEngine:
    """Create an engine from a loaded config dict (see ``utils.config.load_config``).

    Without an explicit block source, the ``blockchain`` section's RPC
    endpoint is used.
    """
    config_store = ConfigStore.from_settings(lottery_settings(config))
    if block_source is None:
        block_source = Web3BlockSource.from_settings(chain_settings(config))
    return LotteryEngine(config_store, ledger, block_source, store)
