"""Bounds-checked administrative parameters."""

from __future__ import annotations

from dataclasses import dataclass

from block_lottery.lottery.errors import (
    InvalidMinBlocks,
    InvalidMinPlayers,
    InvalidTicketPrice,
    InvalidWinners,
    NotAuthorized,
    TooManyWinners,
)
from block_lottery.lottery.models import MAX_WINNERS
from block_lottery.utils.common import shorten_identity
from block_lottery.utils.logger import get_logger

logger = get_logger(__name__)

# Amounts are micro-units: 1 currency unit == 1_000_000.
MIN_TICKET_PRICE = 100_000
MAX_TICKET_PRICE = 100_000_000
MAX_MIN_PLAYERS = 20
MIN_MIN_BLOCKS = 50
MAX_MIN_BLOCKS = 1000


@dataclass
class ContractConfig:
    """Current parameter values."""

    owner: str
    pool_address: str
    ticket_price: int
    min_players: int
    min_blocks: int
    winner_count: int


class ConfigStore:
    """Holds the lottery parameters; every change goes through a validated setter."""

    def __init__(
        self,
        owner: str,
        *,
        pool_address: str = "lottery-pool",
        ticket_price: int = 1_000_000,
        min_players: int = 2,
        min_blocks: int = 100,
        winner_count: int = 3,
    ) -> None:
        if not owner:
            raise ValueError("owner identity is required")
        _check_ticket_price(ticket_price)
        _check_min_players(min_players)
        _check_min_blocks(min_blocks)
        _check_winner_count(winner_count)
        self._config = ContractConfig(
            owner=owner,
            pool_address=pool_address,
            ticket_price=ticket_price,
            min_players=min_players,
            min_blocks=min_blocks,
            winner_count=winner_count,
        )
        logger.info(
            "Config loaded: owner=%s price=%s min_players=%s min_blocks=%s winners=%s",
            shorten_identity(owner), ticket_price, min_players, min_blocks, winner_count,
        )

    @classmethod
    def from_settings(cls, settings) -> "ConfigStore":
        """Build from a ``LotterySettings`` model."""
        return cls(
            settings.owner,
            pool_address=settings.pool_address,
            ticket_price=settings.ticket_price,
            min_players=settings.min_players,
            min_blocks=settings.min_blocks,
            winner_count=settings.winner_count,
        )

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------
    @property
    def owner(self) -> str:
        return self._config.owner

    @property
    def pool_address(self) -> str:
        return self._config.pool_address

    @property
    def ticket_price(self) -> int:
        return self._config.ticket_price

    @property
    def min_players(self) -> int:
        return self._config.min_players

    @property
    def min_blocks(self) -> int:
        return self._config.min_blocks

    @property
    def winner_count(self) -> int:
        return self._config.winner_count

    def is_owner(self, identity: str) -> bool:
        return identity == self._config.owner

    def require_owner(self, identity: str) -> None:
        if not self.is_owner(identity):
            raise NotAuthorized(f"{shorten_identity(identity)} is not the owner")

    # ------------------------------------------------------------------
    # Setters
    # ------------------------------------------------------------------
    def set_ticket_price(self, caller: str, price: int) -> bool:
        self.require_owner(caller)
        _check_ticket_price(price)
        self._config.ticket_price = price
        logger.info("Ticket price set to %s", price)
        return True

    def set_min_players(self, caller: str, min_players: int) -> bool:
        self.require_owner(caller)
        _check_min_players(min_players)
        self._config.min_players = min_players
        logger.info("Minimum players set to %s", min_players)
        return True

    def set_min_blocks(self, caller: str, min_blocks: int) -> bool:
        self.require_owner(caller)
        _check_min_blocks(min_blocks)
        self._config.min_blocks = min_blocks
        logger.info("Minimum blocks set to %s", min_blocks)
        return True

    def set_winner_count(self, caller: str, winner_count: int) -> bool:
        self.require_owner(caller)
        _check_winner_count(winner_count)
        self._config.winner_count = winner_count
        logger.info("Winner count set to %s", winner_count)
        return True


def _check_ticket_price(price: int) -> None:
    if not MIN_TICKET_PRICE <= price <= MAX_TICKET_PRICE:
        raise InvalidTicketPrice(
            f"ticket price {price} outside [{MIN_TICKET_PRICE}, {MAX_TICKET_PRICE}]"
        )


def _check_min_players(min_players: int) -> None:
    if not 0 < min_players <= MAX_MIN_PLAYERS:
        raise InvalidMinPlayers(f"minimum players {min_players} outside (0, {MAX_MIN_PLAYERS}]")


def _check_min_blocks(min_blocks: int) -> None:
    if not MIN_MIN_BLOCKS <= min_blocks <= MAX_MIN_BLOCKS:
        raise InvalidMinBlocks(f"minimum blocks {min_blocks} outside [{MIN_MIN_BLOCKS}, {MAX_MIN_BLOCKS}]")


def _check_winner_count(winner_count: int) -> None:
    if winner_count <= 0:
        raise InvalidWinners(f"winner count {winner_count} must be positive")
    if winner_count > MAX_WINNERS:
        raise TooManyWinners(f"winner count {winner_count} exceeds {MAX_WINNERS}")
