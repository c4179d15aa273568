"""Core data models for the lottery backend."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Dict, List, Optional

MAX_PARTICIPANTS = 50
MAX_WINNERS = 10


class RoundStatus(IntEnum):
    """Round lifecycle states. COMPLETED and CANCELLED are terminal."""

    ACTIVE = 0
    COMPLETED = 1
    CANCELLED = 2

    @property
    def is_terminal(self) -> bool:
        return self is not RoundStatus.ACTIVE


@dataclass(frozen=True)
class Winner:
    """One drawn slot: the selected identity and the prize it is paid."""

    identity: str
    prize: int


@dataclass
class LotteryRound:
    """Stored record of one lottery round."""

    round_id: int
    start_block: int
    end_block: int
    random_seed: int
    min_players: int
    participants: List[str] = field(default_factory=list)
    ticket_sequence: List[int] = field(default_factory=list)
    total_pot: int = 0
    winners: List[Winner] = field(default_factory=list)
    status: RoundStatus = RoundStatus.ACTIVE

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    @property
    def participant_count(self) -> int:
        return len(self.participants)

    def accepts_tickets_at(self, height: int) -> bool:
        return self.status is RoundStatus.ACTIVE and self.start_block <= height <= self.end_block

    def add_ticket(self, identity: str, price: int) -> int:
        """Append one ticket for ``identity`` and return its ticket index."""
        ticket_index = len(self.ticket_sequence)
        self.participants.append(identity)
        self.ticket_sequence.append(ticket_index)
        self.total_pot += price
        return ticket_index

    def to_dict(self) -> Dict[str, object]:
        return {
            "roundId": self.round_id,
            "status": self.status.value,
            "statusLabel": self.status.name,
            "startBlock": self.start_block,
            "endBlock": self.end_block,
            "randomSeed": self.random_seed,
            "minPlayers": self.min_players,
            "participants": list(self.participants),
            "ticketSequence": list(self.ticket_sequence),
            "participantCount": self.participant_count,
            "totalPot": self.total_pot,
            "winners": [{"identity": w.identity, "prize": w.prize} for w in self.winners],
        }


@dataclass
class LiveFeedItem:
    """Entry appended to the activity feed."""

    event_type: str
    message: str
    details: Dict[str, int | str]
    block_height: int

    def get_item_id(self) -> str:
        round_id = self.details.get("roundId", 0)
        return f"{round_id}-{self.block_height}-{self.event_type}"


@dataclass
class OperatorStatus:
    """Operational counters for the passive operator loop."""

    is_running: bool = False
    last_action: Optional[str] = None
    last_checked_height: Optional[int] = None
    consecutive_failures: int = 0

    def record_failure(self) -> None:
        self.consecutive_failures += 1

    def reset_failures(self) -> None:
        self.consecutive_failures = 0
