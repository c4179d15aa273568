"""Failure taxonomy for lottery operations.

Every operation either succeeds or raises exactly one ``LotteryError``
subclass. Callers branch on the class (or on ``kind``/``code``) rather than
on message text.
"""

from __future__ import annotations

from enum import Enum
from typing import Optional


class ErrorKind(Enum):
    AUTHORIZATION = "authorization"
    STATE_CONFLICT = "state_conflict"
    CAPACITY_EXCEEDED = "capacity_exceeded"
    TIMING_VIOLATION = "timing_violation"
    RESOURCE_INSUFFICIENT = "resource_insufficient"
    VALIDATION_FAILURE = "validation_failure"
    EMPTY_POPULATION = "empty_population"


class LotteryError(Exception):
    """Base class for all lottery failures."""

    kind: ErrorKind = ErrorKind.STATE_CONFLICT
    code: int = 0
    default_message = "lottery operation failed"

    def __init__(self, message: Optional[str] = None) -> None:
        super().__init__(message or self.default_message)

    def to_dict(self) -> dict:
        return {"error": type(self).__name__, "kind": self.kind.value, "code": self.code, "message": str(self)}


class NotAuthorized(LotteryError):
    kind = ErrorKind.AUTHORIZATION
    code = 100
    default_message = "caller is not the owner"


class LotteryInProgress(LotteryError):
    kind = ErrorKind.STATE_CONFLICT
    code = 101
    default_message = "current round is still active"


class NoLotteryActive(LotteryError):
    kind = ErrorKind.STATE_CONFLICT
    code = 102
    default_message = "no round is accepting tickets"


class InsufficientFunds(LotteryError):
    kind = ErrorKind.RESOURCE_INSUFFICIENT
    code = 103
    default_message = "balance too low"


class LotteryEnded(LotteryError):
    kind = ErrorKind.STATE_CONFLICT
    code = 104
    default_message = "round is not active"


class RoundFull(LotteryEnded):
    """Participant list is at capacity; the round takes no more tickets."""

    kind = ErrorKind.CAPACITY_EXCEEDED
    default_message = "round has reached its participant capacity"


class TooEarly(LotteryError):
    kind = ErrorKind.TIMING_VIOLATION
    code = 105
    default_message = "draw is not allowed before the minimum block height"


class NoParticipants(LotteryError):
    kind = ErrorKind.EMPTY_POPULATION
    code = 106
    default_message = "not enough participants"


class InvalidTicketPrice(LotteryError):
    kind = ErrorKind.VALIDATION_FAILURE
    code = 107
    default_message = "ticket price out of bounds"


class InvalidMinPlayers(LotteryError):
    kind = ErrorKind.VALIDATION_FAILURE
    code = 108
    default_message = "minimum players out of bounds"


class InvalidMinBlocks(LotteryError):
    kind = ErrorKind.VALIDATION_FAILURE
    code = 109
    default_message = "minimum blocks out of bounds"


class InvalidWinners(LotteryError):
    kind = ErrorKind.VALIDATION_FAILURE
    code = 110
    default_message = "winner count must be positive"


class TooManyWinners(LotteryError):
    kind = ErrorKind.CAPACITY_EXCEEDED
    code = 111
    default_message = "winner count exceeds the winner list capacity"
