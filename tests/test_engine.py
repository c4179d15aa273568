import threading

import pytest

from block_lottery.lottery.errors import (
    ErrorKind,
    InsufficientFunds,
    InvalidTicketPrice,
    LotteryEnded,
    LotteryInProgress,
    NoLotteryActive,
    NoParticipants,
    NotAuthorized,
    RoundFull,
    TooEarly,
)
from block_lottery.lottery.models import MAX_PARTICIPANTS, RoundStatus
from block_lottery.lottery.randomness import derive_seed, seed_for_height
from block_lottery.lottery.selector import select_winners

from conftest import MIN_BLOCKS, OWNER, POOL, TICKET_PRICE


def _open_round_with(engine, *players):
    round_id = engine.initialize(OWNER)
    for player in players:
        engine.buy_ticket(player)
    return round_id


# =============== initialize ===============

def test_initialize_creates_active_round(engine, chain):
    chain.mine(7)
    round_id = engine.initialize(OWNER)

    assert round_id == 1
    lottery = engine.get_current_lottery()
    assert lottery.status is RoundStatus.ACTIVE
    assert lottery.start_block == 7
    assert lottery.end_block == 7 + MIN_BLOCKS
    assert lottery.participants == []
    assert lottery.total_pot == 0
    assert lottery.winners == []
    expected_seed = derive_seed(chain.time_at(7), chain.time_at(6))
    assert lottery.random_seed == expected_seed
    assert engine.get_last_random_seed() == expected_seed


def test_initialize_requires_owner(engine):
    with pytest.raises(NotAuthorized) as excinfo:
        engine.initialize("alice")
    assert excinfo.value.kind is ErrorKind.AUTHORIZATION
    assert engine.get_current_lottery() is None


def test_initialize_refuses_while_round_active(engine):
    engine.initialize(OWNER)
    with pytest.raises(LotteryInProgress) as excinfo:
        engine.initialize(OWNER)
    assert excinfo.value.kind is ErrorKind.STATE_CONFLICT
    assert engine.get_current_round_id() == 1


def test_round_ids_increase_after_completion(engine, chain):
    _open_round_with(engine, "alice", "bob")
    chain.mine(MIN_BLOCKS)
    engine.draw_winners()

    assert engine.initialize(OWNER) == 2
    assert engine.get_lottery_info(1).status is RoundStatus.COMPLETED
    assert engine.get_current_lottery().start_block == MIN_BLOCKS
    assert [r.round_id for r in engine.get_round_history()] == [1]


# =============== buy_ticket ===============

def test_buy_ticket_records_purchase(engine, ledger):
    _open_round_with(engine, "alice", "bob", "alice")

    lottery = engine.get_current_lottery()
    assert lottery.participants == ["alice", "bob", "alice"]
    assert lottery.ticket_sequence == [0, 1, 2]
    assert lottery.total_pot == 3 * TICKET_PRICE
    assert engine.get_participant_tickets(1, "alice") == 2
    assert engine.get_participant_tickets(1, "bob") == 1
    assert engine.get_participant_tickets(1, "carol") is None
    assert ledger.balance_of("alice") == 8 * TICKET_PRICE
    assert ledger.balance_of(POOL) == 3 * TICKET_PRICE


def test_buy_ticket_without_round(engine):
    with pytest.raises(NoLotteryActive):
        engine.buy_ticket("alice")


def test_buy_ticket_window_is_inclusive(engine, chain):
    engine.initialize(OWNER)
    chain.mine(MIN_BLOCKS)
    assert engine.buy_ticket("alice") is True

    chain.mine(1)
    with pytest.raises(NoLotteryActive):
        engine.buy_ticket("bob")
    assert engine.get_current_lottery().participants == ["alice"]


def test_buy_ticket_insufficient_balance(engine, ledger):
    ledger.credit("poor", TICKET_PRICE - 1)
    engine.initialize(OWNER)

    with pytest.raises(InsufficientFunds) as excinfo:
        engine.buy_ticket("poor")
    assert excinfo.value.kind is ErrorKind.RESOURCE_INSUFFICIENT
    assert ledger.balance_of("poor") == TICKET_PRICE - 1
    assert engine.get_participant_tickets(1, "poor") is None
    assert engine.get_current_lottery().total_pot == 0


def test_fifty_first_ticket_is_rejected_and_rolled_back(engine, ledger):
    ledger.credit("whale", 60 * TICKET_PRICE)
    engine.initialize(OWNER)
    for _ in range(MAX_PARTICIPANTS):
        engine.buy_ticket("whale")

    with pytest.raises(RoundFull) as excinfo:
        engine.buy_ticket("whale")
    assert isinstance(excinfo.value, LotteryEnded)
    assert excinfo.value.kind is ErrorKind.CAPACITY_EXCEEDED

    lottery = engine.get_current_lottery()
    assert len(lottery.participants) == len(lottery.ticket_sequence) == MAX_PARTICIPANTS
    assert lottery.total_pot == MAX_PARTICIPANTS * TICKET_PRICE
    assert engine.get_participant_tickets(1, "whale") == MAX_PARTICIPANTS
    assert ledger.balance_of("whale") == 10 * TICKET_PRICE


def test_ticket_price_is_read_live(engine):
    engine.initialize(OWNER)
    engine.buy_ticket("alice")
    engine.set_ticket_price(OWNER, 2 * TICKET_PRICE)
    engine.buy_ticket("bob")
    assert engine.get_current_lottery().total_pot == 3 * TICKET_PRICE
    assert engine.get_ticket_price() == 2 * TICKET_PRICE


# =============== draw_winners ===============

def test_draw_too_early(engine, chain):
    _open_round_with(engine, "alice", "bob")
    chain.mine(MIN_BLOCKS - 1)
    with pytest.raises(TooEarly) as excinfo:
        engine.draw_winners()
    assert excinfo.value.kind is ErrorKind.TIMING_VIOLATION
    assert engine.get_current_lottery().status is RoundStatus.ACTIVE


def test_draw_needs_min_players(engine, chain):
    _open_round_with(engine, "alice")
    chain.mine(MIN_BLOCKS)
    with pytest.raises(NoParticipants) as excinfo:
        engine.draw_winners()
    assert excinfo.value.kind is ErrorKind.EMPTY_POPULATION


def test_draw_without_round(engine):
    with pytest.raises(NoLotteryActive):
        engine.draw_winners()


def test_end_to_end_round(engine, chain, ledger):
    engine.set_winner_count(OWNER, 2)
    assert engine.initialize(OWNER) == 1
    for player in ("alice", "bob", "carol"):
        assert engine.buy_ticket(player) is True

    chain.mine(MIN_BLOCKS + 3)
    height = chain.block_height()
    winners = engine.draw_winners("dave")

    lottery = engine.get_lottery_info(1)
    assert len(winners) == 2
    assert sum(w.prize for w in winners) == lottery.total_pot == 3 * TICKET_PRICE
    assert lottery.status is RoundStatus.COMPLETED
    assert lottery.winners == winners

    seed = derive_seed(chain.time_at(height), chain.time_at(height - 1))
    assert lottery.random_seed == seed
    assert engine.get_last_random_seed() == seed
    assert winners == select_winners(["alice", "bob", "carol"], seed, 2, 3 * TICKET_PRICE)

    assert ledger.balance_of(POOL) == 0
    total = sum(ledger.balance_of(p) for p in ("alice", "bob", "carol"))
    assert total == 30 * TICKET_PRICE

    with pytest.raises(LotteryEnded) as excinfo:
        engine.draw_winners()
    assert excinfo.value.kind is ErrorKind.STATE_CONFLICT


def test_winner_count_is_read_live(engine, chain):
    _open_round_with(engine, "alice", "bob", "carol", "dave")
    engine.set_winner_count(OWNER, 4)
    chain.mine(MIN_BLOCKS)
    assert len(engine.draw_winners()) == 4


def test_winner_count_capped_by_participants(engine, chain):
    _open_round_with(engine, "alice", "bob")
    engine.set_winner_count(OWNER, 10)
    chain.mine(MIN_BLOCKS)
    winners = engine.draw_winners()
    assert len(winners) == 2
    assert sum(w.prize for w in winners) == 2 * TICKET_PRICE


def test_round_keeps_its_frozen_parameters(engine, chain):
    _open_round_with(engine, "alice", "bob")
    engine.set_min_blocks(OWNER, 500)
    engine.set_min_players(OWNER, 5)

    lottery = engine.get_current_lottery()
    assert lottery.end_block == MIN_BLOCKS
    assert lottery.min_players == 2

    chain.mine(MIN_BLOCKS)
    engine.draw_winners()
    engine.initialize(OWNER)
    assert engine.get_current_lottery().end_block == MIN_BLOCKS + 500
    assert engine.get_current_lottery().min_players == 5


def test_duplicate_winners_are_possible(engine, chain, ledger):
    engine.set_winner_count(OWNER, 3)
    _open_round_with(engine, "alice", "alice", "alice", "bob")
    chain.mine(MIN_BLOCKS)
    seed = seed_for_height(chain, chain.block_height())

    winners = engine.draw_winners()

    identities = [w.identity for w in winners]
    assert identities == [["alice", "alice", "alice", "bob"][(seed + i) % 4] for i in range(3)]
    assert identities.count("alice") >= 2
    assert ledger.balance_of("alice") + ledger.balance_of("bob") == 20 * TICKET_PRICE


def test_failed_payout_rolls_back_draw(engine, chain, ledger):
    _open_round_with(engine, "alice", "bob", "carol")
    chain.mine(MIN_BLOCKS)
    seed_before = engine.get_last_random_seed()
    ledger.transfer(2 * TICKET_PRICE, POOL, "treasury")

    with pytest.raises(InsufficientFunds):
        engine.draw_winners()

    lottery = engine.get_current_lottery()
    assert lottery.status is RoundStatus.ACTIVE
    assert lottery.winners == []
    assert engine.get_last_random_seed() == seed_before
    assert ledger.balance_of(POOL) == TICKET_PRICE
    assert ledger.balance_of("alice") == 9 * TICKET_PRICE

    ledger.transfer(2 * TICKET_PRICE, "treasury", POOL)
    winners = engine.draw_winners()
    assert sum(w.prize for w in winners) == 3 * TICKET_PRICE
    assert engine.get_current_lottery().status is RoundStatus.COMPLETED


def test_can_draw(engine, chain):
    assert not engine.can_draw()
    _open_round_with(engine, "alice", "bob")
    assert not engine.can_draw()
    chain.mine(MIN_BLOCKS)
    assert engine.can_draw()
    engine.draw_winners()
    assert not engine.can_draw()


# =============== administration and queries ===============

def test_admin_setters_require_owner(engine):
    with pytest.raises(NotAuthorized):
        engine.set_ticket_price("alice", 200_000)
    with pytest.raises(NotAuthorized):
        engine.set_winner_count("alice", 2)


def test_setter_boundaries_through_engine(engine):
    with pytest.raises(InvalidTicketPrice) as excinfo:
        engine.set_ticket_price(OWNER, 99_999)
    assert excinfo.value.kind is ErrorKind.VALIDATION_FAILURE
    assert engine.set_ticket_price(OWNER, 100_000) is True
    assert engine.set_min_players(OWNER, 20) is True
    assert engine.set_min_blocks(OWNER, 1000) is True
    assert engine.set_winner_count(OWNER, 10) is True
    assert engine.get_min_players() == 20
    assert engine.get_min_blocks() == 1000
    assert engine.get_winner_count() == 10


def test_setters_wait_for_running_round_operation(engine):
    changed = threading.Event()

    def change_price():
        engine.set_ticket_price(OWNER, 200_000)
        changed.set()

    with engine.store.transaction():
        worker = threading.Thread(target=change_price)
        worker.start()
        assert not changed.wait(0.05)
        assert engine.get_ticket_price() == TICKET_PRICE

    worker.join(timeout=1)
    assert changed.is_set()
    assert engine.get_ticket_price() == 200_000


def test_queries_for_unknown_round(engine):
    assert engine.get_lottery_info(42) is None
    assert engine.get_participant_tickets(42, "alice") is None
    assert engine.get_current_lottery() is None
    assert engine.get_last_random_seed() == 0


def test_returned_records_are_copies(engine):
    _open_round_with(engine, "alice")
    snapshot = engine.get_current_lottery()
    snapshot.participants.append("mallory")
    assert engine.get_current_lottery().participants == ["alice"]


def test_status_summary(engine):
    _open_round_with(engine, "alice")
    status = engine.get_status()
    assert status["current_round"]["roundId"] == 1
    assert status["pool_balance"] == TICKET_PRICE
    assert status["ticket_price"] == TICKET_PRICE
