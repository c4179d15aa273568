import pytest

from block_lottery.blockchain.client import LocalChain
from block_lottery.blockchain.ledger import Ledger
from block_lottery.lottery.config_store import ConfigStore
from block_lottery.lottery.engine import LotteryEngine

OWNER = "SP2J6ZY48GV1EZ5V2V5RB9MP66SW86PYKKNRV9EJ7"
POOL = "SP2J6ZY48GV1EZ5V2V5RB9MP66SW86PYKKNRV9EJ7.lottery-pool"
PLAYERS = ("alice", "bob", "carol", "dave")
GENESIS_TIME = 1_700_000_000
TICKET_PRICE = 1_000_000
MIN_BLOCKS = 50


@pytest.fixture
def chain():
    return LocalChain(genesis_time=GENESIS_TIME, block_spacing=600)


@pytest.fixture
def ledger():
    return Ledger({player: 10 * TICKET_PRICE for player in PLAYERS})


@pytest.fixture
def config_store():
    return ConfigStore(
        OWNER,
        pool_address=POOL,
        ticket_price=TICKET_PRICE,
        min_players=2,
        min_blocks=MIN_BLOCKS,
        winner_count=3,
    )


@pytest.fixture
def engine(config_store, ledger, chain):
    return LotteryEngine(config_store, ledger, chain)
