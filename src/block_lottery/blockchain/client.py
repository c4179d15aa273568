"""Block metadata sources for seed derivation and round timing."""

from __future__ import annotations

import time
from threading import RLock
from typing import Dict, Optional

from web3 import Web3
from web3.exceptions import BlockNotFound

from block_lottery.utils.logger import get_logger

logger = get_logger(__name__)


class BlockSource:
    """Read-only view of chain height and block timestamps."""

    def block_height(self) -> int:
        raise NotImplementedError

    def time_at(self, height: int) -> Optional[int]:
        """Timestamp of block ``height``, or ``None`` if there is no such block."""
        raise NotImplementedError


class LocalChain(BlockSource):
    """In-process chain whose height only moves when blocks are mined."""

    def __init__(self, *, genesis_time: Optional[int] = None, block_spacing: int = 600) -> None:
        self._lock = RLock()
        self._block_spacing = block_spacing
        self._height = 0
        self._timestamps: Dict[int, int] = {0: int(time.time()) if genesis_time is None else genesis_time}

    def block_height(self) -> int:
        with self._lock:
            return self._height

    def time_at(self, height: int) -> Optional[int]:
        with self._lock:
            return self._timestamps.get(height)

    def mine(self, count: int = 1, *, spacing: Optional[int] = None) -> int:
        """Append ``count`` blocks and return the new height."""
        if count < 0:
            raise ValueError("cannot mine a negative number of blocks")
        step = self._block_spacing if spacing is None else spacing
        with self._lock:
            for _ in range(count):
                previous = self._timestamps[self._height]
                self._height += 1
                self._timestamps[self._height] = previous + step
            height = self._height
        logger.debug("Mined %s block(s); height=%s", count, height)
        return height

    def mine_until(self, height: int) -> int:
        return self.mine(max(0, height - self.block_height()))

    def set_time(self, height: int, timestamp: int) -> None:
        with self._lock:
            if height > self._height:
                raise ValueError(f"block {height} has not been mined")
            self._timestamps[height] = timestamp


class Web3BlockSource(BlockSource):
    """Block height and timestamps read over JSON-RPC with web3.py."""

    def __init__(self, rpc_url: Optional[str] = None, *, rpc_timeout: float = 10.0, w3: Optional[Web3] = None) -> None:
        if w3 is None:
            if not rpc_url:
                raise ValueError("rpc_url is required when no Web3 instance is given")
            w3 = Web3(Web3.HTTPProvider(rpc_url, request_kwargs={"timeout": rpc_timeout}))
            logger.info("Using RPC %s for block metadata", rpc_url)
        self._w3 = w3

    @classmethod
    def from_settings(cls, settings) -> "Web3BlockSource":
        """Build from a ``ChainSettings`` model."""
        return cls(settings.rpc_url, rpc_timeout=settings.rpc_timeout)

    def block_height(self) -> int:
        return int(self._w3.eth.block_number)

    def time_at(self, height: int) -> Optional[int]:
        if height < 0:
            return None
        try:
            block = self._w3.eth.get_block(height)
        except BlockNotFound:
            logger.debug("Block %s not found", height)
            return None
        return int(block["timestamp"])
