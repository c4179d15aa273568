"""
Passive lottery operator.

Polls the engine and keeps rounds moving:
- If no round is active and auto-start is on: initialize one as the owner
- If the current round has reached its draw height with enough players: draw it
"""

from __future__ import annotations

import asyncio
from typing import Any, Dict, Optional

from block_lottery.lottery.engine import LotteryEngine
from block_lottery.lottery.errors import LotteryError
from block_lottery.lottery.models import OperatorStatus
from block_lottery.utils.config import operator_settings
from block_lottery.utils.logger import get_logger

logger = get_logger(__name__)


class PassiveOperator:
    """Operator loop that opens and draws rounds on the owner's behalf."""

    def __init__(self, engine: LotteryEngine, config: Optional[Dict[str, Any]] = None) -> None:
        settings = operator_settings(config or {})
        self._engine = engine
        self._auto_start = settings.auto_start_rounds
        self._check_interval = settings.check_interval
        self._status = OperatorStatus()
        self._task: Optional[asyncio.Task[None]] = None

    @property
    def is_running(self) -> bool:
        return self._status.is_running

    async def start(self) -> None:
        """Start the polling loop in the background."""
        if self._status.is_running:
            logger.warning("Passive operator already running")
            return
        self._status.is_running = True
        self._task = asyncio.create_task(self._run(), name="lottery-operator")
        logger.info("Passive operator started (interval %ss)", self._check_interval)

    async def stop(self) -> None:
        if not self._status.is_running:
            return
        logger.info("Stopping passive operator")
        self._status.is_running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("Passive operator stopped")

    def get_status(self) -> Dict[str, Any]:
        return {
            "status": "running" if self._status.is_running else "stopped",
            "current_round_id": self._engine.get_current_round_id() or None,
            "last_action": self._status.last_action,
            "last_checked_height": self._status.last_checked_height,
            "consecutive_failures": self._status.consecutive_failures,
        }

    async def _run(self) -> None:
        while self._status.is_running:
            await self.check_once()
            await asyncio.sleep(self._check_interval)

    async def check_once(self) -> Optional[str]:
        """Run one pass; return "initialized", "drawn" or None.

        Engine and RPC calls block, so the pass runs in a worker thread.
        Any failure is counted and logged; the loop keeps polling.
        """
        try:
            action = await asyncio.to_thread(self._step)
        except LotteryError as exc:
            self._status.record_failure()
            logger.error(
                f"Operator action failed ({self._status.consecutive_failures} in a row): {exc}"
            )
            return None
        except Exception as exc:
            self._status.record_failure()
            logger.error(
                f"Operator check failed ({self._status.consecutive_failures} in a row): {exc!r}"
            )
            return None

        self._status.reset_failures()
        if action is not None:
            self._status.last_action = action
        return action

    def _step(self) -> Optional[str]:
        engine = self._engine
        self._status.last_checked_height = engine.block_source.block_height()
        current = engine.get_current_lottery()

        if current is None or current.is_terminal:
            if not self._auto_start:
                return None
            round_id = engine.initialize(engine.config.owner)
            logger.info(f"Operator opened round {round_id}")
            return "initialized"
        if engine.can_draw():
            winners = engine.draw_winners(engine.config.owner)
            logger.info(f"Operator drew round {current.round_id}: {len(winners)} winner(s)")
            return "drawn"
        return None
