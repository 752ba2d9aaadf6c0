# admin.py
import enum
import logging
from typing import Annotated, Optional

from pydantic import Field, TypeAdapter, ValidationError

import config
from broadcast import BroadcastRouter
from engine import format_date
from history import HistoryStore
from models import (AdminCommand, EarningsUpdate, NewsUpdate, Reset, SetMultiplier, ShowFinalChart,
                    StartStop, MarketState)

logger = logging.getLogger(__name__)

COMMANDS = ("START_STOP", "SET_MULTIPLIER", "NEWS_UPDATE", "EARNINGS_UPDATE", "RESET", "SHOW_FINAL_CHART")

_command_adapter = TypeAdapter(Annotated[AdminCommand, Field(discriminator="command")])


class AdminCommandError(ValueError):
    """A known admin command arrived with missing or invalid arguments."""

    def __init__(self, command: str, detail: str):
        super().__init__(f"{command}: {detail}")
        self.command = command
        self.detail = detail


class Outcome(enum.Enum):
    BROADCAST = "broadcast"  # normal light/full update
    FINISH = "finish"  # session-end snapshot instead


def _describe(exc: ValidationError) -> str:
    parts = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err["loc"][1:]) or "payload"
        parts.append(f"{loc}: {err['msg']}")
    return "; ".join(parts)


class AdminCommandProcessor:
    def __init__(self, state: MarketState, history: HistoryStore, router: BroadcastRouter):
        self.state = state
        self.history = history
        self.router = router

    def parse(self, raw) -> Optional[AdminCommand]:
        """Validate a raw ``admin-action`` payload.

        Returns None for unknown commands, raises AdminCommandError when a known
        command is malformed.
        """
        if not isinstance(raw, dict) or raw.get("command") not in COMMANDS:
            logger.debug("Ignoring unknown admin payload: %r", raw)
            return None
        try:
            return _command_adapter.validate_python(raw)
        except ValidationError as exc:
            raise AdminCommandError(raw["command"], _describe(exc)) from exc

    def apply(self, command: AdminCommand) -> Outcome:
        state = self.state

        if isinstance(command, StartStop):
            state.is_paused = not state.is_paused
            state.current_news = config.NEWS_PAUSED if state.is_paused else config.NEWS_OPEN

        elif isinstance(command, SetMultiplier):
            state.vote_multiplier = command.value

        # EarningsUpdate extends NewsUpdate, check it first
        elif isinstance(command, EarningsUpdate):
            text = config.EARNINGS_PREFIX + self._annotate(command)
            self._announce(text, command.impact)
            if command.new_eps is not None:
                state.current_eps = command.new_eps
            if command.new_revenue is not None:
                state.current_revenue = command.new_revenue

        elif isinstance(command, NewsUpdate):
            self._announce(self._annotate(command), command.impact)

        elif isinstance(command, Reset):
            state.restore_initial()
            self.history.clear()
            state.current_news = config.NEWS_RESET

        elif isinstance(command, ShowFinalChart):
            state.is_paused = True
            state.current_news = config.NEWS_SESSION_ENDED
            return Outcome.FINISH

        return Outcome.BROADCAST

    async def handle(self, connection_id: str, raw):
        """Parse, apply and broadcast one admin command from ``connection_id``."""
        try:
            command = self.parse(raw)
        except AdminCommandError as exc:
            logger.warning("Rejected admin command from %s: %s", connection_id, exc)
            await self.router.send_to(connection_id, "admin-error",
                                      {"command": exc.command, "detail": exc.detail})
            return
        if command is None:
            return

        outcome = self.apply(command)
        logger.info("Admin %s applied (paused=%s, price=%.2f)",
                    command.command, self.state.is_paused, self.state.price)
        if outcome is Outcome.FINISH:
            await self.router.broadcast_finish()
        else:
            await self.router.broadcast_market_update()

    def _annotate(self, command: NewsUpdate) -> str:
        if command.source:
            return f"{command.text} (Source: {command.source})"
        return command.text

    def _announce(self, text: str, impact: float):
        state = self.state
        state.current_news = text
        if impact != 0:
            state.intrinsic_value += impact
        self.history.record_event(text, impact, state.price, format_date(state.simulated_date))
