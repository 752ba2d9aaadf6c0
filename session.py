# session.py
import logging
import random
import time
from typing import Callable, Optional

from admin import AdminCommandProcessor
from broadcast import BroadcastRouter
from engine import TickEngine
from history import HistoryStore
from models import MarketState
from votes import VoteAggregator

logger = logging.getLogger(__name__)


class MarketSession:
    """Owns every piece of shared game state for the process.

    All mutation happens on the event loop thread in plain synchronous code,
    so a vote, an admin command and a tick step never interleave.
    """

    def __init__(self, rng: Optional[random.Random] = None,
                 clock: Optional[Callable[[], float]] = None):
        self.state = MarketState()
        self.history = HistoryStore()
        self.router = BroadcastRouter(self.state, self.history)
        self.votes = VoteAggregator(self.state, clock=clock or time.monotonic)
        self.engine = TickEngine(self.state, self.history, self.router, rng=rng)
        self.admin = AdminCommandProcessor(self.state, self.history, self.router)

    def connect(self, connection_id: str, websocket):
        self.router.connect(connection_id, websocket)
        logger.info("Client connected: %s (online=%d)", connection_id, self.router.online)

    def disconnect(self, connection_id: str):
        self.router.disconnect(connection_id)
        self.votes.forget(connection_id)
        logger.info("Client disconnected: %s (online=%d)", connection_id, self.router.online)

    async def dispatch(self, connection_id: str, event: str, data):
        """Route one inbound client event."""
        if event == "vote":
            self.votes.submit_vote(connection_id, data)
        elif event == "register-dashboard":
            self.router.join_dashboard(connection_id)
            await self.router.send_full_snapshot(connection_id)
        elif event == "admin-action":
            await self.admin.handle(connection_id, data)
        else:
            logger.debug("Ignoring unknown event %r from %s", event, connection_id)
