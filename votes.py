# votes.py
import logging
import time
from collections import OrderedDict
from typing import Callable, Optional

import config
from models import MarketState

logger = logging.getLogger(__name__)

VALID_ACTIONS = ("BUY", "SELL", "HOLD")


class VoteAggregator:
    """Applies viewer votes to the open tick window.

    Each connection may cast one vote per cooldown period. Rejected votes
    (paused market, cooldown) are dropped silently; the caller never tells
    the voter.
    """

    def __init__(self, state: MarketState,
                 cooldown_s: float = config.VOTE_COOLDOWN_S,
                 capacity: int = config.COOLDOWN_CAPACITY,
                 clock: Callable[[], float] = time.monotonic):
        self.state = state
        self.cooldown_s = cooldown_s
        self.capacity = capacity
        self.clock = clock
        # connection id -> last accepted vote time, oldest first
        self.last_vote: OrderedDict[str, float] = OrderedDict()

    def submit_vote(self, connection_id: str, action: str) -> bool:
        """Count one weighted vote. Returns True when the vote was accepted."""
        if action not in VALID_ACTIONS:
            return False
        state = self.state
        if state.is_paused:
            return False

        now = self.clock()
        last: Optional[float] = self.last_vote.get(connection_id)
        if last is not None and now - last < self.cooldown_s:
            return False
        self._touch(connection_id, now)

        weight = state.vote_multiplier
        state.total_votes_ever += weight
        if action == "BUY":
            state.buy_count += weight
            state.total_buys += weight
        elif action == "SELL":
            state.sell_count += weight
            state.total_sells += weight
        else:
            state.total_holds += weight
        return True

    def forget(self, connection_id: str):
        self.last_vote.pop(connection_id, None)

    def _touch(self, connection_id: str, now: float):
        self.last_vote[connection_id] = now
        self.last_vote.move_to_end(connection_id)
        while len(self.last_vote) > self.capacity:
            evicted, _ = self.last_vote.popitem(last=False)
            logger.debug("Cooldown map full, evicted %s", evicted)
