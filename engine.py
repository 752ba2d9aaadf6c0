"""Market tick engine and the pricing helpers it is built on.

One tick is one simulated trading day. The price step combines three forces:

- vote pressure: ``(buys - sells) * volatility``
- gravity: a fraction ``gravity`` of the gap to the intrinsic (fair) value
- noise: uniform noise whose width grows with the size of that gap, so a badly
  mispriced market is also a jumpier one

The helpers are plain functions so they can be checked without a running
service; :class:`TickEngine` wires them to the shared state.
"""

import asyncio
import logging
import random
from datetime import date, timedelta
from typing import Optional

import config
from history import HistoryStore
from models import HistoryPoint, MarketState

logger = logging.getLogger(__name__)

PE_SENTINEL = "N/A"


def compute_next_price(price: float, intrinsic_value: float, buy_count: float, sell_count: float,
                       volatility: float, gravity: float, u: float) -> float:
    """Return the price after one tick.

    ``u`` is a uniform draw in [0, 1); the noise term is ``(u - 0.5) * chaos``
    with ``chaos = 0.1 + |gap| * 0.15``. The result is floored at
    ``config.PRICE_FLOOR``.
    """
    net_pressure = buy_count - sell_count
    vote_effect = net_pressure * volatility

    gap = intrinsic_value - price
    correction = gap * gravity

    chaos_level = 0.1 + abs(gap) * 0.15
    noise = (u - 0.5) * chaos_level

    new_price = price + vote_effect + correction + noise
    # "not >=" also floors NaN
    if not new_price >= config.PRICE_FLOOR:
        new_price = config.PRICE_FLOOR
    return new_price


def format_market_cap(price: float, shares: int = config.SHARES_OUTSTANDING) -> str:
    market_cap = price * shares
    if market_cap > 1_000_000_000:
        return f"{market_cap / 1_000_000_000:.2f}B"
    return f"{market_cap / 1_000_000:.1f}M"


def pe_ratio(price: float, eps: float) -> str:
    """P/E to one decimal, or ``PE_SENTINEL`` for a loss-making company."""
    if eps <= 0:
        return PE_SENTINEL
    return f"{price / eps:.1f}"


def format_date(day: date) -> str:
    return day.strftime("%d/%m/%Y")


class TickEngine:
    def __init__(self, state: MarketState, history: HistoryStore, router, rng: Optional[random.Random] = None):
        self.state = state
        self.history = history
        self.router = router
        self.rng = rng or random.Random()

    def advance(self):
        """Run the simulation step of one tick. Does nothing while paused."""
        state = self.state
        if state.is_paused:
            return

        state.simulated_date = state.simulated_date + timedelta(days=1)

        state.price = compute_next_price(
            state.price,
            state.intrinsic_value,
            state.buy_count,
            state.sell_count,
            state.volatility,
            state.gravity,
            self.rng.random(),
        )

        self.history.append(HistoryPoint(label=format_date(state.simulated_date), price=state.price))

        state.buy_count = 0
        state.sell_count = 0

    async def tick(self):
        self.advance()
        # Broadcast even when paused so late joiners see the current state
        await self.router.broadcast_market_update()

    async def run(self, interval_s: float):
        """Tick forever on a fixed schedule. Each tick completes before the next starts.

        Ticks are paced against absolute deadlines so broadcast time does not
        stretch the period. A tick that overruns its slot is followed by the
        next one immediately rather than skipped.
        """
        logger.info("Tick loop started (every %.3fs)", interval_s)
        loop = asyncio.get_running_loop()
        next_deadline = loop.time()
        try:
            while True:
                next_deadline += interval_s
                sleep_s = next_deadline - loop.time()
                if sleep_s > 0:
                    await asyncio.sleep(sleep_s)
                await self.tick()
        except asyncio.CancelledError:
            logger.info("Tick loop cancelled.")
            raise
