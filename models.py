# models.py
from dataclasses import dataclass
from datetime import date
from typing import Any, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

import config

Action = Literal["BUY", "SELL", "HOLD"]


# One chart point (simulated date label + price after that tick)
@dataclass
class HistoryPoint:
    label: str
    price: float


# Admin news/earnings marker, pinned to an existing chart label
@dataclass
class EventMarker:
    label: str
    price: float
    text: str
    impact: float


class MarketState:
    """Mutable game state. One instance lives for the whole process.

    Mutated only by the vote aggregator, the tick engine and the admin
    command processor; ``restore_initial`` resets contents in place.
    """

    def __init__(self):
        self.restore_initial()
        self.current_news: str = config.NEWS_CLOSED

    def restore_initial(self):
        self.price: float = config.INITIAL_PRICE
        self.intrinsic_value: float = config.INITIAL_INTRINSIC_VALUE
        self.volatility: float = config.INITIAL_VOLATILITY
        self.gravity: float = config.INITIAL_GRAVITY
        self.is_paused: bool = True
        self.current_eps: float = config.INITIAL_EPS
        self.current_revenue: str = config.INITIAL_REVENUE
        self.simulated_date: date = config.INITIAL_DATE
        self.vote_multiplier: int = 1
        # Weighted votes of the open tick window
        self.buy_count: int = 0
        self.sell_count: int = 0
        # Lifetime totals (until RESET)
        self.total_votes_ever: int = 0
        self.total_buys: int = 0
        self.total_sells: int = 0
        self.total_holds: int = 0


# --- WIRE MODELS ---

class WireModel(BaseModel):
    # camelCase keys on the wire, snake_case in Python
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ClientMessage(BaseModel):
    event: str
    data: Any = None


class VoteStats(WireModel):
    buys: int
    sells: int
    holds: int
    total: int
    multiplier: int


class LightPayload(WireModel):
    price: str
    news: str
    is_paused: bool
    online: int
    market_cap: str
    pe_ratio: str
    eps: str
    revenue: str
    shares: str
    date: str
    intrinsic_value: str
    stats: VoteStats


class HistoryPointOut(WireModel):
    label: str
    price: float


class EventMarkerOut(WireModel):
    label: str
    price: float
    text: str
    impact: float


class FullPayload(LightPayload):
    history: List[HistoryPointOut]
    mode: Literal["LIVE"] = "LIVE"


class FinalStats(WireModel):
    buys: int
    sells: int
    holds: int
    total: int


class FinishPayload(WireModel):
    full_history: List[HistoryPointOut]
    events: List[EventMarkerOut]
    stats: FinalStats


# --- ADMIN COMMANDS (tagged on "command") ---

class StartStop(BaseModel):
    command: Literal["START_STOP"]


class SetMultiplier(BaseModel):
    command: Literal["SET_MULTIPLIER"]
    value: int = Field(ge=0)


class NewsUpdate(BaseModel):
    command: Literal["NEWS_UPDATE"]
    text: str = Field(min_length=1)
    source: Optional[str] = None
    impact: float = Field(0.0, allow_inf_nan=False, ge=-config.MAX_IMPACT, le=config.MAX_IMPACT)


class EarningsUpdate(NewsUpdate):
    command: Literal["EARNINGS_UPDATE"]
    new_eps: Optional[float] = Field(default=None, alias="newEPS", allow_inf_nan=False)
    new_revenue: Optional[str] = Field(default=None, alias="newRevenue")

    model_config = ConfigDict(populate_by_name=True)


class Reset(BaseModel):
    command: Literal["RESET"]


class ShowFinalChart(BaseModel):
    command: Literal["SHOW_FINAL_CHART"]


AdminCommand = Union[StartStop, SetMultiplier, NewsUpdate, EarningsUpdate, Reset, ShowFinalChart]
