# broadcast.py
import asyncio
import logging
from typing import Dict, List, Set

from starlette.websockets import WebSocket

import config
from engine import format_date, format_market_cap, pe_ratio
from history import HistoryStore
from models import (EventMarkerOut, FinalStats, FinishPayload, FullPayload, HistoryPointOut,
                    LightPayload, MarketState, VoteStats)

logger = logging.getLogger(__name__)

EVENT_LIGHT = "market-update-light"
EVENT_FULL = "market-update-full"
EVENT_FINISH = "market-finish"
EVENT_ADMIN_ERROR = "admin-error"


class BroadcastRouter:
    """Connection registry plus the two-tier fan-out.

    Every viewer gets the light payload; connections that registered as a
    dashboard also get the full payload with the live chart window.
    """

    def __init__(self, state: MarketState, history: HistoryStore,
                 send_timeout: float = config.SEND_TIMEOUT_S):
        self.state = state
        self.history = history
        self.send_timeout = send_timeout
        self.connections: Dict[str, WebSocket] = {}
        self.dashboard: Set[str] = set()

    # --- membership ---

    def connect(self, connection_id: str, websocket: WebSocket):
        self.connections[connection_id] = websocket

    def disconnect(self, connection_id: str):
        self.connections.pop(connection_id, None)
        self.dashboard.discard(connection_id)

    def join_dashboard(self, connection_id: str):
        if connection_id in self.connections:
            self.dashboard.add(connection_id)

    @property
    def online(self) -> int:
        return len(self.connections)

    # --- payloads ---

    def light_payload(self) -> LightPayload:
        state = self.state
        return LightPayload(
            price=f"{state.price:.2f}",
            news=state.current_news,
            is_paused=state.is_paused,
            online=self.online,
            market_cap=format_market_cap(state.price),
            pe_ratio=pe_ratio(state.price, state.current_eps),
            eps=f"{state.current_eps:.2f}",
            revenue=state.current_revenue,
            shares=config.SHARES_LABEL,
            date=format_date(state.simulated_date),
            intrinsic_value=f"{state.intrinsic_value:.2f}",
            stats=VoteStats(
                buys=state.total_buys,
                sells=state.total_sells,
                holds=state.total_holds,
                total=state.total_votes_ever,
                multiplier=state.vote_multiplier,
            ),
        )

    def full_payload(self, light: LightPayload = None) -> FullPayload:
        light = light or self.light_payload()
        history = [HistoryPointOut(label=p.label, price=p.price) for p in self.history.live]
        return FullPayload(**light.model_dump(), history=history)

    def finish_payload(self) -> FinishPayload:
        state = self.state
        return FinishPayload(
            full_history=[HistoryPointOut(label=p.label, price=p.price) for p in self.history.full],
            events=[
                EventMarkerOut(label=e.label, price=e.price, text=e.text, impact=e.impact)
                for e in self.history.events
            ],
            stats=FinalStats(
                buys=state.total_buys,
                sells=state.total_sells,
                holds=state.total_holds,
                total=state.total_votes_ever,
            ),
        )

    # --- fan-out ---

    async def broadcast_market_update(self):
        # Snapshot both tiers before the first await so they describe one state
        light = self.light_payload()
        light_msg = envelope(EVENT_LIGHT, light)
        full_msg = envelope(EVENT_FULL, self.full_payload(light)) if self.dashboard else None

        targets = [(cid, light_msg) for cid in self.connections]
        if full_msg is not None:
            targets += [(cid, full_msg) for cid in self.dashboard]
        await self._fan_out(targets)

    async def broadcast_finish(self):
        msg = envelope(EVENT_FINISH, self.finish_payload())
        await self._fan_out([(cid, msg) for cid in self.connections])

    async def send_full_snapshot(self, connection_id: str):
        await self._fan_out([(connection_id, envelope(EVENT_FULL, self.full_payload()))])

    async def send_to(self, connection_id: str, event: str, data: dict):
        await self._fan_out([(connection_id, {"event": event, "data": data})])

    async def _fan_out(self, targets: List[tuple]):
        sockets = [(cid, self.connections.get(cid), msg) for cid, msg in targets]
        sockets = [(cid, ws, msg) for cid, ws, msg in sockets if ws is not None]
        if not sockets:
            return
        # A stalled viewer times out instead of holding up the tick
        results = await asyncio.gather(
            *(asyncio.wait_for(ws.send_json(msg), self.send_timeout) for _, ws, msg in sockets),
            return_exceptions=True,
        )
        for (cid, _, _), result in zip(sockets, results):
            if isinstance(result, asyncio.TimeoutError):
                logger.warning("Dropping connection %s after send timed out", cid)
                self.disconnect(cid)
            elif isinstance(result, Exception):
                logger.warning("Dropping connection %s after failed send: %s", cid, result)
                self.disconnect(cid)


def envelope(event: str, payload) -> dict:
    return {"event": event, "data": payload.model_dump(mode="json", by_alias=True)}
