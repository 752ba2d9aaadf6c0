# history.py
from collections import deque
from typing import List, Optional

import config
from models import EventMarker, HistoryPoint


class HistoryStore:
    """Chart series for one session.

    ``live`` is the sliding window streamed to the dashboard, ``full`` keeps
    every point since the last reset and ``events`` holds admin news markers.
    ``live`` is always a suffix of ``full``.
    """

    def __init__(self, live_size: int = config.LIVE_HISTORY_SIZE):
        self.live: deque[HistoryPoint] = deque(maxlen=live_size)
        self.full: List[HistoryPoint] = []
        self.events: List[EventMarker] = []

    def append(self, point: HistoryPoint):
        self.full.append(point)
        # deque(maxlen) evicts the oldest point on overflow
        self.live.append(point)

    def last_label(self) -> Optional[str]:
        if not self.full:
            return None
        return self.full[-1].label

    def record_event(self, text: str, impact: float, price: float, fallback_label: str) -> EventMarker:
        # Pin to the latest chart point so the marker sits on an existing x value
        label = self.last_label() or fallback_label
        marker = EventMarker(label=label, price=price, text=text, impact=impact)
        self.events.append(marker)
        return marker

    def clear(self):
        self.live.clear()
        self.full.clear()
        self.events.clear()
