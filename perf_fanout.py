"""Broadcast fan-out benchmark.

Attaches N viewer sockets (plus dashboards) to the app in-process, opens the
market and drives ticks by hand, timing each one two ways:

- tick_ms: ``TickEngine.tick`` on the server loop (price step + fan-out)
- deliver_ms: until every socket has read its update

Usage:
    python perf_fanout.py
"""

import os
import statistics
import time
from contextlib import ExitStack

# Ticks are driven below; keep the background loop out of the measurement
os.environ.setdefault("TICK_INTERVAL_MS", "3600000")

from fastapi.testclient import TestClient

from main import app, SESSION


def _summary(samples):
    samples = sorted(samples)
    p95 = samples[max(int(0.95 * len(samples)) - 1, 0)] if samples else None
    return {
        "min_ms": samples[0] if samples else None,
        "mean_ms": statistics.fmean(samples) if samples else None,
        "p95_ms": p95,
        "max_ms": samples[-1] if samples else None,
    }


def _drain(viewers, dashboards):
    # Viewers get the light payload; dashboards get light + full
    for ws in viewers:
        ws.receive_json()
    for ws in dashboards:
        ws.receive_json()
        ws.receive_json()


def run_fanout_load(viewers: int = 200, dashboards: int = 1, ticks: int = 50):
    tick_ms = []
    deliver_ms = []

    with TestClient(app) as client, ExitStack() as stack:
        viewer_ws = [stack.enter_context(client.websocket_connect("/ws")) for _ in range(viewers)]
        dash_ws = [stack.enter_context(client.websocket_connect("/ws")) for _ in range(dashboards)]
        for ws in dash_ws:
            ws.send_json({"event": "register-dashboard"})
            ws.receive_json()

        viewer_ws[0].send_json({"event": "admin-action", "data": {"command": "START_STOP"}})
        _drain(viewer_ws, dash_ws)

        for _ in range(ticks):
            t0 = time.perf_counter()
            client.portal.call(SESSION.engine.tick)
            t1 = time.perf_counter()
            _drain(viewer_ws, dash_ws)
            t2 = time.perf_counter()
            tick_ms.append((t1 - t0) * 1000.0)
            deliver_ms.append((t2 - t0) * 1000.0)

        online = SESSION.router.online

    return {
        "viewers": viewers,
        "dashboards": dashboards,
        "ticks": ticks,
        "online_at_end": online,
        "history_points": len(SESSION.history.full),
        "tick": _summary(tick_ms),
        "deliver": _summary(deliver_ms),
    }


def main():
    res = run_fanout_load()
    lines = [
        "==== Broadcast Fan-out Perf Note ====",
        "Tool: in-process TestClient WebSockets, ticks driven on the app loop",
        f"Setup: {res['viewers']} viewers + {res['dashboards']} dashboard(s), {res['ticks']} ticks",
    ]
    for k, v in res.items():
        lines.append(f"{k}: {v}")
    note = "\n".join(lines)
    print(note)
    os.makedirs("docs", exist_ok=True)
    with open("docs/perf_note.txt", "w") as f:
        f.write(note + "\n")


if __name__ == "__main__":
    main()
