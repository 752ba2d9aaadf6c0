"""Two-tier fan-out and payload shapes."""

import asyncio

import pytest

from models import HistoryPoint


LIGHT_KEYS = {
    "price", "news", "isPaused", "online", "marketCap", "peRatio", "eps",
    "revenue", "shares", "date", "intrinsicValue", "stats",
}


def test_light_payload_formats_fields(session, fake_socket):
    session.router.connect("a", fake_socket())
    data = session.router.light_payload().model_dump(by_alias=True)
    assert set(data) == LIGHT_KEYS
    assert data["price"] == "50.00"
    assert data["marketCap"] == "500.0M"
    assert data["peRatio"] == "N/A"
    assert data["eps"] == "-1.50"
    assert data["online"] == 1
    assert data["date"] == "01/01/2024"
    assert data["stats"] == {"buys": 0, "sells": 0, "holds": 0, "total": 0, "multiplier": 1}


def test_pe_ratio_reported_when_profitable(session):
    session.state.current_eps = 2.5
    assert session.router.light_payload().pe_ratio == "20.0"


@pytest.mark.asyncio
async def test_dashboard_gets_both_tiers_viewers_only_light(session, fake_socket):
    viewer, dashboard = fake_socket(), fake_socket()
    router = session.router
    router.connect("viewer", viewer)
    router.connect("dash", dashboard)
    router.join_dashboard("dash")
    session.history.append(HistoryPoint(label="02/01/2024", price=50.5))

    await router.broadcast_market_update()

    assert viewer.events() == ["market-update-light"]
    assert sorted(dashboard.events()) == ["market-update-full", "market-update-light"]
    full = next(m["data"] for m in dashboard.sent if m["event"] == "market-update-full")
    assert full["mode"] == "LIVE"
    assert full["history"] == [{"label": "02/01/2024", "price": 50.5}]
    assert LIGHT_KEYS <= set(full)


@pytest.mark.asyncio
async def test_register_dashboard_sends_immediate_snapshot(session, fake_socket):
    dash, viewer = fake_socket(), fake_socket()
    session.connect("dash", dash)
    session.connect("viewer", viewer)
    await session.dispatch("dash", "register-dashboard", None)
    assert dash.events() == ["market-update-full"]
    assert viewer.sent == []


@pytest.mark.asyncio
async def test_failed_send_drops_connection(session, fake_socket):
    good, dead = fake_socket(), fake_socket(fail=True)
    session.router.connect("good", good)
    session.router.connect("dead", dead)
    session.router.join_dashboard("dead")

    await session.router.broadcast_market_update()

    assert "dead" not in session.router.connections
    assert "dead" not in session.router.dashboard
    assert good.events() == ["market-update-light"]


def test_disconnect_leaves_both_tiers_and_prunes_cooldown(session, fake_socket):
    session.state.is_paused = False
    session.connect("dash", fake_socket())
    session.router.join_dashboard("dash")
    session.votes.submit_vote("dash", "BUY")

    session.disconnect("dash")

    assert session.router.online == 0
    assert "dash" not in session.router.dashboard
    assert "dash" not in session.votes.last_vote


@pytest.mark.asyncio
async def test_final_chart_sends_whole_session_history(session, fake_socket):
    viewer = fake_socket()
    session.connect("viewer", viewer)
    session.state.is_paused = False
    for _ in range(200):
        session.engine.advance()
    await session.admin.handle("viewer", {"command": "NEWS_UPDATE", "text": "Merger", "impact": 3})
    viewer.sent.clear()

    await session.admin.handle("viewer", {"command": "SHOW_FINAL_CHART"})

    assert session.state.is_paused is True
    assert viewer.events() == ["market-finish"]
    data = viewer.sent[0]["data"]
    assert len(data["fullHistory"]) == 200
    assert data["fullHistory"][0]["label"] == "02/01/2024"
    assert data["events"][0]["label"] == session.history.full[-1].label
    assert set(data["stats"]) == {"buys", "sells", "holds", "total"}


@pytest.mark.asyncio
async def test_stalled_viewer_does_not_hold_up_the_tick(session, fake_socket, stalled_socket):
    session.router.send_timeout = 0.05
    good, stalled = fake_socket(), stalled_socket()
    session.connect("good", good)
    session.connect("stalled", stalled)
    session.router.join_dashboard("stalled")

    await asyncio.wait_for(session.engine.tick(), timeout=1.0)

    assert good.events() == ["market-update-light"]
    assert "stalled" not in session.router.connections
    assert "stalled" not in session.router.dashboard

    # Later ticks only go to live sockets
    await asyncio.wait_for(session.engine.tick(), timeout=1.0)
    assert good.events() == ["market-update-light", "market-update-light"]


@pytest.mark.asyncio
async def test_stalled_admin_error_reply_times_out(session, stalled_socket):
    session.router.send_timeout = 0.05
    session.connect("admin", stalled_socket())
    await asyncio.wait_for(
        session.admin.handle("admin", {"command": "SET_MULTIPLIER", "value": "x"}), timeout=1.0
    )
    assert session.router.online == 0
