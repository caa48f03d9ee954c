from __future__ import annotations

import asyncio
from typing import List, Tuple

from src.provider.models import GameSummary, Objective, ProgressSummary, UnlockEvent
from src.sync.broadcaster import EventBroadcaster
from src.sync.events import (
    AchievementEvent,
    NextEvent,
    NowPlayingEvent,
    ProgressEvent,
    RemainingEvent,
)
from src.sync.state import SessionState

GAME = GameSummary(id=1, title="Sonic the Hedgehog")


class Recorder:
    def __init__(self) -> None:
        self.sent: List[Tuple[str, str, dict]] = []
        self.broken: set = set()

    async def send(self, event: str, payload, sid: str) -> None:
        if sid in self.broken:
            raise ConnectionError("gone")
        self.sent.append((sid, event, payload))

    def events_for(self, sid: str) -> List[str]:
        return [e for s, e, _ in self.sent if s == sid]


def _mid_stream_state() -> SessionState:
    state = SessionState(game=GAME)
    state.progress = ProgressSummary(earned=2, total=10)
    state.remaining = [Objective(id=3, title="Ring Master", points=10)]
    state.next_objective = state.remaining[0]
    state.next_emitted = True
    for i in (1, 2):
        state.recent_toasts.append(UnlockEvent(objective_id=i, game_id=1, title=f"Ach {i}"))
    return state


def test_late_joiner_gets_current_state_in_order() -> None:
    rec = Recorder()
    state = _mid_stream_state()
    b = EventBroadcaster(rec.send, state.replay_events)

    asyncio.run(b.connect("viewer"))

    assert rec.events_for("viewer") == ["now-playing", "progress", "remaining", "next", "achievement"]
    toast = [p for _, e, p in rec.sent if e == "achievement"]
    assert toast == [{"id": 2, "gameId": 1, "title": "Ach 2", "points": 0, "badge": None, "date": None}]
    assert b.session_count == 1


def test_empty_state_replays_nothing() -> None:
    rec = Recorder()
    b = EventBroadcaster(rec.send, SessionState().replay_events)
    asyncio.run(b.connect("viewer"))
    assert rec.sent == []
    assert b.session_count == 1


def test_publish_reaches_every_session_in_order() -> None:
    rec = Recorder()
    b = EventBroadcaster(rec.send, SessionState().replay_events)
    events = [
        NowPlayingEvent(GAME),
        ProgressEvent(ProgressSummary(1, 3)),
        RemainingEvent(()),
        NextEvent(None),
    ]

    async def scenario():
        await b.connect("a")
        await b.connect("b")
        await b.publish(events)

    asyncio.run(scenario())
    expected = ["now-playing", "progress", "remaining", "next"]
    assert rec.events_for("a") == expected
    assert rec.events_for("b") == expected


def test_failed_session_is_dropped_silently() -> None:
    rec = Recorder()
    b = EventBroadcaster(rec.send, SessionState().replay_events)

    async def scenario():
        await b.connect("a")
        await b.connect("b")
        rec.broken.add("b")
        await b.publish([ProgressEvent(ProgressSummary(1, 3))])
        rec.broken.clear()
        await b.publish([ProgressEvent(ProgressSummary(2, 3))])

    asyncio.run(scenario())
    assert b.session_count == 1
    assert rec.events_for("a") == ["progress", "progress"]
    assert rec.events_for("b") == []


def test_session_failing_during_replay_is_not_registered() -> None:
    rec = Recorder()
    rec.broken.add("a")
    b = EventBroadcaster(rec.send, _mid_stream_state().replay_events)
    asyncio.run(b.connect("a"))
    assert b.session_count == 0


def test_disconnect_and_ping_toast() -> None:
    rec = Recorder()
    b = EventBroadcaster(rec.send, SessionState().replay_events)

    async def scenario():
        await b.connect("a")
        await b.connect("b")
        await b.disconnect("b")
        await b.ping_toast()

    asyncio.run(scenario())
    assert rec.events_for("a") == ["achievement"]
    assert rec.events_for("b") == []
    assert rec.sent[0][2]["title"] == "Ping Toast"


def test_waiting_state_replays_waiting_now_playing_only() -> None:
    rec = Recorder()
    state = _mid_stream_state()
    state.waiting = True
    b = EventBroadcaster(rec.send, state.replay_events)
    asyncio.run(b.connect("viewer"))
    # 이전 게임의 진행도/토스트는 보내지 않는다
    assert rec.events_for("viewer") == ["now-playing"]
    assert rec.sent[0][2]["waiting"] is True


def test_publish_payloads_are_flat_records() -> None:
    rec = Recorder()
    b = EventBroadcaster(rec.send, SessionState().replay_events)
    unlock = UnlockEvent(objective_id=7, game_id=1, title="Chaos Emerald", points=25, badge_url="https://x/7.png")

    async def scenario():
        await b.connect("a")
        await b.publish([AchievementEvent(unlock)])

    asyncio.run(scenario())
    assert rec.sent == [("a", "achievement", {
        "id": 7, "gameId": 1, "title": "Chaos Emerald", "points": 25, "badge": "https://x/7.png", "date": None,
    })]
