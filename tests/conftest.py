from __future__ import annotations

import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Dict, List, Optional

import pytest

REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from src.provider.base_client import AchievementProvider  # noqa: E402
from src.provider.models import (  # noqa: E402
    GameProgress,
    GameSummary,
    LeaderboardEntry,
    LeaderboardSnapshot,
    LeaderboardSummary,
    Objective,
    ProgressSummary,
    UnlockEvent,
)

NOW = datetime(2024, 5, 1, 12, 0, 0, tzinfo=timezone.utc)


def obj(oid: int, points: int = 5, earned_at: Optional[datetime] = None, title: str = "") -> Objective:
    return Objective(id=oid, title=title or f"Ach {oid}", points=points, earned_at=earned_at)


def progress_for(game_id: int, objectives: List[Objective], earned: Optional[int] = None) -> GameProgress:
    done = [o for o in objectives if o.is_earned]
    todo = [o for o in objectives if not o.is_earned]
    return GameProgress(
        game_id=game_id,
        progress=ProgressSummary(earned=len(done) if earned is None else earned, total=len(objectives)),
        remaining=todo,
        earned=done,
    )


class FakeProvider(AchievementProvider):
    """호출 기록 + 미리 넣어둔 응답/예외를 돌려주는 provider"""

    def __init__(self) -> None:
        self.game: Optional[GameSummary] = None
        self.progress: Dict[int, GameProgress] = {}
        self.unlocks: List[UnlockEvent] = []
        self.leaderboards: Dict[int, List[LeaderboardSummary]] = {}
        self.entries: Dict[int, LeaderboardSnapshot] = {}
        self.viewer: Dict[int, LeaderboardEntry] = {}
        self.fail: Dict[str, Exception] = {}
        self.calls: List[str] = []

    @property
    def provider_name(self) -> str:
        return "fake"

    def _maybe_fail(self, name: str) -> None:
        self.calls.append(name)
        err = self.fail.get(name)
        if err is not None:
            raise err

    async def fetch_current_game(self):
        self._maybe_fail("current_game")
        return self.game

    async def fetch_progress(self, game_id):
        self._maybe_fail("progress")
        return self.progress[game_id]

    async def fetch_recent_unlocks(self, lookback_minutes):
        self._maybe_fail("recent_unlocks")
        return list(self.unlocks)

    async def fetch_leaderboards(self, game_id):
        self._maybe_fail("leaderboards")
        return list(self.leaderboards.get(game_id, []))

    async def fetch_leaderboard_entries(self, leaderboard_id, top_n):
        self._maybe_fail("leaderboard_entries")
        return self.entries.get(leaderboard_id, LeaderboardSnapshot(leaderboard_id=leaderboard_id))

    async def fetch_viewer_rank(self, game_id, leaderboard_id):
        self._maybe_fail("viewer_rank")
        return self.viewer.get(leaderboard_id)


class FakeClock:
    """UTC 시각 + 단조 시계를 같이 움직이는 테스트 시계"""

    def __init__(self, now: datetime = NOW) -> None:
        self.now = now
        self.mono = 1000.0

    def advance(self, seconds: float) -> None:
        self.now = self.now + timedelta(seconds=seconds)
        self.mono += seconds

    def utc(self) -> datetime:
        return self.now

    def monotonic(self) -> float:
        return self.mono


@pytest.fixture()
def provider() -> FakeProvider:
    return FakeProvider()


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()
