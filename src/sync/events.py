"""
오버레이로 푸시하는 이벤트 타입. 이벤트 종류마다 dataclass 하나.
name 은 Socket.IO 이벤트 이름, to_payload() 는 브라우저에 보내는 평탄한 dict.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, ClassVar, Optional, Tuple, Union

from src.provider.models import (
    GameSummary,
    LeaderboardEntry,
    LeaderboardSnapshot,
    Objective,
    ProgressSummary,
    UnlockEvent,
)

WAITING_TITLE = "Waiting for game..."


def _iso(dt: Optional[datetime]) -> Optional[str]:
    return dt.isoformat() if dt is not None else None


def _objective_dict(o: Objective) -> dict[str, Any]:
    return {
        "id": o.id,
        "title": o.title,
        "description": o.description,
        "points": o.points,
        "badge": o.badge_url,
    }


def _entry_dict(e: LeaderboardEntry) -> dict[str, Any]:
    return {
        "rank": e.rank,
        "user": e.user,
        "score": e.formatted_score,
        "rawScore": e.raw_score,
    }


@dataclass(frozen=True)
class NowPlayingEvent:
    name: ClassVar[str] = "now-playing"
    game: Optional[GameSummary] = None  # None = 게임 대기 중

    @property
    def waiting(self) -> bool:
        return self.game is None

    def to_payload(self) -> dict[str, Any]:
        if self.game is None:
            return {"gameId": None, "title": WAITING_TITLE, "consoleName": "", "boxArt": None, "waiting": True}
        return {
            "gameId": self.game.id,
            "title": self.game.title,
            "consoleName": self.game.console_name,
            "boxArt": self.game.box_art_url or None,
            "waiting": False,
        }


@dataclass(frozen=True)
class ProgressEvent:
    name: ClassVar[str] = "progress"
    progress: ProgressSummary

    def to_payload(self) -> dict[str, Any]:
        return {
            "percent": self.progress.percent,
            "earned": self.progress.earned,
            "total": self.progress.total,
        }


@dataclass(frozen=True)
class RemainingEvent:
    name: ClassVar[str] = "remaining"
    remaining: Tuple[Objective, ...] = ()

    def to_payload(self) -> dict[str, Any]:
        return {"remaining": [_objective_dict(o) for o in self.remaining]}


@dataclass(frozen=True)
class NextEvent:
    name: ClassVar[str] = "next"
    objective: Optional[Objective] = None
    pinned: bool = False

    def to_payload(self) -> dict[str, Any]:
        if self.objective is None:
            return {"id": None, "title": None, "description": None, "points": None, "badge": None, "pinned": False}
        return {**_objective_dict(self.objective), "pinned": self.pinned}


@dataclass(frozen=True)
class AchievementEvent:
    name: ClassVar[str] = "achievement"
    unlock: UnlockEvent

    def to_payload(self) -> dict[str, Any]:
        u = self.unlock
        return {
            "id": u.objective_id,
            "gameId": u.game_id,
            "title": u.title,
            "points": u.points,
            "badge": u.badge_url or None,
            "date": _iso(u.occurred_at),
        }


@dataclass(frozen=True)
class LeaderboardEvent:
    name: ClassVar[str] = "leaderboard"
    snapshot: Optional[LeaderboardSnapshot] = None  # None = 선택 해제 (오버레이에서 숨김)

    def to_payload(self) -> dict[str, Any]:
        s = self.snapshot
        if s is None:
            return {
                "leaderboardId": None,
                "title": "",
                "rankAscending": False,
                "format": "",
                "entries": [],
                "viewer": None,
                "total": 0,
            }
        return {
            "leaderboardId": s.leaderboard_id,
            "title": s.title,
            "rankAscending": s.rank_ascending,
            "format": s.score_format,
            "entries": [_entry_dict(e) for e in s.top_entries],
            "viewer": _entry_dict(s.viewer_entry) if s.viewer_entry else None,
            "total": s.total_entries,
        }


OverlayEvent = Union[
    NowPlayingEvent,
    ProgressEvent,
    RemainingEvent,
    NextEvent,
    AchievementEvent,
    LeaderboardEvent,
]
