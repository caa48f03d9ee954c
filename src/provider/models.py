"""
업적 API 응답을 정규화한 데이터 모델.
엔진/브로드캐스터는 이 DTO만 본다 (원본 JSON 필드명은 provider 안에서만 다룸).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional


@dataclass(frozen=True)
class GameSummary:
    """현재 플레이 중인 게임"""
    id: int
    title: str
    console_name: str = ""
    box_art_url: str = ""


@dataclass(frozen=True)
class Objective:
    """업적 1개. earned_at 이 있으면 획득(Earned), 없으면 남은 업적(Remaining)."""
    id: int
    title: str
    description: str = ""
    points: int = 0
    badge_url: str = ""
    earned_at: Optional[datetime] = None

    @property
    def is_earned(self) -> bool:
        return self.earned_at is not None


@dataclass(frozen=True)
class ProgressSummary:
    """진행도. percent 는 저장하지 않고 계산."""
    earned: int
    total: int

    @property
    def percent(self) -> int:
        if self.total <= 0:
            return 0
        pct = int(round(self.earned / self.total * 100))
        return max(0, min(100, pct))


@dataclass(frozen=True)
class GameProgress:
    """fetch_progress 결과: 진행도 + 남은 업적(자연 순서) + 획득 업적"""
    game_id: int
    progress: ProgressSummary
    remaining: List[Objective] = field(default_factory=list)
    earned: List[Objective] = field(default_factory=list)


@dataclass(frozen=True)
class UnlockEvent:
    """관측된 업적 해제 (빠른 경로 또는 백업 피드)"""
    objective_id: int
    game_id: int
    title: str
    points: int = 0
    badge_url: str = ""
    occurred_at: Optional[datetime] = None


@dataclass(frozen=True)
class LeaderboardSummary:
    id: int
    title: str
    description: str = ""
    rank_ascending: bool = False
    score_format: str = ""


@dataclass(frozen=True)
class LeaderboardEntry:
    rank: int
    user: str
    formatted_score: str = ""
    raw_score: int = 0


@dataclass(frozen=True)
class LeaderboardSnapshot:
    """리더보드 상위 N명 + 시청자(스트리머) 본인 순위"""
    leaderboard_id: int
    title: str = ""
    rank_ascending: bool = False
    score_format: str = ""
    top_entries: List[LeaderboardEntry] = field(default_factory=list)
    viewer_entry: Optional[LeaderboardEntry] = None
    total_entries: int = 0
