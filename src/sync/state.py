"""
엔진이 단독으로 소유하는 세션 상태 (마지막으로 확인된 상태).

- 틱 안에서만 수정. 틱은 복사본(copy())에 작업한 뒤 성공하면 통째로 교체.
- 브로드캐스터는 replay_events() 로 읽기만 한다 (늦게 접속한 오버레이용).
"""

from __future__ import annotations

from collections import OrderedDict, deque
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Deque, List, Optional

from src.provider.models import (
    GameSummary,
    LeaderboardSnapshot,
    LeaderboardSummary,
    Objective,
    ProgressSummary,
    UnlockEvent,
)
from src.sync.events import (
    AchievementEvent,
    LeaderboardEvent,
    NextEvent,
    NowPlayingEvent,
    OverlayEvent,
    ProgressEvent,
    RemainingEvent,
)

MAX_RECENT_TOASTS = 5
# 게임 세션당 기억하는 알림 id 수 (오래된 것부터 버림)
MAX_ANNOUNCED_IDS = 512


class AnnouncedIds:
    """크기 제한 있는 '이미 알린 업적 id' 집합 (삽입 순서 유지)"""

    def __init__(self, limit: int = MAX_ANNOUNCED_IDS):
        self.limit = limit
        self._ids: "OrderedDict[int, None]" = OrderedDict()

    def __contains__(self, objective_id: object) -> bool:
        return objective_id in self._ids

    def __len__(self) -> int:
        return len(self._ids)

    def add(self, objective_id: int) -> None:
        self._ids[objective_id] = None
        self._ids.move_to_end(objective_id)
        while len(self._ids) > self.limit:
            self._ids.popitem(last=False)

    def clear(self) -> None:
        self._ids.clear()

    def copy(self) -> "AnnouncedIds":
        out = AnnouncedIds(self.limit)
        out._ids = OrderedDict(self._ids)
        return out


@dataclass
class SessionState:
    game: Optional[GameSummary] = None
    waiting: bool = False  # 현재 게임 없음 → now-playing 대기 표시 중
    progress: Optional[ProgressSummary] = None
    remaining: List[Objective] = field(default_factory=list)
    earned_ids: set = field(default_factory=set)
    announced: AnnouncedIds = field(default_factory=AnnouncedIds)
    last_unlock_at: Optional[datetime] = None
    recent_toasts: Deque[UnlockEvent] = field(default_factory=lambda: deque(maxlen=MAX_RECENT_TOASTS))
    next_objective: Optional[Objective] = None
    next_pinned: bool = False
    next_emitted: bool = False

    selected_leaderboard_id: Optional[int] = None
    leaderboards: List[LeaderboardSummary] = field(default_factory=list)
    leaderboard: Optional[LeaderboardSnapshot] = None
    leaderboards_listed_at: Optional[float] = None  # monotonic 초
    leaderboard_refreshed_at: Optional[float] = None

    @property
    def tracked_game_id(self) -> Optional[int]:
        return self.game.id if self.game else None

    def copy(self) -> "SessionState":
        """틱 작업용 복사본. 가변 컨테이너만 새로 만든다 (DTO 는 불변)."""
        return replace(
            self,
            remaining=list(self.remaining),
            earned_ids=set(self.earned_ids),
            announced=self.announced.copy(),
            recent_toasts=deque(self.recent_toasts, maxlen=MAX_RECENT_TOASTS),
            leaderboards=list(self.leaderboards),
        )

    def reset_for_game(self, game: GameSummary) -> None:
        """게임 전환: 게임 단위 상태 초기화. 리더보드 선택은 유지 (엔진이 목록 확인 후 정리)."""
        self.game = game
        self.waiting = False
        self.progress = None
        self.remaining = []
        self.earned_ids = set()
        self.announced.clear()
        self.last_unlock_at = None
        self.next_objective = None
        self.next_pinned = False
        self.next_emitted = False
        self.leaderboards = []
        self.leaderboard = None
        self.leaderboards_listed_at = None
        self.leaderboard_refreshed_at = None

    def leaderboard_by_id(self, leaderboard_id: Optional[int]) -> Optional[LeaderboardSummary]:
        for lb in self.leaderboards:
            if lb.id == leaderboard_id:
                return lb
        return None

    def replay_events(self) -> List[OverlayEvent]:
        """늦게 접속한 세션에 보낼 현재 상태. 순서 고정:
        now-playing → progress → remaining → next → 최신 achievement 1개 → leaderboard
        """
        out: List[OverlayEvent] = []
        if self.waiting:
            # 게임 대기 중에는 이전 게임의 진행도/토스트/리더보드를 보내지 않음
            return [NowPlayingEvent(None)]
        if self.game is not None:
            out.append(NowPlayingEvent(self.game))
        if self.progress is not None:
            out.append(ProgressEvent(self.progress))
        if self.game is not None:
            out.append(RemainingEvent(tuple(self.remaining)))
            if self.next_emitted:
                out.append(NextEvent(self.next_objective, self.next_pinned))
        if self.recent_toasts:
            out.append(AchievementEvent(self.recent_toasts[-1]))
        if self.leaderboard is not None:
            out.append(LeaderboardEvent(self.leaderboard))
        return out


def index_of(objectives: List[Objective], objective_id: int) -> Optional[int]:
    for i, o in enumerate(objectives):
        if o.id == objective_id:
            return i
    return None
