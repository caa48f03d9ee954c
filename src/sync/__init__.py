"""
폴링 → 비교 → 오버레이 푸시 동기화 모듈

- engine: 폴링 결과와 마지막 상태를 비교해 이벤트 생성 (SessionState 단독 소유)
- broadcaster: 접속 세션 팬아웃 + 늦게 들어온 세션 재전송
- scheduler: 고정 간격, 겹치지 않는 틱
- override: 운영자 '다음 업적' 고정 / 리더보드 선택
"""

from .broadcaster import EventBroadcaster
from .engine import ReconciliationEngine, normalize_sort_policy, reconcile, select_next_index
from .events import (
    AchievementEvent,
    LeaderboardEvent,
    NextEvent,
    NowPlayingEvent,
    OverlayEvent,
    ProgressEvent,
    RemainingEvent,
)
from .override import ManualOverrideStore, OverrideResult
from .scheduler import PollScheduler
from .state import SessionState

__all__ = [
    "EventBroadcaster",
    "ReconciliationEngine",
    "normalize_sort_policy",
    "reconcile",
    "select_next_index",
    "AchievementEvent",
    "LeaderboardEvent",
    "NextEvent",
    "NowPlayingEvent",
    "OverlayEvent",
    "ProgressEvent",
    "RemainingEvent",
    "ManualOverrideStore",
    "OverrideResult",
    "PollScheduler",
    "SessionState",
]
