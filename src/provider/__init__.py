"""
업적 API 수집 모듈
RetroAchievements 등 업적 서비스 응답을 정규화 DTO 로 변환
"""

from .base_client import (
    AchievementProvider,
    ProviderAuthError,
    ProviderError,
    ProviderErrorKind,
    ProviderMalformedError,
    ProviderTransientError,
)
from .models import (
    GameProgress,
    GameSummary,
    LeaderboardEntry,
    LeaderboardSnapshot,
    LeaderboardSummary,
    Objective,
    ProgressSummary,
    UnlockEvent,
)
from .retroachievements_client import RetroAchievementsClient

__all__ = [
    "AchievementProvider",
    "ProviderError",
    "ProviderErrorKind",
    "ProviderTransientError",
    "ProviderAuthError",
    "ProviderMalformedError",
    "GameSummary",
    "Objective",
    "ProgressSummary",
    "GameProgress",
    "UnlockEvent",
    "LeaderboardSummary",
    "LeaderboardEntry",
    "LeaderboardSnapshot",
    "RetroAchievementsClient",
]
