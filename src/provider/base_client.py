"""
업적 API 클라이언트 추상 기본 클래스
엔진이 호출하는 인터페이스 + 공통 예외 정의
"""

from abc import ABC, abstractmethod
from enum import Enum
from typing import List, Optional
import logging

from .models import (
    GameProgress,
    GameSummary,
    LeaderboardEntry,
    LeaderboardSnapshot,
    LeaderboardSummary,
    UnlockEvent,
)

logger = logging.getLogger(__name__)


class ProviderErrorKind(str, Enum):
    TRANSIENT = "transient"
    AUTH = "auth"
    MALFORMED = "malformed"


class ProviderError(Exception):
    """API 호출 실패. auth 외에는 다음 틱에서 재시도."""

    kind: ProviderErrorKind = ProviderErrorKind.TRANSIENT

    def __init__(self, message: str, *, status_code: Optional[int] = None, detail: str = ""):
        super().__init__(message)
        self.status_code = status_code
        self.detail = detail

    @property
    def retryable(self) -> bool:
        return self.kind is not ProviderErrorKind.AUTH


class ProviderTransientError(ProviderError):
    """네트워크 오류, 타임아웃, 5xx, 429"""
    kind = ProviderErrorKind.TRANSIENT


class ProviderAuthError(ProviderError):
    """잘못된 사용자명/API 키 (401, 403)"""
    kind = ProviderErrorKind.AUTH


class ProviderMalformedError(ProviderError):
    """예상과 다른 응답 형식"""
    kind = ProviderErrorKind.MALFORMED


class AchievementProvider(ABC):
    """업적 API 클라이언트 추상 기본 클래스"""

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """provider 이름 (로그 prefix)"""
        pass

    @abstractmethod
    async def fetch_current_game(self) -> Optional[GameSummary]:
        """가장 최근 플레이한 게임. 없으면 None"""
        pass

    @abstractmethod
    async def fetch_progress(self, game_id: int) -> GameProgress:
        """진행도 + 남은/획득 업적"""
        pass

    @abstractmethod
    async def fetch_recent_unlocks(self, lookback_minutes: int) -> List[UnlockEvent]:
        """최근 lookback_minutes 분 동안 해제한 업적 (백업 피드)"""
        pass

    @abstractmethod
    async def fetch_leaderboards(self, game_id: int) -> List[LeaderboardSummary]:
        pass

    @abstractmethod
    async def fetch_leaderboard_entries(self, leaderboard_id: int, top_n: int) -> LeaderboardSnapshot:
        pass

    @abstractmethod
    async def fetch_viewer_rank(self, game_id: int, leaderboard_id: int) -> Optional[LeaderboardEntry]:
        """스트리머 본인의 해당 리더보드 기록. 기록 없으면 None"""
        pass

    async def aclose(self) -> None:
        """연결 자원 정리 (기본: 없음)"""
        return None
