"""
RetroAchievements Web API 클라이언트 (v1)
최근 플레이 게임 / 진행도 / 최근 해제 업적 / 리더보드를 조회합니다.

참고: https://api-docs.retroachievements.org/
인증: 모든 호출에 y=<Web API Key>, u=<사용자명> 쿼리 파라미터
"""

import json
import logging
from datetime import datetime, timezone
from typing import Any, List, Optional

import httpx

from .base_client import (
    AchievementProvider,
    ProviderAuthError,
    ProviderMalformedError,
    ProviderTransientError,
)
from .fields import (
    RA_BASE_URL,
    absolute_media_url,
    get_bool,
    get_int,
    get_str,
    parse_ra_date,
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

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 15.0
# 획득 날짜를 읽지 못한 업적: 오래된 기록으로 취급
_UNKNOWN_EARNED_AT = datetime(1970, 1, 1, tzinfo=timezone.utc)


class RetroAchievementsClient(AchievementProvider):
    """RetroAchievements Web API 클라이언트

    httpx.AsyncClient 하나를 재사용합니다. 종료 시 aclose() 호출.
    """

    @property
    def provider_name(self) -> str:
        return "retroachievements"

    def __init__(
        self,
        username: str,
        api_key: str,
        base_url: str = RA_BASE_URL,
        timeout: float = DEFAULT_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Args:
            username: RA 사용자명
            api_key: RA Web API Key (설정 > Keys)
            base_url: API 호스트 (미디어 URL 정규화에도 사용)
            timeout: 호출당 타임아웃 (초)
            transport: 테스트용 httpx transport 주입
        """
        self.username = username
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self._http = httpx.AsyncClient(
            base_url=self.base_url + "/",
            timeout=timeout,
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._http.aclose()

    async def _get(self, endpoint: str, **params: Any) -> Any:
        """API_*.php 호출 → JSON. 실패는 ProviderError 계열로 변환."""
        query = {"y": self.api_key, "u": self.username}
        query.update({k: v for k, v in params.items() if v is not None})
        try:
            response = await self._http.get(f"API/{endpoint}.php", params=query)
        except httpx.TimeoutException as e:
            raise ProviderTransientError(f"{endpoint} 타임아웃") from e
        except httpx.HTTPError as e:
            raise ProviderTransientError(f"{endpoint} 네트워크 오류: {e}") from e

        status = response.status_code
        if status in (401, 403):
            raise ProviderAuthError(
                f"{endpoint} 인증 실패 ({status})", status_code=status, detail=response.text[:200]
            )
        if status == 429 or status >= 500:
            raise ProviderTransientError(f"{endpoint} HTTP {status}", status_code=status)
        if status >= 400:
            raise ProviderMalformedError(
                f"{endpoint} HTTP {status}", status_code=status, detail=response.text[:200]
            )
        try:
            return response.json()
        except (json.JSONDecodeError, ValueError) as e:
            raise ProviderMalformedError(
                f"{endpoint} JSON 파싱 실패", status_code=status, detail=response.text[:200]
            ) from e

    @staticmethod
    def _expect_list(data: Any, endpoint: str) -> list:
        if isinstance(data, list):
            return data
        # 일부 엔드포인트: {"Count": n, "Total": n, "Results": [...]}
        if isinstance(data, dict):
            results = data.get("Results", data.get("results"))
            if isinstance(results, list):
                return results
        raise ProviderMalformedError(f"{endpoint} 응답이 목록이 아님", detail=str(data)[:200])

    # ---------- 게임 / 진행도 ----------

    async def fetch_current_game(self) -> Optional[GameSummary]:
        endpoint = "API_GetUserRecentlyPlayedGames"
        games = self._expect_list(await self._get(endpoint, c=1), endpoint)
        if not games:
            return None
        g = games[0]
        game_id = get_int(g, "GameID", "gameId", "ID")
        if game_id <= 0:
            raise ProviderMalformedError(f"{endpoint} GameID 없음", detail=str(g)[:200])
        return GameSummary(
            id=game_id,
            title=get_str(g, "Title", "title"),
            console_name=get_str(g, "ConsoleName", "consoleName"),
            box_art_url=absolute_media_url(get_str(g, "ImageBoxArt", "imageBoxArt"), self.base_url),
        )

    async def fetch_progress(self, game_id: int) -> GameProgress:
        endpoint = "API_GetGameInfoAndUserProgress"
        data = await self._get(endpoint, g=game_id)
        if not isinstance(data, dict):
            raise ProviderMalformedError(f"{endpoint} 응답이 객체가 아님", detail=str(data)[:200])

        raw = data.get("Achievements", data.get("achievements")) or {}
        # 업적이 없는 게임은 {} 대신 [] 로 오기도 함
        items = list(raw.values()) if isinstance(raw, dict) else list(raw) if isinstance(raw, list) else []

        parsed = []
        for a in items:
            if not isinstance(a, dict):
                continue
            earned_raw = get_str(a, "DateEarnedHardcore", "dateEarnedHardcore", "DateEarned", "dateEarned")
            parsed.append((
                get_int(a, "DisplayOrder", "displayOrder"),
                Objective(
                    id=get_int(a, "ID", "id"),
                    title=get_str(a, "Title", "title"),
                    description=get_str(a, "Description", "description"),
                    points=get_int(a, "Points", "points"),
                    badge_url=absolute_media_url(
                        get_str(a, "BadgeName", "badgeName", "BadgeURL", "badgeUrl"), self.base_url
                    ),
                    # 날짜를 못 읽은 획득 업적은 획득으로 두되 빠른 경로 토스트 대상에서는 뺀다 (백업 피드가 알림)
                    earned_at=(parse_ra_date(earned_raw) or _UNKNOWN_EARNED_AT) if earned_raw else None,
                ),
            ))
        # 자연 순서: DisplayOrder → ID
        parsed.sort(key=lambda p: (p[0], p[1].id))

        remaining: List[Objective] = []
        earned: List[Objective] = []
        for _, obj in parsed:
            if obj.is_earned:
                earned.append(obj)
            else:
                remaining.append(obj)

        total = get_int(data, "NumAchievements", "numAchievements") or len(parsed)
        earned_count = get_int(data, "NumAwardedToUserHardcore", "numAwardedToUserHardcore")
        earned_count = max(earned_count, get_int(data, "NumAwardedToUser", "numAwardedToUser"))
        earned_count = min(max(earned_count, len(earned)), total)
        return GameProgress(
            game_id=game_id,
            progress=ProgressSummary(earned=earned_count, total=total),
            remaining=remaining,
            earned=earned,
        )

    async def fetch_recent_unlocks(self, lookback_minutes: int) -> List[UnlockEvent]:
        endpoint = "API_GetUserRecentAchievements"
        rows = self._expect_list(await self._get(endpoint, m=lookback_minutes), endpoint)
        out: List[UnlockEvent] = []
        for r in rows:
            if not isinstance(r, dict):
                continue
            out.append(UnlockEvent(
                objective_id=get_int(r, "AchievementID", "achievementId"),
                game_id=get_int(r, "GameID", "gameId"),
                title=get_str(r, "Title", "title"),
                points=get_int(r, "Points", "points"),
                badge_url=absolute_media_url(
                    get_str(r, "BadgeURL", "badgeUrl", "BadgeName", "badgeName"), self.base_url
                ),
                occurred_at=parse_ra_date(get_str(r, "Date", "date")),
            ))
        return out

    # ---------- 리더보드 ----------

    async def fetch_leaderboards(self, game_id: int) -> List[LeaderboardSummary]:
        endpoint = "API_GetGameLeaderboards"
        rows = self._expect_list(await self._get(endpoint, i=game_id), endpoint)
        return [
            LeaderboardSummary(
                id=get_int(r, "ID", "id"),
                title=get_str(r, "Title", "title"),
                description=get_str(r, "Description", "description"),
                rank_ascending=get_bool(r, "RankAsc", "rankAsc"),
                score_format=get_str(r, "Format", "format"),
            )
            for r in rows
            if isinstance(r, dict)
        ]

    async def fetch_leaderboard_entries(self, leaderboard_id: int, top_n: int) -> LeaderboardSnapshot:
        endpoint = "API_GetLeaderboardEntries"
        data = await self._get(endpoint, i=leaderboard_id, c=top_n)
        rows = self._expect_list(data, endpoint)
        entries = [self._entry(r) for r in rows if isinstance(r, dict)]
        entries.sort(key=lambda e: e.rank)
        total = get_int(data, "Total", "total") if isinstance(data, dict) else 0
        return LeaderboardSnapshot(
            leaderboard_id=leaderboard_id,
            top_entries=entries[:top_n],
            total_entries=total or len(entries),
        )

    async def fetch_viewer_rank(self, game_id: int, leaderboard_id: int) -> Optional[LeaderboardEntry]:
        endpoint = "API_GetUserGameLeaderboards"
        try:
            data = await self._get(endpoint, i=game_id)
        except ProviderMalformedError as e:
            # 해당 게임에 기록이 하나도 없으면 4xx 로 응답함
            if e.status_code in (404, 422):
                return None
            raise
        for r in self._expect_list(data, endpoint):
            if not isinstance(r, dict) or get_int(r, "ID", "id") != leaderboard_id:
                continue
            entry = r.get("UserEntry", r.get("userEntry"))
            if isinstance(entry, dict):
                return self._entry(entry)
        return None

    @staticmethod
    def _entry(r: dict) -> LeaderboardEntry:
        return LeaderboardEntry(
            rank=get_int(r, "Rank", "rank"),
            user=get_str(r, "User", "user"),
            formatted_score=get_str(r, "FormattedScore", "formattedScore"),
            raw_score=get_int(r, "Score", "score"),
        )
