"""
폴링 결과와 마지막 상태를 비교해 오버레이 이벤트를 만드는 동기화 엔진.

틱 = (1) 비동기 수집 단계: provider 호출만 순서대로 수행 → TickFetch
      (2) 동기 적용 단계: reconcile() 가 상태 복사본에 diff 적용 + 이벤트 목록 생성
수집 중 하나라도 실패하면 틱 전체를 버린다 (부분 커밋/부분 전송 없음).
성공하면 복사본으로 상태를 교체한 뒤 이벤트를 순서대로 on_events 로 넘긴다.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta, timezone
from typing import Awaitable, Callable, List, Optional

from src.provider.base_client import (
    AchievementProvider,
    ProviderAuthError,
    ProviderError,
    ProviderMalformedError,
)
from src.provider.models import (
    GameProgress,
    GameSummary,
    LeaderboardEntry,
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
from src.sync.override import ManualOverrideStore
from src.sync.state import SessionState, index_of

logger = logging.getLogger(__name__)

SORT_POLICIES = ("list", "lowest", "highest")
_SORT_ALIASES = {
    "first": "list",
    "points-asc": "lowest",
    "points-desc": "highest",
}

# 빠른 경로: 이보다 오래된 획득 기록은 '방금 획득'으로 보지 않음
FAST_PATH_WINDOW = timedelta(minutes=10)
DEFAULT_UNLOCK_LOOKBACK_MINUTES = 120
DEFAULT_LEADERBOARD_TOP = 10
LEADERBOARD_LIST_INTERVAL = 120.0
LEADERBOARD_ENTRIES_INTERVAL = 30.0


def normalize_sort_policy(value: Optional[str]) -> str:
    """정렬 정책 문자열 정규화. 알 수 없으면 ValueError"""
    v = (value or "list").strip().lower()
    v = _SORT_ALIASES.get(v, v)
    if v not in SORT_POLICIES:
        raise ValueError(f"알 수 없는 정렬 정책: {value} (list|lowest|highest)")
    return v


def select_next_index(remaining: List[Objective], policy: str) -> Optional[int]:
    """자동 선택. 동점은 자연 순서(앞쪽) 우선."""
    if not remaining:
        return None
    if policy == "lowest":
        return min(range(len(remaining)), key=lambda i: (remaining[i].points, i))
    if policy == "highest":
        return min(range(len(remaining)), key=lambda i: (-remaining[i].points, i))
    return 0


def clamp_index(index: int, length: int) -> int:
    return max(0, min(index, length - 1))


@dataclass
class TickFetch:
    """한 틱에서 provider 로부터 받아온 것들"""
    game: Optional[GameSummary]
    progress: Optional[GameProgress] = None
    unlocks: List[UnlockEvent] = field(default_factory=list)
    leaderboards: Optional[List[LeaderboardSummary]] = None  # None = 이번 틱에 목록 조회 안 함
    leaderboard_id: Optional[int] = None  # 이번 틱에 유효한 선택
    dropped_leaderboard_id: Optional[int] = None  # 새 게임에 없어서 해제한 선택
    entries: Optional[LeaderboardSnapshot] = None
    viewer_entry: Optional[LeaderboardEntry] = None


def _announce(state: SessionState, unlock: UnlockEvent, events: List[OverlayEvent]) -> None:
    state.announced.add(unlock.objective_id)
    state.recent_toasts.append(unlock)
    if unlock.occurred_at is not None:
        if state.last_unlock_at is None or unlock.occurred_at > state.last_unlock_at:
            state.last_unlock_at = unlock.occurred_at
    events.append(AchievementEvent(unlock))


def _choose_next(
    state: SessionState,
    pin_index: Optional[int],
    policy: str,
    force: bool,
    events: List[OverlayEvent],
) -> None:
    remaining = state.remaining
    pinned = False
    if not remaining:
        idx = None
    elif pin_index is not None:
        # 리스트가 줄었을 수 있으므로 마지막 유효 인덱스로 보정
        idx = clamp_index(pin_index, len(remaining))
        pinned = True
    else:
        idx = select_next_index(remaining, policy)
    chosen = remaining[idx] if idx is not None else None

    changed = chosen != state.next_objective or pinned != state.next_pinned
    state.next_objective = chosen
    state.next_pinned = pinned
    if force or changed or not state.next_emitted:
        state.next_emitted = True
        events.append(NextEvent(chosen, pinned))


def reconcile(
    state: SessionState,
    fetched: TickFetch,
    *,
    pin_index: Optional[int],
    policy: str,
    now: datetime,
    mono: float,
) -> List[OverlayEvent]:
    """수집 결과를 state(작업용 복사본)에 반영하고 보낼 이벤트를 순서대로 반환."""
    events: List[OverlayEvent] = []

    # 1. 현재 게임 없음
    game = fetched.game
    if game is None:
        if not state.waiting:
            state.waiting = True
            events.append(NowPlayingEvent(None))
        return events

    # 2. 게임 전환 / 대기 해제
    switched = state.game is None or state.game.id != game.id
    if switched:
        state.reset_for_game(game)
        pin_index = None
        events.append(NowPlayingEvent(game))
    elif state.waiting or state.game != game:
        state.game = game
        state.waiting = False
        events.append(NowPlayingEvent(game))

    # 3. 진행도 + 남은 업적
    gp = fetched.progress
    if gp is None:
        return events
    for o in gp.earned:
        state.earned_ids.add(o.id)
    prev = state.progress
    earned = gp.progress.earned
    if prev is not None:
        # 같은 게임 세션 안에서는 줄어들지 않음 (API 지연 대비)
        earned = max(earned, prev.earned)
    total = gp.progress.total
    progress = ProgressSummary(earned=max(0, min(earned, total)), total=total)
    if progress != prev:
        state.progress = progress
        events.append(ProgressEvent(progress))

    state.remaining = [
        o for o in gp.remaining
        if o.id not in state.earned_ids and o.id not in state.announced
    ]
    events.append(RemainingEvent(tuple(state.remaining)))

    # 4. 빠른 경로: 진행도 응답에 새로 찍힌 획득 시각
    fresh = sorted(
        (o for o in gp.earned if o.id not in state.announced and o.earned_at is not None),
        key=lambda o: o.earned_at,
    )
    for o in fresh:
        if now - o.earned_at > FAST_PATH_WINDOW:
            continue
        _announce(state, UnlockEvent(
            objective_id=o.id,
            game_id=game.id,
            title=o.title,
            points=o.points,
            badge_url=o.badge_url,
            occurred_at=o.earned_at,
        ), events)

    # 5. 다음 업적 (Remaining 을 새로 보냈으니 항상 같이 보냄)
    _choose_next(state, pin_index, policy, True, events)

    # 6. 백업 피드: 오래된 순서로
    removed = False
    # 시각 없는 행은 정렬에만 now 를 쓰고 last_unlock_at 에는 반영하지 않음
    for u in sorted(fetched.unlocks, key=lambda u: u.occurred_at or now):
        when = u.occurred_at
        if u.objective_id in state.announced and (
            when is None or state.last_unlock_at is None or when <= state.last_unlock_at
        ):
            continue
        counted = u.objective_id in state.earned_ids
        _announce(state, u, events)
        if u.game_id != game.id or counted:
            continue
        # 빠른 경로가 놓친 해제: 진행바 +1, Remaining 에서 제거
        state.earned_ids.add(u.objective_id)
        cur = state.progress or ProgressSummary(0, 0)
        bumped = ProgressSummary(earned=min(cur.total, cur.earned + 1), total=cur.total)
        if bumped != cur:
            state.progress = bumped
            events.append(ProgressEvent(bumped))
        idx = index_of(state.remaining, u.objective_id)
        if idx is not None:
            del state.remaining[idx]
            removed = True
    if removed:
        events.append(RemainingEvent(tuple(state.remaining)))
        _choose_next(state, pin_index, policy, True, events)

    # 7. 리더보드
    if fetched.leaderboards is not None:
        state.leaderboards = list(fetched.leaderboards)
        state.leaderboards_listed_at = mono
    if fetched.leaderboard_id != state.selected_leaderboard_id:
        if fetched.leaderboard_id is None:
            # 해제 / 새 게임에 없음: 떠 있는 리더보드를 내리게 한다
            events.append(LeaderboardEvent(None))
        state.selected_leaderboard_id = fetched.leaderboard_id
        state.leaderboard = None
        state.leaderboard_refreshed_at = None
    if fetched.entries is not None and fetched.leaderboard_id is not None:
        summary = state.leaderboard_by_id(fetched.leaderboard_id)
        snap = fetched.entries
        if summary is not None:
            snap = replace(
                snap,
                title=summary.title,
                rank_ascending=summary.rank_ascending,
                score_format=summary.score_format,
            )
        snap = replace(snap, viewer_entry=fetched.viewer_entry)
        state.leaderboard = snap
        state.leaderboard_refreshed_at = mono
        events.append(LeaderboardEvent(snap))

    return events


class ReconciliationEngine:
    """
    SessionState 의 유일한 소유자. tick() 은 스케줄러가 한 번에 하나씩만 호출.

    Args:
        provider: 업적 API 클라이언트
        overrides: 수동 pin / 리더보드 선택 저장소
        policy: 자동 next 정렬 정책 (list|lowest|highest)
        on_events: 커밋 후 이벤트 목록을 받을 콜백 (보통 EventBroadcaster.publish)
        clock: 현재 UTC 시각 (테스트용 주입)
        monotonic: 리더보드 갱신 주기용 단조 시계 (테스트용 주입)
    """

    def __init__(
        self,
        provider: AchievementProvider,
        overrides: ManualOverrideStore,
        policy: str = "list",
        on_events: Optional[Callable[[List[OverlayEvent]], Awaitable[None]]] = None,
        leaderboard_top: int = DEFAULT_LEADERBOARD_TOP,
        unlock_lookback_minutes: int = DEFAULT_UNLOCK_LOOKBACK_MINUTES,
        clock: Optional[Callable[[], datetime]] = None,
        monotonic: Optional[Callable[[], float]] = None,
    ):
        self.provider = provider
        self.overrides = overrides
        self.policy = normalize_sort_policy(policy)
        self.on_events = on_events
        self.leaderboard_top = leaderboard_top
        self.unlock_lookback_minutes = unlock_lookback_minutes
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._monotonic = monotonic or time.monotonic
        self._state = SessionState()
        self.auth_failed = False
        self.last_error: Optional[str] = None

    @property
    def state(self) -> SessionState:
        """커밋된 상태 (읽기 전용으로 사용할 것)"""
        return self._state

    def replay_events(self) -> List[OverlayEvent]:
        return self._state.replay_events()

    async def _fetch(self, mono: float) -> TickFetch:
        state = self._state
        game = await self.provider.fetch_current_game()
        if game is None:
            return TickFetch(game=None)

        fetched = TickFetch(game=game)
        fetched.progress = await self.provider.fetch_progress(game.id)
        fetched.unlocks = await self.provider.fetch_recent_unlocks(self.unlock_lookback_minutes)

        selection = self.overrides.selected_leaderboard()
        switched = state.tracked_game_id != game.id
        if selection is None:
            # 컨트롤 화면용 목록은 게임마다 한 번은 받아둔다
            if switched or state.leaderboards_listed_at is None:
                fetched.leaderboards = await self.provider.fetch_leaderboards(game.id)
            return fetched

        listed_at = None if switched else state.leaderboards_listed_at
        if listed_at is None or mono - listed_at >= LEADERBOARD_LIST_INTERVAL:
            fetched.leaderboards = await self.provider.fetch_leaderboards(game.id)
        available = fetched.leaderboards if fetched.leaderboards is not None else state.leaderboards
        if not any(lb.id == selection for lb in available):
            fetched.dropped_leaderboard_id = selection
            return fetched

        fetched.leaderboard_id = selection
        refreshed_at = None
        if not switched and state.selected_leaderboard_id == selection:
            refreshed_at = state.leaderboard_refreshed_at
        if refreshed_at is None or mono - refreshed_at >= LEADERBOARD_ENTRIES_INTERVAL:
            fetched.entries = await self.provider.fetch_leaderboard_entries(selection, self.leaderboard_top)
            fetched.viewer_entry = await self.provider.fetch_viewer_rank(game.id, selection)
        return fetched

    async def tick(self) -> List[OverlayEvent]:
        """틱 1회. provider 오류는 여기서 삼키고 빈 목록 반환 (다음 틱에서 재시도)."""
        now = self._clock()
        mono = self._monotonic()
        pin_index = self.overrides.pinned_index()
        try:
            fetched = await self._fetch(mono)
        except ProviderAuthError as e:
            if not self.auth_failed:
                logger.warning("RetroAchievements 인증 실패 (사용자명/API 키 확인): %s", e)
            self.auth_failed = True
            self.last_error = str(e)
            return []
        except ProviderMalformedError as e:
            logger.warning("응답 형식 오류, 이번 틱 건너뜀: %s | %s", e, e.detail)
            self.last_error = str(e)
            return []
        except ProviderError as e:
            logger.info("일시적 오류, 다음 틱에 재시도: %s", e)
            self.last_error = str(e)
            return []

        if self.auth_failed:
            logger.info("RetroAchievements 인증 복구됨")
        self.auth_failed = False
        self.last_error = None

        working = self._state.copy()
        previous_game_id = working.tracked_game_id
        events = reconcile(
            working,
            fetched,
            pin_index=pin_index,
            policy=self.policy,
            now=now,
            mono=mono,
        )
        self._state = working

        if fetched.game is not None and fetched.game.id != previous_game_id:
            logger.info("게임 전환: %s (%s)", fetched.game.title, fetched.game.id)
            self.overrides.clear_to_automatic()
        if fetched.dropped_leaderboard_id is not None:
            logger.info("선택한 리더보드 %s 가 현재 게임에 없어 해제", fetched.dropped_leaderboard_id)
            self.overrides.drop_leaderboard_if(fetched.dropped_leaderboard_id)
        current = working.next_objective
        self.overrides.sync_remaining(
            [o.id for o in working.remaining],
            index_of(working.remaining, current.id) if current is not None else None,
        )

        if events:
            logger.debug("이벤트 %d개: %s", len(events), ", ".join(e.name for e in events))
            if self.on_events is not None:
                await self.on_events(events)
        return events

    def control_state(self) -> dict:
        """컨트롤 화면 조회용 (커밋된 상태 기준)"""
        s = self._state
        ov = self.overrides.snapshot()
        return {
            "game": NowPlayingEvent(s.game).to_payload() if s.game and not s.waiting else None,
            "remaining": RemainingEvent(tuple(s.remaining)).to_payload()["remaining"],
            "next": NextEvent(s.next_objective, s.next_pinned).to_payload(),
            "pinned_index": ov["pinned_index"],
            "policy": self.policy,
            "leaderboards": [
                {"id": lb.id, "title": lb.title, "description": lb.description}
                for lb in s.leaderboards
            ],
            "selected_leaderboard_id": ov["leaderboard_id"],
            "auth_failed": self.auth_failed,
            "last_error": self.last_error,
        }
