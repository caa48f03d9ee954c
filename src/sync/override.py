"""
수동 '다음 업적' 고정(pin) + 리더보드 선택 저장소.

컨트롤 화면(FastAPI 동기 엔드포인트 → 스레드풀)에서 언제든 바뀔 수 있으므로 threading.Lock 으로 보호.
엔진은 틱마다 값을 읽기만 하고(last write wins), 반영은 다음 틱에서 일어난다.
"""

from __future__ import annotations

import logging
import threading
from enum import Enum
from typing import List, Optional

logger = logging.getLogger(__name__)


class OverrideResult(str, Enum):
    SUCCESS = "success"
    NOT_FOUND = "not_found"
    EMPTY = "empty"


class ManualOverrideStore:
    """pin 인덱스는 현재 Remaining 순서 기준 0-based"""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._pinned_index: Optional[int] = None
        self._remaining_ids: List[int] = []
        self._current_index: Optional[int] = None
        self._leaderboard_id: Optional[int] = None

    # ---------- 엔진 → 저장소 (틱 커밋 후) ----------

    def sync_remaining(self, remaining_ids: List[int], current_index: Optional[int]) -> None:
        """커밋된 Remaining id 목록과 지금 표시 중인 next 인덱스를 기록."""
        with self._lock:
            self._remaining_ids = list(remaining_ids)
            self._current_index = current_index

    # ---------- 컨트롤 화면 ----------

    def select(self, objective_id: int) -> OverrideResult:
        with self._lock:
            try:
                idx = self._remaining_ids.index(objective_id)
            except ValueError:
                return OverrideResult.NOT_FOUND
            self._pinned_index = idx
        logger.info("다음 업적 고정: id=%s (index=%d)", objective_id, idx)
        return OverrideResult.SUCCESS

    def cycle_next(self) -> OverrideResult:
        return self._cycle(+1)

    def cycle_previous(self) -> OverrideResult:
        return self._cycle(-1)

    def _cycle(self, step: int) -> OverrideResult:
        with self._lock:
            n = len(self._remaining_ids)
            if n == 0:
                return OverrideResult.EMPTY
            if self._pinned_index is not None:
                base = min(self._pinned_index, n - 1)
            elif self._current_index is not None:
                base = self._current_index
            else:
                # 표시 중인 next 가 없으면 처음(다음) / 끝(이전)부터
                base = -1 if step > 0 else 0
            self._pinned_index = (base + step) % n
            idx = self._pinned_index
        logger.info("다음 업적 순환: index=%d", idx)
        return OverrideResult.SUCCESS

    def clear_to_automatic(self) -> None:
        with self._lock:
            self._pinned_index = None
        logger.info("다음 업적 자동 선택으로 복귀")

    def pinned_index(self) -> Optional[int]:
        with self._lock:
            return self._pinned_index

    # ---------- 리더보드 ----------

    def select_leaderboard(self, leaderboard_id: Optional[int]) -> None:
        with self._lock:
            self._leaderboard_id = leaderboard_id
        logger.info("리더보드 선택: %s", leaderboard_id)

    def selected_leaderboard(self) -> Optional[int]:
        with self._lock:
            return self._leaderboard_id

    def drop_leaderboard_if(self, leaderboard_id: int) -> None:
        """새 게임에 해당 리더보드가 없을 때 엔진이 호출. 그 사이 운영자가 바꿨으면 유지."""
        with self._lock:
            if self._leaderboard_id == leaderboard_id:
                self._leaderboard_id = None

    def snapshot(self) -> dict:
        with self._lock:
            return {
                "pinned_index": self._pinned_index,
                "current_index": self._current_index,
                "leaderboard_id": self._leaderboard_id,
            }
