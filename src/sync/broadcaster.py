"""
접속한 오버레이 세션 목록 관리 + 이벤트 팬아웃.

- connect(): 현재 상태를 고정 순서로 재전송한 뒤 세션 등록 (늦게 들어온 화면도 바로 표시)
- publish(): 엔진이 만든 순서 그대로 모든 세션에 전송, 실패한 세션은 조용히 제거
세션 목록은 엔진과 무관한 자체 asyncio.Lock 으로 보호. 재전송과 등록을 같은 락 안에서 해서
재전송 도중 발행된 이벤트가 순서가 꼬이거나 빠지지 않게 한다.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Iterable, List, Set

from src.provider.models import UnlockEvent
from src.sync.events import AchievementEvent, OverlayEvent

logger = logging.getLogger(__name__)

# (이벤트 이름, payload, 세션 id) → 전송
SendFunc = Callable[[str, Any, str], Awaitable[None]]
ReplaySource = Callable[[], List[OverlayEvent]]


class EventBroadcaster:
    def __init__(self, send: SendFunc, replay_source: ReplaySource):
        self._send = send
        self._replay_source = replay_source
        self._sessions: Set[str] = set()
        self._lock = asyncio.Lock()

    @property
    def session_count(self) -> int:
        return len(self._sessions)

    async def connect(self, session_id: str) -> None:
        async with self._lock:
            for event in self._replay_source():
                if not await self._deliver(session_id, event):
                    return
            self._sessions.add(session_id)
        logger.info("오버레이 세션 연결: %s (총 %d)", session_id, len(self._sessions))

    async def disconnect(self, session_id: str) -> None:
        async with self._lock:
            self._sessions.discard(session_id)
        logger.info("오버레이 세션 종료: %s (총 %d)", session_id, len(self._sessions))

    async def publish(self, events: Iterable[OverlayEvent]) -> None:
        async with self._lock:
            for event in events:
                for session_id in list(self._sessions):
                    if not await self._deliver(session_id, event):
                        self._sessions.discard(session_id)

    async def ping_toast(self) -> None:
        """연결 확인용 테스트 토스트 (상태에는 남기지 않음)"""
        await self.publish([AchievementEvent(UnlockEvent(objective_id=0, game_id=0, title="Ping Toast", points=5))])

    async def _deliver(self, session_id: str, event: OverlayEvent) -> bool:
        try:
            await self._send(event.name, event.to_payload(), session_id)
            return True
        except Exception as e:
            logger.debug("세션 %s 전송 실패, 제거: %s", session_id, e)
            return False
