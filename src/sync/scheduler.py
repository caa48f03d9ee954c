"""
고정 간격 폴링 스케줄러.

- 시작 직후가 아니라 interval 이 지난 뒤 첫 틱
- 다음 틱 예정 시각 = 이번 틱 시작 + interval. 틱이 interval 보다 오래 걸리면 끝나자마자 바로 다음 틱
  (놓친 배수 시각에 맞추지 않음, 틱끼리 겹치지 않음)
- 틱 안의 예외는 로그만 남기고 계속
- stop(): 종료 신호 설정 + 진행 중인 틱 취소
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Awaitable, Callable, Optional

logger = logging.getLogger(__name__)

MIN_INTERVAL_SECONDS = 3.0


class PollScheduler:
    def __init__(
        self,
        tick: Callable[[], Awaitable[object]],
        interval_seconds: float,
        clock: Optional[Callable[[], float]] = None,
        shutdown: Optional[asyncio.Event] = None,
        wait: Optional[Callable[[float], Awaitable[bool]]] = None,
    ):
        """
        Args:
            tick: 틱 1회 실행 코루틴 함수 (보통 ReconciliationEngine.tick)
            interval_seconds: 폴링 간격. 3초 미만은 3초로 올림
            clock: 단조 시계 (테스트용 주입)
            shutdown: 프로세스 공용 종료 신호. 없으면 새로 만든다
            wait: delay 초 대기, 종료 신호가 오면 True (테스트용 주입)
        """
        self._tick = tick
        self.interval = max(MIN_INTERVAL_SECONDS, float(interval_seconds))
        self._clock = clock or time.monotonic
        self.shutdown = shutdown or asyncio.Event()
        self._wait = wait or self._wait_for_shutdown
        self._task: Optional[asyncio.Task] = None
        self.tick_count = 0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> asyncio.Task:
        if self.running:
            return self._task
        self._task = asyncio.create_task(self.run(), name="poll-scheduler")
        return self._task

    async def run(self) -> None:
        logger.info("폴링 시작 (간격 %.1f초)", self.interval)
        next_due = self._clock() + self.interval
        while not self.shutdown.is_set():
            delay = next_due - self._clock()
            if delay > 0 and await self._wait(delay):
                break
            if self.shutdown.is_set():
                break
            started = self._clock()
            try:
                await self._tick()
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception("폴링 틱 오류")
            self.tick_count += 1
            next_due = started + self.interval
        logger.info("폴링 종료")

    async def _wait_for_shutdown(self, delay: float) -> bool:
        try:
            await asyncio.wait_for(self.shutdown.wait(), timeout=delay)
            return True
        except asyncio.TimeoutError:
            return False

    async def stop(self) -> None:
        self.shutdown.set()
        task = self._task
        if task is None:
            return
        if not task.done():
            task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
