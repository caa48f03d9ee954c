from __future__ import annotations

import asyncio
from typing import List

from src.sync.scheduler import MIN_INTERVAL_SECONDS, PollScheduler


class FakeTime:
    """가짜 시계: wait() 와 tick 소요 시간만큼 시간이 흐른다"""

    def __init__(self) -> None:
        self.t = 0.0
        self.waits: List[float] = []

    def clock(self) -> float:
        return self.t

    async def wait(self, delay: float) -> bool:
        self.waits.append(delay)
        self.t += delay
        return False


def _run(interval: float, durations: List[float], fail_on: tuple = ()):
    ft = FakeTime()
    starts: List[float] = []
    scheduler = None

    async def tick():
        starts.append(ft.t)
        n = len(starts)
        ft.t += durations[n - 1]
        if n == len(durations):
            scheduler.shutdown.set()
        if n in fail_on:
            raise RuntimeError("boom")

    async def scenario():
        nonlocal scheduler
        scheduler = PollScheduler(tick, interval, clock=ft.clock, wait=ft.wait)
        await scheduler.run()

    asyncio.run(scenario())
    return ft, starts, scheduler


def test_interval_is_floored() -> None:
    async def tick():
        return None

    assert PollScheduler(tick, 1).interval == MIN_INTERVAL_SECONDS
    assert PollScheduler(tick, 10).interval == 10


def test_first_tick_after_one_interval_then_fixed_cadence() -> None:
    ft, starts, scheduler = _run(5, [1, 1, 1])
    assert starts == [5, 10, 15]
    assert ft.waits == [5, 4, 4]
    assert scheduler.tick_count == 3


def test_overrunning_tick_starts_next_immediately_without_overlap() -> None:
    ft, starts, _ = _run(3, [10, 10, 10])
    # 놓친 배수 시각(6, 9, 12...)에 맞추지 않고 끝나자마자 시작
    assert starts == [3, 13, 23]
    assert ft.waits == [3]


def test_tick_exception_does_not_stop_loop() -> None:
    _, starts, scheduler = _run(3, [0, 0, 0], fail_on=(1, 2))
    assert starts == [3, 6, 9]
    assert scheduler.tick_count == 3


def test_stop_before_first_tick() -> None:
    calls = []

    async def tick():
        calls.append(1)

    async def scenario():
        scheduler = PollScheduler(tick, 3)
        scheduler.start()
        await asyncio.sleep(0)
        assert scheduler.running
        await scheduler.stop()
        return scheduler

    scheduler = asyncio.run(scenario())
    assert calls == []
    assert not scheduler.running
    assert scheduler.shutdown.is_set()


def test_stop_cancels_in_flight_tick() -> None:
    entered = []
    finished = []

    async def no_wait(delay: float) -> bool:
        return False

    async def scenario():
        started = asyncio.Event()

        async def tick():
            entered.append(1)
            started.set()
            await asyncio.sleep(100)
            finished.append(1)

        scheduler = PollScheduler(tick, 3, wait=no_wait)
        scheduler.start()
        await started.wait()
        await scheduler.stop()
        return scheduler

    scheduler = asyncio.run(scenario())
    assert entered == [1]
    assert finished == []
    assert scheduler.tick_count == 0
