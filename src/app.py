"""
RetroAchievements 오버레이 실행 진입점.

.env 에 RA_USERNAME, RA_API_KEY 설정 후 실행.
실행: python -m src.app  (프로젝트 루트에서) 또는 설치 후 raoverlay

- 폴링 스케줄러가 RA_POLL_SECONDS 간격으로 엔진 틱 실행 → 변경분만 Socket.IO 로 푸시
- OBS 브라우저 소스 URL: http://127.0.0.1:4050/overlay (포트는 OVERLAY_PORT)
- 컨트롤 API: /api/state, /api/next/*, /api/leaderboard/select, /api/test/toast
"""

import asyncio
import logging
import sys

import uvicorn

from src.overlay.server import create_asgi_app
from src.provider.retroachievements_client import RetroAchievementsClient
from src.sync.engine import ReconciliationEngine
from src.sync.override import ManualOverrideStore
from src.sync.scheduler import PollScheduler
from src.utils.config import ConfigError, load_config
from src.utils.logging_config import setup_logging

logger = logging.getLogger(__name__)


async def main() -> int:
    log_dir = setup_logging()
    try:
        config = load_config()
    except ConfigError as e:
        for err in e.errors:
            print(f"❌ {err}")
        print("   .env 파일을 확인해주세요 (RA_USERNAME, RA_API_KEY 필수).")
        return 2

    provider = RetroAchievementsClient(config.username, config.api_key)
    overrides = ManualOverrideStore()
    engine = ReconciliationEngine(
        provider,
        overrides,
        policy=config.next_sort,
        leaderboard_top=config.leaderboard_top,
        unlock_lookback_minutes=config.unlock_lookback_minutes,
    )
    asgi_app, broadcaster = create_asgi_app(engine, overrides, config.wwwroot)
    scheduler = PollScheduler(engine.tick, config.poll_seconds)

    server = uvicorn.Server(uvicorn.Config(
        asgi_app,
        host=config.host,
        port=config.port,
        log_level="warning",
    ))

    logger.info(
        "오버레이 시작: user=%s, poll=%.1fs, sort=%s, port=%d",
        config.username, scheduler.interval, config.next_sort, config.port,
    )
    print(f"방송 오버레이: http://{config.host}:{config.port}/overlay (OBS 브라우저 소스에 추가)")
    print(f"로그: {log_dir}")
    print("폴링 중... (종료: Ctrl+C)\n")

    scheduler.start()
    try:
        await server.serve()
    finally:
        await scheduler.stop()
        await provider.aclose()
        logger.info("오버레이 종료 (세션 %d개 연결 중이었음)", broadcaster.session_count)
    return 0


def run() -> None:
    try:
        code = asyncio.run(main())
    except KeyboardInterrupt:
        code = 0
    sys.exit(code)


if __name__ == "__main__":
    run()
