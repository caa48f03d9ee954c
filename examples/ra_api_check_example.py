"""
RetroAchievements API 키 동작 확인 예제

.env에 RA_USERNAME, RA_API_KEY 설정 후 실행.
실행: python examples/ra_api_check_example.py  (프로젝트 루트에서)

최근 플레이한 게임, 진행도, 다음 업적 후보, 최근 해제 업적을 한 번 조회해서 출력합니다.
오버레이 서버는 띄우지 않습니다.
"""

import asyncio
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from src.provider import ProviderAuthError, ProviderError, RetroAchievementsClient
from src.sync.engine import select_next_index
from src.utils.config import ConfigError, load_config


async def main():
    try:
        config = load_config(dotenv_path=Path(__file__).resolve().parent.parent / ".env")
    except ConfigError as e:
        for err in e.errors:
            print(f"오류: {err}")
        sys.exit(1)

    client = RetroAchievementsClient(config.username, config.api_key)
    try:
        print("RetroAchievements API 호출 중...")
        game = await client.fetch_current_game()
        if game is None:
            print("최근 플레이한 게임이 없습니다.")
            return
        print(f"게임: {game.title} ({game.console_name}) id={game.id}")

        gp = await client.fetch_progress(game.id)
        p = gp.progress
        print(f"진행도: {p.earned}/{p.total} ({p.percent}%)")

        idx = select_next_index(gp.remaining, config.next_sort)
        if idx is not None:
            nxt = gp.remaining[idx]
            print(f"다음 업적 ({config.next_sort}): {nxt.title} [{nxt.points}점]")

        unlocks = await client.fetch_recent_unlocks(config.unlock_lookback_minutes)
        print(f"최근 {config.unlock_lookback_minutes}분 해제: {len(unlocks)}개")
        for u in unlocks[:5]:
            print(f"  - {u.title} ({u.points}점) {u.occurred_at}")
        print("RetroAchievements API 키 정상 동작합니다.")
    except ProviderAuthError as e:
        print(f"인증 실패: 사용자명/API 키를 확인해 주세요. ({e})")
        sys.exit(1)
    except ProviderError as e:
        print(f"API 오류: {e}")
        sys.exit(1)
    finally:
        await client.aclose()


if __name__ == "__main__":
    asyncio.run(main())
