"""
실행 설정 (.env → OverlayConfig).

서버 시작 시 한 번 읽고 세션 중에는 다시 읽지 않는다.
.env 예:
    RA_USERNAME=myname
    RA_API_KEY=xxxxxxxx
    RA_POLL_SECONDS=10
    RA_NEXT_SORT=list        # list | lowest | highest
    OVERLAY_PORT=4050
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

from dotenv import load_dotenv

from src.sync.engine import normalize_sort_policy
from src.sync.scheduler import MIN_INTERVAL_SECONDS

DEFAULT_POLL_SECONDS = 10
DEFAULT_PORT = 4050
_PORT_MIN = 1
_PORT_MAX = 65535


class ConfigError(ValueError):
    """설정 오류 (여러 개면 한꺼번에)"""

    def __init__(self, errors: list[str]):
        super().__init__("; ".join(errors))
        self.errors = errors


@dataclass(frozen=True)
class OverlayConfig:
    username: str
    api_key: str
    poll_seconds: float = DEFAULT_POLL_SECONDS
    next_sort: str = "list"
    host: str = "127.0.0.1"
    port: int = DEFAULT_PORT
    leaderboard_top: int = 10
    unlock_lookback_minutes: int = 120
    wwwroot: Optional[Path] = None

    @property
    def base_url(self) -> str:
        return f"http://localhost:{self.port}"

    @property
    def overlay_url(self) -> str:
        return f"{self.base_url}/overlay"


def _int(env: Mapping[str, str], name: str, default: int, errs: list[str], lo: int = 1, hi: Optional[int] = None) -> int:
    raw = (env.get(name) or "").strip()
    if not raw:
        return default
    try:
        val = int(raw)
    except ValueError:
        errs.append(f"{name} 는 정수여야 합니다: {raw}")
        return default
    if val < lo or (hi is not None and val > hi):
        errs.append(f"{name} 범위 오류: {raw}")
        return default
    return val


def load_config(env: Optional[Mapping[str, str]] = None, dotenv_path: Optional[Path] = None) -> OverlayConfig:
    """환경변수(기본: .env + os.environ)에서 설정을 읽는다. 문제가 있으면 ConfigError."""
    if env is None:
        load_dotenv(dotenv_path)
        env = os.environ

    errs: list[str] = []
    username = (env.get("RA_USERNAME") or "").strip()
    api_key = (env.get("RA_API_KEY") or "").strip()
    if not username:
        errs.append("RA_USERNAME 이 설정되지 않았습니다")
    if not api_key:
        errs.append("RA_API_KEY 가 설정되지 않았습니다")

    poll = _int(env, "RA_POLL_SECONDS", DEFAULT_POLL_SECONDS, errs)
    try:
        next_sort = normalize_sort_policy(env.get("RA_NEXT_SORT"))
    except ValueError as e:
        errs.append(str(e))
        next_sort = "list"

    port = _int(env, "OVERLAY_PORT", DEFAULT_PORT, errs, _PORT_MIN, _PORT_MAX)
    top = _int(env, "RA_LEADERBOARD_TOP", 10, errs, 1, 500)
    lookback = _int(env, "RA_UNLOCK_LOOKBACK_MINUTES", 120, errs, 1, 24 * 60)

    wwwroot_raw = (env.get("OVERLAY_WWWROOT") or "").strip()
    wwwroot = Path(wwwroot_raw) if wwwroot_raw else None
    if wwwroot is not None and wwwroot.exists() and not wwwroot.is_dir():
        errs.append(f"OVERLAY_WWWROOT 가 디렉터리가 아닙니다: {wwwroot_raw}")

    if errs:
        raise ConfigError(errs)

    return OverlayConfig(
        username=username,
        api_key=api_key,
        poll_seconds=max(MIN_INTERVAL_SECONDS, float(poll)),
        next_sort=next_sort,
        host=(env.get("OVERLAY_HOST") or "127.0.0.1").strip(),
        port=port,
        leaderboard_top=top,
        unlock_lookback_minutes=lookback,
        wwwroot=wwwroot,
    )
