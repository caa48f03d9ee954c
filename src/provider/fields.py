"""
RetroAchievements 응답 JSON 필드 읽기 헬퍼.
API 가 PascalCase / camelCase 를 섞어서 주고, 숫자를 문자열로 줄 때도 있어서
여러 이름을 순서대로 찾아보고 타입을 관대하게 변환한다.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Mapping, Optional

RA_BASE_URL = "https://retroachievements.org"


def _lookup(obj: Any, names: tuple[str, ...]) -> Any:
    if not isinstance(obj, Mapping):
        return None
    for n in names:
        if n in obj and obj[n] is not None:
            return obj[n]
    # 대소문자 무시 재시도
    lowered = {str(k).lower(): v for k, v in obj.items()}
    for n in names:
        v = lowered.get(n.lower())
        if v is not None:
            return v
    return None


def get_str(obj: Any, *names: str) -> str:
    v = _lookup(obj, names)
    if v is None:
        return ""
    return str(v).strip()


def get_int(obj: Any, *names: str) -> int:
    v = _lookup(obj, names)
    if isinstance(v, bool):
        return int(v)
    if isinstance(v, int):
        return v
    if isinstance(v, float):
        return int(v)
    if isinstance(v, str):
        try:
            return int(v.strip())
        except ValueError:
            try:
                return int(float(v.strip()))
            except ValueError:
                return 0
    return 0


def get_bool(obj: Any, *names: str) -> bool:
    v = _lookup(obj, names)
    if isinstance(v, bool):
        return v
    if isinstance(v, (int, float)):
        return v != 0
    if isinstance(v, str):
        return v.strip().lower() in ("1", "true", "yes")
    return False


def parse_ra_date(value: Optional[str]) -> Optional[datetime]:
    """RA 날짜 문자열 → UTC aware datetime. RA 는 "YYYY-MM-DD HH:MM:SS" (UTC) 를 쓴다."""
    if not value or not str(value).strip():
        return None
    s = str(value).strip()
    if s.endswith("Z"):
        s = s[:-1] + "+00:00"
    for fmt in ("%Y-%m-%d %H:%M:%S", "%Y-%m-%d"):
        try:
            return datetime.strptime(s, fmt).replace(tzinfo=timezone.utc)
        except ValueError:
            continue
    try:
        dt = datetime.fromisoformat(s)
    except ValueError:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def absolute_media_url(path: Optional[str], base_url: str = RA_BASE_URL) -> str:
    """
    미디어 경로를 절대 URL 로 변환.
    - http(s):// 로 시작 → 그대로
    - "/Images/..." → base + 경로
    - 숫자만 ("12345") → base/Badge/12345.png
    - 그 외 → base/ + 경로
    """
    if path is None:
        return ""
    s = str(path).strip()
    if not s:
        return ""
    if s.lower().startswith(("http://", "https://")):
        return s
    base = base_url.rstrip("/")
    if s.startswith("/"):
        return f"{base}{s}"
    if s.isdigit():
        return f"{base}/Badge/{s}.png"
    return f"{base}/{s.lstrip('/')}"
