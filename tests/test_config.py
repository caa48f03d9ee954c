from __future__ import annotations

from pathlib import Path

import pytest

from src.utils.config import ConfigError, load_config


def test_defaults() -> None:
    cfg = load_config({"RA_USERNAME": "streamer", "RA_API_KEY": "secret"})
    assert cfg.poll_seconds == 10
    assert cfg.next_sort == "list"
    assert (cfg.host, cfg.port) == ("127.0.0.1", 4050)
    assert cfg.leaderboard_top == 10
    assert cfg.unlock_lookback_minutes == 120
    assert cfg.wwwroot is None
    assert cfg.overlay_url == "http://localhost:4050/overlay"


def test_poll_interval_is_floored_and_sort_alias_resolved() -> None:
    cfg = load_config({
        "RA_USERNAME": "streamer",
        "RA_API_KEY": "secret",
        "RA_POLL_SECONDS": "1",
        "RA_NEXT_SORT": "points-asc",
        "OVERLAY_WWWROOT": "wwwroot",
    })
    assert cfg.poll_seconds == 3
    assert cfg.next_sort == "lowest"
    assert cfg.wwwroot == Path("wwwroot")


def test_all_errors_reported_together() -> None:
    with pytest.raises(ConfigError) as exc:
        load_config({"RA_NEXT_SORT": "random", "OVERLAY_PORT": "99999", "RA_POLL_SECONDS": "ten"})
    errors = exc.value.errors
    assert len(errors) == 5
    assert any("RA_USERNAME" in e for e in errors)
    assert any("RA_API_KEY" in e for e in errors)
    assert any("random" in e for e in errors)
    assert any("OVERLAY_PORT" in e for e in errors)
    assert any("RA_POLL_SECONDS" in e for e in errors)


def test_reads_dotenv_file(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    # setenv → delenv: 테스트 후 load_dotenv 가 넣은 값까지 원래대로 되돌린다
    for name in ("RA_USERNAME", "RA_API_KEY", "RA_NEXT_SORT"):
        monkeypatch.setenv(name, "x")
        monkeypatch.delenv(name)
    env_file = tmp_path / ".env"
    env_file.write_text("RA_USERNAME=fromfile\nRA_API_KEY=k\nRA_NEXT_SORT=highest\n", encoding="utf-8")

    cfg = load_config(dotenv_path=env_file)

    assert cfg.username == "fromfile"
    assert cfg.next_sort == "highest"
