from __future__ import annotations

import logging
from pathlib import Path

from src.utils.logging_config import setup_logging


def test_category_files_receive_only_their_loggers(tmp_path: Path) -> None:
    root = logging.getLogger()
    saved_handlers, saved_level = list(root.handlers), root.level
    try:
        log_dir = setup_logging(tmp_path)
        logging.getLogger("src.sync.engine").info("틱 완료")
        logging.getLogger("src.provider.retroachievements_client").warning("응답 지연")
        logging.getLogger("src.overlay.server").error("세션 전송 실패")
        for h in root.handlers:
            h.flush()

        assert log_dir == tmp_path
        sync_log = (tmp_path / "sync.log").read_text(encoding="utf-8")
        provider_log = (tmp_path / "provider.log").read_text(encoding="utf-8")
        overlay_log = (tmp_path / "overlay.log").read_text(encoding="utf-8")
        app_log = (tmp_path / "app.log").read_text(encoding="utf-8")
        error_log = (tmp_path / "error.log").read_text(encoding="utf-8")

        assert "틱 완료" in sync_log and "응답 지연" not in sync_log
        assert "응답 지연" in provider_log and "틱 완료" not in provider_log
        assert "세션 전송 실패" in overlay_log
        assert all(m in app_log for m in ("틱 완료", "응답 지연", "세션 전송 실패"))
        assert "세션 전송 실패" in error_log and "틱 완료" not in error_log
        assert logging.getLogger("httpx").level == logging.WARNING
    finally:
        for h in root.handlers:
            h.close()
        root.handlers[:] = saved_handlers
        root.setLevel(saved_level)
