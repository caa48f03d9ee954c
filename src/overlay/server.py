"""
오버레이 로컬 서버. OBS 브라우저 소스용 오버레이 페이지 + 컨트롤 API + Socket.IO 푸시.

- GET / , /overlay : 오버레이 HTML (wwwroot/index.html 이 있으면 그것, 없으면 내장 페이지)
- /api/*           : 컨트롤 화면용 (다음 업적 고정, 리더보드 선택, 테스트 토스트)
- /overlayhub/socket.io : 이벤트 푸시 (now-playing, progress, remaining, next, achievement, leaderboard)
반드시 src/app.py 안에서 실행 (같은 이벤트 루프에서 엔진·브로드캐스터 공유).
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Optional

import socketio
from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import HTMLResponse, JSONResponse
from fastapi.staticfiles import StaticFiles
from pydantic import BaseModel

from src.sync.broadcaster import EventBroadcaster
from src.sync.engine import ReconciliationEngine
from src.sync.override import ManualOverrideStore, OverrideResult

logger = logging.getLogger(__name__)

SOCKETIO_PATH = "overlayhub/socket.io"


class LeaderboardSelection(BaseModel):
    leaderboard_id: Optional[int] = None


def create_socket_server() -> socketio.AsyncServer:
    return socketio.AsyncServer(async_mode="asgi", cors_allowed_origins="*")


def make_sender(sio: socketio.AsyncServer):
    """브로드캐스터용 전송 함수: 한 세션(sid)에만 emit"""

    async def send(event: str, payload: Any, sid: str) -> None:
        await sio.emit(event, payload, to=sid)

    return send


def register_socket_handlers(sio: socketio.AsyncServer, broadcaster: EventBroadcaster) -> None:
    @sio.event
    async def connect(sid, environ, auth=None):
        await broadcaster.connect(sid)

    @sio.event
    async def disconnect(sid, *args):
        await broadcaster.disconnect(sid)


def create_app(
    engine: ReconciliationEngine,
    overrides: ManualOverrideStore,
    broadcaster: EventBroadcaster,
    wwwroot: Optional[Path] = None,
) -> FastAPI:
    """컨트롤 API + 오버레이 페이지 FastAPI 앱"""
    app = FastAPI(title="RA Overlay", docs_url=None, redoc_url=None)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=False,
        allow_methods=["GET", "POST"],
    )

    index_path = (wwwroot / "index.html") if wwwroot is not None else None

    @app.get("/", response_class=HTMLResponse)
    @app.get("/overlay", response_class=HTMLResponse)
    def overlay_page():
        """OBS 브라우저 소스에 넣을 URL."""
        if index_path is not None and index_path.is_file():
            return HTMLResponse(index_path.read_text(encoding="utf-8"))
        return HTMLResponse(OVERLAY_HTML)

    @app.get("/api/state")
    def get_state():
        """컨트롤 화면: Remaining, pin, next, 리더보드 목록/선택, 인증 상태."""
        return JSONResponse(engine.control_state())

    @app.post("/api/next/select/{objective_id}")
    def select_next(objective_id: int):
        result = overrides.select(objective_id)
        if result is OverrideResult.NOT_FOUND:
            raise HTTPException(status_code=404, detail=f"남은 업적 목록에 없음: {objective_id}")
        return JSONResponse({"result": result.value, **overrides.snapshot()})

    @app.post("/api/next/cycle")
    def cycle_next(direction: str = "next"):
        d = (direction or "").strip().lower()
        if d in ("next", "forward"):
            result = overrides.cycle_next()
        elif d in ("previous", "prev", "back"):
            result = overrides.cycle_previous()
        else:
            raise HTTPException(status_code=400, detail=f"direction 은 next|previous: {direction}")
        return JSONResponse({"result": result.value, **overrides.snapshot()})

    @app.post("/api/next/clear")
    def clear_next():
        overrides.clear_to_automatic()
        return JSONResponse({"result": OverrideResult.SUCCESS.value, **overrides.snapshot()})

    @app.post("/api/leaderboard/select")
    def select_leaderboard(body: LeaderboardSelection):
        """null 이면 리더보드 표시 해제. 반영은 다음 틱."""
        overrides.select_leaderboard(body.leaderboard_id)
        return JSONResponse({"leaderboard_id": body.leaderboard_id})

    @app.post("/api/test/toast")
    async def test_toast():
        """연결 확인용 토스트를 모든 오버레이에 전송."""
        await broadcaster.ping_toast()
        logger.info("Overlay API: 테스트 토스트 (세션 %d)", broadcaster.session_count)
        return JSONResponse({"ok": True, "sessions": broadcaster.session_count})

    if wwwroot is not None and wwwroot.is_dir():
        # 라우트 뒤에 마운트해야 / , /api 가 가려지지 않는다
        app.mount("/", StaticFiles(directory=str(wwwroot)), name="wwwroot")

    return app


def create_asgi_app(
    engine: ReconciliationEngine,
    overrides: ManualOverrideStore,
    wwwroot: Optional[Path] = None,
) -> tuple[socketio.ASGIApp, EventBroadcaster]:
    """Socket.IO + FastAPI 를 묶은 ASGI 앱. 엔진 이벤트는 브로드캐스터로 연결된다."""
    sio = create_socket_server()
    broadcaster = EventBroadcaster(make_sender(sio), engine.replay_events)
    engine.on_events = broadcaster.publish
    register_socket_handlers(sio, broadcaster)
    app = create_app(engine, overrides, broadcaster, wwwroot)
    return socketio.ASGIApp(sio, other_asgi_app=app, socketio_path=SOCKETIO_PATH), broadcaster


OVERLAY_HTML = """<!DOCTYPE html>
<html lang="en">
<head>
  <meta charset="UTF-8">
  <meta name="viewport" content="width=device-width, initial-scale=1.0">
  <title>RA Overlay</title>
  <script src="https://cdn.socket.io/4.7.5/socket.io.min.js"></script>
  <style>
    * { margin: 0; padding: 0; box-sizing: border-box; }
    body {
      font-family: "Segoe UI", sans-serif;
      background-color: transparent;
      color: #fff;
      width: 100vw;
      height: 100vh;
      overflow: hidden;
      padding: 15px;
      text-shadow: 0 1px 3px rgba(0,0,0,0.8);
    }
    .card {
      background: rgba(10, 14, 24, 0.75);
      border: 1px solid rgba(255,255,255,0.1);
      border-radius: 12px;
      padding: 12px 16px;
      margin-bottom: 10px;
      max-width: 460px;
    }
    #game { display: flex; gap: 12px; align-items: center; }
    #game img { width: 64px; height: 64px; object-fit: cover; border-radius: 6px; }
    #game .console { font-size: 13px; opacity: 0.7; }
    .bar { height: 8px; background: rgba(255,255,255,0.15); border-radius: 4px; margin-top: 6px; }
    .bar > div { height: 100%; background: #f5c542; border-radius: 4px; width: 0; transition: width .6s; }
    #next { display: flex; gap: 10px; align-items: center; }
    #next img { width: 48px; height: 48px; border-radius: 4px; }
    #next .label { font-size: 12px; opacity: 0.7; }
    #next .pin { color: #f5c542; }
    #toast {
      position: fixed; right: 20px; bottom: 20px;
      display: none; gap: 12px; align-items: center;
      animation: pop .4s ease-out;
    }
    #toast img { width: 64px; height: 64px; border-radius: 6px; }
    @keyframes pop { from { transform: translateY(30px); opacity: 0; } to { transform: none; opacity: 1; } }
    #lb table { width: 100%; font-size: 14px; border-collapse: collapse; }
    #lb td { padding: 2px 4px; }
    #lb tr.viewer { color: #f5c542; }
    .hidden { display: none !important; }
  </style>
</head>
<body>
  <div id="game" class="card"><img id="box" alt=""><div><div id="title">Waiting for game...</div><div class="console" id="console"></div>
    <div class="bar"><div id="bar"></div></div><div class="console" id="pct"></div></div></div>
  <div id="next" class="card hidden"><img id="next-badge" alt=""><div><div class="label">NEXT <span class="pin" id="next-pin"></span></div>
    <div id="next-title"></div><div class="console" id="next-desc"></div></div></div>
  <div id="lb" class="card hidden"><div id="lb-title"></div><table id="lb-rows"></table></div>
  <div id="toast" class="card"><img id="toast-badge" alt=""><div><div class="label">ACHIEVEMENT UNLOCKED</div>
    <div id="toast-title"></div><div class="console" id="toast-points"></div></div></div>
  <script>
    var $ = function(id) { return document.getElementById(id); };
    var socket = io({ path: "/overlayhub/socket.io" });
    var toastTimer = null;
    var esc = function(s) { var d = document.createElement("div"); d.textContent = String(s); return d.innerHTML; };

    socket.on("now-playing", function(d) {
      $("title").textContent = d.title || "Waiting for game...";
      $("console").textContent = d.consoleName || "";
      $("box").src = d.boxArt || "";
      $("box").classList.toggle("hidden", !d.boxArt);
      if (d.waiting) { $("next").classList.add("hidden"); $("lb").classList.add("hidden"); }
    });
    socket.on("progress", function(d) {
      $("bar").style.width = d.percent + "%";
      $("pct").textContent = d.earned + " / " + d.total + " (" + d.percent + "%)";
    });
    socket.on("next", function(d) {
      if (d.id === null || d.id === undefined) { $("next").classList.add("hidden"); return; }
      $("next").classList.remove("hidden");
      $("next-title").textContent = d.title + " (" + d.points + ")";
      $("next-desc").textContent = d.description || "";
      $("next-badge").src = d.badge || "";
      $("next-pin").textContent = d.pinned ? "(pinned)" : "";
    });
    socket.on("achievement", function(d) {
      $("toast-title").textContent = d.title;
      $("toast-points").textContent = d.points + " points";
      $("toast-badge").src = d.badge || "";
      $("toast").style.display = "flex";
      var snd = new Audio("/unlock.mp3");
      snd.play().catch(function() {});
      if (toastTimer) clearTimeout(toastTimer);
      toastTimer = setTimeout(function() { $("toast").style.display = "none"; }, 6000);
    });
    socket.on("leaderboard", function(d) {
      if (d.leaderboardId === null || d.leaderboardId === undefined) { $("lb").classList.add("hidden"); return; }
      $("lb").classList.remove("hidden");
      $("lb-title").textContent = d.title;
      var rows = "";
      (d.entries || []).forEach(function(e) {
        var me = d.viewer && d.viewer.user === e.user;
        rows += "<tr" + (me ? " class='viewer'" : "") + "><td>#" + e.rank + "</td><td>" + esc(e.user) + "</td><td>" + esc(e.score) + "</td></tr>";
      });
      if (d.viewer && !(d.entries || []).some(function(e) { return e.user === d.viewer.user; })) {
        rows += "<tr class='viewer'><td>#" + d.viewer.rank + "</td><td>" + esc(d.viewer.user) + "</td><td>" + esc(d.viewer.score) + "</td></tr>";
      }
      $("lb-rows").innerHTML = rows;
    });
  </script>
</body>
</html>
"""
