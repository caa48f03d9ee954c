"""
방송 오버레이 서버: OBS 브라우저 소스로 게임/업적 진행 상황 표시.

- create_asgi_app(): FastAPI(컨트롤 API + 페이지) + Socket.IO(이벤트 푸시) 묶음
- OBS 브라우저 소스 URL: http://127.0.0.1:4050/overlay
"""

from src.overlay.server import create_app, create_asgi_app, create_socket_server

__all__ = ["create_app", "create_asgi_app", "create_socket_server"]
