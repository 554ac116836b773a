"""
WebSocket 실시간 협업 모듈

이 모듈은 FastAPI WebSocket 위에서 프로젝트 방 단위 실시간 팬아웃을 제공합니다.

주요 구성 요소:
- auth: 연결 시점 토큰 검증 (CredentialVerifier)
- registry / rooms: 방 멤버십과 방 이름 규칙
- connection_manager: 세션 수명과 브로드캐스트
- handlers: 인바운드 이벤트 라우팅 (EventRouter)
- notifier: CRUD 레이어 커밋 이후 변경 전파
- backplane: 멀티 프로세스 팬아웃 (Redis Pub/Sub)
"""

from app.core.config import settings
from .connection_manager import manager, ConnectionManager
from .auth import CredentialVerifier, authenticate_websocket, verify_project_access
from .handlers import EventRouter
from .notifier import DurableChangeNotifier
from .session import ConnectionSession, Identity

credential_verifier = CredentialVerifier()
event_router = EventRouter(
    manager,
    room_access_checker=verify_project_access if settings.enforce_project_membership else None,
)
notifier = DurableChangeNotifier(manager)

__all__ = [
    "manager",
    "ConnectionManager",
    "ConnectionSession",
    "Identity",
    "CredentialVerifier",
    "authenticate_websocket",
    "verify_project_access",
    "EventRouter",
    "DurableChangeNotifier",
    "credential_verifier",
    "event_router",
    "notifier",
]
