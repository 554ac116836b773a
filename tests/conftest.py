import pytest
import pytest_asyncio
from datetime import timedelta
from typing import Any, Dict, List, Optional

from app.utils.auth import create_access_token
from app.websockets.connection_manager import ConnectionManager
from app.websockets.handlers import EventRouter
from app.websockets.session import Identity


class FakeWebSocket:
    """테스트용 WebSocket 대역 (send_json 호출을 기록)"""

    def __init__(
        self,
        headers: Optional[Dict[str, str]] = None,
        query_params: Optional[Dict[str, str]] = None,
        cookies: Optional[Dict[str, str]] = None,
        fail_on_send: bool = False,
    ):
        self.headers = headers or {}
        self.query_params = query_params or {}
        self.cookies = cookies or {}
        self.fail_on_send = fail_on_send
        self.accepted = False
        self.closed = False
        self.close_code = None
        self.close_reason = None
        self.sent: List[Dict[str, Any]] = []

    async def accept(self):
        self.accepted = True

    async def send_json(self, data: Any):
        if self.fail_on_send:
            raise RuntimeError("connection reset by peer")
        self.sent.append(data)

    async def close(self, code: int = 1000, reason: Optional[str] = None):
        self.closed = True
        self.close_code = code
        self.close_reason = reason

    def events(self) -> List[str]:
        return [frame["event"] for frame in self.sent]

    def data_of(self, event: str) -> List[Any]:
        return [frame["data"] for frame in self.sent if frame["event"] == event]


@pytest.fixture
def alice() -> Identity:
    """테스트용 사용자 A"""
    return Identity(user_id="64a000000000000000000001", name="Alice", avatar="a.png")


@pytest.fixture
def bob() -> Identity:
    """테스트용 사용자 B"""
    return Identity(user_id="64a000000000000000000002", name="Bob")


@pytest.fixture
def carol() -> Identity:
    """테스트용 사용자 C (프로젝트 방에 참가하지 않는 사용자)"""
    return Identity(user_id="64a000000000000000000003", name="Carol")


@pytest_asyncio.fixture
async def realtime_manager():
    """테스트마다 새로 만드는 연결 매니저"""
    manager = ConnectionManager(queue_size=64)
    yield manager
    await manager.shutdown()


@pytest.fixture
def event_router(realtime_manager) -> EventRouter:
    """프로젝트 권한 확인 없이 동작하는 라우터"""
    return EventRouter(realtime_manager)


@pytest.fixture
def connect(realtime_manager):
    """인증된 사용자로 FakeWebSocket 연결 생성"""
    async def _connect(identity: Identity, **kwargs):
        websocket = FakeWebSocket(**kwargs)
        session = await realtime_manager.connect(websocket, identity)
        return session, websocket

    return _connect


@pytest.fixture
def drain():
    """세션 전송 큐가 비워질 때까지 대기"""
    async def _drain(*sessions):
        for session in sessions:
            await session.drain()

    return _drain


@pytest.fixture
def auth_token_alice(alice) -> str:
    """사용자 A의 액세스 토큰"""
    return create_access_token(data={"sub": alice.user_id, "email": "alice@example.com"})


@pytest.fixture
def expired_token_alice(alice) -> str:
    """만료된 사용자 A의 액세스 토큰"""
    return create_access_token(data={"sub": alice.user_id}, expires_delta=timedelta(minutes=-5))


@pytest.fixture
def fake_websocket():
    """FakeWebSocket 생성자"""
    return FakeWebSocket
