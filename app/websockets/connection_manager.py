import asyncio
import logging
from typing import Any, Dict, List, Optional, Set

from fastapi import status

from app.core.config import settings
from app.core.logging import log_websocket_event
from app.websockets.events import (
    PROJECT_USER_LEFT,
    SIGNAL_STOP_EVENTS,
    make_frame,
    signal_stop_payload,
    user_left_payload,
)
from app.websockets.registry import RoomRegistry
from app.websockets.rooms import is_project_room, parse_room, user_room
from app.websockets.session import ConnectionSession, Identity
from app.websockets.signals import ActiveSignal, SignalTracker

logger = logging.getLogger(__name__)


class ConnectionManager:
    """
    세션과 방 멤버십을 소유하는 단일 서비스 객체.

    방 멤버십을 바꾸는 것은 join / leave / disconnect 뿐이며 모두 동기 함수다.
    broadcast_to_room 역시 멤버 열거와 큐 적재를 await 없이 끝내므로
    "멤버 제거"와 "브로드캐스트 대상 열거"가 섞이는 일이 없다.
    """

    def __init__(
        self,
        registry: Optional[RoomRegistry] = None,
        signals: Optional[SignalTracker] = None,
        queue_size: Optional[int] = None,
    ):
        self.registry = registry or RoomRegistry()
        self.signals = signals or SignalTracker()
        # 세션별 연결: {session_id: ConnectionSession}
        self.sessions: Dict[str, ConnectionSession] = {}
        self.backplane = None
        self._queue_size = queue_size or settings.ws_outbound_queue_size

    # =========================================================================
    # 연결 수명
    # =========================================================================

    async def connect(self, websocket: Any, identity: Identity) -> ConnectionSession:
        """
        인증이 끝난 WebSocket을 수락하고 세션을 등록합니다.
        세션은 자신의 직접 알림 방(user-<id>)에 자동으로 참가합니다.
        """
        await websocket.accept()

        session = ConnectionSession(websocket, identity, queue_size=self._queue_size)
        self.sessions[session.session_id] = session
        session.start(on_failure=self._handle_transport_failure)
        self.registry.join(session.session_id, user_room(identity.user_id))

        log_websocket_event(logger, "connected", identity.user_id, session_id=session.session_id)
        return session

    def disconnect(self, session: ConnectionSession) -> Set[str]:
        """
        세션을 해제합니다 (정상 종료와 네트워크 단절 모두 이 경로).

        1. 세션을 종료 상태로 표시 (이후 어떤 프레임도 받지 않음)
        2. 모든 방에서 제거
        3. 남아 있던 임시 신호의 종료 신호 전송
        4. 참가했던 프로젝트 방마다 userLeft 한 번씩 전송

        Returns:
            Set[str]: 세션이 참가했던 방 목록 (이미 해제된 세션이면 빈 집합)
        """
        if self.sessions.get(session.session_id) is not session:
            return set()

        session.close()
        rooms = self.registry.remove_session(session.session_id)
        self.sessions.pop(session.session_id, None)

        for signal in self.signals.clear_session(session.session_id):
            self.emit_signal_stop(signal)

        for room in sorted(rooms):
            if is_project_room(room):
                _, project_id = parse_room(room)
                self.broadcast_to_room(
                    room,
                    PROJECT_USER_LEFT,
                    user_left_payload(session.identity, project_id),
                )

        log_websocket_event(
            logger, "disconnected", session.user_id,
            session_id=session.session_id, rooms=sorted(rooms)
        )
        return rooms

    def _handle_transport_failure(self, session: ConnectionSession):
        # 소켓은 writer가 1011로 닫는다
        logger.warning(f"Tearing down session {session.session_id} after transport failure")
        self.disconnect(session)

    async def shutdown(self):
        """모든 세션을 해제하고 소켓을 닫은 뒤 writer 태스크가 끝날 때까지 대기"""
        sessions = list(self.sessions.values())
        for session in sessions:
            self.disconnect(session)
        await asyncio.gather(
            *(session.close_transport(status.WS_1001_GOING_AWAY, "server_shutdown") for session in sessions),
            return_exceptions=True,
        )
        await asyncio.gather(*(session.wait_closed() for session in sessions), return_exceptions=True)

    # =========================================================================
    # 방 참가 / 퇴장
    # =========================================================================

    def join(self, session: ConnectionSession, room: str) -> bool:
        """방에 참가합니다. 이미 참가 중이거나 종료된 세션이면 False."""
        if session.closed:
            return False
        joined = self.registry.join(session.session_id, room)
        if joined:
            log_websocket_event(logger, "joined", session.user_id, room, session_id=session.session_id)
        return joined

    def leave(self, session: ConnectionSession, room: str) -> bool:
        """
        방에서 나갑니다. 참가 중이 아니었으면 False.
        그 방에 남아 있던 세션의 임시 신호는 종료 신호와 함께 정리됩니다.
        """
        if session.closed:
            return False
        left = self.registry.leave(session.session_id, room)
        if left:
            for signal in self.signals.clear_session(session.session_id, room):
                self.emit_signal_stop(signal)
            log_websocket_event(logger, "left", session.user_id, room, session_id=session.session_id)
        return left

    # =========================================================================
    # 전송
    # =========================================================================

    def broadcast_to_room(
        self,
        room: str,
        event: str,
        data: Any,
        exclude_session_id: Optional[str] = None,
    ) -> int:
        """
        방의 모든 세션에게 이벤트를 전송합니다.

        Returns:
            int: 이 프로세스에서 전송 큐에 들어간 세션 수
        """
        frame = make_frame(event, data)
        delivered = self.deliver_local(room, frame, exclude_session_id)
        if self.backplane is not None:
            self.backplane.publish(room, frame)
        return delivered

    def deliver_local(
        self,
        room: str,
        frame: Dict[str, Any],
        exclude_session_id: Optional[str] = None,
    ) -> int:
        """이 프로세스에 연결된 방 멤버에게만 프레임 전달"""
        delivered = 0
        for session_id in self.registry.members(room):
            if session_id == exclude_session_id:
                continue
            session = self.sessions.get(session_id)
            if session is not None and session.deliver(frame):
                delivered += 1
        return delivered

    def send_to_user(self, user_id: str, event: str, data: Any) -> int:
        """사용자의 모든 연결(탭)에게 전송"""
        return self.broadcast_to_room(user_room(user_id), event, data)

    def send_to_session(self, session: ConnectionSession, event: str, data: Any) -> bool:
        return session.deliver(make_frame(event, data))

    def emit_signal_stop(self, signal: ActiveSignal) -> int:
        """임시 신호의 종료 신호를 방에 전송 (신호를 낸 세션은 제외)"""
        return self.broadcast_to_room(
            signal.room,
            SIGNAL_STOP_EVENTS[signal.kind],
            signal_stop_payload(signal.identity, signal.subject),
            exclude_session_id=signal.session_id,
        )

    # =========================================================================
    # 조회
    # =========================================================================

    def get_session(self, session_id: str) -> Optional[ConnectionSession]:
        return self.sessions.get(session_id)

    def get_room_identities(self, room: str) -> List[Dict[str, str]]:
        """방에 연결된 사용자의 공개 정보 (같은 사용자의 여러 탭은 한 번만)"""
        users: Dict[str, Dict[str, str]] = {}
        for session_id in sorted(self.registry.members(room)):
            session = self.sessions.get(session_id)
            if session is not None and session.user_id not in users:
                users[session.user_id] = session.identity.public()
        return list(users.values())

    def get_user_count_in_room(self, room: str) -> int:
        return len(self.get_room_identities(room))

    def is_user_connected(self, user_id: str) -> bool:
        return self.registry.has_room(user_room(user_id))

    @property
    def session_count(self) -> int:
        return len(self.sessions)


# 전역 연결 매니저 인스턴스
manager = ConnectionManager()
