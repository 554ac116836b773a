import json
import logging
from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from app.core.errors import InvalidEventPayload, TransportFailure
from app.core.logging import clear_connection_context, set_connection_context
from app.websockets import credential_verifier, event_router, manager
from app.websockets.auth import authenticate_websocket
from app.websockets.events import CONNECTION_ESTABLISHED, ERROR
from app.websockets.rooms import user_room

logger = logging.getLogger(__name__)

router = APIRouter(tags=["WebSocket"])


@router.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket):
    """
    실시간 협업 WebSocket 엔드포인트

    프레임 형식: {"event": "<이름>", "data": {...}}
    인증: Authorization: Bearer <JWT>, ?token=<JWT>, 또는 access_token 쿠키
    """
    # 1. 인증 (실패 시 accept 없이 4001로 닫힘)
    identity = await authenticate_websocket(websocket, credential_verifier)
    if identity is None:
        return

    # 2. 세션 생성 + user-<id> 방 자동 참가
    session = await manager.connect(websocket, identity)
    set_connection_context(session.session_id, identity.user_id)

    try:
        # 3. 연결 환영 메시지
        manager.send_to_session(session, CONNECTION_ESTABLISHED, {
            "sessionId": session.session_id,
            "user": identity.public(),
            "rooms": [user_room(identity.user_id)],
        })

        # 4. 이벤트 수신 루프
        while True:
            received = await websocket.receive()
            if received["type"] == "websocket.disconnect":
                raise WebSocketDisconnect(received.get("code", 1000))

            # 전송 실패 등으로 서버가 세션을 먼저 정리한 경우
            if session.closed:
                logger.info(f"Session {session.session_id} already torn down, leaving receive loop")
                break

            raw = received.get("text")
            if raw is None:
                raw = (received.get("bytes") or b"").decode("utf-8", errors="replace")
            try:
                message = json.loads(raw)
            except ValueError as e:
                logger.warning(f"Invalid JSON from user {identity.user_id}: {e}")
                error = InvalidEventPayload("unknown", "Invalid JSON frame")
                manager.send_to_session(session, ERROR, error.to_dict())
                continue

            await event_router.dispatch(session, message)

    except WebSocketDisconnect as e:
        # 정상적인 연결 해제
        logger.info(f"WebSocket disconnected for user {identity.user_id} (code {e.code})")

    except Exception as e:
        # 네트워크 단절 등은 정상 해제와 같은 경로로 정리한다
        failure = TransportFailure(str(e) or type(e).__name__)
        logger.warning(f"Transport failure for user {identity.user_id}: {failure.message}")

    finally:
        # 5. 세션 해제 (모든 방에서 제거 + userLeft 전파)
        manager.disconnect(session)
        clear_connection_context()
