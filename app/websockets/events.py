"""
실시간 이벤트 카탈로그

와이어 프레임: {"event": <이름>, "data": <객체>}
핸들러는 아래 효과(Effect) 목록만 반환하고, 실제 방 조작과 전송은
EventRouter가 ConnectionManager를 통해 적용한다.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional, Union

from bson import ObjectId
from fastapi.encoders import jsonable_encoder

from app.websockets.session import Identity

# =============================================================================
# 인바운드 (client → server)
# =============================================================================

PROJECT_JOIN = "project:join"
PROJECT_LEAVE = "project:leave"
TASK_START_EDIT = "task:startEdit"
TASK_STOP_EDIT = "task:stopEdit"
TASK_DRAGGING = "task:dragging"
TASK_DRAG_END = "task:dragEnd"
TASK_TYPING = "task:typing"
TASK_STOP_TYPING = "task:stopTyping"
CURSOR_MOVE = "cursor:move"
NOTIFICATION_SEND = "notification:send"
PING = "ping"

# 기존 브라우저 클라이언트가 쓰던 이름
LEGACY_ALIASES = {
    "join-project": PROJECT_JOIN,
    "leave-project": PROJECT_LEAVE,
    "start-editing-task": TASK_START_EDIT,
    "stop-editing-task": TASK_STOP_EDIT,
    "user-typing": TASK_TYPING,
}

# =============================================================================
# 아웃바운드 (server → room / user)
# =============================================================================

CONNECTION_ESTABLISHED = "connection:established"
ERROR = "error"
PONG = "pong"

PROJECT_USER_JOINED = "project:userJoined"
PROJECT_USER_LEFT = "project:userLeft"
PROJECT_ONLINE_USERS = "project:onlineUsers"
TASK_USER_EDITING = "task:userEditing"
TASK_USER_STOPPED_EDITING = "task:userStoppedEditing"
TASK_BEING_DRAGGED = "task:beingDragged"
TASK_DRAG_ENDED = "task:dragEnded"
TASK_USER_TYPING = "task:userTyping"
TASK_USER_STOPPED_TYPING = "task:userStoppedTyping"
CURSOR_UPDATED = "cursor:updated"
NOTIFICATION_RECEIVED = "notification:received"

# 영속 변경 (CRUD 레이어 커밋 이후)
TASK_CREATED = "task:created"
TASK_UPDATED = "task:updated"
TASK_MOVED = "task:moved"
TASK_DELETED = "task:deleted"
TASK_COMMENT_ADDED = "task:commentAdded"
TASK_CHECKLIST_UPDATED = "task:checklistUpdated"
PROJECT_UPDATED = "project:updated"
PROJECT_DELETED = "project:deleted"
PROJECT_MEMBER_ADDED = "project:memberAdded"
PROJECT_MEMBER_REMOVED = "project:memberRemoved"
INVITATION_RESPONDED = "invitation:responded"
NOTIFICATION_NEW = "notification:new"

# 임시 신호 종류 → 종료 신호
SIGNAL_EDITING = "editing"
SIGNAL_DRAGGING = "dragging"
SIGNAL_TYPING = "typing"

SIGNAL_STOP_EVENTS = {
    SIGNAL_EDITING: TASK_USER_STOPPED_EDITING,
    SIGNAL_DRAGGING: TASK_DRAG_ENDED,
    SIGNAL_TYPING: TASK_USER_STOPPED_TYPING,
}


def canonical_event_name(name: str) -> str:
    return LEGACY_ALIASES.get(name, name)


def utc_timestamp() -> str:
    return datetime.utcnow().isoformat()


def make_frame(event: str, data: Any) -> Dict[str, Any]:
    """JSON 직렬화 가능한 와이어 프레임 생성 (datetime, ObjectId 변환 포함)"""
    return {
        "event": event,
        "data": jsonable_encoder(data, custom_encoder={ObjectId: str}),
    }


# =============================================================================
# payload 빌더
# =============================================================================

def user_left_payload(identity: Identity, project_id: Optional[str] = None) -> Dict[str, Any]:
    payload = {
        "userId": identity.user_id,
        "user": identity.public(),
        "timestamp": utc_timestamp(),
    }
    if project_id is not None:
        payload["projectId"] = project_id
    return payload


def signal_stop_payload(identity: Identity, task_id: str) -> Dict[str, Any]:
    """명시적 종료 신호와 합성 종료 신호가 같은 형태를 쓰도록 한 곳에서 만든다"""
    return {"taskId": task_id, "userId": identity.user_id, "user": identity.public()}


# =============================================================================
# 핸들러 효과
# =============================================================================

@dataclass(frozen=True)
class JoinRoom:
    room: str


@dataclass(frozen=True)
class LeaveRoom:
    room: str


@dataclass(frozen=True)
class TrackSignal:
    kind: str
    room: str
    subject: str


@dataclass(frozen=True)
class ClearSignal:
    kind: str
    room: str
    subject: str


@dataclass(frozen=True)
class Outbound:
    """방 전체로 브로드캐스트. exclude_sender면 보낸 세션은 받지 않는다."""
    room: str
    event: str
    data: Dict[str, Any]
    exclude_sender: bool = True


@dataclass(frozen=True)
class Reply:
    """보낸 세션에게만 전송"""
    event: str
    data: Dict[str, Any]


@dataclass(frozen=True)
class ReplyRoomPresence:
    """보낸 세션에게 현재 방 참가자 목록 전송 (적용 시점에 계산)"""
    room: str
    project_id: str


Effect = Union[JoinRoom, LeaveRoom, TrackSignal, ClearSignal, Outbound, Reply, ReplyRoomPresence]
