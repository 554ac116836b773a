import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional, Type

from pydantic import BaseModel, ValidationError

from app.core.errors import InvalidEventPayload, RoomTargetInvalid
from app.schemas.realtime import (
    CursorMovePayload,
    EmptyPayload,
    ProjectRoomPayload,
    SendNotificationPayload,
    TaskDragPayload,
    TaskSignalPayload,
)
from app.websockets import events as ev
from app.websockets.connection_manager import ConnectionManager
from app.websockets.events import (
    ClearSignal,
    Effect,
    JoinRoom,
    LeaveRoom,
    Outbound,
    Reply,
    ReplyRoomPresence,
    TrackSignal,
)
from app.websockets.rooms import project_room, user_room
from app.websockets.session import ConnectionSession
from app.websockets.signals import ActiveSignal

logger = logging.getLogger(__name__)

RoomAccessChecker = Callable[[str, str], Awaitable[bool]]


# =============================================================================
# 순수 핸들러: (session, payload) -> [Effect]
# =============================================================================

def handle_project_join(session: ConnectionSession, payload: ProjectRoomPayload) -> List[Effect]:
    room = project_room(payload.project_id)
    return [
        JoinRoom(room),
        Outbound(room, ev.PROJECT_USER_JOINED, {
            "projectId": payload.project_id,
            "user": session.identity.public(),
            "timestamp": ev.utc_timestamp(),
        }),
        ReplyRoomPresence(room, payload.project_id),
    ]


def handle_project_leave(session: ConnectionSession, payload: ProjectRoomPayload) -> List[Effect]:
    room = project_room(payload.project_id)
    return [
        LeaveRoom(room),
        Outbound(room, ev.PROJECT_USER_LEFT, ev.user_left_payload(session.identity, payload.project_id)),
    ]


def handle_start_edit(session: ConnectionSession, payload: TaskSignalPayload) -> List[Effect]:
    room = project_room(payload.project_id)
    return [
        TrackSignal(ev.SIGNAL_EDITING, room, payload.task_id),
        Outbound(room, ev.TASK_USER_EDITING, {
            "taskId": payload.task_id,
            "user": session.identity.public(),
        }),
    ]


def handle_stop_edit(session: ConnectionSession, payload: TaskSignalPayload) -> List[Effect]:
    room = project_room(payload.project_id)
    return [
        ClearSignal(ev.SIGNAL_EDITING, room, payload.task_id),
        Outbound(room, ev.TASK_USER_STOPPED_EDITING, ev.signal_stop_payload(session.identity, payload.task_id)),
    ]


def handle_dragging(session: ConnectionSession, payload: TaskDragPayload) -> List[Effect]:
    room = project_room(payload.project_id)
    return [
        TrackSignal(ev.SIGNAL_DRAGGING, room, payload.task_id),
        Outbound(room, ev.TASK_BEING_DRAGGED, {
            "taskId": payload.task_id,
            "position": payload.position,
            "user": session.identity.public(),
        }),
    ]


def handle_drag_end(session: ConnectionSession, payload: TaskSignalPayload) -> List[Effect]:
    room = project_room(payload.project_id)
    return [
        ClearSignal(ev.SIGNAL_DRAGGING, room, payload.task_id),
        Outbound(room, ev.TASK_DRAG_ENDED, ev.signal_stop_payload(session.identity, payload.task_id)),
    ]


def handle_typing(session: ConnectionSession, payload: TaskSignalPayload) -> List[Effect]:
    room = project_room(payload.project_id)
    return [
        TrackSignal(ev.SIGNAL_TYPING, room, payload.task_id),
        Outbound(room, ev.TASK_USER_TYPING, {
            "taskId": payload.task_id,
            "user": session.identity.public(),
        }),
    ]


def handle_stop_typing(session: ConnectionSession, payload: TaskSignalPayload) -> List[Effect]:
    room = project_room(payload.project_id)
    return [
        ClearSignal(ev.SIGNAL_TYPING, room, payload.task_id),
        Outbound(room, ev.TASK_USER_STOPPED_TYPING, ev.signal_stop_payload(session.identity, payload.task_id)),
    ]


def handle_cursor_move(session: ConnectionSession, payload: CursorMovePayload) -> List[Effect]:
    return [
        Outbound(project_room(payload.project_id), ev.CURSOR_UPDATED, {
            "userId": session.user_id,
            "userName": session.identity.name,
            "user": session.identity.public(),
            "position": payload.position,
        }),
    ]


def handle_send_notification(session: ConnectionSession, payload: SendNotificationPayload) -> List[Effect]:
    return [
        Outbound(user_room(payload.user_id), ev.NOTIFICATION_RECEIVED, {
            **payload.notification,
            "from": session.identity.public(),
            "timestamp": ev.utc_timestamp(),
        }, exclude_sender=False),
    ]


def handle_ping(session: ConnectionSession, payload: EmptyPayload) -> List[Effect]:
    return [Reply(ev.PONG, {"timestamp": ev.utc_timestamp()})]


@dataclass(frozen=True)
class EventSpec:
    schema: Type[BaseModel]
    handler: Callable[[ConnectionSession, Any], List[Effect]]
    # 보낸 세션이 project-<projectId> 방에 참가 중이어야 하는지
    requires_membership: bool = True
    # 입장 전 프로젝트 접근 권한 확인 대상인지
    admission: bool = False


EVENT_HANDLERS: Dict[str, EventSpec] = {
    ev.PROJECT_JOIN: EventSpec(ProjectRoomPayload, handle_project_join, requires_membership=False, admission=True),
    ev.PROJECT_LEAVE: EventSpec(ProjectRoomPayload, handle_project_leave, requires_membership=False),
    ev.TASK_START_EDIT: EventSpec(TaskSignalPayload, handle_start_edit),
    ev.TASK_STOP_EDIT: EventSpec(TaskSignalPayload, handle_stop_edit),
    ev.TASK_DRAGGING: EventSpec(TaskDragPayload, handle_dragging),
    ev.TASK_DRAG_END: EventSpec(TaskSignalPayload, handle_drag_end),
    ev.TASK_TYPING: EventSpec(TaskSignalPayload, handle_typing),
    ev.TASK_STOP_TYPING: EventSpec(TaskSignalPayload, handle_stop_typing),
    ev.CURSOR_MOVE: EventSpec(CursorMovePayload, handle_cursor_move),
    ev.NOTIFICATION_SEND: EventSpec(SendNotificationPayload, handle_send_notification, requires_membership=False),
    ev.PING: EventSpec(EmptyPayload, handle_ping, requires_membership=False),
}


def parse_frame(message: Any) -> tuple:
    """{"event": name, "data": {...}} 프레임을 (이름, 데이터)로 분해"""
    if not isinstance(message, dict):
        raise InvalidEventPayload("unknown", "Frame must be a JSON object")
    event = message.get("event") or message.get("type")
    if not isinstance(event, str) or not event:
        raise InvalidEventPayload("unknown", "Frame is missing an event name")
    return ev.canonical_event_name(event), message.get("data")


class EventRouter:
    """
    인바운드 이벤트를 핸들러로 라우팅하고, 핸들러가 반환한 효과를
    ConnectionManager에 순서대로 적용합니다.

    잘못된 프레임, 알 수 없는 이벤트, 참가하지 않은 방을 대상으로 한 이벤트는
    로그만 남기고 버린다. dispatch는 예외를 밖으로 던지지 않는다.
    """

    def __init__(
        self,
        manager: ConnectionManager,
        room_access_checker: Optional[RoomAccessChecker] = None,
        handlers: Optional[Dict[str, EventSpec]] = None,
    ):
        self.manager = manager
        self.room_access_checker = room_access_checker
        self.handlers = handlers if handlers is not None else EVENT_HANDLERS

    async def dispatch(self, session: ConnectionSession, message: Any) -> bool:
        """
        이벤트 하나를 처리합니다.

        Returns:
            bool: 효과가 적용되었으면 True, 버려졌으면 False
        """
        if session.closed:
            return False

        try:
            event, data = parse_frame(message)
            spec = self.handlers.get(event)
            if spec is None:
                raise InvalidEventPayload(event, f"Unknown event: {event}")

            try:
                payload = spec.schema.model_validate(data if data is not None else {})
            except ValidationError as e:
                errors = [
                    {"field": ".".join(str(loc) for loc in err["loc"]), "message": err["msg"]}
                    for err in e.errors()
                ]
                raise InvalidEventPayload(event, details={"errors": errors}) from e

            if spec.requires_membership:
                room = project_room(payload.project_id)
                if not self.manager.registry.is_member(session.session_id, room):
                    raise RoomTargetInvalid(room, f"Session has not joined {room}")

            if spec.admission and self.room_access_checker is not None:
                allowed = await self.room_access_checker(session.user_id, payload.project_id)
                # 권한 확인 중 연결이 끊겼으면 방 조작 없이 종료
                if session.closed:
                    return False
                if not allowed:
                    raise RoomTargetInvalid(project_room(payload.project_id), "Not a member of this project")

            effects = spec.handler(session, payload)
            self.apply(session, effects)
            return True

        except InvalidEventPayload as e:
            logger.warning(f"Dropped invalid event from user {session.user_id}: {e.message}",
                           extra={"event_name": e.event, "session_id": session.session_id})
            self.manager.send_to_session(session, ev.ERROR, e.to_dict())
            return False
        except RoomTargetInvalid as e:
            logger.info(f"Dropped event for room {e.room} from user {session.user_id}: {e.message}",
                        extra={"session_id": session.session_id})
            return False
        except Exception as e:
            logger.error(f"Error handling event from user {session.user_id}: {e}", exc_info=True)
            return False

    def apply(self, session: ConnectionSession, effects: List[Effect]):
        """
        효과를 순서대로 적용합니다. join/leave가 no-op이면
        (이미 참가 중 / 참가하지 않음) 뒤따르는 알림은 보내지 않는다.
        """
        manager = self.manager
        for effect in effects:
            if session.closed:
                return
            if isinstance(effect, JoinRoom):
                if not manager.join(session, effect.room):
                    return
            elif isinstance(effect, LeaveRoom):
                if not manager.leave(session, effect.room):
                    return
            elif isinstance(effect, TrackSignal):
                manager.signals.touch(self._signal(session, effect))
            elif isinstance(effect, ClearSignal):
                manager.signals.clear(self._signal(session, effect))
            elif isinstance(effect, Outbound):
                manager.broadcast_to_room(
                    effect.room,
                    effect.event,
                    effect.data,
                    exclude_session_id=session.session_id if effect.exclude_sender else None,
                )
            elif isinstance(effect, Reply):
                manager.send_to_session(session, effect.event, effect.data)
            elif isinstance(effect, ReplyRoomPresence):
                manager.send_to_session(session, ev.PROJECT_ONLINE_USERS, {
                    "projectId": effect.project_id,
                    "users": manager.get_room_identities(effect.room),
                })

    @staticmethod
    def _signal(session: ConnectionSession, effect) -> ActiveSignal:
        return ActiveSignal(
            session_id=session.session_id,
            identity=session.identity,
            room=effect.room,
            kind=effect.kind,
            subject=effect.subject,
        )
