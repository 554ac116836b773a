# Realtime schemas
from .realtime import (
    ProjectRoomPayload,
    TaskSignalPayload,
    TaskDragPayload,
    CursorMovePayload,
    SendNotificationPayload,
    EmptyPayload,
    NotifyRequest,
    NotifyResponse,
    OnlineUser,
    RoomPresenceResponse,
)

__all__ = [
    "ProjectRoomPayload",
    "TaskSignalPayload",
    "TaskDragPayload",
    "CursorMovePayload",
    "SendNotificationPayload",
    "EmptyPayload",
    "NotifyRequest",
    "NotifyResponse",
    "OnlineUser",
    "RoomPresenceResponse",
]
