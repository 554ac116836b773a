"""
영속 변경 알림

CRUD 레이어가 커밋을 마친 뒤 호출한다. 방 하나에 브로드캐스트를 정확히 한 번
수행하고 바로 반환하며, 수신 확인을 기다리거나 재시도하지 않는다.
오프라인인 클라이언트는 이벤트를 놓치고, 다음 조회 때 HTTP 응답으로 따라잡는다.
"""

import logging
from typing import Any, Dict, Optional

from app.websockets import events as ev
from app.websockets.connection_manager import ConnectionManager
from app.websockets.rooms import parse_room, project_room, user_room

logger = logging.getLogger(__name__)


def _entity_id(entity: Any) -> Optional[str]:
    if isinstance(entity, dict):
        value = entity.get("_id", entity.get("id"))
    else:
        value = getattr(entity, "id", None)
    return str(value) if value is not None else None


class DurableChangeNotifier:
    """커밋된 엔티티 변경을 방으로 전파"""

    def __init__(self, manager: ConnectionManager):
        self.manager = manager

    def notify(self, room: str, event: str, payload: Any) -> int:
        """
        커밋된 변경 하나를 방에 브로드캐스트합니다. payload는 그대로 전달됩니다.

        Raises:
            RoomTargetInvalid: 방 이름이 규칙에 맞지 않는 경우

        Returns:
            int: 이 프로세스에서 전송 큐에 들어간 세션 수
        """
        parse_room(room)
        delivered = self.manager.broadcast_to_room(room, event, payload)
        logger.info(
            f"Durable change {event} broadcast to {room} ({delivered} local receivers)",
            extra={"event_type": "durable_change", "room": room, "event_name": event}
        )
        return delivered

    # =========================================================================
    # 태스크
    # =========================================================================

    def task_created(self, project_id: str, task: Any) -> int:
        return self.notify(project_room(project_id), ev.TASK_CREATED, task)

    def task_updated(self, project_id: str, task: Any) -> int:
        return self.notify(project_room(project_id), ev.TASK_UPDATED, task)

    def task_moved(self, project_id: str, task: Any, old_column: Optional[str] = None,
                   old_order: Optional[int] = None) -> int:
        return self.notify(project_room(project_id), ev.TASK_MOVED, {
            "task": task,
            "oldColumn": old_column,
            "oldOrder": old_order,
        })

    def task_deleted(self, project_id: str, task_id: str) -> int:
        return self.notify(project_room(project_id), ev.TASK_DELETED, str(task_id))

    def comment_added(self, project_id: str, task_id: str, comment: Any) -> int:
        return self.notify(project_room(project_id), ev.TASK_COMMENT_ADDED, {
            "taskId": str(task_id),
            "comment": comment,
        })

    def checklist_updated(self, project_id: str, task_id: str, checklist: Any) -> int:
        return self.notify(project_room(project_id), ev.TASK_CHECKLIST_UPDATED, {
            "taskId": str(task_id),
            "checklist": checklist,
        })

    # =========================================================================
    # 프로젝트 / 멤버
    # =========================================================================

    def project_updated(self, project: Any) -> int:
        return self.notify(project_room(_entity_id(project)), ev.PROJECT_UPDATED, project)

    def project_deleted(self, project_id: str) -> int:
        return self.notify(project_room(project_id), ev.PROJECT_DELETED, str(project_id))

    def member_added(self, project: Any) -> int:
        return self.notify(project_room(_entity_id(project)), ev.PROJECT_MEMBER_ADDED, project)

    def member_removed(self, project: Any, removed_user_id: str) -> int:
        return self.notify(project_room(_entity_id(project)), ev.PROJECT_MEMBER_REMOVED, {
            "project": project,
            "removedUserId": str(removed_user_id),
        })

    # =========================================================================
    # 초대 / 알림
    # =========================================================================

    def invitation_responded(self, invitation: Dict[str, Any], project: Any = None) -> int:
        """
        초대 응답을 초대한 사용자에게 알리고, 수락된 경우 프로젝트 방에
        갱신된 프로젝트를 memberAdded로 전파합니다.

        invitation은 sender(ID 또는 {_id, ...})와 status를 포함해야 합니다.
        """
        sender = invitation.get("sender")
        sender_id = _entity_id(sender) if isinstance(sender, dict) else sender
        delivered = self.notify(user_room(sender_id), ev.INVITATION_RESPONDED, invitation)

        if invitation.get("status") == "accepted" and project is not None:
            delivered += self.member_added(project)
        return delivered

    def notification_created(self, recipient_id: str, notification: Any) -> int:
        return self.notify(user_room(recipient_id), ev.NOTIFICATION_NEW, notification)
