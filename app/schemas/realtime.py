from typing import Annotated, Any, Dict, Optional
from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, model_validator


def _coerce_id(value: Any) -> str:
    """ObjectId, 정수 등 영속 계층의 ID를 문자열로 맞춘다."""
    if value is None or isinstance(value, (dict, list, bool)):
        raise ValueError("id must be a string or number")
    text = str(value).strip()
    if not text or any(ch.isspace() for ch in text):
        raise ValueError("id must be a non-empty token without whitespace")
    return text


EntityId = Annotated[str, BeforeValidator(_coerce_id)]


class RealtimePayload(BaseModel):
    """인바운드 이벤트 payload 기본 스키마 (camelCase 키 허용)"""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


# =============================================================================
# 인바운드 (client → server)
# =============================================================================

class ProjectRoomPayload(RealtimePayload):
    """project:join / project:leave (문자열 ID 단독 전송도 허용)"""
    project_id: EntityId = Field(..., alias="projectId", description="프로젝트 ID")

    @model_validator(mode="before")
    @classmethod
    def _wrap_bare_id(cls, data: Any) -> Any:
        if isinstance(data, (str, int)):
            return {"projectId": data}
        return data


class TaskSignalPayload(RealtimePayload):
    """task:startEdit / stopEdit / dragEnd / typing / stopTyping"""
    project_id: EntityId = Field(..., alias="projectId", description="프로젝트 ID")
    task_id: EntityId = Field(..., alias="taskId", description="태스크 ID")


class TaskDragPayload(TaskSignalPayload):
    """task:dragging"""
    position: Any = Field(..., description="드래그 고스트 위치 (클라이언트 정의)")


class CursorMovePayload(RealtimePayload):
    """cursor:move"""
    project_id: EntityId = Field(..., alias="projectId", description="프로젝트 ID")
    position: Any = Field(..., description="커서 위치 (클라이언트 정의)")


class SendNotificationPayload(RealtimePayload):
    """notification:send"""
    user_id: EntityId = Field(..., alias="userId", description="수신자 ID")
    notification: Dict[str, Any] = Field(default_factory=dict, description="알림 내용")


class EmptyPayload(RealtimePayload):
    """payload가 필요 없는 이벤트 (ping 등)"""

    @model_validator(mode="before")
    @classmethod
    def _ignore_non_dict(cls, data: Any) -> Any:
        return data if isinstance(data, dict) else {}


# =============================================================================
# HTTP (CRUD 레이어 → 실시간 레이어)
# =============================================================================

class NotifyRequest(BaseModel):
    """커밋된 변경을 방에 전파하는 요청"""
    event: str = Field(..., min_length=1, max_length=64, description="이벤트 이름 (예: task:moved)")
    payload: Any = Field(None, description="커밋된 엔티티 또는 ID (불투명)")


class NotifyResponse(BaseModel):
    room: str
    event: str
    delivered: int = Field(..., description="이 프로세스에서 전송 큐에 들어간 세션 수")


class OnlineUser(BaseModel):
    id: str
    name: str
    avatar: str = ""


class RoomPresenceResponse(BaseModel):
    project_id: str = Field(..., serialization_alias="projectId")
    room: str
    online_users: list[OnlineUser] = Field(default_factory=list, serialization_alias="onlineUsers")
    online_count: int = Field(0, serialization_alias="onlineCount")
    user_id: Optional[str] = Field(None, serialization_alias="userId")
