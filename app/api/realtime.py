"""
실시간 레이어 HTTP API

- CRUD 레이어(별도 프로세스)가 커밋 이후 변경을 방에 전파하는 내부 엔드포인트
- 프로젝트 방의 현재 접속자 조회
"""

import logging
from typing import Optional
from fastapi import APIRouter, Depends, Header, status

from app.core.config import settings
from app.core.errors import (
    AuthorizationException,
    RoomTargetInvalid,
    invalid_internal_key_error,
    invalid_room_error,
    invalid_token_error,
)
from app.schemas.realtime import NotifyRequest, NotifyResponse, RoomPresenceResponse
from app.utils.auth import decode_access_token, extract_bearer_token
from app.websockets import manager, notifier, verify_project_access
from app.websockets.rooms import project_room

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/realtime", tags=["Realtime"])


async def require_internal_key(x_internal_key: Optional[str] = Header(None)) -> None:
    """CRUD 레이어 전용 내부 API 키 확인"""
    if not x_internal_key or x_internal_key != settings.internal_api_key:
        raise invalid_internal_key_error()


async def get_current_user_id(authorization: Optional[str] = Header(None)) -> str:
    """Bearer 토큰에서 사용자 ID 추출"""
    payload = decode_access_token(extract_bearer_token(authorization) or "")
    if not payload:
        raise invalid_token_error()
    return payload["sub"]


@router.post(
    "/rooms/{room}/events",
    response_model=NotifyResponse,
    status_code=status.HTTP_202_ACCEPTED,
    dependencies=[Depends(require_internal_key)],
)
async def publish_durable_change(room: str, request: NotifyRequest):
    """
    커밋된 변경을 방에 한 번 브로드캐스트합니다.
    수신 확인을 기다리지 않고, 오프라인 클라이언트에 대한 재전송도 없습니다.
    """
    try:
        delivered = notifier.notify(room, request.event, request.payload)
    except RoomTargetInvalid:
        raise invalid_room_error(room)

    return NotifyResponse(room=room, event=request.event, delivered=delivered)


@router.get("/projects/{project_id}/online", response_model=RoomPresenceResponse)
async def get_project_online_users(
    project_id: str,
    user_id: str = Depends(get_current_user_id),
):
    """
    프로젝트 방의 현재 접속자 목록을 조회합니다.
    인증된 사용자이고 해당 프로젝트의 멤버여야 접근 가능합니다.
    """
    try:
        room = project_room(project_id)
    except RoomTargetInvalid:
        raise invalid_room_error(f"project-{project_id}")

    if settings.enforce_project_membership and not await verify_project_access(user_id, project_id):
        raise AuthorizationException("해당 프로젝트에 접근할 권한이 없습니다.")

    online_users = manager.get_room_identities(room)
    return RoomPresenceResponse(
        project_id=project_id,
        room=room,
        online_users=online_users,
        online_count=len(online_users),
        user_id=user_id,
    )
