from typing import Any, Awaitable, Callable, Optional
from fastapi import WebSocket, status
from beanie import PydanticObjectId
from bson.errors import InvalidId
import logging

from app.core.config import settings
from app.core.errors import Unauthenticated
from app.core.logging import log_authentication_event
from app.models import Project, User
from app.utils.auth import extract_bearer_token, verify_access_token
from app.websockets.session import Identity

logger = logging.getLogger(__name__)

IdentityLoader = Callable[[str], Awaitable[Optional[Identity]]]


def _object_id(value: str) -> Optional[PydanticObjectId]:
    try:
        return PydanticObjectId(value)
    except (InvalidId, TypeError, ValueError):
        return None


async def load_identity(user_id: str) -> Optional[Identity]:
    """
    사용자 레코드를 조회해 Identity로 변환합니다.

    Returns:
        Identity: 존재하고 활성 상태인 사용자, 그 외에는 None
    """
    object_id = _object_id(user_id)
    if object_id is None:
        return None

    user = await User.get(object_id)
    if user is None or not user.is_active:
        return None

    return Identity(user_id=str(user.id), name=user.name, avatar=user.avatar or "")


class CredentialVerifier:
    """연결 시점의 Bearer 토큰을 검증하고 사용자 신원으로 변환"""

    def __init__(self, identity_loader: IdentityLoader = load_identity):
        self.identity_loader = identity_loader

    async def verify(self, token: Optional[str]) -> Identity:
        """
        Raises:
            Unauthenticated: 토큰 누락/위조/만료, 또는 사용자가 없거나 비활성인 경우
        """
        payload = verify_access_token(token)
        identity = await self.identity_loader(payload["sub"])
        if identity is None:
            raise Unauthenticated("user_not_found")
        return identity


def extract_websocket_token(websocket: Any) -> Optional[str]:
    """
    WebSocket 핸드셰이크에서 토큰을 추출합니다.

    우선순위: Authorization 헤더 → ?token= 쿼리 → access_token 쿠키
    (브라우저 WebSocket API는 헤더를 설정할 수 없어 쿼리를 함께 지원)
    """
    token = extract_bearer_token(websocket.headers.get("authorization"))
    if token:
        return token

    token = websocket.query_params.get("token")
    if token:
        return token

    return websocket.cookies.get("access_token") or None


async def authenticate_websocket(websocket: WebSocket, verifier: CredentialVerifier) -> Optional[Identity]:
    """
    WebSocket 연결을 수락하기 전에 인증합니다.
    실패하면 accept 없이 연결을 닫으므로 세션이 만들어지지 않습니다.

    Returns:
        Identity: 인증된 사용자, 실패 시 None
    """
    try:
        identity = await verifier.verify(extract_websocket_token(websocket))
    except Unauthenticated as e:
        log_authentication_event(logger, "websocket_connect", success=False, reason=e.reason)
        await websocket.close(code=settings.ws_auth_close_code, reason=e.reason)
        return None
    except Exception as e:
        logger.error(f"WebSocket authentication error: {e}")
        await websocket.close(code=status.WS_1011_INTERNAL_ERROR)
        return None

    log_authentication_event(logger, "websocket_connect", user_id=identity.user_id)
    return identity


async def verify_project_access(user_id: str, project_id: str) -> bool:
    """
    사용자가 프로젝트 방에 입장할 수 있는지 확인합니다 (소유자 또는 멤버).

    Returns:
        bool: 접근 권한이 있으면 True, 없거나 조회에 실패하면 False
    """
    object_id = _object_id(project_id)
    if object_id is None:
        return False

    try:
        project = await Project.get(object_id)
    except Exception as e:
        logger.error(f"Error verifying project access for user {user_id} in project {project_id}: {e}")
        return False

    return project is not None and project.is_member(user_id)
