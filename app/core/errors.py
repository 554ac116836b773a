from typing import Optional, Dict, Any
from fastapi import HTTPException, status
from pydantic import BaseModel


class ErrorResponse(BaseModel):
    """표준 에러 응답 모델"""
    error: str
    message: str
    details: Optional[Dict[str, Any]] = None
    status_code: int


# =============================================================================
# HTTP 커스텀 예외 클래스들
# =============================================================================

class BaseCustomException(HTTPException):
    """기본 커스텀 예외 클래스"""
    def __init__(
        self,
        status_code: int,
        error: str,
        message: str,
        details: Optional[Dict[str, Any]] = None
    ):
        self.error = error
        self.message = message
        self.details = details
        self.status_code = status_code  # status_code를 먼저 설정
        super().__init__(status_code=status_code, detail=self.to_dict())

    def to_dict(self) -> Dict[str, Any]:
        """예외를 딕셔너리로 변환"""
        return {
            "error": self.error,
            "message": self.message,
            "details": self.details,
            "status_code": self.status_code
        }


class AuthenticationException(BaseCustomException):
    """인증 실패 예외"""
    def __init__(
        self,
        message: str = "Authentication failed",
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            error="authentication_error",
            message=message,
            details=details
        )


class AuthorizationException(BaseCustomException):
    """권한 부족 예외"""
    def __init__(
        self,
        message: str = "Access denied",
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            status_code=status.HTTP_403_FORBIDDEN,
            error="authorization_error",
            message=message,
            details=details
        )


class BadRequestException(BaseCustomException):
    """잘못된 요청 예외"""
    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            error="bad_request",
            message=message,
            details=details
        )


# =============================================================================
# 실시간 레이어 예외
#
# HTTP 응답으로 변환되지 않는다. WebSocket 수신 루프 안에서 잡혀서
# 로그로만 남거나(Unauthenticated 제외) 연결 거부로 이어진다.
# =============================================================================

class RealtimeError(Exception):
    """실시간 레이어 기본 예외"""
    code = "realtime_error"

    def __init__(self, message: str = "", details: Optional[Dict[str, Any]] = None):
        self.message = message or self.code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error": self.code,
            "message": self.message,
            "details": self.details or None
        }


class Unauthenticated(RealtimeError):
    """연결 시점 인증 실패 (토큰 누락/위조/만료, 사용자 없음)"""
    code = "unauthenticated"

    def __init__(self, reason: str = "invalid_token", details: Optional[Dict[str, Any]] = None):
        self.reason = reason
        super().__init__(reason, details)


class RoomTargetInvalid(RealtimeError):
    """참가하지 않은 방, 또는 규칙에 맞지 않는 방 이름을 대상으로 한 이벤트"""
    code = "room_target_invalid"

    def __init__(self, room: str, message: Optional[str] = None):
        self.room = room
        super().__init__(message or f"Invalid room target: {room}", {"room": room})


class InvalidEventPayload(RealtimeError):
    """형식이 잘못된 인바운드 이벤트"""
    code = "invalid_event_payload"

    def __init__(self, event: str, message: str = "Malformed event payload",
                 details: Optional[Dict[str, Any]] = None):
        self.event = event
        super().__init__(message, {"event": event, **(details or {})})


class TransportFailure(RealtimeError):
    """하위 연결 끊김 (자발적 종료와 동일하게 처리된다)"""
    code = "transport_failure"


# =============================================================================
# 에러 헬퍼 함수들
# =============================================================================

def create_error_response(
    error: str,
    message: str,
    status_code: int,
    details: Optional[Dict[str, Any]] = None
) -> ErrorResponse:
    """표준 에러 응답 생성"""
    return ErrorResponse(
        error=error,
        message=message,
        status_code=status_code,
        details=details
    )


def invalid_token_error():
    """잘못된 토큰 에러"""
    return AuthenticationException("Invalid or expired token")


def invalid_internal_key_error():
    """내부 API 키 불일치 에러"""
    return AuthorizationException("Invalid internal API key")


def invalid_room_error(room: str):
    """방 이름 규칙 위반 에러"""
    return BadRequestException(f"Invalid room name: {room}", details={"room": room})
