import logging
import traceback
from typing import Callable
from fastapi import Request, Response, status
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from app.core.errors import BaseCustomException, RoomTargetInvalid, create_error_response
from app.core.config import settings

logger = logging.getLogger(__name__)


class ErrorHandlerMiddleware(BaseHTTPMiddleware):
    """
    HTTP 경로의 예외를 표준 에러 본문으로 바꾸는 미들웨어

    - RoomTargetInvalid: 규칙에 맞지 않는 방 이름 (400)
    - 그 밖의 예외: 500, debug 모드에서만 상세 정보 포함

    HTTPException 계열은 FastAPI 예외 핸들러가 먼저 처리한다.
    WebSocket 연결은 이 미들웨어를 거치지 않는다.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        try:
            return await call_next(request)

        except RoomTargetInvalid as e:
            error_response = create_error_response(
                RoomTargetInvalid.code,
                e.message,
                status.HTTP_400_BAD_REQUEST,
                {"room": e.room}
            )
            logger.warning(f"Rejected request to {request.url.path}: {e.message}")

        except Exception as e:
            details = None
            if settings.debug:
                details = {
                    "exception": str(e),
                    "type": type(e).__name__,
                    "traceback": traceback.format_exc()
                }

            error_response = create_error_response(
                "internal_server_error",
                "An unexpected error occurred",
                status.HTTP_500_INTERNAL_SERVER_ERROR,
                details
            )
            logger.error(f"Unhandled exception on {request.url.path}: {type(e).__name__}: {e}", exc_info=True)

        return JSONResponse(
            status_code=error_response.status_code,
            content=error_response.model_dump()
        )


def create_http_exception_handler():
    """HTTPException을 표준 에러 본문으로 바꾸는 핸들러"""
    async def http_exception_handler(request: Request, exc):
        # 인증/권한 예외는 자체 본문을 가진다
        if isinstance(exc, BaseCustomException):
            return JSONResponse(
                status_code=exc.status_code,
                content=exc.to_dict(),
                headers=getattr(exc, "headers", None)
            )

        if isinstance(exc.detail, str):
            error_response = create_error_response("http_error", exc.detail, exc.status_code)
        else:
            error_response = create_error_response(
                "http_error", "HTTP error occurred", exc.status_code, {"detail": exc.detail}
            )

        return JSONResponse(
            status_code=exc.status_code,
            content=error_response.model_dump()
        )

    return http_exception_handler
