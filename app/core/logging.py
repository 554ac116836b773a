"""
구조화된 로깅 시스템

JSON 형식의 구조화된 로그를 제공하여 로그 분석과 모니터링을 용이하게 합니다.
WebSocket 세션 단위로 session_id / user_id 컨텍스트가 자동으로 붙습니다.
"""

import json
import logging
import sys
from datetime import datetime
from typing import Optional
from contextvars import ContextVar
from pathlib import Path

from app.core.config import settings

# 컨텍스트 변수로 연결별 추적 정보 저장
session_id_var: ContextVar[Optional[str]] = ContextVar('session_id', default=None)
user_id_var: ContextVar[Optional[str]] = ContextVar('user_id', default=None)

_RESERVED_RECORD_KEYS = {
    'name', 'msg', 'args', 'levelname', 'levelno', 'pathname',
    'filename', 'module', 'exc_info', 'exc_text', 'stack_info',
    'lineno', 'funcName', 'created', 'msecs', 'relativeCreated',
    'thread', 'threadName', 'processName', 'process', 'getMessage',
    'taskName', 'message', 'asctime'
}


class StructuredFormatter(logging.Formatter):
    """구조화된 JSON 로그 포매터"""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.utcnow().isoformat() + "Z",
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        session_id = session_id_var.get()
        if session_id:
            log_data["session_id"] = session_id

        user_id = user_id_var.get()
        if user_id:
            log_data["user_id"] = user_id

        if record.exc_info:
            log_data["exception"] = {
                "type": record.exc_info[0].__name__,
                "message": str(record.exc_info[1]),
                "traceback": self.formatException(record.exc_info)
            }

        # extra 필드
        extra_data = {
            key: value
            for key, value in record.__dict__.items()
            if key not in _RESERVED_RECORD_KEYS and not key.startswith('_')
        }
        if extra_data:
            log_data["extra"] = extra_data

        return json.dumps(log_data, ensure_ascii=False, default=str)


def setup_logging(log_dir: Optional[Path] = None):
    """로깅 시스템 초기화"""

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG if settings.debug else logging.INFO)

    # 기존 핸들러 제거
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler(sys.stdout)

    if settings.debug:
        # 개발 환경: 사람이 읽기 쉬운 형식
        console_formatter = logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
        )
    else:
        # 프로덕션 환경: 구조화된 JSON 형식
        console_formatter = StructuredFormatter()

    console_handler.setFormatter(console_formatter)
    root_logger.addHandler(console_handler)

    if log_dir is not None:
        log_dir.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(log_dir / "realtime.log", encoding='utf-8')
        file_handler.setLevel(logging.INFO)
        file_handler.setFormatter(StructuredFormatter())
        root_logger.addHandler(file_handler)

        error_handler = logging.FileHandler(log_dir / "error.log", encoding='utf-8')
        error_handler.setLevel(logging.ERROR)
        error_handler.setFormatter(StructuredFormatter())
        root_logger.addHandler(error_handler)

    # 외부 라이브러리 로그 레벨 조정
    logging.getLogger("uvicorn").setLevel(logging.WARNING)
    logging.getLogger("motor").setLevel(logging.WARNING)
    logging.getLogger("pymongo").setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """구조화된 로거 인스턴스 반환"""
    return logging.getLogger(name)


def set_connection_context(session_id: str, user_id: Optional[str] = None):
    """WebSocket 연결 컨텍스트 설정"""
    session_id_var.set(session_id)
    if user_id:
        user_id_var.set(user_id)


def clear_connection_context():
    """WebSocket 연결 컨텍스트 초기화"""
    session_id_var.set(None)
    user_id_var.set(None)


def log_authentication_event(
    logger: logging.Logger,
    event: str,
    user_id: Optional[str] = None,
    success: bool = True,
    **extra
):
    """인증 이벤트 로그"""
    level = logging.INFO if success else logging.WARNING
    logger.log(
        level,
        f"Auth {event} - {'Success' if success else 'Failed'}",
        extra={
            "event_type": "authentication",
            "event": event,
            "user_id": user_id,
            "success": success,
            **extra
        }
    )


def log_websocket_event(
    logger: logging.Logger,
    event: str,
    user_id: str,
    room: Optional[str] = None,
    **extra
):
    """WebSocket 이벤트 로그"""
    where = f" in Room {room}" if room else ""
    logger.info(
        f"WebSocket {event} - User {user_id}{where}",
        extra={
            "event_type": "websocket",
            "event": event,
            "user_id": user_id,
            "room": room,
            **extra
        }
    )
