"""
구조화된 로깅 시스템

JSON 형식의 구조화된 로그를 제공하여 로그 분석과 모니터링을 용이하게 합니다.
실시간 채널의 오류는 클라이언트에 노출되지 않으므로 서버 로그가 유일한 기록입니다.
"""

import json
import logging
import sys
from contextvars import ContextVar
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from tutor_chat.core.config import settings

# 컨텍스트 변수로 요청/연결별 추적 정보 저장
request_id_var: ContextVar[Optional[str]] = ContextVar('request_id', default=None)
connection_id_var: ContextVar[Optional[str]] = ContextVar('connection_id', default=None)

_RESERVED_ATTRS = frozenset([
    'name', 'msg', 'args', 'levelname', 'levelno', 'pathname',
    'filename', 'module', 'exc_info', 'exc_text', 'stack_info',
    'lineno', 'funcName', 'created', 'msecs', 'relativeCreated',
    'thread', 'threadName', 'processName', 'process', 'getMessage',
    'taskName', 'message', 'asctime',
])


class StructuredFormatter(logging.Formatter):
    """구조화된 JSON 로그 포매터"""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        request_id = request_id_var.get()
        if request_id:
            log_data["request_id"] = request_id

        connection_id = connection_id_var.get()
        if connection_id:
            log_data["connection_id"] = connection_id

        if record.exc_info and record.exc_info[0] is not None:
            log_data["exception"] = {
                "type": record.exc_info[0].__name__,
                "message": str(record.exc_info[1]),
                "traceback": self.formatException(record.exc_info)
            }

        # 추가 데이터 (extra 필드)
        extra_data = {
            key: value for key, value in record.__dict__.items()
            if key not in _RESERVED_ATTRS and not key.startswith('_')
        }
        if extra_data:
            log_data["extra"] = extra_data

        return json.dumps(log_data, ensure_ascii=False, default=str)


def setup_logging():
    """로깅 시스템 초기화"""

    level = getattr(logging, settings.log_level.upper(), logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    # 기존 핸들러 제거
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)

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

    if settings.log_dir:
        log_dir = Path(settings.log_dir)
        log_dir.mkdir(parents=True, exist_ok=True)

        # 파일 핸들러 (항상 구조화된 형식)
        file_handler = logging.FileHandler(log_dir / "app.log", encoding='utf-8')
        file_handler.setLevel(level)
        file_handler.setFormatter(StructuredFormatter())
        root_logger.addHandler(file_handler)

        # 에러 전용 파일 핸들러
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


def set_request_context(request_id: str):
    """요청 컨텍스트 설정"""
    request_id_var.set(request_id)


def clear_request_context():
    """요청 컨텍스트 초기화"""
    request_id_var.set(None)


def set_connection_context(connection_id: Optional[str]):
    """WebSocket 연결 컨텍스트 설정"""
    connection_id_var.set(connection_id)


def log_api_call(
    logger: logging.Logger,
    method: str,
    path: str,
    status_code: int,
    duration_ms: float,
    **extra
):
    """API 호출 로그"""
    logger.info(
        f"{method} {path} - {status_code}",
        extra={
            "event_type": "api_call",
            "method": method,
            "path": path,
            "status_code": status_code,
            "duration_ms": duration_ms,
            **extra
        }
    )


def log_database_operation(
    logger: logging.Logger,
    operation: str,
    collection: str,
    duration_ms: Optional[float] = None,
    affected: Optional[int] = None,
    **extra
):
    """데이터베이스 작업 로그"""
    logger.info(
        f"DB {operation} on {collection}",
        extra={
            "event_type": "database_operation",
            "operation": operation,
            "collection": collection,
            "duration_ms": duration_ms,
            "affected": affected,
            **extra
        }
    )


def log_websocket_event(
    logger: logging.Logger,
    event: str,
    connection_id: str,
    user_id: Optional[str] = None,
    room_id: Optional[str] = None,
    **extra
):
    """WebSocket 이벤트 로그"""
    logger.info(
        f"WebSocket {event} - Connection {connection_id}"
        + (f" (user {user_id})" if user_id else "")
        + (f" in Room {room_id}" if room_id else ""),
        extra={
            "event_type": "websocket",
            "event": event,
            "connection_id": connection_id,
            "user_id": user_id,
            "room_id": room_id,
            **extra
        }
    )
