"""
시간 관련 유틸리티 함수
"""
from datetime import datetime, timezone
from typing import Any, Optional


def utc_now() -> datetime:
    """timezone-aware UTC 현재 시각"""
    return datetime.now(timezone.utc)


def normalize_timestamp(value: Any, default: Optional[datetime] = None) -> datetime:
    """
    저장소에서 읽어온 타임스탬프를 aware UTC datetime으로 정규화합니다.

    Args:
        value: datetime, ISO-8601 문자열, epoch 초(int/float),
            또는 {"_seconds": ..., "_nanoseconds": ...} 형태의 dict
        default: 값이 없거나 해석할 수 없을 때 사용할 시각 (기본: 현재 시각)

    Returns:
        datetime: tzinfo=UTC 인 datetime

    Examples:
        >>> normalize_timestamp("2024-01-01T00:00:00Z")
        datetime.datetime(2024, 1, 1, 0, 0, tzinfo=datetime.timezone.utc)
    """
    if value is None:
        return default or utc_now()

    if isinstance(value, datetime):
        # MongoDB는 tz 정보 없이 UTC로 돌려준다
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)

    if isinstance(value, bool):
        return default or utc_now()

    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(value, tz=timezone.utc)

    if isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            return normalize_timestamp(datetime.fromisoformat(text), default)
        except ValueError:
            return default or utc_now()

    if isinstance(value, dict) and "_seconds" in value:
        seconds = value["_seconds"] + value.get("_nanoseconds", 0) / 1_000_000_000
        return datetime.fromtimestamp(seconds, tz=timezone.utc)

    return default or utc_now()
