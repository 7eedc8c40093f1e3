"""
WebSocket 실시간 채팅 모듈

주요 구성 요소:
- connection: 연결 객체와 연결 테이블
- presence: 온라인 상태 추적
- rooms: 채팅방 라우팅 (room key 생성 포함)
- pipeline: 메시지 브로드캐스트 + 비동기 저장
- history: 히스토리 조회
- typing_relay: 타이핑 상태 중계
- access: 채팅방 접근 정책
- server: 이벤트 라우팅
"""

from .access import OpenRoomAccess, ParticipantRoomAccess, RoomAccessPolicy, get_access_policy
from .connection import Connection, ConnectionRegistry
from .pipeline import MessagePipeline, SendOutcome
from .presence import PresenceTracker
from .rooms import RoomRouter, room_key
from .server import ChatServer
from .typing_relay import TypingRelay

__all__ = [
    "ChatServer",
    "Connection",
    "ConnectionRegistry",
    "MessagePipeline",
    "OpenRoomAccess",
    "ParticipantRoomAccess",
    "PresenceTracker",
    "RoomAccessPolicy",
    "RoomRouter",
    "SendOutcome",
    "TypingRelay",
    "get_access_policy",
    "room_key",
]
