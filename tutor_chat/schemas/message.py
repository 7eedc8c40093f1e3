from datetime import datetime
from typing import Any, List, Optional
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from tutor_chat.utils.time_utils import utc_now


class CamelModel(BaseModel):
    """JSON 와이어 포맷은 camelCase (senderId, roomId ...)"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ChatMessage(CamelModel):
    """채팅 메시지 (생성 후 read 플래그 외에는 변경되지 않음)"""
    id: str = Field(default_factory=lambda: str(uuid4()), description="메시지 ID")
    sender_id: str = Field(..., description="발송자 ID")
    receiver_id: str = Field(..., description="수신자 ID")
    content: str = Field(..., description="메시지 내용")
    timestamp: datetime = Field(default_factory=utc_now, description="생성일시 (UTC)")
    read: bool = Field(default=False, description="읽음 여부")

    def to_wire(self) -> dict:
        """WebSocket/REST 전송용 dict"""
        return self.model_dump(mode="json", by_alias=True)


# =============================================================================
# 클라이언트 → 서버 이벤트 페이로드
# =============================================================================

class ClientEvent(BaseModel):
    """WebSocket 프레임: {"event": ..., "data": ...}"""
    event: str = Field(..., min_length=1)
    data: Any = None


class SendMessagePayload(CamelModel):
    """send_message 페이로드"""
    room_id: str = Field(..., min_length=1)
    sender_id: str = Field(..., min_length=1)
    receiver_id: str = Field(..., min_length=1)
    content: str


class TypingPayload(CamelModel):
    """typing / stop_typing 페이로드"""
    room_id: str = Field(..., min_length=1)
    user_id: str = Field(..., min_length=1)


# =============================================================================
# REST 스키마
# =============================================================================

class MarkReadRequest(CamelModel):
    """읽음 처리 요청"""
    user_id: str = Field(..., description="읽음 처리할 수신자 ID")


class MarkReadResponse(BaseModel):
    success: bool = True
    updated: int = Field(..., description="읽음 처리된 메시지 수")


class MessageHistory(CamelModel):
    """채팅방 메시지 히스토리"""
    room_id: str
    messages: List[ChatMessage]
    total: int


class RoomKeyResponse(CamelModel):
    room_id: str
    participants: List[str]


class ChatRoomPreview(CamelModel):
    """대화 목록용 채팅방 요약 (last_message는 비정규화된 캐시)"""
    room_id: str
    participants: List[str] = Field(default_factory=list)
    last_message: Optional[ChatMessage] = None
    updated_at: datetime


class RoomStatus(CamelModel):
    """채팅방 실시간 상태"""
    room_id: str
    connection_count: int
    online_users: List[str]
    is_active: bool
