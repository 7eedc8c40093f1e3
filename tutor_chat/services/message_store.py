"""
Message store (persistence adapter) for MongoDB operations.

Stores and retrieves chat messages and chat room preview records.
No business logic lives here: ordering, broadcast and failure policy belong to the realtime layer.
"""

import time
from typing import List, Optional, Protocol

from pymongo import DESCENDING

from tutor_chat.core.logging import get_logger, log_database_operation
from tutor_chat.models.chat_rooms import ChatRoomDocument
from tutor_chat.models.messages import ChatMessageDocument
from tutor_chat.schemas.message import ChatMessage, ChatRoomPreview
from tutor_chat.utils.time_utils import normalize_timestamp, utc_now

logger = get_logger(__name__)


class MessageStore(Protocol):
    """실시간 코어가 사용하는 저장소 인터페이스"""

    async def persist_message(self, room_id: str, message: ChatMessage) -> None: ...

    async def fetch_messages(self, room_id: str) -> List[ChatMessage]: ...

    async def mark_read(self, room_id: str, user_id: str) -> int: ...

    async def get_room(self, room_id: str) -> Optional[ChatRoomPreview]: ...

    async def list_rooms(self, user_id: str) -> List[ChatRoomPreview]: ...


def document_to_message(doc) -> ChatMessage:
    """저장된 메시지 문서를 ChatMessage로 변환 (타임스탬프 정규화 포함)"""
    return ChatMessage(
        id=doc.message_id,
        sender_id=doc.sender_id,
        receiver_id=doc.receiver_id,
        content=doc.content,
        timestamp=normalize_timestamp(doc.timestamp),
        read=bool(doc.read),
    )


def document_to_preview(doc) -> ChatRoomPreview:
    """채팅방 문서를 미리보기 스키마로 변환"""
    last_message = None
    if doc.last_message:
        last_message = ChatMessage.model_validate(doc.last_message)
    return ChatRoomPreview(
        room_id=doc.room_id,
        participants=list(doc.participants or []),
        last_message=last_message,
        updated_at=normalize_timestamp(doc.updated_at),
    )


class MongoMessageStore:
    """Beanie 기반 MessageStore 구현"""

    async def persist_message(self, room_id: str, message: ChatMessage) -> None:
        """
        메시지를 저장하고 채팅방의 마지막 메시지를 merge-upsert 합니다.

        두 쓰기는 독립적이며 트랜잭션으로 묶이지 않습니다.
        중간에 실패하면 채팅방의 last_message가 실제 마지막 메시지보다 오래된 상태로 남을 수 있습니다.
        """
        start_time = time.time()

        await ChatMessageDocument.from_message(room_id, message).insert()

        last_message = message.model_dump(mode="json", by_alias=True)
        now = utc_now()
        # 서버 측 단일 upsert (동시에 저장된 첫 메시지들도 채팅방 문서는 하나)
        await ChatRoomDocument.find_one({"room_id": room_id}).update(
            {
                "$set": {"last_message": last_message, "updated_at": now},
                "$setOnInsert": {"participants": sorted({message.sender_id, message.receiver_id})},
            },
            upsert=True,
        )

        log_database_operation(
            logger,
            operation="insert",
            collection=ChatMessageDocument.Settings.name,
            duration_ms=(time.time() - start_time) * 1000,
            affected=1,
            room_id=room_id,
            message_id=message.id,
        )

    async def fetch_messages(self, room_id: str) -> List[ChatMessage]:
        """채팅방의 모든 메시지 조회 (정렬하지 않음)"""
        docs = await ChatMessageDocument.find({"room_id": room_id}).to_list()
        return [document_to_message(doc) for doc in docs]

    async def mark_read(self, room_id: str, user_id: str) -> int:
        """수신자의 안 읽은 메시지를 모두 읽음으로 표시"""
        result = await ChatMessageDocument.find(
            {"room_id": room_id, "receiver_id": user_id, "read": False}
        ).update({"$set": {"read": True}})

        updated = getattr(result, "modified_count", 0) or 0
        log_database_operation(
            logger,
            operation="update_many",
            collection=ChatMessageDocument.Settings.name,
            affected=updated,
            room_id=room_id,
            user_id=user_id,
        )
        return updated

    async def get_room(self, room_id: str) -> Optional[ChatRoomPreview]:
        doc = await ChatRoomDocument.find_one({"room_id": room_id})
        if doc is None:
            return None
        return document_to_preview(doc)

    async def list_rooms(self, user_id: str) -> List[ChatRoomPreview]:
        """참여 중인 채팅방 목록 (최근 업데이트 순)"""
        docs = await ChatRoomDocument.find(
            {"participants": user_id}
        ).sort([("updated_at", DESCENDING)]).to_list()
        return [document_to_preview(doc) for doc in docs]
