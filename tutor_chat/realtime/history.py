from typing import List

from tutor_chat.schemas.message import ChatMessage
from tutor_chat.services.message_store import MessageStore
from tutor_chat.utils.time_utils import normalize_timestamp


async def get_history(store: MessageStore, room_id: str) -> List[ChatMessage]:
    """
    채팅방의 전체 메시지 히스토리를 타임스탬프 오름차순으로 반환합니다.

    저장 완료 순서가 아니라 생성 시각 기준으로 정렬합니다.
    페이지네이션 없이 전체를 반환합니다 (1:1 튜터링 채팅이라 방 크기가 작음).
    없는 채팅방은 빈 목록입니다.
    """
    messages = await store.fetch_messages(room_id)
    normalized = [
        message.model_copy(update={"timestamp": normalize_timestamp(message.timestamp)})
        for message in messages
    ]
    return sorted(normalized, key=lambda message: message.timestamp)
