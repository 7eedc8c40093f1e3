from .messages import ChatMessageDocument
from .chat_rooms import ChatRoomDocument

__all__ = [
    "ChatMessageDocument",
    "ChatRoomDocument",
]
