from datetime import datetime
from beanie import Document
from pydantic import Field

from tutor_chat.schemas.message import ChatMessage
from tutor_chat.utils.time_utils import utc_now


class ChatMessageDocument(Document):
    message_id: str = Field(..., description="Message UUID shared with live clients")
    room_id: str = Field(..., description="Room key the message was sent to")
    sender_id: str = Field(..., description="Sender identifier")
    receiver_id: str = Field(..., description="Receiver identifier")
    content: str = Field(..., description="Message content")
    timestamp: datetime = Field(default_factory=utc_now, description="Creation time assigned by the pipeline")
    read: bool = Field(default=False, description="Whether the receiver has read the message")

    class Settings:
        name = "messages"
        indexes = [
            [("room_id", 1), ("timestamp", 1)],  # For room history
            [("room_id", 1), ("receiver_id", 1), ("read", 1)],  # For bulk mark-as-read
        ]

    @classmethod
    def from_message(cls, room_id: str, message: ChatMessage) -> "ChatMessageDocument":
        return cls(
            message_id=message.id,
            room_id=room_id,
            sender_id=message.sender_id,
            receiver_id=message.receiver_id,
            content=message.content,
            timestamp=message.timestamp,
            read=message.read,
        )

    def __repr__(self):
        return f"<ChatMessageDocument(message_id={self.message_id}, room_id={self.room_id}, sender_id={self.sender_id})>"
