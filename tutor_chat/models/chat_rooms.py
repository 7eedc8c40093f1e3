from datetime import datetime
from typing import List, Optional
from beanie import Document
from pydantic import Field
from pymongo import ASCENDING, IndexModel

from tutor_chat.utils.time_utils import utc_now


class ChatRoomDocument(Document):
    room_id: str = Field(..., description="Deterministic room key of the two participants")
    participants: List[str] = Field(default_factory=list, description="Sorted participant identifiers")
    last_message: Optional[dict] = Field(None, description="Denormalized copy of the latest message (preview only)")
    updated_at: datetime = Field(default_factory=utc_now)

    class Settings:
        name = "chat_rooms"
        indexes = [
            IndexModel([("room_id", ASCENDING)], unique=True),
            [("participants", 1), ("updated_at", -1)],  # For conversation list
        ]

    def __repr__(self):
        return f"<ChatRoomDocument(room_id={self.room_id}, participants={self.participants})>"
