"""
Services layer for data access.

This layer handles:
- MongoDB queries and operations
- Data transformations between documents and wire schemas
"""

from .message_store import MessageStore, MongoMessageStore

__all__ = [
    "MessageStore",
    "MongoMessageStore",
]
