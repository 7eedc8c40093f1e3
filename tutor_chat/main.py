"""
Tutor Chat - FastAPI Application

강사/학생 간 1:1 실시간 메시지 (온라인 상태, 채팅방 라우팅, 히스토리 저장)를 담당하는 서비스
"""

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from prometheus_fastapi_instrumentator import Instrumentator
from starlette.exceptions import HTTPException as StarletteHTTPException

from tutor_chat.api import chat_room, health, websocket
from tutor_chat.core.config import settings
from tutor_chat.core.logging import get_logger, setup_logging
from tutor_chat.database import close_databases, init_databases
from tutor_chat.middleware.error_handler import ErrorHandlerMiddleware, create_http_exception_handler
from tutor_chat.middleware.logging_middleware import LoggingMiddleware
from tutor_chat.realtime.access import RoomAccessPolicy, get_access_policy
from tutor_chat.realtime.server import ChatServer
from tutor_chat.services.message_store import MessageStore, MongoMessageStore

logger = get_logger(__name__)


def create_app(
    message_store: Optional[MessageStore] = None,
    access_policy: Optional[RoomAccessPolicy] = None,
) -> FastAPI:
    """
    애플리케이션 생성

    Args:
        message_store: 저장소 (None이면 MongoDB 연결 후 MongoMessageStore 사용)
        access_policy: 채팅방 접근 정책 (None이면 settings.room_access_policy)
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Startup
        owns_database = message_store is None
        if owns_database:
            setup_logging()
            await init_databases()
            store = MongoMessageStore()
        else:
            store = message_store

        policy = access_policy or get_access_policy(settings.room_access_policy)
        app.state.chat_server = ChatServer(store, policy)
        logger.info(f"{settings.app_name} starting up (room access policy: {type(policy).__name__})")

        yield

        # Shutdown
        logger.info(f"{settings.app_name} shutting down...")
        await app.state.chat_server.close()
        if owns_database:
            await close_databases()

    app = FastAPI(
        title=settings.app_name,
        version=settings.version,
        lifespan=lifespan
    )

    app.add_middleware(ErrorHandlerMiddleware)
    app.add_middleware(LoggingMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(StarletteHTTPException, create_http_exception_handler())

    # Include routers
    app.include_router(health.router)
    app.include_router(chat_room.router)
    app.include_router(websocket.router)

    @app.get("/")
    async def root():
        return {
            "service": settings.app_name,
            "version": settings.version,
            "status": "running"
        }

    return app


app = create_app()

# Prometheus metrics
Instrumentator().instrument(app).expose(app)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "tutor_chat.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug
    )
