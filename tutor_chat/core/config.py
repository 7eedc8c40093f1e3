"""
Tutor Chat 설정

환경 변수(.env 포함)를 통한 설정 관리
"""

from typing import List, Optional

from dotenv import load_dotenv
from pydantic_settings import BaseSettings

load_dotenv()  # .env 파일 로드


class Settings(BaseSettings):
    """Tutor Chat 설정"""

    # Application
    app_name: str = "Tutor Chat"
    version: str = "1.0.0"
    debug: bool = False

    # Server
    host: str = "0.0.0.0"
    port: int = 3002

    # Database - MongoDB
    mongo_url: str = "mongodb://localhost:27017"
    mongodb_db_name: str = "tutor_chat"

    # CORS
    cors_origins: List[str] = ["http://localhost:5173"]

    # Realtime
    # open: 모든 join 허용, participant: room key 참여자만 허용
    room_access_policy: str = "open"

    # Logging
    log_level: str = "INFO"
    log_dir: Optional[str] = None

    class Config:
        env_file = ".env"
        case_sensitive = False
        extra = "ignore"  # 추가 환경변수 무시


settings = Settings()
