"""
Collab Hub Realtime 설정

환경 변수(.env 포함)를 통한 설정 관리
"""

from typing import List

from dotenv import load_dotenv
from pydantic_settings import BaseSettings

load_dotenv()  # .env 파일 로드


class Settings(BaseSettings):
    """실시간 서비스 설정"""

    # Application
    app_name: str = "Collab Hub Realtime"
    version: str = "1.0.0"
    debug: bool = False

    # Server
    host: str = "0.0.0.0"
    port: int = 5000

    # Database - MongoDB (사용자 조회 전용)
    mongo_url: str = "mongodb://localhost:27017"
    mongodb_db_name: str = "intern-collab-hub"

    # Database - Redis (멀티 프로세스 팬아웃용)
    redis_url: str = "redis://localhost:6379"
    redis_max_connections: int = 20

    # JWT
    secret_key: str = "your-secret-key-change-in-production"
    algorithm: str = "HS256"
    access_token_expire_hours: int = 24 * 7

    # CORS
    cors_origins: List[str] = ["http://localhost:5173"]

    # WebSocket
    ws_outbound_queue_size: int = 256
    ws_auth_close_code: int = 4001
    enforce_project_membership: bool = True

    # 임시 신호(타이핑/편집/드래그) 만료 정책
    signal_idle_timeout_seconds: float = 30.0
    signal_sweep_interval_seconds: float = 5.0

    # Backplane (Redis Pub/Sub)
    backplane_enabled: bool = False
    backplane_channel_prefix: str = "collabhub"

    # CRUD 레이어가 호출하는 내부 API 키
    internal_api_key: str = "change-me-internal-key"

    class Config:
        env_file = ".env"
        case_sensitive = False
        extra = "ignore"  # 추가 환경변수 무시


settings = Settings()
