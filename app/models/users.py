from datetime import datetime
from typing import Optional
from beanie import Document
from pydantic import ConfigDict, Field


class User(Document):
    """
    CRUD 레이어가 소유한 users 컬렉션의 읽기 전용 뷰.

    실시간 레이어는 연결 인증 시 사용자 존재/활성 여부와
    공개 프로필(name, avatar)만 조회한다.
    """
    model_config = ConfigDict(populate_by_name=True)

    name: str = Field(..., description="Display name")
    email: Optional[str] = Field(None, description="Email address")
    avatar: str = Field(default="", description="Avatar URL")
    is_active: bool = Field(default=True, alias="isActive", description="Whether the account is active")
    last_login: Optional[datetime] = Field(None, alias="lastLogin")

    class Settings:
        name = "users"

    def __repr__(self):
        return f"<User(id={self.id}, name={self.name})>"
