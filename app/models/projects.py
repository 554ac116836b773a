from datetime import datetime
from typing import List, Optional
from beanie import Document, PydanticObjectId
from pydantic import BaseModel, ConfigDict, Field


class ProjectMember(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    user: PydanticObjectId = Field(..., description="Member user ID")
    role: str = Field(default="editor", description="admin, editor or viewer")
    joined_at: Optional[datetime] = Field(None, alias="joinedAt")


class Project(Document):
    """projects 컬렉션의 읽기 전용 뷰 (방 입장 권한 확인용)"""
    model_config = ConfigDict(populate_by_name=True)

    name: str = Field(..., description="Project name")
    owner: PydanticObjectId = Field(..., description="Owner user ID")
    members: List[ProjectMember] = Field(default_factory=list)

    class Settings:
        name = "projects"

    def is_member(self, user_id: str) -> bool:
        """소유자이거나 멤버 목록에 있으면 True"""
        if str(self.owner) == str(user_id):
            return True
        return any(str(member.user) == str(user_id) for member in self.members)

    def __repr__(self):
        return f"<Project(id={self.id}, name={self.name})>"
