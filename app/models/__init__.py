from .users import User
from .projects import Project, ProjectMember

__all__ = [
    "User",
    "Project",
    "ProjectMember",
]
