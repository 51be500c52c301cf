"""
Database models package - SQLAlchemy ORM models
"""

from .member import ProjectMember
from .project import Project
from .slide import Slide
from .user import User

__all__ = [
    "Project",
    "ProjectMember",
    "Slide",
    "User",
]
