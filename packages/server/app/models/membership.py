"""Project membership (join table carrying the member's project role)."""

from datetime import datetime
import uuid

from sqlmodel import Field, SQLModel

from .base import created_at_field


class ProjectMember(SQLModel, table=True):
    __tablename__ = "project_members"

    project_id: uuid.UUID = Field(foreign_key="projects.id", primary_key=True, ondelete="CASCADE")
    user_id: uuid.UUID = Field(foreign_key="users.id", primary_key=True, ondelete="CASCADE")
    role: str = Field(nullable=False, default="VIEWER")  # ADMIN | PM | VIEWER
    added_at: datetime = created_at_field()
