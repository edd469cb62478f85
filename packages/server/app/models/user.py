"""User model."""

from datetime import datetime
from typing import Optional

from sqlmodel import Field, SQLModel

from .base import UUIDMixin, created_at_field


class User(UUIDMixin, SQLModel, table=True):
    __tablename__ = "users"

    email: str = Field(nullable=False, unique=True, index=True)
    full_name: Optional[str] = None
    is_active: bool = Field(default=True, nullable=False)
    created_at: datetime = created_at_field()
