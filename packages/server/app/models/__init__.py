# SQLModel definitions, imported here to ensure metadata is populated for Alembic.
from .base import MONEY, TimestampMixin, UUIDMixin  # noqa: F401
from .user import User  # noqa: F401
from .project import Project  # noqa: F401
from .membership import ProjectMember  # noqa: F401
from .task import Task  # noqa: F401
from .dependency import TaskDependency  # noqa: F401
from .resource import Resource, ResourceAssignment, ResourceType  # noqa: F401
