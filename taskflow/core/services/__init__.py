"""Core service layer modules."""

from .projects import ProjectService
from .tags import TagService
from .tasks import TaskService, promote_from_inbox

__all__ = ["ProjectService", "TagService", "TaskService", "promote_from_inbox"]
