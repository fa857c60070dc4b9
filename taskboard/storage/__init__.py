from .snapshot import TaskSnapshot
from .task_store import TaskStore

__all__ = ["TaskSnapshot", "TaskStore"]
