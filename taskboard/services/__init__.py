from .broadcaster import EventBroadcaster, Subscription
from .task_service import TaskService

__all__ = ["EventBroadcaster", "Subscription", "TaskService"]
