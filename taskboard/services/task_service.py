import asyncio
import logging
from typing import List, Optional

from ..models.task import Task, TaskPayload
from ..storage.task_store import TaskStore
from .broadcaster import EventBroadcaster

logger = logging.getLogger(__name__)


class TaskService:
    """任务服务：在线程中调用存储，创建成功后广播"""

    def __init__(self, store: TaskStore, broadcaster: EventBroadcaster):
        self.store = store
        self.broadcaster = broadcaster

    def start(self) -> None:
        self.store.start()

    def stop(self) -> None:
        """关闭所有推送连接并停止存储"""
        self.broadcaster.close()
        self.store.stop()

    async def create_task(self, payload: TaskPayload) -> Task:
        """创建任务并推送给订阅者"""
        task = await asyncio.to_thread(self.store.create, payload)
        self.broadcaster.publish(task)
        return task

    async def get_task(self, task_id: int) -> Optional[Task]:
        return await asyncio.to_thread(self.store.get, task_id)

    async def update_task(self, task_id: int, payload: TaskPayload) -> Optional[Task]:
        return await asyncio.to_thread(self.store.update, task_id, payload)

    async def delete_task(self, task_id: int) -> bool:
        return await asyncio.to_thread(self.store.delete, task_id)

    async def list_tasks(self) -> List[Task]:
        return await asyncio.to_thread(self.store.list_all)
