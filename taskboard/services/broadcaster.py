"""事件广播器 - 把新建的任务推送给所有订阅的连接"""

import asyncio
import itertools
import logging
import threading
from typing import Dict, List, Optional

from ..models.task import Task

logger = logging.getLogger(__name__)


class Subscription:
    """
    单个推送连接的订阅

    缓冲区有上限，满了丢弃最旧的事件，发布方永远不会被慢连接阻塞。
    只能在创建它的事件循环中消费。
    """

    def __init__(self, subscription_id: int, buffer_size: int, loop: asyncio.AbstractEventLoop):
        self.id = subscription_id
        self.buffer_size = buffer_size
        self.dropped = 0
        self._loop = loop
        # 额外留一个位置给关闭标记
        self._queue: "asyncio.Queue[Optional[Task]]" = asyncio.Queue(maxsize=buffer_size + 1)
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def pending(self) -> int:
        """缓冲中待消费的事件数"""
        return self._queue.qsize()

    async def get(self) -> Optional[Task]:
        """等待下一个任务，订阅关闭后返回 None"""
        if self._closed and self._queue.empty():
            return None
        return await self._queue.get()

    def _deliver(self, task: Task) -> None:
        if self._closed:
            return
        if self._queue.qsize() >= self.buffer_size:
            self._queue.get_nowait()
            self.dropped += 1
            logger.warning(f"订阅 {self.id} 消费过慢，丢弃最旧事件（累计 {self.dropped}）")
        self._queue.put_nowait(task)

    def _close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._queue.put_nowait(None)

    def _schedule(self, callback, *args) -> None:
        """在订阅所属的事件循环中执行回调"""
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None

        if running is self._loop:
            callback(*args)
        elif not self._loop.is_closed():
            self._loop.call_soon_threadsafe(callback, *args)


class EventBroadcaster:
    """事件广播器（订阅表有独立的锁）"""

    def __init__(self, buffer_size: int = 16):
        if buffer_size < 1:
            raise ValueError("buffer_size 必须大于 0")
        self.buffer_size = buffer_size
        self._listeners: Dict[int, Subscription] = {}
        self._lock = threading.Lock()
        self._ids = itertools.count(1)

    @property
    def listener_count(self) -> int:
        with self._lock:
            return len(self._listeners)

    def pending_events(self) -> int:
        """所有订阅中尚未消费的事件总数"""
        with self._lock:
            listeners = list(self._listeners.values())
        return sum(subscription.pending() for subscription in listeners)

    def subscribe(self) -> Subscription:
        """注册新的订阅，需在事件循环中调用"""
        loop = asyncio.get_running_loop()
        with self._lock:
            subscription = Subscription(next(self._ids), self.buffer_size, loop)
            self._listeners[subscription.id] = subscription
            count = len(self._listeners)
        logger.info(f"新增订阅: {subscription.id}, 当前订阅数: {count}")
        return subscription

    def unsubscribe(self, subscription: Subscription) -> bool:
        """注销订阅，重复调用返回 False"""
        with self._lock:
            removed = self._listeners.pop(subscription.id, None)
            count = len(self._listeners)

        if removed is None:
            return False

        subscription._schedule(subscription._close)
        logger.info(f"注销订阅: {subscription.id}, 当前订阅数: {count}")
        return True

    def publish(self, task: Task) -> int:
        """
        推送任务给当前所有订阅

        Args:
            task: 新建的任务

        Returns:
            int: 推送到的订阅数
        """
        with self._lock:
            listeners: List[Subscription] = list(self._listeners.values())

        for subscription in listeners:
            subscription._schedule(subscription._deliver, task)

        logger.debug(f"任务 {task.id} 已推送给 {len(listeners)} 个订阅")
        return len(listeners)

    def close(self) -> None:
        """关闭所有订阅（服务停止时调用）"""
        with self._lock:
            listeners = list(self._listeners.values())
            self._listeners.clear()

        for subscription in listeners:
            subscription._schedule(subscription._close)

        if listeners:
            logger.info(f"已关闭 {len(listeners)} 个订阅")
