"""任务存储 - 单工作线程串行处理所有读写"""

import logging
import queue
import threading
from concurrent.futures import Future
from typing import Callable, Dict, List, Optional, Tuple, TypeVar

from ..exceptions import SnapshotError, StoreClosedError
from ..models.task import Task, TaskPayload
from .snapshot import TaskSnapshot

logger = logging.getLogger(__name__)

T = TypeVar("T")

# 队列中的停止标记
_STOP = None


class TaskStore:
    """
    任务存储

    所有操作都以闭包形式投递到队列，由唯一的工作线程按提交顺序执行，
    任务映射和 ID 计数器只在工作线程中读写。调用方阻塞等待结果；
    调用方放弃等待时，操作仍会执行完毕并持久化。

    示例用法:
        store = TaskStore(TaskSnapshot(Path("tasks.json")))
        store.start()
        task = store.create(TaskPayload(title="写周报"))
        store.stop()
    """

    def __init__(self, snapshot: TaskSnapshot):
        self.snapshot = snapshot
        self._tasks: Dict[int, Task] = {}
        self._next_id = 1
        self._ops: "queue.Queue[Optional[Tuple[Callable[[], object], Future]]]" = queue.Queue()
        self._worker: Optional[threading.Thread] = None
        self._lock = threading.Lock()  # 仅保护启动/停止和投递
        self._closed = False

    @property
    def is_running(self) -> bool:
        return self._worker is not None and self._worker.is_alive() and not self._closed

    def start(self) -> None:
        """加载快照并启动工作线程（重复调用无副作用）"""
        with self._lock:
            if self._closed:
                raise StoreClosedError("任务存储已关闭，不能重新启动")
            if self._worker is not None and self._worker.is_alive():
                return

            self._load()
            self._worker = threading.Thread(
                target=self._run,
                name="TaskStoreWorker",
                daemon=True
            )
            self._worker.start()
            logger.info(f"任务存储已启动: {self.snapshot.path}, 任务数: {len(self._tasks)}")

    def stop(self, timeout: Optional[float] = 5.0) -> None:
        """处理完已提交的操作后停止工作线程，停止后不可再用"""
        with self._lock:
            if self._closed:
                return
            self._closed = True
            worker = self._worker
            if worker is not None:
                self._ops.put(_STOP)

        if worker is not None:
            worker.join(timeout)
            if worker.is_alive():
                logger.warning("任务存储工作线程未在超时内退出")
        logger.info("任务存储已停止")

    # ---- 公共操作 ----

    def create(self, payload: TaskPayload) -> Task:
        """分配新 ID 并保存任务"""
        return self._call(lambda: self._create(payload))

    def get(self, task_id: int) -> Optional[Task]:
        """查询任务，不存在时返回 None"""
        return self._call(lambda: self._get(task_id))

    def update(self, task_id: int, payload: TaskPayload) -> Optional[Task]:
        """替换任务内容（保留原 ID），不存在时返回 None 且不会新建"""
        return self._call(lambda: self._update(task_id, payload))

    def delete(self, task_id: int) -> bool:
        """删除任务，返回是否存在"""
        return self._call(lambda: self._delete(task_id))

    def list_all(self) -> List[Task]:
        """返回调用时刻的全部任务（按 ID 升序）"""
        return self._call(self._list_all)

    # ---- 工作线程内执行 ----

    def _create(self, payload: TaskPayload) -> Task:
        task = Task.from_payload(self._next_id, payload)
        self._tasks[task.id] = task
        self._next_id += 1
        self._persist()
        logger.info(f"任务已创建: {task.id}")
        return task.model_copy()

    def _get(self, task_id: int) -> Optional[Task]:
        task = self._tasks.get(task_id)
        return task.model_copy() if task else None

    def _update(self, task_id: int, payload: TaskPayload) -> Optional[Task]:
        if task_id not in self._tasks:
            return None
        task = Task.from_payload(task_id, payload)
        self._tasks[task_id] = task
        self._persist()
        logger.info(f"任务已更新: {task_id}")
        return task.model_copy()

    def _delete(self, task_id: int) -> bool:
        if task_id not in self._tasks:
            return False
        del self._tasks[task_id]
        self._persist()
        logger.info(f"任务已删除: {task_id}")
        return True

    def _list_all(self) -> List[Task]:
        return [self._tasks[task_id].model_copy() for task_id in sorted(self._tasks)]

    def _persist(self) -> None:
        # 内存状态为准，写盘失败只记录日志
        try:
            self.snapshot.save(self._tasks)
        except SnapshotError as e:
            logger.error(f"持久化失败: {e}")

    def _load(self) -> None:
        try:
            tasks = self.snapshot.load()
        except SnapshotError as e:
            logger.error(f"加载快照失败，以空存储启动: {e}")
            tasks = {}

        self._tasks = tasks
        self._next_id = max(tasks) + 1 if tasks else 1

    # ---- 串行化 ----

    def _call(self, fn: Callable[[], T]) -> T:
        future: Future = Future()
        with self._lock:
            if not self.is_running:
                raise StoreClosedError("任务存储未运行")
            self._ops.put((fn, future))
        return future.result()

    def _run(self) -> None:
        while True:
            item = self._ops.get()
            if item is _STOP:
                break

            fn, future = item
            # 调用方已取消时仍然执行，只是不再回传结果
            waiting = future.set_running_or_notify_cancel()
            try:
                result = fn()
            except Exception as e:
                logger.error(f"任务存储操作失败: {e}", exc_info=True)
                if waiting:
                    future.set_exception(e)
                continue

            if waiting:
                future.set_result(result)
