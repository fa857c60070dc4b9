"""任务快照文件

整个任务映射以 JSON 形式写入固定路径，写入时先写临时文件再原子替换，
避免进程中途退出留下半截文件。
"""

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Dict

from pydantic import ValidationError

from ..exceptions import SnapshotError
from ..models.task import Task

logger = logging.getLogger(__name__)


class TaskSnapshot:
    """任务快照的读写"""

    def __init__(self, path: Path, encoding: str = "utf-8"):
        """
        初始化快照

        Args:
            path: 快照文件路径
            encoding: 文件编码
        """
        self.path = Path(path)
        self.encoding = encoding

    def load(self) -> Dict[int, Task]:
        """
        读取快照

        Returns:
            Dict[int, Task]: 任务ID到任务的映射，文件不存在时返回空映射

        Raises:
            SnapshotError: 文件无法读取、不是合法 JSON 或结构不正确
        """
        if not self.path.exists():
            return {}

        try:
            with open(self.path, "r", encoding=self.encoding) as f:
                raw = json.load(f)
        except (OSError, ValueError) as e:
            # ValueError 包括 JSONDecodeError 和 UnicodeDecodeError
            raise SnapshotError(f"读取快照失败: {self.path}, 错误: {e}") from e

        if not isinstance(raw, dict):
            raise SnapshotError(f"快照格式错误: {self.path}, 顶层应为对象")

        tasks: Dict[int, Task] = {}
        for key, value in raw.items():
            try:
                task_id = int(key)
            except ValueError as e:
                raise SnapshotError(f"快照中的任务ID无效: {key!r}") from e
            if not isinstance(value, dict):
                raise SnapshotError(f"快照中的任务格式错误: {key!r}")

            # 以映射的键为准
            try:
                tasks[task_id] = Task.model_validate({**value, "id": task_id})
            except ValidationError as e:
                raise SnapshotError(f"快照中的任务无效: {key!r}, 错误: {e}") from e

        return tasks

    def save(self, tasks: Dict[int, Task]) -> None:
        """
        原子写入快照（临时文件 + os.replace）

        Args:
            tasks: 任务ID到任务的映射

        Raises:
            SnapshotError: 写入失败
        """
        data = {
            str(task_id): tasks[task_id].model_dump()
            for task_id in sorted(tasks)
        }
        try:
            content = self._serialize(data)
        except (TypeError, ValueError) as e:
            raise SnapshotError(f"序列化快照失败: {self.path}, 错误: {e}") from e

        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            temp_fd, temp_path = tempfile.mkstemp(
                dir=self.path.parent, prefix=f".{self.path.name}.", suffix=".tmp"
            )
        except OSError as e:
            raise SnapshotError(f"创建临时文件失败: {self.path}, 错误: {e}") from e

        try:
            with os.fdopen(temp_fd, "wb") as f:
                f.write(content)
            os.replace(temp_path, self.path)
        except (OSError, ValueError) as e:
            try:
                os.unlink(temp_path)
            except OSError:
                pass
            raise SnapshotError(f"写入快照失败: {self.path}, 错误: {e}") from e

        logger.debug(f"快照已写入: {self.path}, 任务数: {len(data)}")

    def _serialize(self, data: Dict[str, dict]) -> bytes:
        """序列化为字节，含无法编码的字符（如孤立代理项）时改用 \\u 转义"""
        text = json.dumps(data, indent=2, ensure_ascii=False)
        try:
            return text.encode(self.encoding)
        except UnicodeEncodeError:
            logger.warning(f"快照含无法以 {self.encoding} 编码的字符，改用 ASCII 转义写入")
            return json.dumps(data, indent=2, ensure_ascii=True).encode(self.encoding)
