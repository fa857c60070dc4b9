import asyncio
import logging
from typing import Awaitable, TypeVar

from fastapi import HTTPException, Request

from ..services.task_service import TaskService

logger = logging.getLogger(__name__)

T = TypeVar("T")


def get_task_service(request: Request) -> TaskService:
    return request.app.state.task_service


async def run_with_deadline(request: Request, operation: Awaitable[T]) -> T:
    """
    按请求超时等待操作结果

    超时只表示不再等待，操作本身会继续执行并持久化。

    Raises:
        HTTPException: 超时返回 408
    """
    timeout = request.app.state.settings.request_timeout
    try:
        return await asyncio.wait_for(asyncio.shield(operation), timeout)
    except asyncio.TimeoutError:
        logger.warning(f"请求超时 ({timeout}s): {request.method} {request.url.path}")
        raise HTTPException(status_code=408, detail="请求超时，操作将在后台完成")
