"""新任务推送 API（SSE）"""

import asyncio
import json
import logging
from typing import AsyncIterator, Awaitable, Callable

from fastapi import APIRouter, Depends, Request
from fastapi.responses import StreamingResponse

from ..services.broadcaster import EventBroadcaster
from ..services.task_service import TaskService
from .deps import get_task_service

logger = logging.getLogger(__name__)

router = APIRouter(tags=["任务推送"])


async def task_event_stream(
    broadcaster: EventBroadcaster,
    is_disconnected: Callable[[], Awaitable[bool]],
    keepalive: float
) -> AsyncIterator[str]:
    """
    SSE 事件生成器

    每个新任务一条 data 事件；空闲时发送注释行保活。
    订阅在生成器开始迭代时注册，客户端断开或服务停止时结束并注销。
    """
    subscription = broadcaster.subscribe()
    try:
        while True:
            if await is_disconnected():
                logger.info(f"客户端断开连接，结束订阅 {subscription.id}")
                break

            try:
                task = await asyncio.wait_for(subscription.get(), timeout=keepalive)
            except asyncio.TimeoutError:
                yield ": keep-alive\n\n"
                continue

            if task is None:
                # 服务停止
                break

            yield f"data: {json.dumps(task.model_dump(), ensure_ascii=False)}\n\n"
    finally:
        broadcaster.unsubscribe(subscription)


@router.get(
    "/events",
    summary="订阅新任务",
    description="通过 Server-Sent Events 实时推送新创建的任务"
)
async def stream_events(request: Request, service: TaskService = Depends(get_task_service)):
    """
    订阅新任务（SSE）

    返回 Server-Sent Events 格式的流式数据：
    - data: {"id": 1, "title": "...", "description": "...", "is_complete": false}
    """
    keepalive = request.app.state.settings.event_keepalive_seconds

    return StreamingResponse(
        task_event_stream(service.broadcaster, request.is_disconnected, keepalive),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no"
        }
    )
