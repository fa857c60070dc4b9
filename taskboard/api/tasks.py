from typing import List

from fastapi import APIRouter, Depends, HTTPException, Request, Response

from ..models.task import Task, TaskPayload
from ..services.task_service import TaskService
from .deps import get_task_service, run_with_deadline

router = APIRouter(prefix="/tasks", tags=["任务管理"])


@router.get(
    "",
    response_model=List[Task],
    summary="列出所有任务",
    description="返回当前全部任务"
)
async def list_tasks(request: Request, service: TaskService = Depends(get_task_service)):
    return await run_with_deadline(request, service.list_tasks())


@router.post(
    "",
    response_model=Task,
    summary="创建任务",
    description="创建任务并推送给所有订阅了 /events 的连接"
)
async def create_task(
    payload: TaskPayload,
    request: Request,
    service: TaskService = Depends(get_task_service)
):
    """
    创建任务

    - **title**: 任务标题
    - **description**: 任务描述
    - **is_complete**: 是否已完成
    - 请求体中的 id 会被忽略，ID 由服务端分配
    """
    return await run_with_deadline(request, service.create_task(payload))


@router.get(
    "/{task_id}",
    response_model=Task,
    summary="查询任务"
)
async def get_task(
    task_id: int,
    request: Request,
    service: TaskService = Depends(get_task_service)
):
    task = await run_with_deadline(request, service.get_task(task_id))
    if task is None:
        raise HTTPException(status_code=404, detail="任务不存在")
    return task


@router.put(
    "/{task_id}",
    response_model=Task,
    summary="更新任务",
    description="整体替换任务内容，任务不存在时返回 404（不会新建）"
)
async def update_task(
    task_id: int,
    payload: TaskPayload,
    request: Request,
    service: TaskService = Depends(get_task_service)
):
    """
    更新任务

    - **task_id**: 任务ID，以路径中的为准
    """
    task = await run_with_deadline(request, service.update_task(task_id, payload))
    if task is None:
        raise HTTPException(status_code=404, detail="任务不存在")
    return task


@router.delete(
    "/{task_id}",
    status_code=204,
    summary="删除任务",
    description="删除后该 ID 不会再被分配"
)
async def delete_task(
    task_id: int,
    request: Request,
    service: TaskService = Depends(get_task_service)
):
    deleted = await run_with_deadline(request, service.delete_task(task_id))
    if not deleted:
        raise HTTPException(status_code=404, detail="任务不存在")
    return Response(status_code=204)
