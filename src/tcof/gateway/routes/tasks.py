"""任务清单路由

GET    /api/projects/{project_id}/tasks             项目内任务列表，支持 stage 筛选
POST   /api/projects/{project_id}/tasks             显式创建任务（201）
GET    /api/projects/{project_id}/tasks/{ref}       按任意引用形式读取
PUT    /api/projects/{project_id}/tasks/{ref}       部分更新，未命中时按需克隆（创建时 201）
DELETE /api/projects/{project_id}/tasks/{ref}       删除并返回被删除的任务
POST   /api/projects/{project_id}/templates/clone   克隆模板目录
"""

from fastapi import APIRouter, Depends, Query
from starlette.responses import JSONResponse
from tcof.core.models import TaskCreate, TaskPatch, TaskStage

from ..deps import get_task_service
from ..services.task_service import TaskService

router = APIRouter(prefix="/api/projects/{project_id}")


@router.get("/tasks")
async def list_tasks(
    project_id: str,
    stage: TaskStage | None = Query(default=None, description="按阶段筛选"),
    service: TaskService = Depends(get_task_service),
):
    """查询项目任务列表，按阶段顺序与创建时间排序"""
    tasks = await service.list_tasks(project_id, stage)
    return {"tasks": [t.to_response() for t in tasks]}


@router.post("/tasks", status_code=201)
async def create_task(
    project_id: str,
    body: TaskCreate,
    service: TaskService = Depends(get_task_service),
):
    task = await service.create(project_id, body)
    return JSONResponse(status_code=201, content=task.to_response())


@router.get("/tasks/{ref}")
async def get_task(
    project_id: str,
    ref: str,
    service: TaskService = Depends(get_task_service),
):
    """ref 可以是任务 id、source_id 或带后缀的复合形式"""
    task = await service.get(project_id, ref)
    return task.to_response()


@router.put("/tasks/{ref}")
async def update_task(
    project_id: str,
    ref: str,
    body: TaskPatch,
    service: TaskService = Depends(get_task_service),
):
    result = await service.update(project_id, ref, body)
    return JSONResponse(
        status_code=201 if result.created else 200,
        content=result.task.to_response(),
    )


@router.delete("/tasks/{ref}")
async def delete_task(
    project_id: str,
    ref: str,
    service: TaskService = Depends(get_task_service),
):
    task = await service.delete(project_id, ref)
    return task.to_response()


@router.post("/templates/clone")
async def clone_templates(
    project_id: str,
    service: TaskService = Depends(get_task_service),
):
    """克隆模板目录中尚未出现在项目内的模板，重复调用幂等"""
    created = await service.clone_templates(project_id)
    return {
        "cloned": len(created),
        "tasks": [t.to_response() for t in created],
    }
