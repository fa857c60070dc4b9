from pydantic import BaseModel, Field, field_validator


class TaskPayload(BaseModel):
    """创建/更新任务的请求体（客户端传入的 id 会被忽略）"""
    title: str = Field(default="", description="任务标题")
    description: str = Field(default="", description="任务描述")
    is_complete: bool = Field(default=False, description="是否已完成")

    @field_validator("title", "description")
    @classmethod
    def check_encodable(cls, value: str) -> str:
        # JSON 允许 "\ud800" 这类孤立代理项，但无法编码为 UTF-8 输出
        try:
            value.encode("utf-8")
        except UnicodeEncodeError:
            raise ValueError("文本包含无法编码为 UTF-8 的字符") from None
        return value


class Task(BaseModel):
    """任务模型"""
    id: int = Field(..., gt=0, description="任务ID（由存储分配，不可修改）")
    title: str = Field(default="", description="任务标题")
    description: str = Field(default="", description="任务描述")
    is_complete: bool = Field(default=False, description="是否已完成")

    @classmethod
    def from_payload(cls, task_id: int, payload: TaskPayload) -> "Task":
        return cls(id=task_id, **payload.model_dump())
