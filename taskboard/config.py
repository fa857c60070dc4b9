from pathlib import Path
from typing import List

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """服务配置（环境变量前缀 TASKBOARD_，支持 .env）"""

    model_config = SettingsConfigDict(
        env_prefix="TASKBOARD_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    app_name: str = "Taskboard API"
    host: str = "0.0.0.0"
    port: int = 8080
    log_level: str = "INFO"
    cors_origins: List[str] = ["*"]

    # 快照文件路径，每次变更后整体重写
    data_file: Path = Path("tasks.json")

    # 单个请求等待存储结果的最长时间（秒）
    request_timeout: float = Field(default=5.0, gt=0)

    # 每个推送连接的缓冲事件数，满了丢弃最旧的
    listener_buffer_size: int = Field(default=16, ge=1)
    event_keepalive_seconds: float = Field(default=15.0, gt=0)


settings = Settings()
