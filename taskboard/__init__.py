"""taskboard - 任务管理 HTTP 服务

提供任务的增删改查、JSON 快照持久化以及新任务的 SSE 推送。
"""

__version__ = "1.0.0"
