"""taskboard 自定义异常"""


class TaskboardError(Exception):
    """taskboard 基础异常"""
    pass


class SnapshotError(TaskboardError):
    """快照文件读取或写入失败"""
    pass


class StoreClosedError(TaskboardError):
    """任务存储未启动或已关闭"""
    pass
