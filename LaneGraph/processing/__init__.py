"""网络求值：存储、调度、节点调用与边界适配。"""

from .engine import NetworkEvaluator
from .storage import Storage, StorageStats
from .trace import EvaluationTrace, InvocationRecord

__all__ = [
    "EvaluationTrace",
    "InvocationRecord",
    "NetworkEvaluator",
    "Storage",
    "StorageStats",
]
