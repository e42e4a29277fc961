from dataclasses import dataclass


@dataclass
class EvaluationConfig:
    """网络求值配置"""

    backend: str = "numba"  # 边界复制内核后端 ('numba' 或 'numpy')
    log_invocations: bool = False  # 以 DEBUG 级别记录每次节点调用
