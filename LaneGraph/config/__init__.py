"""配置模块

提供 LaneGraph 的配置类。
"""

from .evaluation_config import EvaluationConfig

__all__ = ["EvaluationConfig"]
