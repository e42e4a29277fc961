from .config.evaluation_config import EvaluationConfig
from .core import (
    Context,
    DataType,
    Mask,
    MultiFunction,
    Network,
    NetworkBuilder,
    SignatureBuilder,
    VectorArray,
    evaluate,
)
from .processing import EvaluationTrace, NetworkEvaluator

__all__ = [
    "Context",
    "DataType",
    "EvaluationConfig",
    "EvaluationTrace",
    "Mask",
    "MultiFunction",
    "Network",
    "NetworkBuilder",
    "NetworkEvaluator",
    "SignatureBuilder",
    "VectorArray",
    "evaluate",
]
