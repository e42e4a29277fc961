"""LaneGraph核心模块，提供数据类型、掩码、容器、多函数接口和网络图模型。"""

from .containers import VectorArray, VirtualListListRef, VirtualListRef
from .data_types import DataCategory, DataType, ParamCategory, ParamType
from .mask import Mask
from .multi_function import Context, MultiFunction, Params, ParamsBuilder, SignatureBuilder, evaluate
from .network import DummyNode, FunctionNode, Network, NetworkBuilder

__all__ = [
    "Context",
    "DataCategory",
    "DataType",
    "DummyNode",
    "FunctionNode",
    "Mask",
    "MultiFunction",
    "Network",
    "NetworkBuilder",
    "ParamCategory",
    "ParamType",
    "Params",
    "ParamsBuilder",
    "SignatureBuilder",
    "VectorArray",
    "VirtualListListRef",
    "VirtualListRef",
    "evaluate",
]
