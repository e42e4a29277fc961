"""常用 MultiFunction 实现。"""

from .custom import ConstantValue, CustomFunction
from .lists import AppendToList, CombineLists, GetListElement, ListLength, PackList, SumList

__all__ = [
    "AppendToList",
    "CombineLists",
    "ConstantValue",
    "CustomFunction",
    "GetListElement",
    "ListLength",
    "PackList",
    "SumList",
]
