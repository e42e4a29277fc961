"""数据类别与参数类型。

每个套接字的数据类别 (Single/Vector) 由所属节点声明的参数类型决定：

- SINGLE: 每个通道 (lane) 一个值
- VECTOR: 每个通道一个变长列表

参数类型在数据类别之上再区分输入/输出/可变三种接口。
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any

import numpy as np


class DataCategory(Enum):
    """数据类别枚举。"""

    SINGLE = "single"
    VECTOR = "vector"


class ParamCategory(Enum):
    """函数参数类别枚举。

    Attributes:
        READONLY_SINGLE_INPUT: 只读单值输入
        READONLY_VECTOR_INPUT: 只读列表输入
        SINGLE_OUTPUT: 单值输出
        VECTOR_OUTPUT: 列表输出
        MUTABLE_VECTOR: 同一参数位既是输入也是输出的可变列表
    """

    READONLY_SINGLE_INPUT = "readonly_single_input"
    READONLY_VECTOR_INPUT = "readonly_vector_input"
    SINGLE_OUTPUT = "single_output"
    VECTOR_OUTPUT = "vector_output"
    MUTABLE_VECTOR = "mutable_vector"


_CATEGORY_BY_PARAM = {
    ParamCategory.READONLY_SINGLE_INPUT: DataCategory.SINGLE,
    ParamCategory.SINGLE_OUTPUT: DataCategory.SINGLE,
    ParamCategory.READONLY_VECTOR_INPUT: DataCategory.VECTOR,
    ParamCategory.VECTOR_OUTPUT: DataCategory.VECTOR,
    ParamCategory.MUTABLE_VECTOR: DataCategory.VECTOR,
}


@dataclass(frozen=True)
class DataType:
    """套接字数据类型：类别 + 元素 dtype。

    Attributes:
        category: 数据类别
        base_type: 元素类型 (numpy dtype)
    """

    category: DataCategory
    base_type: np.dtype

    def __post_init__(self) -> None:
        object.__setattr__(self, "base_type", np.dtype(self.base_type))

    @classmethod
    def single(cls, dtype: Any) -> "DataType":
        return cls(DataCategory.SINGLE, dtype)

    @classmethod
    def vector(cls, dtype: Any) -> "DataType":
        return cls(DataCategory.VECTOR, dtype)

    @property
    def is_single(self) -> bool:
        return self.category is DataCategory.SINGLE

    @property
    def is_vector(self) -> bool:
        return self.category is DataCategory.VECTOR

    def __str__(self) -> str:
        if self.is_single:
            return str(self.base_type)
        return f"list[{self.base_type}]"


@dataclass(frozen=True)
class ParamType:
    """函数参数类型。

    Attributes:
        category: 参数类别
        base_type: 元素类型 (numpy dtype)
    """

    category: ParamCategory
    base_type: np.dtype

    def __post_init__(self) -> None:
        object.__setattr__(self, "base_type", np.dtype(self.base_type))

    @classmethod
    def readonly_single_input(cls, dtype: Any) -> "ParamType":
        return cls(ParamCategory.READONLY_SINGLE_INPUT, dtype)

    @classmethod
    def readonly_vector_input(cls, dtype: Any) -> "ParamType":
        return cls(ParamCategory.READONLY_VECTOR_INPUT, dtype)

    @classmethod
    def single_output(cls, dtype: Any) -> "ParamType":
        return cls(ParamCategory.SINGLE_OUTPUT, dtype)

    @classmethod
    def vector_output(cls, dtype: Any) -> "ParamType":
        return cls(ParamCategory.VECTOR_OUTPUT, dtype)

    @classmethod
    def mutable_vector(cls, dtype: Any) -> "ParamType":
        return cls(ParamCategory.MUTABLE_VECTOR, dtype)

    @property
    def data_type(self) -> DataType:
        """参数对应的套接字数据类型。"""
        return DataType(_CATEGORY_BY_PARAM[self.category], self.base_type)

    @property
    def is_input_or_mutable(self) -> bool:
        return self.category in (
            ParamCategory.READONLY_SINGLE_INPUT,
            ParamCategory.READONLY_VECTOR_INPUT,
            ParamCategory.MUTABLE_VECTOR,
        )

    @property
    def is_output_or_mutable(self) -> bool:
        return self.category in (
            ParamCategory.SINGLE_OUTPUT,
            ParamCategory.VECTOR_OUTPUT,
            ParamCategory.MUTABLE_VECTOR,
        )

    @property
    def is_readonly_vector_input(self) -> bool:
        return self.category is ParamCategory.READONLY_VECTOR_INPUT

    @property
    def is_mutable_vector(self) -> bool:
        return self.category is ParamCategory.MUTABLE_VECTOR

    def __str__(self) -> str:
        return f"{self.category.value}<{self.base_type}>"
