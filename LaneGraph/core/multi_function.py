"""多函数 (MultiFunction) 接口模块。

函数节点包装的计算是不透明的批量调用：给定活动通道掩码、上下文和按参数顺序
组装好的参数列表，函数只为活动通道写入输出。本模块定义：

- Signature / SignatureBuilder: 参数名称与类型
- MultiFunction: 批量计算的抽象基类
- Params / ParamsBuilder: 按参数顺序组装的调用参数
- Context: 每次调用的上下文
- evaluate: 直接调用单个函数的便捷入口
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Tuple

import numpy as np

from .containers import (
    VectorArray,
    VirtualListListRef,
    VirtualListRef,
    as_virtual_list,
    as_virtual_list_list,
)
from .data_types import ParamCategory, ParamType
from .mask import Mask

if TYPE_CHECKING:
    from ..processing.trace import EvaluationTrace


@dataclass(frozen=True)
class Signature:
    """函数签名。

    Attributes:
        function_name: 函数名称，用于调试和日志
        param_names: 参数名称
        param_types: 参数类型，与 param_names 一一对应
    """

    function_name: str
    param_names: Tuple[str, ...]
    param_types: Tuple[ParamType, ...]


class SignatureBuilder:
    """按参数顺序构建函数签名。"""

    def __init__(self, function_name: str) -> None:
        self._function_name = function_name
        self._names: List[str] = []
        self._types: List[ParamType] = []

    def _add(self, name: str, param_type: ParamType) -> "SignatureBuilder":
        self._names.append(name)
        self._types.append(param_type)
        return self

    def single_input(self, name: str, dtype: Any) -> "SignatureBuilder":
        return self._add(name, ParamType.readonly_single_input(dtype))

    def vector_input(self, name: str, dtype: Any) -> "SignatureBuilder":
        return self._add(name, ParamType.readonly_vector_input(dtype))

    def single_output(self, name: str, dtype: Any) -> "SignatureBuilder":
        return self._add(name, ParamType.single_output(dtype))

    def vector_output(self, name: str, dtype: Any) -> "SignatureBuilder":
        return self._add(name, ParamType.vector_output(dtype))

    def mutable_vector(self, name: str, dtype: Any) -> "SignatureBuilder":
        return self._add(name, ParamType.mutable_vector(dtype))

    def build(self) -> Signature:
        return Signature(self._function_name, tuple(self._names), tuple(self._types))


@dataclass
class Context:
    """调用上下文。

    Attributes:
        attributes: 任意的调用级数据，由具体函数解释
        trace: 可选的求值跟踪，网络求值时记录每个节点调用
    """

    attributes: Dict[str, Any] = field(default_factory=dict)
    trace: Optional["EvaluationTrace"] = None

    def get(self, key: str, default: Any = None) -> Any:
        return self.attributes.get(key, default)


class MultiFunction(ABC):
    """批量计算抽象基类。

    子类在构造时提供签名，并实现 ``call``。``call`` 只能写入活动通道，
    失败时直接抛出异常，引擎不做包装或重试。
    """

    def __init__(self, signature: Signature) -> None:
        self._signature = signature

    @property
    def name(self) -> str:
        return self._signature.function_name

    @property
    def signature(self) -> Signature:
        return self._signature

    @property
    def param_amount(self) -> int:
        return len(self._signature.param_types)

    def param_indices(self) -> range:
        return range(self.param_amount)

    def param_type(self, index: int) -> ParamType:
        return self._signature.param_types[index]

    def param_name(self, index: int) -> str:
        return self._signature.param_names[index]

    @abstractmethod
    def call(self, mask: Mask, params: "Params", context: Context) -> None:
        """对掩码中的通道执行计算。

        Args:
            mask: 活动通道
            params: 按参数顺序组装的参数
            context: 调用上下文
        """
        pass

    def __repr__(self) -> str:
        params = ", ".join(
            f"{name}: {ptype}" for name, ptype in zip(self._signature.param_names, self._signature.param_types)
        )
        return f"{self.__class__.__name__}({self.name!r}, [{params}])"


class Params:
    """按参数顺序排列的调用参数。

    访问器会检查参数类别，类别不符属于调用约定错误。
    """

    def __init__(self, function: MultiFunction, args: List[Any], min_array_size: int) -> None:
        self._function = function
        self._args = args
        self._min_array_size = min_array_size

    @property
    def min_array_size(self) -> int:
        return self._min_array_size

    def _get(self, index: int, category: ParamCategory, name: str) -> Any:
        actual = self._function.param_type(index).category
        if actual is not category:
            label = f" '{name}'" if name else ""
            raise AssertionError(
                f"{self._function.name}: 参数 {index}{label} 是 {actual.value}, 而不是 {category.value}"
            )
        return self._args[index]

    def readonly_single_input(self, index: int, name: str = "") -> VirtualListRef:
        return self._get(index, ParamCategory.READONLY_SINGLE_INPUT, name)

    def readonly_vector_input(self, index: int, name: str = "") -> VirtualListListRef:
        return self._get(index, ParamCategory.READONLY_VECTOR_INPUT, name)

    def single_output(self, index: int, name: str = "") -> np.ndarray:
        return self._get(index, ParamCategory.SINGLE_OUTPUT, name)

    def vector_output(self, index: int, name: str = "") -> VectorArray:
        return self._get(index, ParamCategory.VECTOR_OUTPUT, name)

    def mutable_vector(self, index: int, name: str = "") -> VectorArray:
        return self._get(index, ParamCategory.MUTABLE_VECTOR, name)

    def __len__(self) -> int:
        return len(self._args)


class ParamsBuilder:
    """按函数自身的参数顺序组装 Params。"""

    def __init__(self, function: MultiFunction, min_array_size: int) -> None:
        self._function = function
        self._min_array_size = min_array_size
        self._args: List[Any] = []

    def _add(self, category: ParamCategory, value: Any, size: int) -> None:
        index = len(self._args)
        if index >= self._function.param_amount:
            raise TypeError(f"{self._function.name}: 参数过多 (共 {self._function.param_amount} 个)")
        expected = self._function.param_type(index).category
        if expected is not category:
            raise TypeError(
                f"{self._function.name}: 参数 {index} 应为 {expected.value}, 实际添加 {category.value}"
            )
        if size < self._min_array_size:
            raise ValueError(
                f"{self._function.name}: 参数 {index} 长度 {size} 小于所需 {self._min_array_size}"
            )
        self._args.append(value)

    def add_readonly_single_input(self, values: VirtualListRef) -> None:
        self._add(ParamCategory.READONLY_SINGLE_INPUT, values, values.size)

    def add_readonly_vector_input(self, values: VirtualListListRef) -> None:
        self._add(ParamCategory.READONLY_VECTOR_INPUT, values, values.size)

    def add_single_output(self, array: np.ndarray) -> None:
        self._add(ParamCategory.SINGLE_OUTPUT, array, len(array))

    def add_vector_output(self, vector_array: VectorArray) -> None:
        self._add(ParamCategory.VECTOR_OUTPUT, vector_array, vector_array.size)

    def add_mutable_vector(self, vector_array: VectorArray) -> None:
        self._add(ParamCategory.MUTABLE_VECTOR, vector_array, vector_array.size)

    def build(self) -> Params:
        if len(self._args) != self._function.param_amount:
            raise TypeError(
                f"{self._function.name}: 参数不完整, 需要 {self._function.param_amount} 个, "
                f"实际 {len(self._args)} 个"
            )
        return Params(self._function, self._args, self._min_array_size)


def _lane_count(values: Any) -> Optional[int]:
    if isinstance(values, VirtualListRef):
        return None if values.is_single_element else values.size
    if isinstance(values, (VirtualListListRef, VectorArray, list, tuple)):
        return len(values)
    if isinstance(values, np.ndarray) and values.ndim == 1:
        return values.shape[0]
    return None


def _new_output_buffer(dtype: np.dtype, size: int) -> np.ndarray:
    if dtype.kind == "O":
        return np.empty(size, dtype=dtype)
    return np.zeros(size, dtype=dtype)


def evaluate(
    function: MultiFunction,
    *inputs: Any,
    mask: Optional[Mask] = None,
    context: Optional[Context] = None,
) -> Tuple[Any, ...]:
    """直接调用一个函数。

    输入按参数顺序给出 (只读输入与可变列表)，输出缓冲区自动分配。

    Args:
        function: 要调用的函数
        *inputs: 数组、标量、嵌套列表、视图或 VectorArray
        mask: 活动通道，默认覆盖输入的全部通道
        context: 调用上下文

    Returns:
        Tuple: 按参数顺序排列的输出 (单值输出为数组，列表输出为 VectorArray，
        可变列表原样返回)

    Raises:
        TypeError: 输入个数或类型不符
        ValueError: 无法推断通道数
    """
    expected = sum(1 for i in function.param_indices() if function.param_type(i).is_input_or_mutable)
    if len(inputs) != expected:
        raise TypeError(f"{function.name} 需要 {expected} 个输入, 实际 {len(inputs)} 个")

    lengths = [n for n in (_lane_count(v) for v in inputs) if n is not None]
    if mask is None:
        if not lengths:
            raise ValueError("无法推断通道数, 请提供 mask")
        mask = Mask.from_range(max(lengths))
    size = max([mask.min_array_size] + lengths)

    builder = ParamsBuilder(function, size)
    outputs: List[Any] = []
    remaining = iter(inputs)
    for index in function.param_indices():
        param_type = function.param_type(index)
        category = param_type.category
        if category is ParamCategory.READONLY_SINGLE_INPUT:
            builder.add_readonly_single_input(as_virtual_list(next(remaining), size, param_type.base_type))
        elif category is ParamCategory.READONLY_VECTOR_INPUT:
            builder.add_readonly_vector_input(as_virtual_list_list(next(remaining), param_type.base_type))
        elif category is ParamCategory.SINGLE_OUTPUT:
            buffer = _new_output_buffer(param_type.base_type, size)
            builder.add_single_output(buffer)
            outputs.append(buffer)
        elif category is ParamCategory.VECTOR_OUTPUT:
            vector_array = VectorArray(param_type.base_type, size)
            builder.add_vector_output(vector_array)
            outputs.append(vector_array)
        elif category is ParamCategory.MUTABLE_VECTOR:
            vector_array = next(remaining)
            if not isinstance(vector_array, VectorArray):
                raise TypeError(f"{function.name}: 参数 {index} 需要 VectorArray")
            builder.add_mutable_vector(vector_array)
            outputs.append(vector_array)
        else:
            raise AssertionError(f"未知参数类别: {category}")

    function.call(mask, builder.build(), context if context is not None else Context())
    return tuple(outputs)
