"""逐元素函数：常量与自定义计算。"""

from typing import Any, Callable, Sequence, Tuple

import numpy as np

from ..core.mask import Mask
from ..core.multi_function import Context, MultiFunction, Params, SignatureBuilder


class ConstantValue(MultiFunction):
    """对所有活动通道输出同一个常量。"""

    def __init__(self, value: Any, dtype: Any = None, name: str = "Constant") -> None:
        dt = np.dtype(dtype) if dtype is not None else np.asarray(value).dtype
        super().__init__(SignatureBuilder(name).single_output("Value", dt).build())
        self.value = value

    def call(self, mask: Mask, params: Params, context: Context) -> None:
        out = params.single_output(0, "Value")
        if out.dtype.kind == "O":
            for i in mask:
                out[i] = self.value
        else:
            out[mask.indices] = self.value


class CustomFunction(MultiFunction):
    """由 Python 可调用对象定义的单值函数。

    ``func`` 接收每个输入的元素，返回输出元素。``vectorized=True`` 时
    ``func`` 一次接收按活动通道收集的 NumPy 数组，返回同样长度的数组。

    Attributes:
        func: 计算函数
        vectorized: 是否以数组方式调用
    """

    def __init__(
        self,
        name: str,
        inputs: Sequence[Tuple[str, Any]],
        output: Tuple[str, Any],
        func: Callable[..., Any],
        vectorized: bool = False,
    ) -> None:
        """初始化自定义函数。

        Args:
            name: 函数名称
            inputs: (参数名, dtype) 列表
            output: 输出的 (参数名, dtype)
            func: 计算函数
            vectorized: 是否以数组方式调用 ``func``
        """
        builder = SignatureBuilder(name)
        for input_name, dtype in inputs:
            builder.single_input(input_name, dtype)
        builder.single_output(*output)
        super().__init__(builder.build())
        self.func = func
        self.vectorized = vectorized
        self._input_amount = len(inputs)

    def call(self, mask: Mask, params: Params, context: Context) -> None:
        inputs = [params.readonly_single_input(i) for i in range(self._input_amount)]
        out = params.single_output(self._input_amount)
        if self.vectorized:
            indices = mask.indices
            out[indices] = self.func(*(values.values_at(indices) for values in inputs))
        else:
            for i in mask:
                out[i] = self.func(*(values[i] for values in inputs))
