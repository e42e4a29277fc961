"""列表函数。

包括读取列表的函数 (ListLength, GetListElement, SumList)、生成列表的函数
(PackList) 以及就地修改列表的可变函数 (AppendToList, CombineLists)。
"""

from typing import Any

import numpy as np

from ..core.mask import Mask
from ..core.multi_function import Context, MultiFunction, Params, SignatureBuilder


class PackList(MultiFunction):
    """把若干单值输入打包为每个通道的一个列表。"""

    def __init__(self, dtype: Any, amount: int) -> None:
        builder = SignatureBuilder("Pack List")
        for i in range(amount):
            builder.single_input(f"Value {i}", dtype)
        builder.vector_output("List", dtype)
        super().__init__(builder.build())
        self._amount = amount

    def call(self, mask: Mask, params: Params, context: Context) -> None:
        inputs = [params.readonly_single_input(i) for i in range(self._amount)]
        lists = params.vector_output(self._amount, "List")
        for i in mask:
            for values in inputs:
                lists.append_single(i, values[i])


class ListLength(MultiFunction):
    """每个通道列表的长度。"""

    def __init__(self, dtype: Any) -> None:
        super().__init__(
            SignatureBuilder("List Length").vector_input("List", dtype).single_output("Length", np.int64).build()
        )

    def call(self, mask: Mask, params: Params, context: Context) -> None:
        lists = params.readonly_vector_input(0, "List")
        lengths = params.single_output(1, "Length")
        for i in mask:
            lengths[i] = lists.lane_length(i)


class GetListElement(MultiFunction):
    """按索引读取列表元素，索引越界时返回 Fallback。"""

    def __init__(self, dtype: Any) -> None:
        super().__init__(
            SignatureBuilder("Get List Element")
            .vector_input("List", dtype)
            .single_input("Index", np.int64)
            .single_input("Fallback", dtype)
            .single_output("Value", dtype)
            .build()
        )

    def call(self, mask: Mask, params: Params, context: Context) -> None:
        lists = params.readonly_vector_input(0, "List")
        indices = params.readonly_single_input(1, "Index")
        fallbacks = params.readonly_single_input(2, "Fallback")
        out = params.single_output(3, "Value")
        for i in mask:
            lane = lists[i]
            index = int(indices[i])
            if 0 <= index < len(lane):
                out[i] = lane[index]
            else:
                out[i] = fallbacks[i]


class SumList(MultiFunction):
    """每个通道列表元素之和。"""

    def __init__(self, dtype: Any) -> None:
        super().__init__(SignatureBuilder("Sum List").vector_input("List", dtype).single_output("Sum", dtype).build())

    def call(self, mask: Mask, params: Params, context: Context) -> None:
        lists = params.readonly_vector_input(0, "List")
        sums = params.single_output(1, "Sum")
        for i in mask:
            sums[i] = lists[i].sum()


class AppendToList(MultiFunction):
    """就地向列表追加一个元素。"""

    def __init__(self, dtype: Any) -> None:
        super().__init__(
            SignatureBuilder("Append to List").mutable_vector("List", dtype).single_input("Value", dtype).build()
        )

    def call(self, mask: Mask, params: Params, context: Context) -> None:
        lists = params.mutable_vector(0, "List")
        values = params.readonly_single_input(1, "Value")
        for i in mask:
            lists.append_single(i, values[i])


class CombineLists(MultiFunction):
    """就地把另一个列表的元素追加到列表末尾。"""

    def __init__(self, dtype: Any) -> None:
        super().__init__(
            SignatureBuilder("Combine Lists").mutable_vector("List", dtype).vector_input("Other", dtype).build()
        )

    def call(self, mask: Mask, params: Params, context: Context) -> None:
        lists = params.mutable_vector(0, "List")
        others = params.readonly_vector_input(1, "Other")
        for i in mask:
            lists.extend_single_copy(i, others[i])
