"""网络边界适配。

- seed_storage: 用外部提供的输入初始化 Storage
- extract_outputs: 把 Storage 中的最终值复制到外部提供的输出目标，只写活动通道
"""

from typing import Sequence

from ..core.data_types import DataCategory
from ..core.mask import Mask
from ..core.multi_function import Params
from ..core.network import InputSocket, OutputSocket
from .backends import Backend
from .invocation import forward_vector_view
from .storage import Storage


def seed_storage(inputs: Sequence[OutputSocket], params: Params, storage: Storage) -> None:
    """把网络输入登记到所有直接下游的输入套接字。

    单值输入按引用共享；列表输入对只读消费者共享视图，对需要可变访问的
    消费者先逐通道复制到 Storage 自有的容器。

    Args:
        inputs: 网络输入套接字 (边界节点的输出)，与参数位置一一对应
        params: 外部调用参数
        storage: 本次调用的存储
    """
    for index, socket in enumerate(inputs):
        category = socket.data_type.category
        if category is DataCategory.SINGLE:
            input_list = params.readonly_single_input(index, "Input")
            for target in socket.targets:
                storage.set_virtual_list_for_input(target, input_list)
        elif category is DataCategory.VECTOR:
            input_list_list = params.readonly_vector_input(index, "Input")
            for target in socket.targets:
                if target.node.is_function:
                    forward_vector_view(target, input_list_list, storage)
                else:
                    storage.set_virtual_list_list_for_input(target, input_list_list)
        else:
            raise AssertionError(f"未知数据类别: {category}")


def extract_outputs(
    outputs: Sequence[InputSocket],
    first_param_index: int,
    mask: Mask,
    params: Params,
    storage: Storage,
    backend: Backend,
) -> None:
    """把计算结果复制到外部输出目标。

    掩码之外的通道保持不变。

    Args:
        outputs: 被请求的网络输出套接字 (边界节点的输入)
        first_param_index: 第一个输出在外部参数中的位置
        mask: 活动通道
        params: 外部调用参数
        storage: 本次调用的存储
        backend: 单值复制内核
    """
    indices = mask.indices
    for output_index, socket in enumerate(outputs):
        param_index = first_param_index + output_index
        category = socket.data_type.category
        if category is DataCategory.SINGLE:
            values = storage.get_virtual_list_for_input(socket)
            output_values = params.single_output(param_index, "Output")
            if values.is_single_element:
                backend.masked_fill(values.single_value, output_values, indices)
            else:
                backend.masked_copy(values.array, output_values, indices)
        elif category is DataCategory.VECTOR:
            list_values = storage.get_virtual_list_list_for_input(socket)
            output_vectors = params.vector_output(param_index, "Output")
            for i in mask:
                output_vectors.extend_single_copy(i, list_values[i])
        else:
            raise AssertionError(f"未知数据类别: {category}")
