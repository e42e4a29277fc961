"""节点调用与结果转发。

按节点自身的参数顺序组装参数、同步调用函数，然后把结果分发给下游：

- 单值输出: 所有下游共享同一个缓冲区 (单值输出产生后不再被修改)
- 列表输出 / 可变列表: 只读消费者共享同一个容器，需要可变访问的消费者
  得到一份逐通道深复制的新容器，互不可见对方的就地修改
"""

import logging
import time
from typing import AbstractSet, List, Tuple

import numpy as np

from ..core.containers import VectorArray, VirtualListListRef, VirtualListRef
from ..core.data_types import ParamCategory, ParamType
from ..core.mask import Mask
from ..core.multi_function import Context, ParamsBuilder
from ..core.network import FunctionNode, InputSocket, OutputSocket
from .storage import Storage

logger = logging.getLogger(__name__)


def target_param_type(target: InputSocket) -> ParamType:
    """函数节点输入套接字对应的参数类型。"""
    function_node = target.node.as_function()
    param_index = function_node.input_param_indices[target.index]
    return function_node.function.param_type(param_index)


def forward_vector_view(
    target: InputSocket,
    values: VirtualListListRef,
    storage: Storage,
) -> None:
    """把列表值登记给一个函数节点输入，需要可变访问时先复制。

    Raises:
        AssertionError: 目标参数既不是只读列表也不是可变列表
    """
    param_type = target_param_type(target)
    if param_type.is_readonly_vector_input:
        storage.set_virtual_list_list_for_input(target, values)
    elif param_type.is_mutable_vector:
        storage.set_vector_array_for_input(target, storage.copy_vector_array(values, param_type.base_type))
    else:
        raise AssertionError(f"列表值不能连接到参数 {param_type}: {target!r}")


class NodeInvoker:
    """计算函数节点并转发其输出。

    Attributes:
        network_outputs: 被请求的网络输出套接字 id
        log_invocations: 是否记录每次调用
    """

    def __init__(self, network_outputs: AbstractSet[int], log_invocations: bool = False) -> None:
        self.network_outputs = network_outputs
        self.log_invocations = log_invocations

    def compute_and_forward(
        self,
        function_node: FunctionNode,
        mask: Mask,
        context: Context,
        storage: Storage,
    ) -> None:
        """调用一个输入已全部就绪的函数节点，并把输出写入下游输入套接字。

        Args:
            function_node: 要调用的节点
            mask: 活动通道
            context: 调用上下文
            storage: 本次调用的存储
        """
        function = function_node.function
        params_builder = ParamsBuilder(function, storage.array_size)

        single_outputs_to_forward: List[Tuple[OutputSocket, np.ndarray]] = []
        vector_outputs_to_forward: List[Tuple[OutputSocket, VectorArray]] = []

        for param_index in function.param_indices():
            param_type = function.param_type(param_index)
            category = param_type.category
            if category is ParamCategory.READONLY_SINGLE_INPUT:
                input_socket = function_node.input_for_param(param_index)
                params_builder.add_readonly_single_input(storage.get_virtual_list_for_input(input_socket))
            elif category is ParamCategory.READONLY_VECTOR_INPUT:
                input_socket = function_node.input_for_param(param_index)
                params_builder.add_readonly_vector_input(storage.get_virtual_list_list_for_input(input_socket))
            elif category is ParamCategory.SINGLE_OUTPUT:
                output_socket = function_node.output_for_param(param_index)
                values_destination = storage.allocate_array(param_type.base_type)
                params_builder.add_single_output(values_destination)
                single_outputs_to_forward.append((output_socket, values_destination))
            elif category is ParamCategory.VECTOR_OUTPUT:
                output_socket = function_node.output_for_param(param_index)
                vector_destination = storage.allocate_vector_array(param_type.base_type)
                params_builder.add_vector_output(vector_destination)
                vector_outputs_to_forward.append((output_socket, vector_destination))
            elif category is ParamCategory.MUTABLE_VECTOR:
                input_socket = function_node.input_for_param(param_index)
                output_socket = function_node.output_for_param(param_index)
                values = storage.get_vector_array_for_input(input_socket)
                params_builder.add_mutable_vector(values)
                vector_outputs_to_forward.append((output_socket, values))
            else:
                raise AssertionError(f"未知参数类别: {category}")

        params = params_builder.build()
        start = time.perf_counter()
        function.call(mask, params, context)
        elapsed_ms = (time.perf_counter() - start) * 1e3

        if self.log_invocations:
            logger.debug(
                f"调用节点 {function_node.name} ({function.name}), "
                f"{mask.indices_amount} 个通道, {elapsed_ms:.3f} ms"
            )
        if context.trace is not None:
            context.trace.record(function_node.name, function.name, mask.indices_amount, elapsed_ms)

        for output_socket, array in single_outputs_to_forward:
            self._forward_single(output_socket, array, storage)
        for output_socket, vector_array in vector_outputs_to_forward:
            self._forward_vector(output_socket, vector_array, storage)

    def _forward_single(self, output_socket: OutputSocket, array: np.ndarray, storage: Storage) -> None:
        values = VirtualListRef.from_array(array)
        for target in output_socket.targets:
            storage.set_virtual_list_for_input(target, values)

    def _forward_vector(self, output_socket: OutputSocket, vector_array: VectorArray, storage: Storage) -> None:
        # 所有权已在分配时登记, 这里只分发
        values = VirtualListListRef.from_vector_array(vector_array)
        for target in output_socket.targets:
            if target.node.is_function:
                forward_vector_view(target, values, storage)
            elif target.id in self.network_outputs:
                storage.set_virtual_list_list_for_input(target, values)
