"""网络求值引擎，负责协调 Storage、调度器和边界适配。"""

import logging
from itertools import chain
from typing import List, Optional, Sequence, Set

from ..config.evaluation_config import EvaluationConfig
from ..core.data_types import DataCategory
from ..core.mask import Mask
from ..core.multi_function import Context, MultiFunction, Params, SignatureBuilder
from ..core.network import FunctionNode, InputSocket, Node, OutputSocket, find_dependencies
from .backends import get_backend
from .boundary import extract_outputs, seed_storage
from .invocation import NodeInvoker
from .scheduler import DemandScheduler
from .storage import Storage

logger = logging.getLogger(__name__)


class NetworkEvaluator(MultiFunction):
    """按需求值函数网络。

    NetworkEvaluator 本身也是一个 MultiFunction：参数依次为每个网络输入
    (只读) 和每个请求的网络输出。调用时只计算请求的输出所依赖的节点，
    每个节点恰好一次。求值器只借用网络结构，可以被并发调用共享。

    Attributes:
        inputs: 网络输入套接字 (边界节点的输出)
        outputs: 请求的网络输出套接字 (边界节点的输入)
        config: 求值配置
    """

    def __init__(
        self,
        inputs: Sequence[OutputSocket],
        outputs: Sequence[InputSocket],
        config: Optional[EvaluationConfig] = None,
        name: str = "Evaluate Network",
    ) -> None:
        """初始化求值器。

        Args:
            inputs: 网络输入套接字
            outputs: 请求的网络输出套接字
            config: 求值配置，默认为 EvaluationConfig()
            name: 函数名称

        Raises:
            ValueError: 请求的输出依赖未声明的边界输入，或套接字方向错误
        """
        builder = SignatureBuilder(name)
        for socket in inputs:
            if not isinstance(socket, OutputSocket) or not socket.node.is_dummy:
                raise ValueError(f"网络输入必须是边界节点的输出套接字: {socket!r}")
            if socket.data_type.category is DataCategory.SINGLE:
                builder.single_input(socket.name, socket.data_type.base_type)
            else:
                builder.vector_input(socket.name, socket.data_type.base_type)
        for socket in outputs:
            if not isinstance(socket, InputSocket) or not socket.node.is_dummy:
                raise ValueError(f"网络输出必须是边界节点的输入套接字: {socket!r}")
            if socket.data_type.category is DataCategory.SINGLE:
                builder.single_output(socket.name, socket.data_type.base_type)
            else:
                builder.vector_output(socket.name, socket.data_type.base_type)
        super().__init__(builder.build())

        self.inputs = tuple(inputs)
        self.outputs = tuple(outputs)
        self.config = config or EvaluationConfig()
        self._backend = get_backend(self.config.backend)
        self._invoker = NodeInvoker(frozenset(s.id for s in self.outputs), self.config.log_invocations)
        self._scheduler = DemandScheduler()
        self._required = self._find_required_nodes()

    def _find_required_nodes(self) -> Set[Node]:
        """请求的输出依赖的函数节点，并校验用到的边界输入都已声明。"""
        required = {node for node in find_dependencies(self.outputs, stop_at_dummy=True) if node.is_function}
        declared = {socket.id for socket in self.inputs}
        consumers = chain(self.outputs, (socket for node in required for socket in node.inputs))
        for socket in consumers:
            origin = socket.origin
            if origin.node.is_dummy and origin.id not in declared:
                raise ValueError(f"请求的输出依赖未声明的网络输入: {origin!r}")
        return required

    def required_nodes(self) -> List[FunctionNode]:
        """请求的输出所依赖的函数节点，按 id 排序。"""
        return sorted((node.as_function() for node in self._required), key=lambda node: node.id)

    def call(self, mask: Mask, params: Params, context: Context) -> None:
        """执行网络求值。

        空掩码直接返回。节点计算抛出的异常原样传播，Storage 仍会释放。
        """
        if mask.indices_amount == 0:
            return

        storage = Storage(mask)
        try:
            with storage:
                seed_storage(self.inputs, params, storage)
                invoked = self._scheduler.run(
                    self.outputs,
                    storage,
                    lambda node: self._invoker.compute_and_forward(node, mask, context, storage),
                )
                extract_outputs(self.outputs, len(self.inputs), mask, params, storage, self._backend)
        finally:
            # 节点失败时 Storage 同样已释放
            if context.trace is not None:
                context.trace.storage_stats = storage.stats
        logger.debug(f"{self.name}: 求值完成, 调用 {invoked} 个节点, {mask.indices_amount} 个通道")
