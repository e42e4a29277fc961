"""按需调度器。

从请求的网络输出反向拉取：用显式栈代替递归，先计算生产者再计算消费者，
已计算的输入套接字由 Storage 记忆，因此每个节点最多调用一次。
"""

import logging
from typing import Callable, List, Sequence, Set

from ..core.network import FunctionNode, InputSocket, Socket
from .storage import Storage

logger = logging.getLogger(__name__)

NodeInvocation = Callable[[FunctionNode], None]


class DemandScheduler:
    """显式栈的按需拓扑调度器。

    栈中元素是套接字本身，输入/输出套接字类型即为待处理项的标签：

    - 输入套接字: 已计算则出栈，否则把它的上游输出套接字压栈
    - 输出套接字: 把所属节点尚未计算的输入全部压栈；
      全部就绪时调用节点并出栈

    辅助空间与图的深度成正比，不会触发递归深度限制。
    """

    def run(self, requested: Sequence[InputSocket], storage: Storage, invoke: NodeInvocation) -> int:
        """计算请求的输入套接字。

        Args:
            requested: 需要计算的输入套接字 (通常是网络输出)
            storage: 本次调用的存储
            invoke: 计算并转发一个函数节点的回调

        Returns:
            int: 实际调用的节点数

        Raises:
            AssertionError: 同一节点被调用两次
        """
        sockets_to_compute: List[Socket] = list(requested)
        invoked: Set[int] = set()

        while sockets_to_compute:
            socket = sockets_to_compute[-1]

            if isinstance(socket, InputSocket):
                if storage.input_is_computed(socket):
                    sockets_to_compute.pop()
                else:
                    sockets_to_compute.append(socket.origin)
                continue

            function_node = socket.node.as_function()
            not_computed = [s for s in function_node.inputs if not storage.input_is_computed(s)]
            if not_computed:
                sockets_to_compute.extend(not_computed)
                continue

            if function_node.id in invoked:
                raise AssertionError(f"节点被重复调用: {function_node.name}")
            invoked.add(function_node.id)
            invoke(function_node)
            sockets_to_compute.pop()

        logger.debug(f"调度完成, 共调用 {len(invoked)} 个节点")
        return len(invoked)
