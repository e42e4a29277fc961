"""函数网络图模型。

网络由节点和套接字构成的有向无环图表示：

- FunctionNode: 包装一个 MultiFunction，按参数生成输入/输出套接字
- DummyNode: 网络边界节点，其输出套接字是网络输入，其输入套接字是网络输出
- InputSocket: 恰好有一个上游输出套接字 (origin)
- OutputSocket: 可以连接零个或多个下游输入套接字 (targets)

节点与套接字按稳定的整数 id 存放在 Network 中，图在 build 之后不可变。
求值器只借用这些对象，不持有所有权。
"""

from typing import Dict, Iterable, List, Optional, Sequence, Set, Tuple, Union

from .data_types import DataType
from .multi_function import MultiFunction


class Socket:
    """套接字基类。

    Attributes:
        id: 网络内唯一的稳定索引
        node: 所属节点
        index: 在所属节点输入或输出列表中的位置
        data_type: 数据类型
        name: 套接字名称
    """

    is_input = False
    is_output = False

    def __init__(self, id: int, node: "Node", index: int, data_type: DataType, name: str) -> None:
        self.id = id
        self.node = node
        self.index = index
        self.data_type = data_type
        self.name = name

    def __repr__(self) -> str:
        direction = "in" if self.is_input else "out"
        return f"<{direction} {self.node.name}.{self.name}: {self.data_type}>"


class InputSocket(Socket):
    """输入套接字，恰好有一个上游输出套接字。"""

    is_input = True

    def __init__(self, id: int, node: "Node", index: int, data_type: DataType, name: str) -> None:
        super().__init__(id, node, index, data_type, name)
        self._origin: Optional["OutputSocket"] = None

    @property
    def origin(self) -> "OutputSocket":
        if self._origin is None:
            raise ValueError(f"输入套接字未连接: {self!r}")
        return self._origin

    @property
    def is_linked(self) -> bool:
        return self._origin is not None


class OutputSocket(Socket):
    """输出套接字，可以扇出到多个输入套接字。"""

    is_output = True

    def __init__(self, id: int, node: "Node", index: int, data_type: DataType, name: str) -> None:
        super().__init__(id, node, index, data_type, name)
        self._targets: Union[List[InputSocket], Tuple[InputSocket, ...]] = []

    @property
    def targets(self) -> Tuple[InputSocket, ...]:
        return tuple(self._targets)


class Node:
    """节点基类。"""

    is_function = False
    is_dummy = False

    def __init__(self, id: int, name: str) -> None:
        self.id = id
        self.name = name
        self._inputs: Union[List[InputSocket], Tuple[InputSocket, ...]] = []
        self._outputs: Union[List[OutputSocket], Tuple[OutputSocket, ...]] = []

    @property
    def inputs(self) -> Tuple[InputSocket, ...]:
        return tuple(self._inputs)

    @property
    def outputs(self) -> Tuple[OutputSocket, ...]:
        return tuple(self._outputs)

    def as_function(self) -> "FunctionNode":
        raise TypeError(f"节点 {self.name} 不是函数节点")

    def _freeze(self) -> None:
        self._inputs = tuple(self._inputs)
        self._outputs = tuple(self._outputs)
        for socket in self._outputs:
            socket._targets = tuple(socket._targets)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.name!r})"


class FunctionNode(Node):
    """函数节点。

    Attributes:
        function: 被包装的 MultiFunction
        input_param_indices: 输入套接字位置 -> 参数索引
        output_param_indices: 输出套接字位置 -> 参数索引
    """

    is_function = True

    def __init__(self, id: int, name: str, function: MultiFunction) -> None:
        super().__init__(id, name)
        self.function = function
        self.input_param_indices: Tuple[int, ...] = ()
        self.output_param_indices: Tuple[int, ...] = ()
        self._input_by_param: Dict[int, InputSocket] = {}
        self._output_by_param: Dict[int, OutputSocket] = {}

    def as_function(self) -> "FunctionNode":
        return self

    def input_for_param(self, param_index: int) -> InputSocket:
        """参数索引对应的输入套接字。"""
        return self._input_by_param[param_index]

    def output_for_param(self, param_index: int) -> OutputSocket:
        """参数索引对应的输出套接字。"""
        return self._output_by_param[param_index]


class DummyNode(Node):
    """网络边界节点。"""

    is_dummy = True


def find_dependencies(sockets: Iterable[Socket], stop_at_dummy: bool = False) -> Set[Node]:
    """反向遍历，收集给定套接字依赖的全部上游节点。

    输出套接字自身所属的节点也计入结果，输入套接字所属的节点不计入。

    Args:
        sockets: 起始套接字
        stop_at_dummy: 为 True 时边界节点计入结果但不再向上游展开

    Returns:
        Set[Node]: 上游节点集合
    """
    found: Set[Node] = set()
    stack: List[Socket] = list(sockets)
    while stack:
        socket = stack.pop()
        if isinstance(socket, InputSocket):
            stack.append(socket.origin)
            continue
        node = socket.node
        if node not in found:
            found.add(node)
            if not (stop_at_dummy and node.is_dummy):
                stack.extend(node.inputs)
    return found


class Network:
    """不可变的函数网络。

    Attributes:
        nodes: 按 id 排列的全部节点
        sockets: 按 id 排列的全部套接字
    """

    def __init__(self, nodes: Sequence[Node], sockets: Sequence[Socket]) -> None:
        self.nodes: Tuple[Node, ...] = tuple(nodes)
        self.sockets: Tuple[Socket, ...] = tuple(sockets)
        self._by_name = {node.name: node for node in self.nodes}

    @property
    def function_nodes(self) -> List[FunctionNode]:
        return [node.as_function() for node in self.nodes if node.is_function]

    @property
    def dummy_nodes(self) -> List[DummyNode]:
        return [node for node in self.nodes if isinstance(node, DummyNode)]

    def node_by_name(self, name: str) -> Node:
        try:
            return self._by_name[name]
        except KeyError:
            raise KeyError(f"网络中不存在节点: {name}") from None

    def find_dependencies(self, sockets: Iterable[Socket], stop_at_dummy: bool = False) -> Set[Node]:
        """给定套接字依赖的全部上游节点，见 :func:`find_dependencies`。"""
        return find_dependencies(sockets, stop_at_dummy)

    def __len__(self) -> int:
        return len(self.nodes)

    def __repr__(self) -> str:
        return f"Network(nodes={len(self.nodes)}, sockets={len(self.sockets)})"


class NetworkBuilder:
    """构建 Network。

    build 之后构建器失效，得到的网络不可再修改。
    """

    def __init__(self) -> None:
        self._nodes: List[Node] = []
        self._sockets: List[Socket] = []
        self._names: Set[str] = set()
        self._name_counts: Dict[str, int] = {}
        self._built = False

    def _check_open(self) -> None:
        if self._built:
            raise RuntimeError("NetworkBuilder 已经 build, 不能再修改")

    def _unique_name(self, name: str) -> str:
        candidate = name
        n = self._name_counts.get(name, 0)
        while candidate in self._names:
            n += 1
            candidate = f"{name}.{n}"
        self._name_counts[name] = n
        self._names.add(candidate)
        return candidate

    def _new_input(self, node: Node, data_type: DataType, name: str) -> InputSocket:
        socket = InputSocket(len(self._sockets), node, len(node._inputs), data_type, name)
        self._sockets.append(socket)
        node._inputs.append(socket)
        return socket

    def _new_output(self, node: Node, data_type: DataType, name: str) -> OutputSocket:
        socket = OutputSocket(len(self._sockets), node, len(node._outputs), data_type, name)
        self._sockets.append(socket)
        node._outputs.append(socket)
        return socket

    def add_function(self, function: MultiFunction, name: Optional[str] = None) -> FunctionNode:
        """添加函数节点，按签名为每个参数创建套接字。

        可变列表参数同时生成一个输入套接字和一个输出套接字。
        """
        self._check_open()
        node = FunctionNode(len(self._nodes), self._unique_name(name or function.name), function)
        input_params: List[int] = []
        output_params: List[int] = []
        for param_index in function.param_indices():
            param_type = function.param_type(param_index)
            param_name = function.param_name(param_index)
            if param_type.is_input_or_mutable:
                socket = self._new_input(node, param_type.data_type, param_name)
                node._input_by_param[param_index] = socket
                input_params.append(param_index)
            if param_type.is_output_or_mutable:
                out_socket = self._new_output(node, param_type.data_type, param_name)
                node._output_by_param[param_index] = out_socket
                output_params.append(param_index)
        node.input_param_indices = tuple(input_params)
        node.output_param_indices = tuple(output_params)
        self._nodes.append(node)
        return node

    def add_dummy(
        self,
        name: str,
        input_types: Sequence[DataType] = (),
        output_types: Sequence[DataType] = (),
        input_names: Optional[Sequence[str]] = None,
        output_names: Optional[Sequence[str]] = None,
    ) -> DummyNode:
        """添加边界节点。"""
        self._check_open()
        input_names = list(input_names) if input_names is not None else [f"in{i}" for i in range(len(input_types))]
        output_names = (
            list(output_names) if output_names is not None else [f"out{i}" for i in range(len(output_types))]
        )
        if len(input_names) != len(input_types) or len(output_names) != len(output_types):
            raise ValueError("套接字名称数量与类型数量不一致")
        node = DummyNode(len(self._nodes), self._unique_name(name))
        for data_type, socket_name in zip(input_types, input_names):
            self._new_input(node, data_type, socket_name)
        for data_type, socket_name in zip(output_types, output_names):
            self._new_output(node, data_type, socket_name)
        self._nodes.append(node)
        return node

    def add_link(self, from_socket: OutputSocket, to_socket: InputSocket) -> None:
        """连接输出套接字与输入套接字。

        Raises:
            TypeError: 数据类型不一致
            ValueError: 输入套接字已经连接
        """
        self._check_open()
        if from_socket.data_type != to_socket.data_type:
            raise TypeError(
                f"类型不匹配: {from_socket!r} ({from_socket.data_type}) -> {to_socket!r} ({to_socket.data_type})"
            )
        if to_socket.is_linked:
            raise ValueError(f"输入套接字已有连接: {to_socket!r}")
        to_socket._origin = from_socket
        from_socket._targets.append(to_socket)

    def _check_acyclic(self) -> None:
        pending = {node.id: len({s.origin.node.id for s in node._inputs}) for node in self._nodes}
        downstream: Dict[int, Set[int]] = {node.id: set() for node in self._nodes}
        for node in self._nodes:
            for socket in node._inputs:
                downstream[socket.origin.node.id].add(node.id)
        ready = [node_id for node_id, count in pending.items() if count == 0]
        visited = 0
        while ready:
            node_id = ready.pop()
            visited += 1
            for target_id in downstream[node_id]:
                pending[target_id] -= 1
                if pending[target_id] == 0:
                    ready.append(target_id)
        if visited != len(self._nodes):
            cyclic = sorted(self._nodes[i].name for i, count in pending.items() if count > 0)
            raise ValueError(f"网络中存在环: {cyclic}")

    def build(self) -> Network:
        """校验并冻结网络。

        Raises:
            ValueError: 存在未连接的输入套接字或环
        """
        self._check_open()
        unlinked = [s for s in self._sockets if isinstance(s, InputSocket) and not s.is_linked]
        if unlinked:
            raise ValueError(f"存在未连接的输入套接字: {unlinked}")
        self._check_acyclic()
        for node in self._nodes:
            node._freeze()
        self._built = True
        return Network(self._nodes, self._sockets)
