"""性能测试 Fixtures。"""

import numpy as np
import pytest

from LaneGraph import DataType, NetworkBuilder, NetworkEvaluator
from LaneGraph.functions import CustomFunction, ListLength, PackList


@pytest.fixture
def large_lanes():
    """生成大批量输入通道。

    Size: 200,000 lanes (float64)
    """
    return np.random.randn(200_000)


@pytest.fixture
def wide_evaluator():
    """由 63 个向量化节点组成的扇出再归约网络。"""
    float_type = DataType.single(np.float64)
    builder = NetworkBuilder()
    inputs = builder.add_dummy("inputs", output_types=[float_type])
    outputs = builder.add_dummy("outputs", input_types=[float_type])

    layer = []
    for k in range(32):
        node = builder.add_function(
            CustomFunction("Scale", [("x", np.float64)], ("y", np.float64), lambda x, k=k: x * k, vectorized=True)
        )
        builder.add_link(inputs.outputs[0], node.inputs[0])
        layer.append(node.outputs[0])

    previous = layer[0]
    for socket in layer[1:]:
        add = builder.add_function(
            CustomFunction("Add", [("a", np.float64), ("b", np.float64)], ("y", np.float64), np.add, vectorized=True)
        )
        builder.add_link(previous, add.inputs[0])
        builder.add_link(socket, add.inputs[1])
        previous = add.outputs[0]
    builder.add_link(previous, outputs.inputs[0])
    builder.build()
    return NetworkEvaluator(inputs.outputs, outputs.inputs)


@pytest.fixture
def list_evaluator():
    """生成列表再求长度的网络，用于测试 VectorArray 开销。"""
    float_type = DataType.single(np.float64)
    builder = NetworkBuilder()
    inputs = builder.add_dummy("inputs", output_types=[float_type, float_type])
    pack = builder.add_function(PackList(np.float64, 2))
    length = builder.add_function(ListLength(np.float64))
    outputs = builder.add_dummy("outputs", input_types=[DataType.single(np.int64)])
    builder.add_link(inputs.outputs[0], pack.inputs[0])
    builder.add_link(inputs.outputs[1], pack.inputs[1])
    builder.add_link(pack.outputs[0], length.inputs[0])
    builder.add_link(length.outputs[0], outputs.inputs[0])
    builder.build()
    return NetworkEvaluator(inputs.outputs, outputs.inputs)
