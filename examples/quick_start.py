"""
LaneGraph 快速入门示例

构建一个菱形函数网络，按需求值，并查看每个节点的调用记录。
"""

import logging

import numpy as np

from LaneGraph import (
    Context,
    DataType,
    EvaluationConfig,
    EvaluationTrace,
    Mask,
    NetworkBuilder,
    NetworkEvaluator,
    evaluate,
)
from LaneGraph.functions import CustomFunction


def build_network():
    """构建 y = (2(x+1)) * ((x+1)-3) 的菱形网络，另附一个不被请求的分支。"""
    float_type = DataType.single(np.float64)
    builder = NetworkBuilder()

    inputs = builder.add_dummy("inputs", output_types=[float_type], output_names=["x"])
    outputs = builder.add_dummy("outputs", input_types=[float_type, float_type], input_names=["y", "unused"])

    def unary(name, func):
        return builder.add_function(
            CustomFunction(name, [("x", np.float64)], ("y", np.float64), func, vectorized=True)
        )

    a = unary("Add One", lambda x: x + 1)
    b = unary("Double", lambda x: x * 2)
    c = unary("Minus Three", lambda x: x - 3)
    d = builder.add_function(
        CustomFunction(
            "Multiply", [("a", np.float64), ("b", np.float64)], ("y", np.float64), np.multiply, vectorized=True
        )
    )
    e = unary("Expensive", lambda x: x * 100)

    builder.add_link(inputs.outputs[0], a.inputs[0])
    builder.add_link(a.outputs[0], b.inputs[0])
    builder.add_link(a.outputs[0], c.inputs[0])
    builder.add_link(b.outputs[0], d.inputs[0])
    builder.add_link(c.outputs[0], d.inputs[1])
    builder.add_link(d.outputs[0], outputs.inputs[0])
    builder.add_link(inputs.outputs[0], e.inputs[0])
    builder.add_link(e.outputs[0], outputs.inputs[1])

    network = builder.build()
    return network, inputs, outputs


def main():
    """主程序：演示网络的按需求值。"""
    logging.basicConfig(level=logging.DEBUG, format="%(name)s: %(message)s")

    print("构建菱形网络...")
    network, inputs, outputs = build_network()
    print(network)

    # 只请求 y, Expensive 节点不会被调用
    evaluator = NetworkEvaluator(inputs.outputs, [outputs.inputs[0]], EvaluationConfig(log_invocations=True))
    print("依赖节点:", [node.name for node in evaluator.required_nodes()])

    x = np.linspace(0.0, 5.0, 6)
    trace = EvaluationTrace()
    (y,) = evaluate(evaluator, x, context=Context(trace=trace))
    print("x =", x)
    print("y =", y)
    print(trace.to_frame())

    # 只计算偶数通道
    (y_even,) = evaluate(evaluator, x, mask=Mask.from_bool(np.arange(len(x)) % 2 == 0))
    print("偶数通道 y =", y_even)


if __name__ == "__main__":
    main()
