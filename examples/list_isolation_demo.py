"""
列表值隔离示例

同一个列表输出同时连接只读消费者和可变消费者：只读消费者共享生产者的容器，
可变消费者得到一份副本，修改互不可见。
"""

import numpy as np

from LaneGraph import Context, DataType, EvaluationTrace, NetworkBuilder, NetworkEvaluator, evaluate
from LaneGraph.functions import AppendToList, ConstantValue, ListLength, PackList


def main():
    float_type = DataType.single(np.float64)
    list_type = DataType.vector(np.float64)
    builder = NetworkBuilder()

    inputs = builder.add_dummy("inputs", output_types=[float_type, float_type], output_names=["a", "b"])
    outputs = builder.add_dummy(
        "outputs",
        input_types=[list_type, list_type, DataType.single(np.int64)],
        input_names=["packed", "appended", "length"],
    )

    pack = builder.add_function(PackList(np.float64, 2))
    append = builder.add_function(AppendToList(np.float64))
    marker = builder.add_function(ConstantValue(-1.0, name="Marker"))
    length = builder.add_function(ListLength(np.float64))

    builder.add_link(inputs.outputs[0], pack.inputs[0])
    builder.add_link(inputs.outputs[1], pack.inputs[1])
    builder.add_link(pack.outputs[0], append.inputs[0])
    builder.add_link(marker.outputs[0], append.inputs[1])
    builder.add_link(pack.outputs[0], length.inputs[0])
    builder.add_link(pack.outputs[0], outputs.inputs[0])
    builder.add_link(append.outputs[0], outputs.inputs[1])
    builder.add_link(length.outputs[0], outputs.inputs[2])
    builder.build()

    evaluator = NetworkEvaluator(inputs.outputs, outputs.inputs)
    trace = EvaluationTrace()
    a = np.array([1.0, 2.0])
    b = np.array([10.0, 20.0])
    packed, appended, lengths = evaluate(evaluator, a, b, context=Context(trace=trace))

    print("packed:  ", packed.to_lists())
    print("appended:", appended.to_lists())
    print("lengths: ", lengths)
    print("ledger:  ", trace.storage_stats)


if __name__ == "__main__":
    main()
