"""NetworkEvaluator 单元测试

覆盖按需求值、记忆化、单值共享、列表隔离、掩码、空掩码与异常传播。
"""

import logging
from concurrent.futures import ThreadPoolExecutor

import numpy as np
import pytest

from LaneGraph import EvaluationConfig, EvaluationTrace, NetworkEvaluator
from LaneGraph.core.containers import VectorArray, VirtualListRef
from LaneGraph.core.mask import Mask
from LaneGraph.core.multi_function import Context, ParamsBuilder, evaluate
from LaneGraph.core.network import NetworkBuilder
from LaneGraph.functions import AppendToList, CustomFunction, ListLength, SumList

from network_helpers import (
    FLOAT,
    FLOAT_LIST,
    INT,
    FailingFunction,
    ListMutatorSpy,
    ListProducerSpy,
    ListReaderSpy,
    SingleSpy,
    scalar,
)


def _traced():
    trace = EvaluationTrace()
    return trace, Context(trace=trace)


class TestDiamond:
    """测试菱形网络的求值"""

    def test_values(self, diamond, lanes):
        _, inputs, outputs = diamond
        evaluator = NetworkEvaluator(inputs.outputs, outputs.inputs)

        (result,) = evaluate(evaluator, lanes)

        np.testing.assert_array_equal(result, [-4.0, 0.0, 8.0])

    def test_each_node_invoked_once(self, diamond, lanes):
        """测试扇出的节点只计算一次"""
        _, inputs, outputs = diamond
        evaluator = NetworkEvaluator(inputs.outputs, outputs.inputs)
        trace, context = _traced()

        evaluate(evaluator, lanes, context=context)

        assert len(trace) == 4
        assert trace.count("A") == 1
        assert trace.invoked_nodes[0] == "A"
        assert trace.invoked_nodes[-1] == "D"

    def test_signature_from_sockets(self, diamond):
        _, inputs, outputs = diamond
        evaluator = NetworkEvaluator(inputs.outputs, outputs.inputs)

        assert evaluator.name == "Evaluate Network"
        assert evaluator.param_amount == 2
        assert evaluator.param_name(0) == "x"
        assert evaluator.param_name(1) == "d"

    def test_numpy_backend_matches(self, diamond, lanes):
        _, inputs, outputs = diamond
        evaluator = NetworkEvaluator(inputs.outputs, outputs.inputs, EvaluationConfig(backend="numpy"))

        (result,) = evaluate(evaluator, lanes)

        np.testing.assert_array_equal(result, [-4.0, 0.0, 8.0])

    def test_unknown_backend(self, diamond):
        _, inputs, outputs = diamond

        with pytest.raises(ValueError):
            NetworkEvaluator(inputs.outputs, outputs.inputs, EvaluationConfig(backend="cuda"))

    def test_concurrent_calls_share_evaluator(self, diamond):
        """测试同一个求值器可以被并发调用"""
        _, inputs, outputs = diamond
        evaluator = NetworkEvaluator(inputs.outputs, outputs.inputs)
        batches = [np.arange(8, dtype=np.float64) + k for k in range(8)]

        with ThreadPoolExecutor(max_workers=4) as pool:
            results = list(pool.map(lambda batch: evaluate(evaluator, batch)[0], batches))

        for batch, result in zip(batches, results):
            np.testing.assert_array_equal(result, (batch + 1) * 2 * (batch - 2))


class TestLaziness:
    """测试只计算请求的输出依赖的节点"""

    def test_disconnected_node_not_invoked(self, diamond_with_disconnected, lanes):
        _, inputs, outputs = diamond_with_disconnected
        evaluator = NetworkEvaluator(inputs.outputs, [outputs.inputs[0]])
        trace, context = _traced()

        (result,) = evaluate(evaluator, lanes, context=context)

        np.testing.assert_array_equal(result, [-4.0, 0.0, 8.0])
        assert "E" not in trace.invoked_nodes
        assert sorted(trace.invoked_nodes) == [node.name for node in evaluator.required_nodes()]

    def test_request_only_disconnected(self, diamond_with_disconnected, lanes):
        _, inputs, outputs = diamond_with_disconnected
        evaluator = NetworkEvaluator(inputs.outputs, [outputs.inputs[1]])
        trace, context = _traced()

        (result,) = evaluate(evaluator, lanes, context=context)

        np.testing.assert_array_equal(result, [100.0, 200.0, 300.0])
        assert trace.invoked_nodes == ["E"]

    def test_required_nodes(self, diamond_with_disconnected):
        _, inputs, outputs = diamond_with_disconnected
        evaluator = NetworkEvaluator(inputs.outputs, outputs.inputs)

        assert [node.name for node in evaluator.required_nodes()] == ["A", "B", "C", "D", "E"]

    def test_output_linked_to_input(self, lanes):
        """测试网络输出直接连接网络输入"""
        builder = NetworkBuilder()
        inputs = builder.add_dummy("inputs", output_types=[FLOAT])
        outputs = builder.add_dummy("outputs", input_types=[FLOAT])
        builder.add_link(inputs.outputs[0], outputs.inputs[0])
        builder.build()
        evaluator = NetworkEvaluator(inputs.outputs, outputs.inputs)
        trace, context = _traced()

        (result,) = evaluate(evaluator, lanes, context=context)

        np.testing.assert_array_equal(result, lanes)
        assert len(trace) == 0


class TestSingleForwarding:
    """测试单值输出共享"""

    def test_single_output_shared_by_all_targets(self, lanes):
        builder = NetworkBuilder()
        inputs = builder.add_dummy("inputs", output_types=[FLOAT])
        source = builder.add_function(scalar("A", lambda x: x + 1))
        first = SingleSpy("First")
        second = SingleSpy("Second")
        first_node = builder.add_function(first)
        second_node = builder.add_function(second)
        outputs = builder.add_dummy("outputs", input_types=[FLOAT, FLOAT])
        builder.add_link(inputs.outputs[0], source.inputs[0])
        builder.add_link(source.outputs[0], first_node.inputs[0])
        builder.add_link(source.outputs[0], second_node.inputs[0])
        builder.add_link(first_node.outputs[0], outputs.inputs[0])
        builder.add_link(second_node.outputs[0], outputs.inputs[1])
        builder.build()
        evaluator = NetworkEvaluator(inputs.outputs, outputs.inputs)

        first_result, second_result = evaluate(evaluator, lanes)

        assert first.seen[0].shares_memory(second.seen[0])
        np.testing.assert_array_equal(first_result, [2.0, 3.0, 4.0])
        np.testing.assert_array_equal(second_result, [2.0, 3.0, 4.0])

    def test_network_input_shared(self, lanes):
        """测试网络单值输入以引用方式传给节点"""
        builder = NetworkBuilder()
        inputs = builder.add_dummy("inputs", output_types=[FLOAT])
        spy = SingleSpy()
        node = builder.add_function(spy)
        outputs = builder.add_dummy("outputs", input_types=[FLOAT])
        builder.add_link(inputs.outputs[0], node.inputs[0])
        builder.add_link(node.outputs[0], outputs.inputs[0])
        builder.build()
        evaluator = NetworkEvaluator(inputs.outputs, outputs.inputs)

        evaluate(evaluator, lanes)

        assert spy.seen[0].shares_memory(VirtualListRef.from_array(lanes))


class TestVectorForwarding:
    """测试列表输出的共享与隔离"""

    def _build(self):
        builder = NetworkBuilder()
        inputs = builder.add_dummy("inputs", output_types=[FLOAT])
        producer, reader, mutator = ListProducerSpy(), ListReaderSpy(), ListMutatorSpy()
        p = builder.add_function(producer)
        r = builder.add_function(reader)
        m = builder.add_function(mutator)
        outputs = builder.add_dummy(
            "outputs",
            input_types=[FLOAT_LIST, FLOAT_LIST, INT],
            input_names=["original", "mutated", "length"],
        )
        builder.add_link(inputs.outputs[0], p.inputs[0])
        builder.add_link(p.outputs[0], r.inputs[0])
        builder.add_link(p.outputs[0], m.inputs[0])
        builder.add_link(p.outputs[0], outputs.inputs[0])
        builder.add_link(m.outputs[0], outputs.inputs[1])
        builder.add_link(r.outputs[0], outputs.inputs[2])
        builder.build()
        evaluator = NetworkEvaluator(inputs.outputs, outputs.inputs)
        return evaluator, producer, reader, mutator

    def test_mutation_isolated_from_readers(self, lanes):
        """测试可变消费者的修改对只读消费者和网络输出不可见"""
        evaluator, producer, reader, mutator = self._build()

        original, mutated, length = evaluate(evaluator, lanes)

        assert original.to_lists() == [[1.0, 10.0], [2.0, 20.0], [3.0, 30.0]]
        assert mutated.to_lists() == [[1.0, 10.0, 99.0], [2.0, 20.0, 99.0], [3.0, 30.0, 99.0]]
        np.testing.assert_array_equal(length, [2, 2, 2])
        assert reader.snapshots == [[[1.0, 10.0], [2.0, 20.0], [3.0, 30.0]]]
        assert mutator.snapshots == [[[1.0, 10.0], [2.0, 20.0], [3.0, 30.0]]]

    def test_container_identities(self, lanes):
        """测试只读消费者共享生产者的容器，可变消费者得到副本"""
        evaluator, producer, reader, mutator = self._build()

        evaluate(evaluator, lanes)

        assert reader.views[0].vector_array is producer.produced[0]
        assert mutator.containers[0] is not producer.produced[0]

    def test_every_allocation_released_once(self, lanes):
        evaluator, producer, reader, mutator = self._build()
        trace, context = _traced()

        evaluate(evaluator, lanes, context=context)

        stats = trace.storage_stats
        assert stats.vector_arrays_allocated == 2
        assert stats.vector_arrays_released == 2
        assert producer.produced[0].released
        assert mutator.containers[0].released

    def test_mutable_chain_leaves_input_untouched(self):
        """测试可变节点链不会修改调用方的列表输入"""
        builder = NetworkBuilder()
        inputs = builder.add_dummy("inputs", output_types=[FLOAT_LIST, FLOAT], output_names=["list", "value"])
        first = builder.add_function(AppendToList(np.float64))
        second = builder.add_function(AppendToList(np.float64))
        outputs = builder.add_dummy("outputs", input_types=[FLOAT_LIST])
        builder.add_link(inputs.outputs[0], first.inputs[0])
        builder.add_link(inputs.outputs[1], first.inputs[1])
        builder.add_link(first.outputs[0], second.inputs[0])
        builder.add_link(inputs.outputs[1], second.inputs[1])
        builder.add_link(second.outputs[0], outputs.inputs[0])
        builder.build()
        evaluator = NetworkEvaluator(inputs.outputs, outputs.inputs)
        source = VectorArray(np.float64, 2)
        source.extend_single_copy(0, [1.0])
        trace, context = _traced()

        (result,) = evaluate(evaluator, source, np.array([5.0, 6.0]), context=context)

        assert source.to_lists() == [[1.0], []]
        assert result.to_lists() == [[1.0, 5.0, 5.0], [6.0, 6.0]]
        assert trace.storage_stats.vector_arrays_allocated == 2
        assert trace.storage_stats.vector_arrays_released == 2

    def test_input_copy_uses_consumer_dtype(self):
        """测试为可变消费者复制调用方列表时使用消费者声明的元素类型"""
        builder = NetworkBuilder()
        inputs = builder.add_dummy("inputs", output_types=[FLOAT_LIST, FLOAT], output_names=["list", "value"])
        append = builder.add_function(AppendToList(np.float64))
        outputs = builder.add_dummy("outputs", input_types=[FLOAT_LIST])
        builder.add_link(inputs.outputs[0], append.inputs[0])
        builder.add_link(inputs.outputs[1], append.inputs[1])
        builder.add_link(append.outputs[0], outputs.inputs[0])
        builder.build()
        evaluator = NetworkEvaluator(inputs.outputs, outputs.inputs)
        source = VectorArray(np.int64, 1)
        source.append_single(0, 1)

        (result,) = evaluate(evaluator, source, np.array([0.5]))

        assert result.to_lists() == [[1.0, 0.5]]
        assert source.to_lists() == [[1]]

    def test_vector_input_aliased_for_reader(self):
        builder = NetworkBuilder()
        inputs = builder.add_dummy("inputs", output_types=[FLOAT_LIST])
        reader = ListReaderSpy()
        node = builder.add_function(reader)
        outputs = builder.add_dummy("outputs", input_types=[INT, FLOAT_LIST])
        builder.add_link(inputs.outputs[0], node.inputs[0])
        builder.add_link(node.outputs[0], outputs.inputs[0])
        builder.add_link(inputs.outputs[0], outputs.inputs[1])
        builder.build()
        evaluator = NetworkEvaluator(inputs.outputs, outputs.inputs)
        source = VectorArray(np.float64, 2)
        source.extend_single_copy(1, [1.0, 2.0, 3.0])

        length, passthrough = evaluate(evaluator, source)

        assert reader.views[0].vector_array is source
        np.testing.assert_array_equal(length, [0, 3])
        assert passthrough.to_lists() == [[], [1.0, 2.0, 3.0]]
        assert not source.released


class TestMask:
    """测试掩码与空掩码"""

    def _params(self, evaluator, values, out):
        builder = ParamsBuilder(evaluator, len(out))
        builder.add_readonly_single_input(VirtualListRef.from_array(values))
        builder.add_single_output(out)
        return builder.build()

    def test_inactive_lanes_untouched(self, diamond):
        _, inputs, outputs = diamond
        evaluator = NetworkEvaluator(inputs.outputs, outputs.inputs)
        out = np.full(4, -1.0)

        evaluator.call(Mask([1, 3]), self._params(evaluator, np.array([1.0, 2.0, 3.0, 4.0]), out), Context())

        np.testing.assert_array_equal(out, [-1.0, 0.0, -1.0, 20.0])

    def test_vector_output_only_active_lanes(self):
        builder = NetworkBuilder()
        inputs = builder.add_dummy("inputs", output_types=[FLOAT])
        node = builder.add_function(ListProducerSpy())
        outputs = builder.add_dummy("outputs", input_types=[FLOAT_LIST])
        builder.add_link(inputs.outputs[0], node.inputs[0])
        builder.add_link(node.outputs[0], outputs.inputs[0])
        builder.build()
        evaluator = NetworkEvaluator(inputs.outputs, outputs.inputs)

        (result,) = evaluate(evaluator, np.array([1.0, 2.0, 3.0]), mask=Mask([0, 2]))

        assert result.to_lists() == [[1.0, 10.0], [], [3.0, 30.0]]

    def test_empty_mask_is_noop(self):
        """测试空掩码不调用任何节点"""
        builder = NetworkBuilder()
        inputs = builder.add_dummy("inputs", output_types=[FLOAT])
        node = builder.add_function(FailingFunction())
        outputs = builder.add_dummy("outputs", input_types=[FLOAT])
        builder.add_link(inputs.outputs[0], node.inputs[0])
        builder.add_link(node.outputs[0], outputs.inputs[0])
        builder.build()
        evaluator = NetworkEvaluator(inputs.outputs, outputs.inputs)
        out = np.full(2, 7.0)
        trace, context = _traced()

        evaluator.call(Mask([]), self._params(evaluator, np.zeros(2), out), context)

        np.testing.assert_array_equal(out, [7.0, 7.0])
        assert len(trace) == 0
        assert trace.storage_stats is None


class TestFailure:
    """测试节点异常"""

    def test_error_propagates_and_storage_released(self, lanes):
        builder = NetworkBuilder()
        inputs = builder.add_dummy("inputs", output_types=[FLOAT])
        producer = ListProducerSpy()
        p = builder.add_function(producer)
        total = builder.add_function(SumList(np.float64))
        failing = builder.add_function(FailingFunction())
        outputs = builder.add_dummy("outputs", input_types=[FLOAT])
        builder.add_link(inputs.outputs[0], p.inputs[0])
        builder.add_link(p.outputs[0], total.inputs[0])
        builder.add_link(total.outputs[0], failing.inputs[0])
        builder.add_link(failing.outputs[0], outputs.inputs[0])
        builder.build()
        evaluator = NetworkEvaluator(inputs.outputs, outputs.inputs)

        trace, context = _traced()

        with pytest.raises(RuntimeError, match="boom"):
            evaluate(evaluator, lanes, context=context)

        assert producer.produced[0].released
        assert trace.storage_stats.vector_arrays_allocated == 1
        assert trace.storage_stats.vector_arrays_released == 1


class TestDeepChain:
    """测试深链不依赖递归"""

    def test_long_chain(self):
        depth = 3000
        builder = NetworkBuilder()
        inputs = builder.add_dummy("inputs", output_types=[FLOAT])
        previous = inputs.outputs[0]
        for _ in range(depth):
            node = builder.add_function(
                CustomFunction("Inc", [("x", np.float64)], ("y", np.float64), lambda x: x + 1, vectorized=True)
            )
            builder.add_link(previous, node.inputs[0])
            previous = node.outputs[0]
        outputs = builder.add_dummy("outputs", input_types=[FLOAT])
        builder.add_link(previous, outputs.inputs[0])
        builder.build()
        evaluator = NetworkEvaluator(inputs.outputs, outputs.inputs)

        (result,) = evaluate(evaluator, np.array([0.0, 1.0]))

        np.testing.assert_array_equal(result, [3000.0, 3001.0])


class TestValidation:
    """测试构造时的校验"""

    def test_required_nodes_stop_at_boundary(self):
        """测试边界节点上游的函数节点不计入依赖"""
        builder = NetworkBuilder()
        source = builder.add_dummy("source", output_types=[FLOAT])
        upstream = builder.add_function(scalar("Upstream", lambda x: x))
        io = builder.add_dummy("io", input_types=[FLOAT], output_types=[FLOAT])
        node = builder.add_function(scalar("A", lambda x: x + 1))
        outputs = builder.add_dummy("outputs", input_types=[FLOAT])
        builder.add_link(source.outputs[0], upstream.inputs[0])
        builder.add_link(upstream.outputs[0], io.inputs[0])
        builder.add_link(io.outputs[0], node.inputs[0])
        builder.add_link(node.outputs[0], outputs.inputs[0])
        builder.build()
        evaluator = NetworkEvaluator(io.outputs, outputs.inputs)

        assert [n.name for n in evaluator.required_nodes()] == ["A"]
        (result,) = evaluate(evaluator, np.array([1.0, 2.0]))
        np.testing.assert_array_equal(result, [2.0, 3.0])

    def test_undeclared_input(self):
        builder = NetworkBuilder()
        inputs = builder.add_dummy("inputs", output_types=[FLOAT, FLOAT])
        node = builder.add_function(
            CustomFunction("Add", [("a", np.float64), ("b", np.float64)], ("y", np.float64), lambda a, b: a + b)
        )
        outputs = builder.add_dummy("outputs", input_types=[FLOAT])
        builder.add_link(inputs.outputs[0], node.inputs[0])
        builder.add_link(inputs.outputs[1], node.inputs[1])
        builder.add_link(node.outputs[0], outputs.inputs[0])
        builder.build()

        with pytest.raises(ValueError, match="未声明"):
            NetworkEvaluator([inputs.outputs[0]], outputs.inputs)

    def test_non_boundary_sockets(self, diamond):
        network, inputs, outputs = diamond
        a = network.node_by_name("A")

        with pytest.raises(ValueError):
            NetworkEvaluator(a.outputs, outputs.inputs)
        with pytest.raises(ValueError):
            NetworkEvaluator(inputs.outputs, a.inputs)

    def test_list_length_network(self):
        builder = NetworkBuilder()
        inputs = builder.add_dummy("inputs", output_types=[FLOAT_LIST])
        node = builder.add_function(ListLength(np.float64))
        outputs = builder.add_dummy("outputs", input_types=[INT])
        builder.add_link(inputs.outputs[0], node.inputs[0])
        builder.add_link(node.outputs[0], outputs.inputs[0])
        builder.build()
        evaluator = NetworkEvaluator(inputs.outputs, outputs.inputs)

        (result,) = evaluate(evaluator, [[1.0], [], [1.0, 2.0]])

        np.testing.assert_array_equal(result, [1, 0, 2])


class TestLogging:
    """测试调用日志"""

    def test_log_invocations(self, diamond, lanes, caplog):
        _, inputs, outputs = diamond
        evaluator = NetworkEvaluator(inputs.outputs, outputs.inputs, EvaluationConfig(log_invocations=True))

        with caplog.at_level(logging.DEBUG, logger="LaneGraph"):
            evaluate(evaluator, lanes)

        messages = [r.getMessage() for r in caplog.records if r.name == "LaneGraph.processing.invocation"]
        assert len(messages) == 4
        assert any("A" in message for message in messages)
