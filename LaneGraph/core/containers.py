"""通用数据容器。

本模块提供求值引擎使用的批量数据容器：

- VirtualListRef: 只读的单值视图 (每个通道一个值)
- VirtualListListRef: 只读的列表视图 (每个通道一个变长列表)
- VectorArray: 可写、可拥有的逐通道变长列表容器
- allocate_array: 分配未初始化的批量缓冲区

引擎只关心复制与所有权转移，具体内存布局由 NumPy 决定。
"""

import copy
from typing import Any, Iterator, List, Optional, Sequence

import numpy as np

ArrayLike = Any


def _readonly(array: np.ndarray) -> np.ndarray:
    view = array.view()
    view.flags.writeable = False
    return view


def _to_array(values: Sequence[Any], dtype: np.dtype) -> np.ndarray:
    """把一个通道的元素转换为一维数组，object 类型逐元素赋值以避免被展开。"""
    if dtype.kind == "O":
        arr = np.empty(len(values), dtype=object)
        for k, value in enumerate(values):
            arr[k] = value
        return arr
    return np.asarray(values, dtype=dtype).reshape(-1)


def _infer_dtype(lists: Sequence[Sequence[Any]]) -> np.dtype:
    flat = [value for lane in lists for value in lane]
    if not flat:
        return np.dtype(np.float64)
    return np.asarray(flat).dtype


def allocate_array(dtype: Any, size: int) -> np.ndarray:
    """分配未初始化的批量缓冲区。

    Args:
        dtype: 元素类型
        size: 缓冲区长度 (通常为 mask.min_array_size)

    Returns:
        np.ndarray: 新分配的一维数组
    """
    return np.empty(size, dtype=np.dtype(dtype))


class VirtualListRef:
    """只读单值视图。

    视图要么引用一个完整的一维数组，要么把单个元素广播到所有通道。
    多个消费者可以持有同一个底层数组的视图 (别名共享)。

    Attributes:
        size: 可寻址的通道数
        dtype: 元素类型
    """

    def __init__(self, data: np.ndarray, size: int, single_element: bool = False) -> None:
        self._data = data
        self._size = size
        self._single_element = single_element
        if single_element:
            self._view = np.broadcast_to(data, (size,))
        else:
            self._view = _readonly(data)

    @classmethod
    def from_array(cls, array: ArrayLike) -> "VirtualListRef":
        """引用完整数组创建视图，不复制数据。"""
        data = np.asarray(array)
        if data.ndim != 1:
            raise ValueError(f"单值视图需要一维数组, 实际维度: {data.ndim}")
        return cls(data, data.shape[0])

    @classmethod
    def from_single(cls, value: Any, size: int, dtype: Any = None) -> "VirtualListRef":
        """把单个值广播到 ``size`` 个通道。"""
        dt = np.dtype(dtype) if dtype is not None else np.asarray(value).dtype
        data = np.empty(1, dtype=dt)
        data[0] = value
        return cls(data, size, single_element=True)

    @property
    def size(self) -> int:
        return self._size

    @property
    def dtype(self) -> np.dtype:
        return self._data.dtype

    @property
    def is_single_element(self) -> bool:
        return self._single_element

    @property
    def single_value(self) -> Any:
        if not self._single_element:
            raise ValueError("视图不是单元素广播")
        return self._data[0]

    @property
    def array(self) -> np.ndarray:
        """只读数组视图，与底层缓冲区共享内存。"""
        return self._view

    def values_at(self, indices: np.ndarray) -> np.ndarray:
        """按通道索引收集元素 (返回副本)。"""
        if self._single_element:
            return np.full(len(indices), self._data[0], dtype=self._data.dtype)
        return self._data[indices]

    def shares_memory(self, other: "VirtualListRef") -> bool:
        return bool(np.shares_memory(self._data, other._data))

    def __getitem__(self, index: int) -> Any:
        if not 0 <= index < self._size:
            raise IndexError(f"通道索引越界: {index} (size={self._size})")
        if self._single_element:
            return self._data[0]
        return self._data[index]

    def __len__(self) -> int:
        return self._size

    def __repr__(self) -> str:
        kind = "single" if self._single_element else "array"
        return f"VirtualListRef({kind}, size={self._size}, dtype={self.dtype})"


class VectorArray:
    """逐通道变长列表容器。

    VectorArray 是求值过程中唯一会被就地修改的列表容器。由 Storage 分配的
    实例登记在所有权账本中，调用结束时恰好释放一次。

    Attributes:
        dtype: 元素类型
        size: 通道数
    """

    def __init__(self, dtype: Any, size: int) -> None:
        """初始化容器。

        Args:
            dtype: 元素类型
            size: 通道数
        """
        self._dtype = np.dtype(dtype)
        self._lanes: List[List[Any]] = [[] for _ in range(size)]
        self._size = size
        self._released = False

    @property
    def dtype(self) -> np.dtype:
        return self._dtype

    @property
    def size(self) -> int:
        return self._size

    @property
    def released(self) -> bool:
        return self._released

    def _check_alive(self) -> None:
        if self._released:
            raise RuntimeError("VectorArray 已释放, 不能再访问")

    def _coerce(self, value: Any) -> Any:
        if self._dtype.kind == "O":
            return value
        return np.asarray(value, dtype=self._dtype).item()

    def _copy_values(self, values: Any) -> List[Any]:
        if self._dtype.kind == "O":
            return [copy.deepcopy(value) for value in values]
        return np.asarray(values, dtype=self._dtype).reshape(-1).tolist()

    def append_single(self, index: int, value: Any) -> None:
        """向通道 ``index`` 追加一个元素。"""
        self._check_alive()
        self._lanes[index].append(self._coerce(value))

    def extend_single_copy(self, index: int, values: Any) -> None:
        """把 ``values`` 的副本追加到通道 ``index``。"""
        self._check_alive()
        self._lanes[index].extend(self._copy_values(values))

    def lane(self, index: int) -> List[Any]:
        """返回通道 ``index`` 的可变列表 (就地修改用)。"""
        self._check_alive()
        return self._lanes[index]

    def lengths(self) -> np.ndarray:
        self._check_alive()
        return np.array([len(lane) for lane in self._lanes], dtype=np.int64)

    def to_lists(self) -> List[List[Any]]:
        """返回所有通道内容的浅拷贝。"""
        self._check_alive()
        return [list(lane) for lane in self._lanes]

    def release(self) -> None:
        """释放容器内容。

        Raises:
            AssertionError: 重复释放
        """
        if self._released:
            raise AssertionError("VectorArray 重复释放")
        self._lanes = []
        self._released = True

    def __getitem__(self, index: int) -> np.ndarray:
        self._check_alive()
        return _readonly(_to_array(self._lanes[index], self._dtype))

    def __len__(self) -> int:
        return self._size

    def __iter__(self) -> Iterator[np.ndarray]:
        return (self[i] for i in range(self._size))

    def __repr__(self) -> str:
        state = "released" if self._released else f"size={self._size}"
        return f"VectorArray({state}, dtype={self._dtype})"


class VirtualListListRef:
    """只读列表视图。

    视图可以引用一个 VectorArray (别名共享)、一组外部提供的列表，
    或者把同一个列表广播到所有通道。

    Attributes:
        size: 通道数
        dtype: 元素类型
    """

    def __init__(
        self,
        size: int,
        dtype: np.dtype,
        vector_array: Optional[VectorArray] = None,
        lanes: Optional[Sequence[np.ndarray]] = None,
        single_lane: Optional[np.ndarray] = None,
    ) -> None:
        self._size = size
        self._dtype = np.dtype(dtype)
        self._vector_array = vector_array
        self._lanes = lanes
        self._single_lane = single_lane

    @classmethod
    def from_vector_array(cls, vector_array: VectorArray) -> "VirtualListListRef":
        """引用 VectorArray 创建只读视图，不复制数据。"""
        return cls(vector_array.size, vector_array.dtype, vector_array=vector_array)

    @classmethod
    def from_lists(cls, lists: Sequence[Sequence[Any]], dtype: Any = None) -> "VirtualListListRef":
        """由外部列表创建视图。"""
        dt = np.dtype(dtype) if dtype is not None else _infer_dtype(lists)
        lanes = tuple(_readonly(_to_array(lane, dt)) for lane in lists)
        return cls(len(lanes), dt, lanes=lanes)

    @classmethod
    def from_single_list(cls, values: Sequence[Any], size: int, dtype: Any = None) -> "VirtualListListRef":
        """把同一个列表广播到 ``size`` 个通道。"""
        dt = np.dtype(dtype) if dtype is not None else _infer_dtype([values])
        return cls(size, dt, single_lane=_readonly(_to_array(values, dt)))

    @property
    def size(self) -> int:
        return self._size

    @property
    def dtype(self) -> np.dtype:
        return self._dtype

    @property
    def vector_array(self) -> Optional[VectorArray]:
        """被引用的 VectorArray，外部列表视图返回 None。"""
        return self._vector_array

    def lane_length(self, index: int) -> int:
        return len(self[index])

    def __getitem__(self, index: int) -> np.ndarray:
        if not 0 <= index < self._size:
            raise IndexError(f"通道索引越界: {index} (size={self._size})")
        if self._vector_array is not None:
            return self._vector_array[index]
        if self._single_lane is not None:
            return self._single_lane
        return self._lanes[index]

    def __len__(self) -> int:
        return self._size

    def __iter__(self) -> Iterator[np.ndarray]:
        return (self[i] for i in range(self._size))

    def __repr__(self) -> str:
        return f"VirtualListListRef(size={self._size}, dtype={self._dtype})"


def as_virtual_list(values: Any, size: int, dtype: Any = None) -> VirtualListRef:
    """把数组或标量转换为只读单值视图。"""
    if isinstance(values, VirtualListRef):
        return values
    if isinstance(values, np.ndarray) and values.ndim == 1:
        return VirtualListRef.from_array(values)
    if isinstance(values, (list, tuple)):
        return VirtualListRef.from_array(np.asarray(values, dtype=dtype))
    return VirtualListRef.from_single(values, size, dtype)


def as_virtual_list_list(values: Any, dtype: Any = None) -> VirtualListListRef:
    """把 VectorArray 或嵌套列表转换为只读列表视图。"""
    if isinstance(values, VirtualListListRef):
        return values
    if isinstance(values, VectorArray):
        return VirtualListListRef.from_vector_array(values)
    return VirtualListListRef.from_lists(values, dtype)
