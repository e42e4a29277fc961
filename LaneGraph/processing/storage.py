"""求值存储模块。

Storage 是单次求值调用的临时空间：

- 输入套接字 id -> 已计算的值 (VirtualListRef / VirtualListListRef / VectorArray)
- 所有权账本：本次调用分配的全部缓冲区，调用结束时恰好释放一次

容器只能通过 ``allocate_*`` / ``copy_vector_array`` 进入账本，分配与登记是
同一步操作，因此同一块分配不可能被登记两次。
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Set, Union

import numpy as np

from ..core.containers import VectorArray, VirtualListListRef, VirtualListRef, allocate_array
from ..core.mask import Mask
from ..core.network import InputSocket

logger = logging.getLogger(__name__)

StoredValue = Union[VirtualListRef, VirtualListListRef, VectorArray]


@dataclass
class StorageStats:
    """所有权账本统计。

    Attributes:
        arrays_allocated: 分配的单值缓冲区数量
        vector_arrays_allocated: 分配的 VectorArray 数量
        vector_arrays_released: 已释放的 VectorArray 数量
        values_stored: 已写入的输入套接字数量
    """

    arrays_allocated: int = 0
    vector_arrays_allocated: int = 0
    vector_arrays_released: int = 0
    values_stored: int = 0


class Storage:
    """单次求值调用的存储与所有权账本。

    Storage 只属于一次调用，不能在并发调用之间共享。

    Attributes:
        mask: 本次调用的活动通道
        array_size: 新分配缓冲区的长度
    """

    def __init__(self, mask: Mask) -> None:
        """初始化存储。

        Args:
            mask: 活动通道，决定新缓冲区的长度
        """
        self.mask = mask
        self.array_size = mask.min_array_size
        self._values: Dict[int, StoredValue] = {}
        self._owned_arrays: List[np.ndarray] = []
        self._owned_vector_arrays: List[VectorArray] = []
        self._owned_ids: Set[int] = set()
        self._stats = StorageStats()
        self._released = False

    def __enter__(self) -> "Storage":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.release()

    @property
    def stats(self) -> StorageStats:
        return self._stats

    @property
    def released(self) -> bool:
        return self._released

    # -- 分配 ---------------------------------------------------------------

    def allocate_array(self, dtype: Any) -> np.ndarray:
        """分配单值输出缓冲区并登记所有权。"""
        array = allocate_array(dtype, self.array_size)
        self._owned_arrays.append(array)
        self._stats.arrays_allocated += 1
        return array

    def allocate_vector_array(self, dtype: Any) -> VectorArray:
        """分配空的 VectorArray 并登记所有权。"""
        return self._own(VectorArray(dtype, self.array_size))

    def copy_vector_array(
        self, source: Union[VirtualListListRef, VectorArray], dtype: Any = None
    ) -> VectorArray:
        """逐通道复制 ``source`` 到新分配的 VectorArray，并登记所有权。

        Args:
            source: 被复制的列表
            dtype: 新容器的元素类型，默认沿用 ``source.dtype``
        """
        copied = self._own(VectorArray(source.dtype if dtype is None else dtype, source.size))
        for i in range(source.size):
            copied.extend_single_copy(i, source[i])
        return copied

    def _own(self, vector_array: VectorArray) -> VectorArray:
        self._owned_vector_arrays.append(vector_array)
        self._owned_ids.add(id(vector_array))
        self._stats.vector_arrays_allocated += 1
        return vector_array

    def owns(self, vector_array: VectorArray) -> bool:
        return id(vector_array) in self._owned_ids

    # -- 写入 ---------------------------------------------------------------

    def _set(self, socket: InputSocket, value: StoredValue) -> None:
        if socket.id in self._values:
            raise AssertionError(f"输入套接字重复赋值: {socket!r}")
        self._values[socket.id] = value
        self._stats.values_stored += 1

    def set_virtual_list_for_input(self, socket: InputSocket, values: VirtualListRef) -> None:
        self._set(socket, values)

    def set_virtual_list_list_for_input(self, socket: InputSocket, values: VirtualListListRef) -> None:
        self._set(socket, values)

    def set_vector_array_for_input(self, socket: InputSocket, vector_array: VectorArray) -> None:
        """为需要可变访问的输入登记一个自有的 VectorArray。"""
        if not self.owns(vector_array):
            raise AssertionError(f"可变列表输入必须使用 Storage 分配的容器: {socket!r}")
        self._set(socket, vector_array)

    # -- 读取 ---------------------------------------------------------------

    def input_is_computed(self, socket: InputSocket) -> bool:
        return socket.id in self._values

    def _get(self, socket: InputSocket) -> StoredValue:
        try:
            return self._values[socket.id]
        except KeyError:
            raise AssertionError(f"输入套接字尚未计算: {socket!r}") from None

    def get_virtual_list_for_input(self, socket: InputSocket) -> VirtualListRef:
        value = self._get(socket)
        if not isinstance(value, VirtualListRef):
            raise AssertionError(f"{socket!r} 存储的不是单值视图")
        return value

    def get_virtual_list_list_for_input(self, socket: InputSocket) -> VirtualListListRef:
        value = self._get(socket)
        if isinstance(value, VectorArray):
            return VirtualListListRef.from_vector_array(value)
        if not isinstance(value, VirtualListListRef):
            raise AssertionError(f"{socket!r} 存储的不是列表视图")
        return value

    def get_vector_array_for_input(self, socket: InputSocket) -> VectorArray:
        value = self._get(socket)
        if not isinstance(value, VectorArray):
            raise AssertionError(f"{socket!r} 存储的不是可变列表容器")
        return value

    # -- 释放 ---------------------------------------------------------------

    def release(self) -> StorageStats:
        """释放账本中的全部分配，每个容器恰好释放一次。

        重复调用不会再次释放。

        Returns:
            StorageStats: 账本统计
        """
        if self._released:
            return self._stats
        for vector_array in self._owned_vector_arrays:
            vector_array.release()
            self._stats.vector_arrays_released += 1
        self._owned_vector_arrays.clear()
        self._owned_ids.clear()
        self._owned_arrays.clear()
        self._values.clear()
        self._released = True
        logger.debug(
            f"Storage 已释放: {self._stats.arrays_allocated} 个数组, "
            f"{self._stats.vector_arrays_released} 个列表容器"
        )
        return self._stats

    def __repr__(self) -> str:
        return (
            f"Storage(size={self.array_size}, values={len(self._values)}, "
            f"owned={len(self._owned_arrays) + len(self._owned_vector_arrays)})"
        )
