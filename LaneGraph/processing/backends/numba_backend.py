"""Numba 后端实现，负责按掩码复制元素的 JIT 内核。"""

from threading import Lock
from typing import Callable, Dict

import numba
import numpy as np

# 可由 numba 编译的元素类型: 布尔、整数、浮点、复数
_NUMERIC_KINDS = "biufc"


def _masked_copy(src, dst, indices):
    for k in range(indices.shape[0]):
        i = indices[k]
        dst[i] = src[i]


def _masked_fill(value, dst, indices):
    for k in range(indices.shape[0]):
        dst[indices[k]] = value


_KERNELS: Dict[str, Callable] = {
    "masked_copy": _masked_copy,
    "masked_fill": _masked_fill,
}


class NumbaBackend:
    """Numba 高性能复制后端。"""

    name = "numba"

    # 编译后的内核在所有实例间共享
    _cache: Dict[str, Callable] = {}
    _lock = Lock()

    def _kernel(self, name: str) -> Callable:
        kernel = self._cache.get(name)
        if kernel is None:
            with self._lock:
                if name not in self._cache:
                    self._cache[name] = numba.njit(cache=False)(_KERNELS[name])
                kernel = self._cache[name]
        return kernel

    @staticmethod
    def _jittable(*arrays: np.ndarray) -> bool:
        return all(arr.dtype.kind in _NUMERIC_KINDS for arr in arrays) and arrays[0].dtype == arrays[-1].dtype

    def masked_copy(self, src: np.ndarray, dst: np.ndarray, indices: np.ndarray) -> None:
        """把 ``src`` 中活动通道的元素复制到 ``dst`` 的相同位置。

        Args:
            src: 源数组
            dst: 目标数组
            indices: 活动通道索引
        """
        if self._jittable(src, dst):
            self._kernel("masked_copy")(src, dst, indices)
        else:
            # object/字符串类型不能编译, 使用 NumPy 花式索引
            dst[indices] = src[indices]

    def masked_fill(self, value, dst: np.ndarray, indices: np.ndarray) -> None:
        """把同一个值写入 ``dst`` 的活动通道。"""
        if dst.dtype.kind in _NUMERIC_KINDS:
            self._kernel("masked_fill")(dst.dtype.type(value), dst, indices)
        else:
            dst[indices] = value
