"""NumPy 后端实现，作为复制内核的参考实现。"""

import numpy as np


class NumpyBackend:
    """纯 NumPy 复制后端。"""

    name = "numpy"

    def masked_copy(self, src: np.ndarray, dst: np.ndarray, indices: np.ndarray) -> None:
        dst[indices] = src[indices]

    def masked_fill(self, value, dst: np.ndarray, indices: np.ndarray) -> None:
        dst[indices] = value
