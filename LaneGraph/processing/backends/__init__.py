"""边界复制后端。"""

from typing import Union

from .numba_backend import NumbaBackend
from .numpy_backend import NumpyBackend

Backend = Union[NumbaBackend, NumpyBackend]

_BACKENDS = {
    "numba": NumbaBackend,
    "numpy": NumpyBackend,
}


def get_backend(name: str) -> Backend:
    """按名称创建后端实例。

    Raises:
        ValueError: 未知后端
    """
    try:
        return _BACKENDS[name]()
    except KeyError:
        raise ValueError(f"未知后端: {name} (可选: {sorted(_BACKENDS)})") from None


__all__ = ["Backend", "NumbaBackend", "NumpyBackend", "get_backend"]
