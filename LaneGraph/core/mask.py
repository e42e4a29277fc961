"""
Lane Mask
=========

Ordered set of active lane indices for one evaluation call.
The mask is read-only once built and can be shared between concurrent calls.
"""

from typing import Iterator, Sequence, Union

import numpy as np


class Mask:
    """
    Ordered set of active lane indices.

    Features:
    - Indices are strictly increasing and non-negative.
    - ``min_array_size`` gives the capacity needed to address every active lane.
    """

    def __init__(self, indices: Union[Sequence[int], np.ndarray]):
        """
        Initialize the Mask.

        Args:
            indices: Active lane indices in ascending order.

        Raises:
            ValueError: If indices are negative, unsorted or duplicated.
        """
        arr = np.array(indices, dtype=np.int64).ravel()
        if arr.size:
            if arr[0] < 0:
                raise ValueError(f"掩码索引不能为负数: {arr[0]}")
            if np.any(np.diff(arr) <= 0):
                raise ValueError("掩码索引必须严格递增")
        arr.flags.writeable = False
        self._indices = arr

    @classmethod
    def from_range(cls, size: int) -> "Mask":
        """Mask covering lanes ``0 .. size - 1``."""
        if size < 0:
            raise ValueError(f"size must be non-negative, got {size}")
        return cls(np.arange(size, dtype=np.int64))

    @classmethod
    def from_bool(cls, selection: Union[Sequence[bool], np.ndarray]) -> "Mask":
        """Mask of the lanes where ``selection`` is true."""
        return cls(np.flatnonzero(np.asarray(selection, dtype=bool)))

    @property
    def indices(self) -> np.ndarray:
        """Read-only array of active lane indices."""
        return self._indices

    @property
    def indices_amount(self) -> int:
        return int(self._indices.size)

    @property
    def min_array_size(self) -> int:
        """Smallest buffer length that can hold every active lane."""
        if self._indices.size == 0:
            return 0
        return int(self._indices[-1]) + 1

    def is_range(self) -> bool:
        """Check whether the mask is a contiguous range starting at lane 0."""
        return self.indices_amount == self.min_array_size

    def __len__(self) -> int:
        return self.indices_amount

    def __iter__(self) -> Iterator[int]:
        return (int(i) for i in self._indices)

    def __contains__(self, index: object) -> bool:
        if not isinstance(index, (int, np.integer)):
            return False
        pos = int(np.searchsorted(self._indices, index))
        return pos < self._indices.size and self._indices[pos] == index

    def __repr__(self) -> str:
        if self.is_range():
            return f"Mask(range={self.min_array_size})"
        return f"Mask(indices={self._indices.tolist()})"
