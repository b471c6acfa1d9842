"""
===============================================================================
AHRS PROJECT - Innovation History Ring Buffer
===============================================================================
Fixed-capacity circular buffer of 3x3 innovation outer products used by the
adaptive external-acceleration estimator.

Memory layout
-------------
One pre-allocated ``float64[capacity, 3, 3]`` array. Writes go to slot
``count % capacity``; unfilled slots stay zero, so the windowed sum is the
sum over all slots.
===============================================================================
"""

import numpy as np

from core.constants import NUMAXIS


class InnovationHistory:
    """Ring buffer of the last ``capacity`` innovation covariance samples.

    Parameters
    ----------
    capacity : int
        Window length (M1).
    dim : int, optional
        Side of each stored square matrix. Default 3.
    """

    def __init__(self, capacity: int, dim: int = NUMAXIS) -> None:
        if capacity <= 0:
            raise ValueError(f"capacity must be positive, got {capacity}")

        self._capacity: int = capacity
        self._dim: int = dim
        self._slots: np.ndarray = np.zeros((capacity, dim, dim), dtype=np.float64)
        self._count: int = 0

    # -- write -------------------------------------------------------------

    def push(self, sample: np.ndarray) -> None:
        """Store ``sample`` in slot ``count % capacity``, overwriting the oldest.

        Raises
        ------
        ValueError
            If ``sample`` is not ``dim`` x ``dim``.
        """
        sample = np.asarray(sample, dtype=np.float64)
        if sample.shape != (self._dim, self._dim):
            raise ValueError(
                f"Expected sample of shape ({self._dim}, {self._dim}), got {sample.shape}"
            )

        slot = self._count % self._capacity
        self._slots[slot] = sample
        self._count += 1

    def clear(self) -> None:
        self._slots[:] = 0.0
        self._count = 0

    # -- read --------------------------------------------------------------

    @property
    def total(self) -> np.ndarray:
        """Sum of all slots (unfilled slots count as zero)."""
        return self._slots.sum(axis=0)

    @property
    def count(self) -> int:
        """Number of samples pushed since construction or ``clear``."""
        return self._count

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def is_full(self) -> bool:
        return self._count >= self._capacity

    def to_array(self) -> np.ndarray:
        """Stored samples in chronological order, shape ``(k, dim, dim)``."""
        if self._count < self._capacity:
            return self._slots[:self._count].copy()
        head = self._count % self._capacity
        return np.roll(self._slots, -head, axis=0).copy()

    def __len__(self) -> int:
        return min(self._count, self._capacity)

    def __repr__(self) -> str:
        return (
            f"InnovationHistory(count={len(self)}/{self._capacity}, "
            f"pushed={self._count})"
        )
