"""Uniform random variate sources injected into every sampler.

Samplers never touch a global generator.  A ``RandomVariateSource`` is
anything with a ``next_uniform()`` method returning a float in ``[0, 1)``;
``NumpyRandomSource`` is the production implementation.

Sources hold mutable generator state and are not synchronized.  Create one
per analysis (or per thread) rather than sharing a single instance.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

import numpy as np


@runtime_checkable
class RandomVariateSource(Protocol):
    def next_uniform(self) -> float:
        """Return the next uniform variate in ``[0, 1)``."""
        ...


class NumpyRandomSource:
    """``RandomVariateSource`` backed by ``numpy.random.default_rng``.

    Uniforms are drawn from the generator in blocks and handed out one at a
    time, so a seeded source yields the same stream regardless of how the
    samplers consume it.

    Parameters
    ----------
    seed : int | None
        Optional RNG seed for reproducibility.
    block_size : int
        Number of uniforms fetched from the generator per refill.
    """

    __slots__ = ("_rng", "_block_size", "_buffer", "_pos")

    def __init__(self, seed: int | None = None, block_size: int = 4096) -> None:
        if block_size <= 0:
            raise ValueError("block_size must be positive")
        self._rng = np.random.default_rng(seed)
        self._block_size = block_size
        self._buffer = np.empty(0)
        self._pos = 0

    def next_uniform(self) -> float:
        if self._pos >= len(self._buffer):
            self._buffer = self._rng.random(self._block_size)
            self._pos = 0
        value = self._buffer[self._pos]
        self._pos += 1
        return float(value)

    def __repr__(self) -> str:
        return f"NumpyRandomSource(block_size={self._block_size})"
