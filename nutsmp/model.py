# nutsmp/model.py
# --------------------------------------------------------------
# Author: Emmanuel Vazquez <emmanuel.vazquez@centralesupelec.fr>
# Copyright (c) 2022-2026, CentraleSupelec
# License: GPLv3 (see LICENSE)
# --------------------------------------------------------------
"""
Model interface consumed by the samplers.

A model lives on R^dim (the unconstrained space) and exposes
  log_prob(q) -> scalar
with q of shape (dim,). Non-finite values are allowed: they mark points
outside the support and are treated as rejections, never as errors.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Callable, List, Optional, Sequence, Tuple

import numpy as np

import nutsmp.num as gnp

ArrayLike = Any


class Model(ABC):
    """Abstract target density on the unconstrained space."""

    @property
    @abstractmethod
    def dim(self) -> int:
        ...

    def unconstrained_param_names(self) -> List[str]:
        return [f"q.{i + 1}" for i in range(self.dim)]

    def constrained_param_names(self) -> List[str]:
        return self.unconstrained_param_names()

    @abstractmethod
    def log_prob(self, q: ArrayLike) -> ArrayLike:
        ...

    def log_prob_grad(self, q: ArrayLike) -> Tuple[float, ArrayLike]:
        """Return (log_prob(q), grad log_prob(q))."""
        lp, g = gnp.value_and_grad(self.log_prob, q)
        return float(lp), g

    def write_array(self, rng: np.random.Generator, q: ArrayLike) -> np.ndarray:
        """Map an unconstrained point to the values written for a draw.

        rng is available for generated quantities; the identity map does
        not use it.
        """
        return np.asarray(gnp.to_np(q), dtype=float).reshape(-1)


class LogDensityModel(Model):
    """Wrap a log-density callable as a Model."""

    def __init__(
        self,
        log_prob: Callable[[ArrayLike], ArrayLike],
        dim: int,
        names: Optional[Sequence[str]] = None,
    ):
        if dim < 1:
            raise ValueError("dim must be a positive integer")
        if names is not None and len(names) != dim:
            raise ValueError("names must have length dim")
        self._log_prob = log_prob
        self._dim = int(dim)
        self._names = None if names is None else list(names)

    @property
    def dim(self) -> int:
        return self._dim

    def unconstrained_param_names(self) -> List[str]:
        if self._names is None:
            return super().unconstrained_param_names()
        return list(self._names)

    def log_prob(self, q: ArrayLike) -> ArrayLike:
        return self._log_prob(q)
