# nutsmp/num/numpy_backend.py
# --------------------------------------------------------------
# Author: Emmanuel Vazquez <emmanuel.vazquez@centralesupelec.fr>
# Copyright (c) 2022-2026, CentraleSupelec
# License: GPLv3 (see LICENSE)
# --------------------------------------------------------------
"""NumPy numerical backend for nutsmp.

Arrays are float64 numpy arrays; gradients are computed by finite
differences.
"""

from typing import Any, Callable, Tuple

import numpy
from numpy import copy, sum

from nutsmp.config import get_logger
from .shared import derivative_finite_diff

ArrayLike = Any

get_logger().debug("Using backend: numpy")


def asarray(x):
    if isinstance(x, (int, float)):
        return numpy.array([x], dtype=numpy.float64)
    out = numpy.asarray(x)
    if numpy.issubdtype(out.dtype, numpy.floating):
        return out.astype(numpy.float64, copy=False)
    return out


def to_np(x):
    return numpy.asarray(x)


def _as_scalar(y):
    y = numpy.asarray(y)
    if y.size != 1:
        raise ValueError("f(x) must return a scalar.")
    return y.reshape(())


def value_and_grad(
    f: Callable[[ArrayLike], ArrayLike],
    x: ArrayLike,
    *,
    h: float = 1e-5,
) -> Tuple[ArrayLike, ArrayLike]:
    """Returns (y, grad_y) where y = f(x) is scalar, the gradient being
    obtained by central differences along each coordinate. The gradient
    is zero where y is not finite.

    """
    x = asarray(x).astype(numpy.float64)
    y = _as_scalar(f(x))
    grad = numpy.zeros_like(x)
    if not numpy.isfinite(y):
        return y, grad
    x_tmp = x.copy()
    for idx in range(x.shape[0]):

        def f_i(xi):
            x_tmp[idx] = xi
            return _as_scalar(f(x_tmp))

        grad[idx] = derivative_finite_diff(f_i, float(x[idx]), h)
        x_tmp[idx] = x[idx]  # restore
    return y, grad
