# nutsmp/num/torch_backend.py
# --------------------------------------------------------------
# Author: Emmanuel Vazquez <emmanuel.vazquez@centralesupelec.fr>
# Copyright (c) 2022-2026, CentraleSupelec
# License: GPLv3 (see LICENSE)
# --------------------------------------------------------------
"""Torch numerical backend for nutsmp.

Arrays are float64 tensors; gradients are computed with torch.autograd.
"""

import numpy
import torch
from torch import sum

from nutsmp.config import get_logger

torch.set_default_dtype(torch.float64)
get_logger().debug("Using backend: torch")


def asarray(x):
    if isinstance(x, (int, float)):
        return torch.tensor([x], dtype=torch.float64)
    if isinstance(x, numpy.ndarray):
        x = torch.from_numpy(numpy.ascontiguousarray(x))
    x = torch.as_tensor(x)
    if x.is_floating_point() and x.dtype != torch.float64:
        x = x.to(dtype=torch.float64)
    return x


def copy(x):
    return asarray(x).clone().detach()


def to_np(x):
    if torch.is_tensor(x):
        return x.detach().cpu().numpy()
    return numpy.asarray(x)


def value_and_grad(f, x):
    # Returns (y, grady) with y = f(x); grady is zero where y is not finite
    with torch.enable_grad():
        x_ = asarray(x).detach().to(dtype=torch.float64).requires_grad_(True)
        y = f(x_)
        if not torch.is_tensor(y):
            raise ValueError("f(x) must return a torch scalar tensor.")
        if y.numel() != 1:
            raise ValueError("f(x) must return a scalar.")
        y = y.reshape(())
        if not torch.isfinite(y):
            return y.detach(), torch.zeros_like(x_).detach()
        (g,) = torch.autograd.grad(y, x_, allow_unused=True)
        if g is None:
            g = torch.zeros_like(x_)
    return y.detach(), g.detach()
