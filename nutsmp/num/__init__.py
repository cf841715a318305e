# nutsmp/num/__init__.py
# --------------------------------------------------------------
# Author: Emmanuel Vazquez <emmanuel.vazquez@centralesupelec.fr>
# Copyright (c) 2022-2026, CentraleSupelec
# License: GPLv3 (see LICENSE)
# --------------------------------------------------------------
"""Numerical backend dispatcher for nutsmp.

Exposes asarray, copy, sum, to_np and value_and_grad from the selected
backend, plus the backend-independent all_finite.
"""

from nutsmp.config import get_backend

from . import shared as _shared

_nutsmp_backend_ = get_backend()

if _nutsmp_backend_ == "numpy":
    from .numpy_backend import asarray, copy, sum, to_np, value_and_grad
elif _nutsmp_backend_ == "torch":
    from .torch_backend import asarray, copy, sum, to_np, value_and_grad
else:
    raise RuntimeError(
        "Please set the NUTSMP_BACKEND environment variable to 'numpy' or 'torch'."
    )

all_finite = _shared.all_finite
