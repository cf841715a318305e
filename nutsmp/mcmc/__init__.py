# nutsmp/mcmc/__init__.py
# --------------------------------------------------------------
# Author: Emmanuel Vazquez <emmanuel.vazquez@centralesupelec.fr>
# Copyright (c) 2022-2026, CentraleSupelec
# License: GPLv3 (see LICENSE)
# --------------------------------------------------------------
"""
Markov chain Monte Carlo building blocks for nutsmp.

Public API
----------
ChainState, TransitionRecord
    Chain state and result of one transition.
TransitionKernel, AdaptiveSampler
    Kernel interface and the kernel + step-size adaptation coupling.
UnitENutsKernel
    NUTS transition with a unit Euclidean metric.
StepsizeAdaptation, DualAveragingStatistics, mean_statistics
    Dual-averaging controller and cross-chain combination helpers.
"""
from __future__ import annotations

import importlib

__all__ = [
    "ChainState",
    "TransitionRecord",
    "TransitionKernel",
    "AdaptiveSampler",
    "UnitENutsKernel",
    "StepsizeAdaptation",
    "DualAveragingStatistics",
    "mean_statistics",
]

_EXPORT_TO_MODULE = {
    # Sampler
    "ChainState": "sampler",
    "TransitionRecord": "sampler",
    "TransitionKernel": "sampler",
    "AdaptiveSampler": "sampler",
    # NUTS
    "UnitENutsKernel": "nuts",
    # Adaptation
    "StepsizeAdaptation": "stepsize_adaptation",
    "DualAveragingStatistics": "stepsize_adaptation",
    "mean_statistics": "stepsize_adaptation",
}


def __getattr__(name: str):
    module_name = _EXPORT_TO_MODULE.get(name)
    if module_name is None:
        raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
    module = importlib.import_module(f"{__name__}.{module_name}")
    obj = getattr(module, name)
    globals()[name] = obj
    return obj


def __dir__():
    return sorted(set(globals().keys()) | set(__all__))
