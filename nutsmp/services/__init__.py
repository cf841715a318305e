# nutsmp/services/__init__.py
# --------------------------------------------------------------
# Author: Emmanuel Vazquez <emmanuel.vazquez@centralesupelec.fr>
# Copyright (c) 2022-2026, CentraleSupelec
# License: GPLv3 (see LICENSE)
# --------------------------------------------------------------
"""
Sampling services for nutsmp.

Public API
----------
hmc_nuts_unit_e_adapt, hmc_nuts_unit_e_adapt_chains
    Adaptive unit-metric NUTS, one chain or several chains in threads.
create_rng
    Per-chain generator from a global seed and a chain id.
initialize
    Valid starting point search.
RunConfig, AdaptationOptions
    Run and adaptation settings.
run_adaptive_sampler, make_run_loop, RunLoop, SingleChainRunLoop, CrossChainRunLoop, CrossChainGroup
    Run loops, single-chain and with cross-chain adaptation.
MCMCWriter
    Output formatting for the sample and diagnostic writers.
"""
from __future__ import annotations

import importlib

__all__ = [
    "hmc_nuts_unit_e_adapt",
    "hmc_nuts_unit_e_adapt_chains",
    "create_rng",
    "initialize",
    "RunConfig",
    "AdaptationOptions",
    "run_adaptive_sampler",
    "make_run_loop",
    "RunLoop",
    "SingleChainRunLoop",
    "CrossChainRunLoop",
    "CrossChainGroup",
    "TransitionGenerator",
    "MCMCWriter",
]

_EXPORT_TO_MODULE = {
    # Services
    "hmc_nuts_unit_e_adapt": "hmc_nuts",
    "hmc_nuts_unit_e_adapt_chains": "hmc_nuts",
    # Utilities
    "create_rng": "rng",
    "initialize": "initialization",
    "RunConfig": "options",
    "AdaptationOptions": "options",
    "MCMCWriter": "mcmc_writer",
    # Run loops
    "run_adaptive_sampler": "run_loops",
    "make_run_loop": "run_loops",
    "RunLoop": "run_loops",
    "SingleChainRunLoop": "run_loops",
    "CrossChainRunLoop": "run_loops",
    "CrossChainGroup": "run_loops",
    "TransitionGenerator": "run_loops",
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
