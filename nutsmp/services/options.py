# nutsmp/services/options.py
# --------------------------------------------------------------
# Author: Emmanuel Vazquez <emmanuel.vazquez@centralesupelec.fr>
# Copyright (c) 2022-2026, CentraleSupelec
# License: GPLv3 (see LICENSE)
# --------------------------------------------------------------
"""Run and adaptation settings, with validation."""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional

import logging
import math
import numbers

from nutsmp.config import get_logger
from nutsmp.error_codes import ConfigurationError

_DEFAULT_NUM_WARMUP = 1000
_DEFAULT_NUM_SAMPLES = 1000
_DEFAULT_REFRESH = 100
_DEFAULT_INIT_RADIUS = 2.0


def _is_int(x) -> bool:
    return isinstance(x, numbers.Integral) and not isinstance(x, bool)


def _raise_if_errors(errors: List[str], what: str, logger: logging.Logger) -> None:
    if not errors:
        return
    for msg in errors:
        logger.error(msg)
    raise ConfigurationError(f"Invalid {what}: " + "; ".join(errors))


@dataclass
class RunConfig:
    """Iteration counts and output policy of one run."""

    num_warmup: int = _DEFAULT_NUM_WARMUP
    num_samples: int = _DEFAULT_NUM_SAMPLES
    num_thin: int = 1
    save_warmup: bool = False
    refresh: int = _DEFAULT_REFRESH
    random_seed: int = 0
    chain: int = 1
    init_radius: float = _DEFAULT_INIT_RADIUS

    def validate(self, logger: Optional[logging.Logger] = None) -> "RunConfig":
        logger = logger or get_logger()
        errors = []
        if not _is_int(self.num_warmup) or self.num_warmup < 0:
            errors.append(f"num_warmup must be a non-negative integer, got {self.num_warmup}")
        if not _is_int(self.num_samples) or self.num_samples < 0:
            errors.append(f"num_samples must be a non-negative integer, got {self.num_samples}")
        if not _is_int(self.num_thin) or self.num_thin < 1:
            errors.append(f"num_thin must be a positive integer, got {self.num_thin}")
        if not _is_int(self.refresh) or self.refresh < 0:
            errors.append(f"refresh must be a non-negative integer, got {self.refresh}")
        if not _is_int(self.random_seed) or self.random_seed < 0:
            errors.append(f"random_seed must be a non-negative integer, got {self.random_seed}")
        if not _is_int(self.chain) or self.chain < 0:
            errors.append(f"chain must be a non-negative integer, got {self.chain}")
        if not (math.isfinite(self.init_radius) and self.init_radius >= 0.0):
            errors.append(f"init_radius must be finite and non-negative, got {self.init_radius}")
        _raise_if_errors(errors, "run configuration", logger)
        return self


@dataclass
class AdaptationOptions:
    """Step size, tree depth and dual-averaging hyperparameters."""

    stepsize: float = 1.0
    stepsize_jitter: float = 0.0
    max_depth: int = 10
    delta: float = 0.8
    gamma: float = 0.05
    kappa: float = 0.75
    t0: float = 10.0

    def validate(self, logger: Optional[logging.Logger] = None) -> "AdaptationOptions":
        logger = logger or get_logger()
        errors = []
        if not (math.isfinite(self.stepsize) and self.stepsize > 0.0):
            errors.append(f"stepsize must be positive, got {self.stepsize}")
        if not 0.0 <= self.stepsize_jitter < 1.0:
            errors.append(f"stepsize_jitter must be in [0, 1), got {self.stepsize_jitter}")
        if not _is_int(self.max_depth) or self.max_depth < 1:
            errors.append(f"max_depth must be a positive integer, got {self.max_depth}")
        if not 0.0 < self.delta < 1.0:
            errors.append(f"delta must be in (0, 1), got {self.delta}")
        if not self.gamma > 0.0:
            errors.append(f"gamma must be positive, got {self.gamma}")
        if not 0.0 < self.kappa <= 1.0:
            errors.append(f"kappa must be in (0, 1], got {self.kappa}")
        if not self.t0 > 0.0:
            errors.append(f"t0 must be positive, got {self.t0}")
        _raise_if_errors(errors, "adaptation options", logger)
        return self
