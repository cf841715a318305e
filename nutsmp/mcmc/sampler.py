# nutsmp/mcmc/sampler.py
# --------------------------------------------------------------
# Author: Emmanuel Vazquez <emmanuel.vazquez@centralesupelec.fr>
# Copyright (c) 2022-2026, CentraleSupelec
# License: GPLv3 (see LICENSE)
# --------------------------------------------------------------
"""
Chain state, transition kernel interface and the adaptive sampler.

The adaptive sampler owns the nominal step size. Each transition:
1) draws the step size actually used,
     eps = eps_nom * (1 + jitter * U(-1, 1))        (eps = eps_nom if jitter == 0),
2) asks the kernel for one transition with eps,
3) while adaptation is engaged, feeds the accept statistic to the
   dual-averaging controller, which returns the next nominal step size.

Disengaging adaptation sets eps_nom = exp(x_bar) once and for all.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import logging

import numpy as np

from nutsmp.callbacks import Writer
from nutsmp.config import get_logger
from nutsmp.error_codes import ConfigurationError
from nutsmp.mcmc.stepsize_adaptation import StepsizeAdaptation

ArrayLike = Any


@dataclass
class ChainState:
    """Current point of a chain."""

    cont_params: ArrayLike
    log_prob: float = 0.0
    accept_stat: float = 0.0
    disc_params: List[int] = field(default_factory=list)


@dataclass
class TransitionRecord:
    """Result of one kernel transition."""

    state: ChainState
    accept_stat: float
    diagnostics: Dict[str, float] = field(default_factory=OrderedDict)


class TransitionKernel(ABC):
    """Markov transition on the unconstrained space, driven by a step size."""

    max_depth: int = 10

    @abstractmethod
    def step(self, state: ChainState, stepsize: float) -> TransitionRecord:
        ...

    def sampler_param_names(self) -> List[str]:
        return []

    def init_stepsize(
        self,
        state: ChainState,
        stepsize: float,
        logger: Optional[logging.Logger] = None,
    ) -> float:
        return stepsize

    def write_metric(self, writer: Writer) -> None:
        writer.write_message("No free parameters for unit metric")


class AdaptiveSampler:
    """Couples a transition kernel with dual-averaging step-size adaptation."""

    def __init__(
        self,
        kernel: TransitionKernel,
        rng: np.random.Generator,
        stepsize_adaptation: Optional[StepsizeAdaptation] = None,
    ):
        self.kernel = kernel
        self.rng = rng
        self.stepsize_adaptation = stepsize_adaptation or StepsizeAdaptation()
        self.nom_epsilon = 1.0
        self.epsilon = 1.0
        self.epsilon_jitter = 0.0
        self.adapt_flag = False

    # configuration

    def set_nominal_stepsize(self, stepsize: float) -> None:
        stepsize = float(stepsize)
        if not stepsize > 0.0:
            raise ConfigurationError(f"stepsize must be positive, got {stepsize}")
        self.nom_epsilon = stepsize

    def get_nominal_stepsize(self) -> float:
        return self.nom_epsilon

    def get_current_stepsize(self) -> float:
        return self.epsilon

    def set_stepsize_jitter(self, jitter: float) -> None:
        jitter = float(jitter)
        if not 0.0 <= jitter < 1.0:
            raise ConfigurationError(f"stepsize_jitter must be in [0, 1), got {jitter}")
        self.epsilon_jitter = jitter

    def set_max_depth(self, max_depth: int) -> None:
        if int(max_depth) != max_depth or max_depth < 1:
            raise ConfigurationError(
                f"max_depth must be a positive integer, got {max_depth}"
            )
        self.kernel.max_depth = int(max_depth)

    def get_max_depth(self) -> int:
        return self.kernel.max_depth

    def get_stepsize_adaptation(self) -> StepsizeAdaptation:
        return self.stepsize_adaptation

    # adaptation window

    def engage_adaptation(self) -> None:
        self.adapt_flag = True

    def disengage_adaptation(self) -> None:
        self.adapt_flag = False
        # without any warmup transition x_bar carries no information
        if self.stepsize_adaptation.counter > 0:
            self.nom_epsilon = self.stepsize_adaptation.complete_adaptation()

    @property
    def adapting(self) -> bool:
        return self.adapt_flag

    def init_stepsize(
        self, state: ChainState, logger: Optional[logging.Logger] = None
    ) -> float:
        self.nom_epsilon = self.kernel.init_stepsize(
            state, self.nom_epsilon, logger or get_logger()
        )
        return self.nom_epsilon

    # transitions

    def sample_stepsize(self) -> float:
        self.epsilon = self.nom_epsilon
        if self.epsilon_jitter:
            u = self.rng.uniform(-1.0, 1.0)
            self.epsilon *= 1.0 + self.epsilon_jitter * u
        return self.epsilon

    def transition(self, state: ChainState) -> TransitionRecord:
        self.sample_stepsize()
        record = self.kernel.step(state, self.epsilon)
        if self.adapt_flag:
            self.nom_epsilon = self.stepsize_adaptation.learn_stepsize(
                record.accept_stat
            )
        return record

    # output

    def sampler_param_names(self) -> List[str]:
        return ["stepsize__"] + list(self.kernel.sampler_param_names())

    def sampler_params(self, record: TransitionRecord) -> List[float]:
        return [self.epsilon] + [
            float(record.diagnostics[name])
            for name in self.kernel.sampler_param_names()
        ]

    def write_sampler_state(self, writer: Writer) -> None:
        writer.write_message(f"Step size = {self.nom_epsilon:.6g}")
        self.kernel.write_metric(writer)
