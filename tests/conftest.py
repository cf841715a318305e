import os

# the suite relies on finite-difference gradients and numpy draws
os.environ["NUTSMP_BACKEND"] = "numpy"

from collections import OrderedDict

import numpy as np
import pytest

from nutsmp.callbacks import MemoryWriter
from nutsmp.mcmc.sampler import ChainState, TransitionKernel, TransitionRecord
from nutsmp.model import LogDensityModel


class ScriptedKernel(TransitionKernel):
    """Moves every coordinate by +1 and reports scripted accept statistics.

    The step sizes it is called with are recorded in `stepsizes`.
    """

    def __init__(self, accept_stats=None):
        self.accept_stats = None if accept_stats is None else list(accept_stats)
        self.stepsizes = []

    def next_accept_stat(self, stepsize):
        if self.accept_stats is None:
            return 0.8
        return self.accept_stats[len(self.stepsizes) % len(self.accept_stats)]

    def step(self, state, stepsize):
        a = self.next_accept_stat(stepsize)
        self.stepsizes.append(stepsize)
        q = np.asarray(state.cont_params, dtype=float) + 1.0
        new_state = ChainState(q, log_prob=-0.5 * float(q @ q), accept_stat=a)
        return TransitionRecord(
            new_state, a, OrderedDict([("treedepth__", 1.0), ("divergent__", 0.0)])
        )

    def sampler_param_names(self):
        return ["treedepth__", "divergent__"]


class StepsizeResponseKernel(ScriptedKernel):
    """Accept statistic exp(-stepsize): the target 0.8 is hit at -log(0.8)."""

    def next_accept_stat(self, stepsize):
        return float(np.exp(-stepsize))


def standard_normal_log_prob(q):
    return -0.5 * float(np.sum(q * q))


@pytest.fixture
def gaussian_model():
    return LogDensityModel(standard_normal_log_prob, dim=2)


@pytest.fixture
def scripted_kernel():
    return ScriptedKernel()


@pytest.fixture
def writers():
    return MemoryWriter(), MemoryWriter()


@pytest.fixture
def make_kernel():
    """Factory of scripted kernels: make_kernel(accept_stats=None, response=False)."""

    def factory(accept_stats=None, response=False):
        if response:
            return StepsizeResponseKernel()
        return ScriptedKernel(accept_stats)

    return factory
