# nutsmp/mcmc/stepsize_adaptation.py
# --------------------------------------------------------------
# Author: Emmanuel Vazquez <emmanuel.vazquez@centralesupelec.fr>
# Copyright (c) 2022-2026, CentraleSupelec
# License: GPLv3 (see LICENSE)
# --------------------------------------------------------------
"""
Dual-averaging step-size adaptation.

Let x = log(eps). After each warmup transition with acceptance statistic
alpha, the controller updates

  k     <- k + 1
  eta   =  1 / (k + t0)
  h_bar <- (1 - eta) * h_bar + eta * (delta - alpha)
  x     =  mu - sqrt(k) / gamma * h_bar
  w     =  k^(-kappa)
  x_bar <- w * x + (1 - w) * x_bar

and the next transition uses eps = exp(x). Once warmup is over the step
size is frozen at exp(x_bar): the noisy iterate x explores, the averaged
iterate x_bar is what sampling commits to.

mu is the point the iterates shrink towards, conventionally
log(10 * eps_init).

For cross-chain adaptation the accumulators (h_bar, x_bar, k) are exported
as a DualAveragingStatistics snapshot, combined over chains and installed
back with set_statistics.

References
----------
[1] Y. Nesterov (2009). "Primal-dual subgradient methods for convex problems."
    Mathematical Programming 120(1):221-259.
[2] M. D. Hoffman and A. Gelman (2014). "The No-U-Turn Sampler: Adaptively
    Setting Path Lengths in Hamiltonian Monte Carlo." JMLR 15:1593-1623.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Sequence

import math


@dataclass(frozen=True)
class DualAveragingStatistics:
    h_bar: float
    x_bar: float
    counter: int


StatisticsCombiner = Callable[[Sequence[DualAveragingStatistics]], DualAveragingStatistics]


def mean_statistics(
    stats: Sequence[DualAveragingStatistics],
) -> DualAveragingStatistics:
    """Average h_bar and x_bar over chains, keep the largest counter."""
    if len(stats) == 0:
        raise ValueError("cannot combine an empty set of statistics")
    n = len(stats)
    return DualAveragingStatistics(
        h_bar=sum(s.h_bar for s in stats) / n,
        x_bar=sum(s.x_bar for s in stats) / n,
        counter=max(s.counter for s in stats),
    )


class StepsizeAdaptation:
    """Dual-averaging controller of the log step size."""

    def __init__(
        self,
        mu: float = 0.5,
        delta: float = 0.8,
        gamma: float = 0.05,
        kappa: float = 0.75,
        t0: float = 10.0,
    ):
        self.mu = float(mu)
        self.delta = float(delta)
        self.gamma = float(gamma)
        self.kappa = float(kappa)
        self.t0 = float(t0)
        self.restart()

    def set_mu(self, mu: float) -> None:
        self.mu = float(mu)

    def set_delta(self, delta: float) -> None:
        self.delta = float(delta)

    def set_gamma(self, gamma: float) -> None:
        self.gamma = float(gamma)

    def set_kappa(self, kappa: float) -> None:
        self.kappa = float(kappa)

    def set_t0(self, t0: float) -> None:
        self.t0 = float(t0)

    def restart(self) -> None:
        self.counter = 0
        self.h_bar = 0.0
        self.x = 0.0
        self.x_bar = 0.0

    def learn_stepsize(self, accept_stat: float) -> float:
        """One dual-averaging update. Returns the step size exp(x)."""
        accept_stat = min(1.0, float(accept_stat))

        self.counter += 1
        eta = 1.0 / (self.counter + self.t0)
        self.h_bar = (1.0 - eta) * self.h_bar + eta * (self.delta - accept_stat)
        self.x = self.mu - (math.sqrt(self.counter) / self.gamma) * self.h_bar
        w = self.counter ** (-self.kappa)
        self.x_bar = w * self.x + (1.0 - w) * self.x_bar
        return math.exp(self.x)

    def complete_adaptation(self) -> float:
        """Final step size, exp(x_bar)."""
        return math.exp(self.x_bar)

    def statistics(self) -> DualAveragingStatistics:
        return DualAveragingStatistics(
            h_bar=self.h_bar, x_bar=self.x_bar, counter=self.counter
        )

    def set_statistics(self, stats: DualAveragingStatistics) -> float:
        """Install combined accumulators. Returns the step size exp(x)."""
        self.h_bar = float(stats.h_bar)
        self.x_bar = float(stats.x_bar)
        self.counter = int(stats.counter)
        self.x = self.mu - (math.sqrt(self.counter) / self.gamma) * self.h_bar
        return math.exp(self.x)

    def __repr__(self):
        return (
            f"StepsizeAdaptation(mu={self.mu:.6g}, delta={self.delta}, "
            f"gamma={self.gamma}, kappa={self.kappa}, t0={self.t0}, "
            f"counter={self.counter})"
        )
