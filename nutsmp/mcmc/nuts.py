# nutsmp/mcmc/nuts.py
# --------------------------------------------------------------
# Author: Emmanuel Vazquez <emmanuel.vazquez@centralesupelec.fr>
# Copyright (c) 2022-2026, CentraleSupelec
# License: GPLv3 (see LICENSE)
# --------------------------------------------------------------
"""
NUTS (No-U-Turn Sampler) transition with a unit Euclidean metric.

Target, potential, Hamiltonian
------------------------------
The model provides log_prob(q) for q in R^d. With U(q) = -log_prob(q) and
an auxiliary momentum p ~ N(0, I):
  $H(q,p) = U(q) + \\tfrac12 p^\\top p$.

Leapfrog integrator
-------------------
  p_{n+1/2} = p_n - (eps/2) * gradU(q_n)
  q_{n+1}   = q_n + eps * p_{n+1/2}
  p_{n+1}   = p_{n+1/2} - (eps/2) * gradU(q_{n+1})

Slice variable and tree
-----------------------
At the start of a transition, log_u = -H0 + log(u) with u ~ U(0, 1).
A state is valid if log_u <= -H(q,p). The trajectory is doubled in a random
direction until the U-turn criterion
  (q_plus - q_minus)^T p_minus < 0  or  (q_plus - q_minus)^T p_plus < 0
holds, a subtree diverges (H - H0 > delta_max or H non-finite) or the
maximum depth is reached. The proposal is drawn among valid states,
subtree by subtree, with probability proportional to their counts.

Acceptance statistic
--------------------
accept_stat is the mean of exp(min(0, H0 - H)) over the leapfrog states of
the trajectory. It feeds the dual averaging of the step size.

All random numbers come from the generator given at construction, so that a
chain is reproducible from its seed and chain id.

References
----------
[1] R. M. Neal (2011). "MCMC Using Hamiltonian Dynamics." In: Handbook of Markov Chain Monte Carlo.
[2] M. D. Hoffman and A. Gelman (2014). "The No-U-Turn Sampler: Adaptively Setting Path Lengths in Hamiltonian Monte Carlo." JMLR 15:1593-1623.
[3] M. Betancourt (2017). "A Conceptual Introduction to Hamiltonian Monte Carlo." arXiv:1701.02434.
"""

from __future__ import annotations

from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, List, Optional

import logging
import math

import numpy as np

import nutsmp.num as gnp
from nutsmp.config import get_logger
from nutsmp.error_codes import StepsizeInitializationError
from nutsmp.mcmc.sampler import ChainState, TransitionKernel, TransitionRecord
from nutsmp.model import Model

ArrayLike = Any

_DEFAULT_MAX_DEPTH = 10
_DEFAULT_DELTA_MAX = 1000.0
_INIT_STEPSIZE_TARGET = math.log(0.8)
_INIT_STEPSIZE_MAX = 1e7


@dataclass
class _PhasePoint:
    q: ArrayLike
    p: ArrayLike
    gradU: ArrayLike
    U: float


@dataclass
class _Subtree:
    minus: _PhasePoint
    plus: _PhasePoint
    proposal: _PhasePoint
    n_valid: int
    s_continue: bool
    alpha_sum: float
    n_alpha: int
    n_leapfrog: int
    divergent: bool


def kinetic(p: ArrayLike) -> float:
    return 0.5 * float(gnp.sum(p * p))


def is_uturn(q_minus, q_plus, p_minus, p_plus) -> bool:
    dq = q_plus - q_minus
    return bool(gnp.sum(dq * p_minus) < 0.0) or bool(gnp.sum(dq * p_plus) < 0.0)


class UnitENutsKernel(TransitionKernel):
    """NUTS transition kernel, identity mass matrix."""

    def __init__(
        self,
        model: Model,
        rng: np.random.Generator,
        max_depth: int = _DEFAULT_MAX_DEPTH,
        delta_max: float = _DEFAULT_DELTA_MAX,
    ):
        self.model = model
        self.rng = rng
        self.max_depth = int(max_depth)
        self.delta_max = float(delta_max)

    def sampler_param_names(self) -> List[str]:
        return ["treedepth__", "n_leapfrog__", "divergent__", "energy__"]

    # ---------------------------
    # Hamiltonian pieces
    # ---------------------------

    def potential_and_grad(self, q: ArrayLike):
        lp, g = self.model.log_prob_grad(q)
        return -float(lp), -g

    def sample_momentum(self, dim: int) -> ArrayLike:
        return gnp.asarray(self.rng.standard_normal(dim))

    def leapfrog(self, z: _PhasePoint, eps: float) -> _PhasePoint:
        p_half = z.p - 0.5 * eps * z.gradU
        q_new = z.q + eps * p_half
        U_new, g_new = self.potential_and_grad(q_new)
        p_new = p_half - 0.5 * eps * g_new
        return _PhasePoint(q_new, p_new, g_new, U_new)

    @staticmethod
    def hamiltonian(z: _PhasePoint) -> float:
        return z.U + kinetic(z.p)

    # ---------------------------
    # Tree building
    # ---------------------------

    def build_tree(
        self,
        z: _PhasePoint,
        log_u: float,
        v: int,
        depth: int,
        eps: float,
        H0: float,
    ) -> _Subtree:
        if depth == 0:
            z1 = self.leapfrog(z, v * eps)
            H1 = self.hamiltonian(z1)
            if not math.isfinite(H1):
                return _Subtree(z, z, z, 0, False, 0.0, 1, 1, True)

            n_valid = 1 if log_u <= -H1 else 0
            divergent = (H1 - H0) > self.delta_max
            s_continue = (log_u < self.delta_max - H1) and (not divergent)
            alpha = math.exp(min(0.0, H0 - H1))
            return _Subtree(z1, z1, z1, n_valid, s_continue, alpha, 1, 1, divergent)

        tree = self.build_tree(z, log_u, v, depth - 1, eps, H0)
        if not tree.s_continue or tree.divergent:
            return tree

        edge = tree.minus if v == -1 else tree.plus
        other = self.build_tree(edge, log_u, v, depth - 1, eps, H0)
        if v == -1:
            tree.minus = other.minus
        else:
            tree.plus = other.plus

        n_total = tree.n_valid + other.n_valid
        if n_total > 0 and self.rng.random() < other.n_valid / n_total:
            tree.proposal = other.proposal

        tree.n_valid = n_total
        tree.s_continue = other.s_continue and not is_uturn(
            tree.minus.q, tree.plus.q, tree.minus.p, tree.plus.p
        )
        tree.alpha_sum += other.alpha_sum
        tree.n_alpha += other.n_alpha
        tree.n_leapfrog += other.n_leapfrog
        tree.divergent = tree.divergent or other.divergent
        return tree

    # ---------------------------
    # Transition
    # ---------------------------

    def step(self, state: ChainState, stepsize: float) -> TransitionRecord:
        q0 = gnp.copy(gnp.asarray(state.cont_params))
        p0 = self.sample_momentum(q0.shape[0])
        U0, g0 = self.potential_and_grad(q0)
        z0 = _PhasePoint(q0, p0, g0, U0)
        H0 = self.hamiltonian(z0)
        if not math.isfinite(H0):
            return self._record(state, 0.0, 0, 0, True, H0)

        log_u = -H0 + math.log1p(-self.rng.random())

        minus = plus = proposal = z0
        n_valid = 1
        s_continue = True
        alpha_sum = 0.0
        n_alpha = 0
        n_leapfrog = 0
        divergent = False
        depth = 0

        while s_continue and depth < self.max_depth:
            v = -1 if self.rng.random() < 0.5 else 1
            if v == -1:
                sub = self.build_tree(minus, log_u, v, depth, stepsize, H0)
                minus = sub.minus
            else:
                sub = self.build_tree(plus, log_u, v, depth, stepsize, H0)
                plus = sub.plus

            if sub.s_continue and (not sub.divergent) and (n_valid + sub.n_valid) > 0:
                if self.rng.random() < sub.n_valid / (n_valid + sub.n_valid):
                    proposal = sub.proposal

            n_valid += sub.n_valid
            s_continue = sub.s_continue and not is_uturn(
                minus.q, plus.q, minus.p, plus.p
            )
            alpha_sum += sub.alpha_sum
            n_alpha += sub.n_alpha
            n_leapfrog += sub.n_leapfrog
            divergent = divergent or sub.divergent
            depth += 1

        accept_stat = alpha_sum / max(1, n_alpha)
        new_state = ChainState(
            cont_params=proposal.q,
            log_prob=-proposal.U,
            accept_stat=accept_stat,
            disc_params=list(state.disc_params),
        )
        return self._record(
            new_state, accept_stat, depth, n_leapfrog, divergent,
            self.hamiltonian(proposal),
        )

    @staticmethod
    def _record(state, accept_stat, depth, n_leapfrog, divergent, energy):
        diagnostics = OrderedDict(
            [
                ("treedepth__", float(depth)),
                ("n_leapfrog__", float(n_leapfrog)),
                ("divergent__", float(bool(divergent))),
                ("energy__", float(energy)),
            ]
        )
        return TransitionRecord(state, float(accept_stat), diagnostics)

    # ---------------------------
    # Initial step size
    # ---------------------------

    def _one_step_delta_H(self, q0, U0, g0, eps: float) -> float:
        z0 = _PhasePoint(q0, self.sample_momentum(q0.shape[0]), g0, U0)
        H0 = self.hamiltonian(z0)
        h = self.hamiltonian(self.leapfrog(z0, eps))
        if math.isnan(h):
            h = math.inf
        return H0 - h

    def init_stepsize(
        self,
        state: ChainState,
        stepsize: float,
        logger: Optional[logging.Logger] = None,
    ) -> float:
        """Double or halve the step size until the one-step acceptance
        probability crosses 0.8."""
        logger = logger or get_logger()
        eps = float(stepsize)
        if eps == 0.0 or eps > _INIT_STEPSIZE_MAX or math.isnan(eps):
            return eps

        q0 = gnp.copy(gnp.asarray(state.cont_params))
        U0, g0 = self.potential_and_grad(q0)

        delta_H = self._one_step_delta_H(q0, U0, g0, eps)
        direction = 1 if delta_H > _INIT_STEPSIZE_TARGET else -1

        while True:
            delta_H = self._one_step_delta_H(q0, U0, g0, eps)
            if direction == 1 and not (delta_H > _INIT_STEPSIZE_TARGET):
                break
            if direction == -1 and not (delta_H < _INIT_STEPSIZE_TARGET):
                break
            eps = 2.0 * eps if direction == 1 else 0.5 * eps

            if eps > _INIT_STEPSIZE_MAX:
                raise StepsizeInitializationError(
                    "Posterior is improper. Please check your model."
                )
            if eps == 0.0:
                raise StepsizeInitializationError(
                    "No acceptably small step size could be found. "
                    "Perhaps the posterior is not continuous?"
                )

        logger.info("initial step size heuristic: eps0=%.6g", eps)
        return eps
