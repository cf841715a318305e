# nutsmp/services/run_loops.py
# --------------------------------------------------------------
# Author: Emmanuel Vazquez <emmanuel.vazquez@centralesupelec.fr>
# Copyright (c) 2022-2026, CentraleSupelec
# License: GPLv3 (see LICENSE)
# --------------------------------------------------------------
"""
Run loop of an adaptive sampler.

Iterations i = 0, ..., num_warmup + num_samples - 1:
- warmup (i < num_warmup): adaptation engaged, draws written when
  save_warmup and i % num_thin == 0,
- sampling: step size frozen at exp(x_bar), draws written when
  (i - num_warmup) % num_thin == 0.

The interrupt callback is polled before every transition; a stop request
ends the run early with status OK. Output already written stays valid.

Two loops share the per-iteration logic of TransitionGenerator:
- SingleChainRunLoop adapts on its own,
- CrossChainRunLoop contributes its dual-averaging statistics to a
  CrossChainGroup after every warmup transition and waits at a barrier
  until every chain of the group has done so; all chains then resume with
  the same combined statistics, hence the same step size.
"""

from __future__ import annotations

from abc import ABC
from typing import Any, Callable, List, Optional, Tuple

import logging
import threading
import time

import numpy as np

from nutsmp.callbacks import Interrupt, Writer
from nutsmp.config import get_logger
from nutsmp.error_codes import ConfigurationError, ErrorCode, StepsizeInitializationError
from nutsmp.mcmc.sampler import AdaptiveSampler, ChainState
from nutsmp.mcmc.stepsize_adaptation import (
    DualAveragingStatistics,
    StatisticsCombiner,
    mean_statistics,
)
from nutsmp.model import Model
from nutsmp.services.mcmc_writer import MCMCWriter
from nutsmp.services.options import RunConfig

ArrayLike = Any


class TransitionGenerator:
    """Runs a block of transitions with progress, thinning and interrupts."""

    def __init__(
        self,
        sampler: AdaptiveSampler,
        model: Model,
        rng: np.random.Generator,
        mcmc_writer: MCMCWriter,
        num_thin: int,
        refresh: int,
        interrupt: Callable[[], bool],
        logger: logging.Logger,
    ):
        self.sampler = sampler
        self.model = model
        self.rng = rng
        self.mcmc_writer = mcmc_writer
        self.num_thin = num_thin
        self.refresh = refresh
        self.interrupt = interrupt
        self.logger = logger

    def _progress(self, iteration: int, finish: int, warmup: bool) -> None:
        width = len(str(finish))
        pct = int((100.0 * iteration) / finish)
        self.logger.info(
            "Iteration: %*d / %d [%3d%%]  (%s)",
            width,
            iteration,
            finish,
            pct,
            "Warmup" if warmup else "Sampling",
        )

    def generate(
        self,
        state: ChainState,
        num_iterations: int,
        start: int,
        finish: int,
        save: bool,
        warmup: bool,
        after_transition: Optional[Callable[[int], bool]] = None,
    ) -> Tuple[ChainState, bool]:
        """Return (last state, interrupted).

        after_transition(m) runs after the m-th transition of the block has
        been written; returning False stops the run like an interrupt.
        """
        for m in range(num_iterations):
            if self.interrupt():
                self.logger.info(
                    "Interrupt requested before iteration %d / %d; stopping.",
                    start + m + 1,
                    finish,
                )
                return state, True

            if self.refresh > 0 and (
                start + m + 1 == finish or m == 0 or (m + 1) % self.refresh == 0
            ):
                self._progress(start + m + 1, finish, warmup)

            record = self.sampler.transition(state)
            state = record.state

            if save and (m % self.num_thin) == 0:
                self.mcmc_writer.write_sample_params(
                    self.rng, record, self.sampler, self.model
                )
                self.mcmc_writer.write_diagnostic_params(record, self.sampler)

            if after_transition is not None and not after_transition(m):
                return state, True

        return state, False


class RunLoop(ABC):
    """Warmup with step-size adaptation, then sampling."""

    def __init__(
        self,
        sampler: AdaptiveSampler,
        model: Model,
        rng: np.random.Generator,
        config: RunConfig,
        interrupt: Optional[Callable[[], bool]] = None,
        logger: Optional[logging.Logger] = None,
        sample_writer: Optional[Writer] = None,
        diagnostic_writer: Optional[Writer] = None,
    ):
        self.sampler = sampler
        self.model = model
        self.rng = rng
        self.config = config
        self.interrupt = interrupt if interrupt is not None else Interrupt()
        self.logger = logger or get_logger()
        self.mcmc_writer = MCMCWriter(sample_writer, diagnostic_writer, self.logger)
        self.interrupted = False

    def warmup_hook(self) -> Optional[Callable[[int], bool]]:
        """Called after each warmup transition; None for no hook."""
        return None

    def run(self, cont_vector: ArrayLike) -> int:
        config = self.config.validate(self.logger)
        num_warmup = config.num_warmup
        num_samples = config.num_samples
        finish = num_warmup + num_samples

        state = ChainState(cont_params=cont_vector)
        self.sampler.engage_adaptation()
        try:
            self.sampler.init_stepsize(state, self.logger)
        except StepsizeInitializationError as e:
            self.logger.error("Exception initializing step size.")
            self.logger.error("%s", e)
            raise

        self.mcmc_writer.write_sample_names(self.sampler, self.model)
        self.mcmc_writer.write_diagnostic_names(self.sampler, self.model)

        generator = TransitionGenerator(
            self.sampler,
            self.model,
            self.rng,
            self.mcmc_writer,
            config.num_thin,
            config.refresh,
            self.interrupt,
            self.logger,
        )

        t_warm0 = time.time()
        state, self.interrupted = generator.generate(
            state,
            num_warmup,
            0,
            finish,
            config.save_warmup,
            True,
            self.warmup_hook(),
        )
        warm_delta_t = time.time() - t_warm0
        self.sampler.disengage_adaptation()
        if self.interrupted:
            return ErrorCode.OK

        self.mcmc_writer.write_adapt_finish(self.sampler)
        self.logger.info(
            "warmup: done in %.2fs, step_size_final=%.6g",
            warm_delta_t,
            self.sampler.get_nominal_stepsize(),
        )

        t_samp0 = time.time()
        state, self.interrupted = generator.generate(
            state, num_samples, num_warmup, finish, True, False
        )
        sample_delta_t = time.time() - t_samp0
        if self.interrupted:
            return ErrorCode.OK

        self.mcmc_writer.write_timing(warm_delta_t, sample_delta_t)
        return ErrorCode.OK


class SingleChainRunLoop(RunLoop):
    """Run loop of one chain adapting on its own."""


class CrossChainGroup:
    """Barrier where cooperating chains pool their adaptation statistics.

    Each chain contributes its DualAveragingStatistics and blocks until all
    num_chains chains have contributed. The last chain to arrive combines
    the contributions (combine is pluggable, mean by default) before anyone
    is released, so every chain reads the same result.
    """

    def __init__(
        self,
        num_chains: int,
        combine: StatisticsCombiner = mean_statistics,
        timeout: Optional[float] = None,
    ):
        if int(num_chains) != num_chains or num_chains < 1:
            raise ConfigurationError(
                f"num_chains must be a positive integer, got {num_chains}"
            )
        self.num_chains = int(num_chains)
        self.combine = combine
        self._contributions: List[Optional[DualAveragingStatistics]] = [
            None
        ] * self.num_chains
        self._combined: Optional[DualAveragingStatistics] = None
        self._barrier = threading.Barrier(
            self.num_chains, action=self._combine_contributions, timeout=timeout
        )

    def _combine_contributions(self) -> None:
        self._combined = self.combine(list(self._contributions))

    def synchronize(
        self, chain_index: int, stats: DualAveragingStatistics
    ) -> DualAveragingStatistics:
        """Contribute `stats` and wait for the combined statistics.

        Raises threading.BrokenBarrierError when the group was aborted.
        """
        self._contributions[chain_index] = stats
        self._barrier.wait()
        return self._combined

    def abort(self) -> None:
        self._barrier.abort()

    @property
    def broken(self) -> bool:
        return self._barrier.broken


class CrossChainRunLoop(RunLoop):
    """Run loop sharing step-size adaptation with the chains of a group."""

    def __init__(self, *args, group: CrossChainGroup, chain_index: int = 0, **kwargs):
        super().__init__(*args, **kwargs)
        if not 0 <= chain_index < group.num_chains:
            raise ConfigurationError(
                f"chain_index {chain_index} out of range for a group of "
                f"{group.num_chains} chains"
            )
        self.group = group
        self.chain_index = chain_index

    def warmup_hook(self) -> Callable[[int], bool]:
        adaptation = self.sampler.get_stepsize_adaptation()

        def synchronize(m: int) -> bool:
            try:
                combined = self.group.synchronize(
                    self.chain_index, adaptation.statistics()
                )
            except threading.BrokenBarrierError:
                self.logger.warning(
                    "chain %d: cross-chain adaptation aborted at warmup iteration %d",
                    self.chain_index,
                    m + 1,
                )
                return False
            self.sampler.nom_epsilon = adaptation.set_statistics(combined)
            return True

        return synchronize

    def run(self, cont_vector: ArrayLike) -> int:
        try:
            status = super().run(cont_vector)
        except BaseException:
            self.group.abort()
            raise
        if self.interrupted:
            self.group.abort()
        return status


def make_run_loop(
    sampler: AdaptiveSampler,
    model: Model,
    rng: np.random.Generator,
    config: RunConfig,
    interrupt: Optional[Callable[[], bool]] = None,
    logger: Optional[logging.Logger] = None,
    sample_writer: Optional[Writer] = None,
    diagnostic_writer: Optional[Writer] = None,
    cross_chain_group: Optional[CrossChainGroup] = None,
    chain_index: int = 0,
) -> RunLoop:
    """Cross-chain loop when a group is given, single-chain loop otherwise."""
    args = (sampler, model, rng, config, interrupt, logger, sample_writer, diagnostic_writer)
    if cross_chain_group is None:
        return SingleChainRunLoop(*args)
    return CrossChainRunLoop(*args, group=cross_chain_group, chain_index=chain_index)


def run_adaptive_sampler(
    sampler: AdaptiveSampler,
    model: Model,
    cont_vector: ArrayLike,
    num_warmup: int,
    num_samples: int,
    num_thin: int,
    refresh: int,
    save_warmup: bool,
    rng: np.random.Generator,
    interrupt: Optional[Callable[[], bool]] = None,
    logger: Optional[logging.Logger] = None,
    sample_writer: Optional[Writer] = None,
    diagnostic_writer: Optional[Writer] = None,
    cross_chain_group: Optional[CrossChainGroup] = None,
    chain_index: int = 0,
) -> int:
    """Run warmup and sampling from `cont_vector`. Returns ErrorCode.OK."""
    config = RunConfig(
        num_warmup=num_warmup,
        num_samples=num_samples,
        num_thin=num_thin,
        save_warmup=save_warmup,
        refresh=refresh,
    )
    loop = make_run_loop(
        sampler,
        model,
        rng,
        config,
        interrupt=interrupt,
        logger=logger,
        sample_writer=sample_writer,
        diagnostic_writer=diagnostic_writer,
        cross_chain_group=cross_chain_group,
        chain_index=chain_index,
    )
    return loop.run(cont_vector)
