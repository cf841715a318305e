# nutsmp/services/hmc_nuts.py
# --------------------------------------------------------------
# Author: Emmanuel Vazquez <emmanuel.vazquez@centralesupelec.fr>
# Copyright (c) 2022-2026, CentraleSupelec
# License: GPLv3 (see LICENSE)
# --------------------------------------------------------------
"""
HMC with NUTS, unit Euclidean metric, with step-size adaptation.

hmc_nuts_unit_e_adapt
    One chain: create the chain generator, initialize, configure the
    sampler and its dual averaging (mu = log(10 * stepsize)), run.
hmc_nuts_unit_e_adapt_chains
    Several chains in a thread pool, one generator per chain id, with
    optional cross-chain adaptation.

Both return ErrorCode.OK. Invalid settings raise ConfigurationError and a
failed initialization raises InitializationError; both are logged first.
"""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Mapping, Optional, Sequence

import logging
import math

from nutsmp.callbacks import Writer
from nutsmp.config import get_logger
from nutsmp.error_codes import ConfigurationError, ErrorCode
from nutsmp.mcmc.nuts import UnitENutsKernel
from nutsmp.mcmc.sampler import AdaptiveSampler
from nutsmp.mcmc.stepsize_adaptation import StatisticsCombiner, mean_statistics
from nutsmp.model import Model
from nutsmp.services.initialization import initialize
from nutsmp.services.options import AdaptationOptions, RunConfig
from nutsmp.services.rng import create_rng
from nutsmp.services.run_loops import CrossChainGroup, make_run_loop

InitContext = Optional[Mapping[str, float]]


def hmc_nuts_unit_e_adapt(
    model: Model,
    init_context: InitContext = None,
    random_seed: int = 0,
    chain: int = 1,
    init_radius: float = 2.0,
    num_warmup: int = 1000,
    num_samples: int = 1000,
    num_thin: int = 1,
    save_warmup: bool = False,
    refresh: int = 100,
    stepsize: float = 1.0,
    stepsize_jitter: float = 0.0,
    max_depth: int = 10,
    delta: float = 0.8,
    gamma: float = 0.05,
    kappa: float = 0.75,
    t0: float = 10.0,
    interrupt: Optional[Callable[[], bool]] = None,
    logger: Optional[logging.Logger] = None,
    init_writer: Optional[Writer] = None,
    sample_writer: Optional[Writer] = None,
    diagnostic_writer: Optional[Writer] = None,
    cross_chain_group: Optional[CrossChainGroup] = None,
    chain_index: int = 0,
) -> int:
    """Run one chain of adaptive unit-metric NUTS.

    Parameters
    ----------
    model : Model
        Target density on the unconstrained space.
    init_context : mapping, optional
        Initial values by unconstrained parameter name; may be partial.
    random_seed, chain : int
        Seed of the shared stream and chain id selecting this chain's block
        of it.
    init_radius : float
        Random inits are drawn in [-init_radius, init_radius].
    num_warmup, num_samples, num_thin : int
        Iteration counts and thinning period.
    save_warmup : bool
        Whether warmup draws are written.
    refresh : int
        Progress reporting period, 0 for none.
    stepsize, stepsize_jitter, max_depth : float, float, int
        Initial step size, uniform relative jitter and maximum tree depth.
    delta, gamma, kappa, t0 : float
        Dual-averaging target accept statistic, regularization scale,
        relaxation exponent and iteration offset.
    interrupt : callable, optional
        Zero-argument callable, True to stop before the next transition.
    logger : logging.Logger, optional
    init_writer, sample_writer, diagnostic_writer : Writer, optional
    cross_chain_group : CrossChainGroup, optional
        When given, warmup adaptation is pooled with the group's chains and
        chain_index is this chain's slot in the group.

    Returns
    -------
    int
        ErrorCode.OK
    """
    logger = logger or get_logger()
    try:
        run_config = RunConfig(
            num_warmup=num_warmup,
            num_samples=num_samples,
            num_thin=num_thin,
            save_warmup=save_warmup,
            refresh=refresh,
            random_seed=random_seed,
            chain=chain,
            init_radius=init_radius,
        ).validate(logger)
        options = AdaptationOptions(
            stepsize=stepsize,
            stepsize_jitter=stepsize_jitter,
            max_depth=max_depth,
            delta=delta,
            gamma=gamma,
            kappa=kappa,
            t0=t0,
        ).validate(logger)

        rng = create_rng(run_config.random_seed, run_config.chain)

        cont_vector = initialize(
            model, init_context, rng, run_config.init_radius, True, logger, init_writer
        )

        kernel = UnitENutsKernel(model, rng)
        sampler = AdaptiveSampler(kernel, rng)
        sampler.set_nominal_stepsize(options.stepsize)
        sampler.set_stepsize_jitter(options.stepsize_jitter)
        sampler.set_max_depth(options.max_depth)

        adaptation = sampler.get_stepsize_adaptation()
        adaptation.set_mu(math.log(10 * options.stepsize))
        adaptation.set_delta(options.delta)
        adaptation.set_gamma(options.gamma)
        adaptation.set_kappa(options.kappa)
        adaptation.set_t0(options.t0)

        loop = make_run_loop(
            sampler,
            model,
            rng,
            run_config,
            interrupt=interrupt,
            logger=logger,
            sample_writer=sample_writer,
            diagnostic_writer=diagnostic_writer,
            cross_chain_group=cross_chain_group,
            chain_index=chain_index,
        )
        return loop.run(cont_vector)
    except BaseException:
        # chains of the group waiting at the barrier must be released
        if cross_chain_group is not None:
            cross_chain_group.abort()
        raise


def _per_chain(values, num_chains: int, what: str) -> list:
    if values is None:
        return [None] * num_chains
    values = list(values)
    if len(values) != num_chains:
        raise ConfigurationError(
            f"{what} must have one entry per chain ({num_chains}), got {len(values)}"
        )
    return values


def hmc_nuts_unit_e_adapt_chains(
    model: Model,
    num_chains: int,
    init_contexts: Optional[Sequence[InitContext]] = None,
    random_seed: int = 0,
    chain: int = 1,
    init_radius: float = 2.0,
    num_warmup: int = 1000,
    num_samples: int = 1000,
    num_thin: int = 1,
    save_warmup: bool = False,
    refresh: int = 100,
    stepsize: float = 1.0,
    stepsize_jitter: float = 0.0,
    max_depth: int = 10,
    delta: float = 0.8,
    gamma: float = 0.05,
    kappa: float = 0.75,
    t0: float = 10.0,
    interrupt: Optional[Callable[[], bool]] = None,
    logger: Optional[logging.Logger] = None,
    init_writers: Optional[Sequence[Writer]] = None,
    sample_writers: Optional[Sequence[Writer]] = None,
    diagnostic_writers: Optional[Sequence[Writer]] = None,
    cross_chain: bool = False,
    combine: StatisticsCombiner = mean_statistics,
    max_workers: Optional[int] = None,
) -> int:
    """Run `num_chains` chains concurrently, chain ids chain, ..., chain + num_chains - 1.

    With cross_chain=True every warmup iteration ends with a barrier where
    the chains pool their dual-averaging statistics through `combine`.
    The interrupt callable is shared by all chains. The first exception raised
    by a chain is re-raised once every chain has returned.
    """
    logger = logger or get_logger()
    if int(num_chains) != num_chains or num_chains < 1:
        logger.error("num_chains must be a positive integer, got %s", num_chains)
        raise ConfigurationError(f"invalid num_chains {num_chains}")
    num_chains = int(num_chains)

    init_contexts = _per_chain(init_contexts, num_chains, "init_contexts")
    init_writers = _per_chain(init_writers, num_chains, "init_writers")
    sample_writers = _per_chain(sample_writers, num_chains, "sample_writers")
    diagnostic_writers = _per_chain(diagnostic_writers, num_chains, "diagnostic_writers")

    group = CrossChainGroup(num_chains, combine=combine) if cross_chain else None
    workers = num_chains if (cross_chain or max_workers is None) else int(max_workers)
    if cross_chain and max_workers is not None and max_workers < num_chains:
        logger.warning(
            "cross-chain adaptation needs one worker per chain; using %d workers",
            num_chains,
        )

    def run_chain(k: int) -> int:
        return hmc_nuts_unit_e_adapt(
            model,
            init_contexts[k],
            random_seed,
            chain + k,
            init_radius,
            num_warmup,
            num_samples,
            num_thin,
            save_warmup,
            refresh,
            stepsize,
            stepsize_jitter,
            max_depth,
            delta,
            gamma,
            kappa,
            t0,
            interrupt=interrupt,
            logger=logger,
            init_writer=init_writers[k],
            sample_writer=sample_writers[k],
            diagnostic_writer=diagnostic_writers[k],
            cross_chain_group=group,
            chain_index=k,
        )

    logger.info("running %d chains (cross_chain=%s)", num_chains, cross_chain)
    with ThreadPoolExecutor(max_workers=workers) as executor:
        futures = [executor.submit(run_chain, k) for k in range(num_chains)]
        for f in futures:
            f.exception()
    for f in futures:
        f.result()
    return ErrorCode.OK
