# nutsmp/services/initialization.py
# --------------------------------------------------------------
# Author: Emmanuel Vazquez <emmanuel.vazquez@centralesupelec.fr>
# Copyright (c) 2022-2026, CentraleSupelec
# License: GPLv3 (see LICENSE)
# --------------------------------------------------------------
"""
Starting point of a chain in the unconstrained space.

Coordinates supplied by the init context are used as given. The others are
drawn uniformly in [-init_radius, init_radius] (or set to zero when
init_radius is 0). A point is accepted when log_prob and its gradient are
finite there; otherwise a new point is drawn, up to MAX_INIT_TRIES times
when random draws can change the point and once when they cannot.
"""

from __future__ import annotations

from typing import Any, Mapping, Optional

import logging
import math
import time

import numpy as np

import nutsmp.num as gnp
from nutsmp.callbacks import Writer
from nutsmp.config import get_logger
from nutsmp.error_codes import ConfigurationError, InitializationError
from nutsmp.model import Model

ArrayLike = Any

MAX_INIT_TRIES = 100


def _reject(logger: logging.Logger, *reasons: str) -> None:
    logger.warning("Rejecting initial value:")
    for reason in reasons:
        logger.warning("  %s", reason)


def initialize(
    model: Model,
    init_context: Optional[Mapping[str, float]],
    rng: np.random.Generator,
    init_radius: float,
    allow_random_init: bool = True,
    logger: Optional[logging.Logger] = None,
    init_writer: Optional[Writer] = None,
) -> ArrayLike:
    """Return a valid unconstrained starting point for `model`.

    Parameters
    ----------
    model : Model
        Target density.
    init_context : mapping or None
        Starting values keyed by unconstrained parameter name. May be partial.
    rng : numpy.random.Generator
        Chain generator, used only for coordinates that are drawn.
    init_radius : float
        Half-width of the uniform initialization box.
    allow_random_init : bool
        Whether coordinates may be drawn at random. When False, an
        incomplete context with a positive radius is an error, and a
        rejected context point is not retried.
    logger : logging.Logger, optional
    init_writer : Writer, optional
        Receives the parameter names and the accepted point.

    Raises
    ------
    InitializationError
        No valid point was found within the attempt budget.
    """
    logger = logger or get_logger()
    init_writer = init_writer if init_writer is not None else Writer()
    init_radius = float(init_radius)
    if not (math.isfinite(init_radius) and init_radius >= 0.0):
        logger.error("init_radius must be finite and non-negative, got %s", init_radius)
        raise ConfigurationError(f"invalid init_radius {init_radius}")

    names = list(model.unconstrained_param_names())
    context = dict(init_context or {})
    unknown = sorted(set(context) - set(names))
    if unknown:
        logger.error("Unknown parameters in init context: %s", ", ".join(unknown))
        raise ConfigurationError(f"unknown init parameters {unknown}")

    supplied = {name: float(context[name]) for name in names if name in context}
    missing = [i for i, name in enumerate(names) if name not in supplied]
    is_fully_initialized = len(missing) == 0
    can_draw = allow_random_init and init_radius > 0.0

    if missing and init_radius > 0.0 and not allow_random_init:
        msg = (
            "Random initialization is disabled but no initial value was "
            "supplied for: " + ", ".join(names[i] for i in missing)
        )
        logger.error(msg)
        raise InitializationError(msg)

    max_tries = MAX_INIT_TRIES if can_draw else 1

    for attempt in range(max_tries):
        # a complete context is tried once, then the whole point is drawn
        use_context = not (is_fully_initialized and attempt > 0)
        q = np.zeros(len(names))
        draw = []
        for i, name in enumerate(names):
            if use_context and name in supplied:
                q[i] = supplied[name]
            else:
                draw.append(i)
        if draw and init_radius > 0.0:
            q[draw] = rng.uniform(-init_radius, init_radius, size=len(draw))

        q_init = gnp.asarray(q)
        try:
            t_start = time.time()
            lp, grad = model.log_prob_grad(q_init)
            elapsed = time.time() - t_start
        except (ValueError, ArithmeticError) as e:
            _reject(
                logger,
                "Error evaluating the log probability at the initial value.",
                str(e),
            )
            continue

        if not math.isfinite(lp):
            _reject(
                logger,
                f"Log probability evaluates to {lp}.",
                "Sampling cannot start from this initial value.",
            )
            continue
        if not gnp.all_finite(grad):
            _reject(logger, "Gradient evaluated at the initial value is not finite.")
            continue

        logger.info("Gradient evaluation took %.3g seconds", elapsed)
        logger.info(
            "1000 transitions using 10 leapfrog steps per transition would take %.3g seconds.",
            1e4 * elapsed,
        )
        init_writer.write_names(names)
        init_writer.write_values(q)
        return q_init

    if can_draw:
        msg = (
            f"Initialization between (-{init_radius:g}, {init_radius:g}) failed after "
            f"{max_tries} attempts. Try specifying initial values, reducing ranges "
            "of constrained values, or reparameterizing the model."
        )
    else:
        msg = "Initialization failed: the initial value is not in the support of the model."
    logger.error(msg)
    raise InitializationError(msg)
