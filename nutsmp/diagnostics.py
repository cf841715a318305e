# nutsmp/diagnostics.py
# --------------------------------------------------------------
# Author: Emmanuel Vazquez <emmanuel.vazquez@centralesupelec.fr>
# Copyright (c) 2022-2026, CentraleSupelec
# License: GPLv3 (see LICENSE)
# --------------------------------------------------------------
"""
Post-run diagnostics on draws recorded in MemoryWriter objects.

- plot_adaptation_diagnostics: step size, accept statistic and divergences
  of one run, warmup and sampling phases,
- gelman_rubin_rhat, ks_pvalues, check_convergence: agreement of several
  chains run on the same model.
"""

from __future__ import annotations

from typing import Dict, List, Optional, Sequence

import logging
import os

import numpy as np
from scipy.stats import ks_2samp

from nutsmp.callbacks import MemoryWriter
from nutsmp.config import get_logger


def moving_average(y: np.ndarray, window: int) -> np.ndarray:
    if window <= 1:
        return y
    w = np.ones(window) / window
    return np.convolve(y, w, mode="valid")


def plot_adaptation_diagnostics(
    writer: MemoryWriter,
    num_warmup_rows: int,
    window: int = 50,
    show: bool = True,
    save_dir: Optional[str] = None,
) -> List:
    """Step size, accept statistic and divergences per written draw.

    writer holds the sample rows of a run; its first num_warmup_rows rows
    are warmup draws (written with save_warmup=True), the rest are
    sampling draws.
    """
    import matplotlib.pyplot as plt

    stepsize = writer.column("stepsize__")
    accept = writer.column("accept_stat__")
    divergent = (
        writer.column("divergent__")
        if "divergent__" in (writer.names or [])
        else np.zeros_like(accept)
    )
    if not 0 <= num_warmup_rows <= stepsize.shape[0]:
        raise ValueError("num_warmup_rows must be between 0 and the number of rows")

    if save_dir is not None:
        os.makedirs(save_dir, exist_ok=True)

    figs = []

    def _save(fig, name):
        figs.append(fig)
        if save_dir is not None:
            fig.savefig(os.path.join(save_dir, name), dpi=150)

    fig = plt.figure()
    plt.plot(stepsize)
    if num_warmup_rows > 0:
        plt.axvline(num_warmup_rows, linestyle="--", color="k")
    plt.yscale("log")
    plt.xlabel("draw")
    plt.ylabel("step size")
    _save(fig, "step_size.png")

    for phase, rows in (
        ("warmup", slice(0, num_warmup_rows)),
        ("sample", slice(num_warmup_rows, None)),
    ):
        acc = accept[rows]
        if acc.shape[0] == 0:
            continue
        fig = plt.figure()
        plt.plot(acc)
        if window > 1 and len(acc) >= window:
            ma = moving_average(acc, window)
            plt.plot(np.arange(window - 1, len(acc)), ma)
        plt.xlabel(f"{phase} draw")
        plt.ylabel("accept stat")
        _save(fig, f"{phase}_accept.png")

        fig = plt.figure()
        plt.plot(np.cumsum(divergent[rows]) / np.arange(1, acc.shape[0] + 1))
        plt.xlabel(f"{phase} draw")
        plt.ylabel("cumulative divergence rate")
        _save(fig, f"{phase}_divergence.png")

    if show:
        plt.show()

    return figs


# ---------------------------------------------------------------------
# several chains


def gelman_rubin_rhat(draws: np.ndarray) -> np.ndarray:
    """Gelman-Rubin R-hat per parameter.

    Parameters
    ----------
    draws : np.ndarray, shape (n_chains, n_draws, dim)

    Returns
    -------
    np.ndarray, shape (dim,)
    """
    draws = np.asarray(draws, dtype=float)
    n_chains, n_draws, _ = draws.shape
    if n_chains < 2:
        raise ValueError("At least 2 chains are required.")
    if n_draws <= 1:
        raise ValueError("Not enough draws to compute Gelman-Rubin diagnostic.")

    chain_means = np.mean(draws, axis=1)
    chain_vars = np.var(draws, axis=1, ddof=1)
    W = np.mean(chain_vars, axis=0)  # within-chain variance
    B = n_draws * np.var(chain_means, axis=0, ddof=1)  # between-chain variance
    var_post = ((n_draws - 1) / n_draws) * W + (1.0 / n_draws) * B
    return np.sqrt(var_post / W)


def ks_pvalues(draws: np.ndarray) -> np.ndarray:
    """Two-sample KS p-values between every pair of chains.

    Returns an array of shape (dim, n_chains, n_chains); the diagonal is 1.
    """
    draws = np.asarray(draws, dtype=float)
    n_chains, _, dim = draws.shape
    pvalues = np.ones((dim, n_chains, n_chains))
    for d in range(dim):
        for i in range(n_chains):
            for j in range(i + 1, n_chains):
                result = ks_2samp(draws[i, :, d], draws[j, :, d], alternative="two-sided")
                pvalues[d, i, j] = pvalues[d, j, i] = result.pvalue
    return pvalues


def stack_draws(writers: Sequence[MemoryWriter], names: Sequence[str]) -> np.ndarray:
    """Columns `names` of each writer, shape (n_chains, n_draws, len(names))."""
    n_rows = {len(w) for w in writers}
    if len(n_rows) != 1:
        raise ValueError("all chains must hold the same number of draws")
    return np.stack(
        [np.column_stack([w.column(name) for name in names]) for w in writers]
    )


def check_convergence(
    writers: Sequence[MemoryWriter],
    names: Optional[Sequence[str]] = None,
    threshold: float = 1.1,
    alpha: float = 0.01,
    logger: Optional[logging.Logger] = None,
) -> Dict[str, object]:
    """R-hat and pairwise KS tests on the sample rows of several chains.

    names defaults to the model columns, i.e. every column not ending
    with '__'. Returns a dict with keys 'names', 'rhat', 'ks_pvalues' and
    'ok' (all R-hat below threshold and no KS p-value below alpha).
    """
    logger = logger or get_logger()
    if names is None:
        names = [n for n in writers[0].names if not n.endswith("__")]
    draws = stack_draws(writers, names)
    rhat = gelman_rubin_rhat(draws)
    pvalues = ks_pvalues(draws)
    rhat_ok = bool(np.all(rhat < threshold))
    ks_ok = bool(np.all(pvalues >= alpha))

    for name, r in zip(names, rhat):
        logger.info("R-hat %s = %.4f", name, r)
    if not rhat_ok:
        logger.warning("Some R-hat >= %g: chains have not mixed.", threshold)
    if not ks_ok:
        logger.warning(
            "KS tests reject equality of some chain pairs at level %g.", alpha
        )
    return {
        "names": list(names),
        "rhat": rhat,
        "ks_pvalues": pvalues,
        "ok": rhat_ok and ks_ok,
    }
