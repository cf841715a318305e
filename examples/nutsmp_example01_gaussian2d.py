"""
Sample a correlated 2d Gaussian with adaptive NUTS and plot the adaptation

Author: Emmanuel Vazquez <emmanuel.vazquez@centralesupelec.fr>
Copyright (c) 2022-2026, CentraleSupelec
License: GPLv3 (see LICENSE)
"""

import numpy as np
import nutsmp.num as gnp
from nutsmp import Model
from nutsmp.callbacks import MemoryWriter
from nutsmp.diagnostics import plot_adaptation_diagnostics
from nutsmp.services import hmc_nuts_unit_e_adapt


class Gaussian2d(Model):
    """N(mu, cov) on R^2."""

    def __init__(self, mu, cov):
        self.mu = gnp.asarray(mu)
        self.inv_cov = gnp.asarray(np.linalg.inv(cov))

    @property
    def dim(self):
        return 2

    def unconstrained_param_names(self):
        return ["x", "y"]

    def log_prob(self, q):
        d = q - self.mu
        return -0.5 * gnp.sum(d * (self.inv_cov @ d))


def main():
    mu = np.array([0.75, -0.35])
    cov = np.array([[0.9, 0.35], [0.35, 1.4]])
    model = Gaussian2d(mu, cov)

    num_warmup = 1000
    samples = MemoryWriter()
    hmc_nuts_unit_e_adapt(
        model,
        random_seed=42,
        num_warmup=num_warmup,
        num_samples=2000,
        save_warmup=True,
        sample_writer=samples,
    )

    draws = np.column_stack([samples.column("x"), samples.column("y")])[num_warmup:]
    print("\nPosterior moments")
    print("-----------------")
    print("mean:", draws.mean(axis=0), " (true:", mu, ")")
    print("cov:\n", np.cov(draws.T))
    print("divergent rate:", samples.column("divergent__")[num_warmup:].mean())

    plot_adaptation_diagnostics(samples, num_warmup_rows=num_warmup)


if __name__ == '__main__':
    main()
