# nutsmp/services/rng.py
# --------------------------------------------------------------
# Author: Emmanuel Vazquez <emmanuel.vazquez@centralesupelec.fr>
# Copyright (c) 2022-2026, CentraleSupelec
# License: GPLv3 (see LICENSE)
# --------------------------------------------------------------
"""Per-chain pseudo-random number generators."""

import numpy as np

from nutsmp.error_codes import ConfigurationError

DISCARD_STRIDE = 1 << 50


def create_rng(seed: int, chain: int) -> np.random.Generator:
    """Return the generator of chain `chain` under global seed `seed`.

    All chains share one PCG64 stream seeded with `seed`; chain k starts
    DISCARD_STRIDE * k draws into it, so chains never overlap for any
    realistic run length.
    """
    if int(seed) != seed or seed < 0:
        raise ConfigurationError(f"random seed must be a non-negative integer, got {seed}")
    if int(chain) != chain or chain < 0:
        raise ConfigurationError(f"chain id must be a non-negative integer, got {chain}")
    bit_generator = np.random.PCG64(int(seed))
    bit_generator.advance(DISCARD_STRIDE * int(chain))
    return np.random.Generator(bit_generator)
