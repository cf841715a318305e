import numpy as np
import pytest
import scipy.stats

from nutsmp.error_codes import ConfigurationError, ErrorCode
from nutsmp.services.rng import DISCARD_STRIDE, create_rng


def test_same_seed_and_chain_reproduce_the_stream():
    a = create_rng(42, 1).random(100)
    b = create_rng(42, 1).random(100)
    assert np.array_equal(a, b)


def test_chains_start_at_disjoint_offsets():
    a = create_rng(42, 1).random(100)
    b = create_rng(42, 2).random(100)
    c = create_rng(43, 1).random(100)
    assert not np.array_equal(a, b)
    assert not np.array_equal(a, c)


def test_chain_k_is_the_seed_stream_advanced_by_k_strides():
    bg = np.random.PCG64(7)
    bg.advance(3 * DISCARD_STRIDE)
    expected = np.random.Generator(bg).standard_normal(10)
    assert np.array_equal(create_rng(7, 3).standard_normal(10), expected)


def test_chain_streams_are_uncorrelated():
    n = 20000
    x = create_rng(2024, 1).standard_normal(n)
    y = create_rng(2024, 2).standard_normal(n)
    r, _ = scipy.stats.pearsonr(x, y)
    assert abs(r) < 0.04
    r_lag, _ = scipy.stats.pearsonr(x[1:], y[:-1])
    assert abs(r_lag) < 0.04


@pytest.mark.parametrize("seed, chain", [(-1, 1), (1, -1), (1.5, 1), (1, 0.5)])
def test_invalid_seed_or_chain(seed, chain):
    with pytest.raises(ConfigurationError) as excinfo:
        create_rng(seed, chain)
    assert excinfo.value.code == ErrorCode.USAGE
