import math

import numpy as np
import pytest

from nutsmp.error_codes import ErrorCode, StepsizeInitializationError
from nutsmp.mcmc import ChainState, UnitENutsKernel
from nutsmp.mcmc.nuts import _PhasePoint
from nutsmp.model import LogDensityModel
from nutsmp.services.rng import create_rng


def gaussian(q):
    return -0.5 * float(np.sum(q * q))


def box_gaussian(q):
    if np.all(np.abs(q) < 1.0):
        return gaussian(q)
    return -np.inf


def test_leapfrog_conserves_energy_for_small_steps():
    kernel = UnitENutsKernel(LogDensityModel(gaussian, 2), create_rng(0, 1))
    q0 = np.array([0.3, -0.7])
    U0, g0 = kernel.potential_and_grad(q0)
    assert U0 == pytest.approx(0.5 * float(q0 @ q0))
    assert np.allclose(g0, q0, atol=1e-6)

    z = _PhasePoint(q0, np.array([1.0, 0.5]), g0, U0)
    H0 = kernel.hamiltonian(z)
    for _ in range(100):
        z = kernel.leapfrog(z, 0.01)
    assert kernel.hamiltonian(z) == pytest.approx(H0, abs=1e-3)


def test_step_reports_diagnostics():
    kernel = UnitENutsKernel(LogDensityModel(gaussian, 3), create_rng(0, 1), max_depth=4)
    record = kernel.step(ChainState(np.zeros(3)), 0.5)
    d = record.diagnostics
    assert list(d) == kernel.sampler_param_names()
    assert 1 <= d["treedepth__"] <= 4
    assert 1 <= d["n_leapfrog__"] <= 2 ** 4 - 1
    assert d["divergent__"] == 0.0
    assert 0.0 <= record.accept_stat <= 1.0
    assert record.state.log_prob == pytest.approx(gaussian(record.state.cont_params))


def test_step_is_reproducible():
    model = LogDensityModel(gaussian, 2)
    a = UnitENutsKernel(model, create_rng(8, 1)).step(ChainState(np.ones(2)), 0.3)
    b = UnitENutsKernel(model, create_rng(8, 1)).step(ChainState(np.ones(2)), 0.3)
    assert np.array_equal(a.state.cont_params, b.state.cont_params)
    assert a.accept_stat == b.accept_stat


def test_non_finite_density_is_a_divergence_not_an_error():
    kernel = UnitENutsKernel(LogDensityModel(box_gaussian, 2), create_rng(1, 1))
    state = ChainState(np.zeros(2))
    record = kernel.step(state, 1e3)
    assert record.diagnostics["divergent__"] == 1.0
    assert record.diagnostics["treedepth__"] == 1.0
    assert record.accept_stat == 0.0
    assert np.array_equal(record.state.cont_params, np.zeros(2))


def test_max_depth_bounds_the_tree():
    kernel = UnitENutsKernel(LogDensityModel(gaussian, 2), create_rng(2, 1), max_depth=2)
    for _ in range(20):
        record = kernel.step(ChainState(np.zeros(2)), 1e-3)
        assert record.diagnostics["treedepth__"] == 2.0
        assert record.diagnostics["n_leapfrog__"] == 3.0


def test_init_stepsize_heuristic_returns_a_power_of_two_multiple():
    kernel = UnitENutsKernel(LogDensityModel(gaussian, 5), create_rng(3, 1))
    eps = kernel.init_stepsize(ChainState(np.full(5, 0.5)), 1.0)
    k = math.log2(eps)
    assert eps > 0.0
    assert k == int(k)


def test_init_stepsize_flat_density_is_improper():
    kernel = UnitENutsKernel(LogDensityModel(lambda q: 0.0, 2), create_rng(3, 1))
    with pytest.raises(StepsizeInitializationError) as excinfo:
        kernel.init_stepsize(ChainState(np.zeros(2)), 1.0)
    assert excinfo.value.code == ErrorCode.DATAERR
    assert "improper" in str(excinfo.value)
