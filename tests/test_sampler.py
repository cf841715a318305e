import numpy as np
import pytest

from nutsmp.callbacks import MemoryWriter
from nutsmp.error_codes import ConfigurationError
from nutsmp.mcmc import AdaptiveSampler, ChainState
from nutsmp.services.rng import create_rng


def make_sampler(kernel, seed=0):
    return AdaptiveSampler(kernel, create_rng(seed, 1))


def test_no_jitter_uses_the_nominal_stepsize(scripted_kernel):
    sampler = make_sampler(scripted_kernel)
    sampler.set_nominal_stepsize(0.3)
    state = ChainState(np.zeros(2))
    for _ in range(5):
        state = sampler.transition(state).state
    assert scripted_kernel.stepsizes == [0.3] * 5


def test_jittered_stepsizes_stay_in_band(scripted_kernel):
    sampler = make_sampler(scripted_kernel)
    sampler.set_nominal_stepsize(0.5)
    sampler.set_stepsize_jitter(0.4)
    eps = np.array([sampler.sample_stepsize() for _ in range(2000)])
    assert np.all(eps >= 0.5 * 0.6)
    assert np.all(eps <= 0.5 * 1.4)
    assert eps.min() < 0.35 and eps.max() > 0.65
    assert sampler.get_nominal_stepsize() == 0.5


@pytest.mark.parametrize("jitter", [-0.1, 1.0, 2.0])
def test_invalid_jitter(scripted_kernel, jitter):
    with pytest.raises(ConfigurationError):
        make_sampler(scripted_kernel).set_stepsize_jitter(jitter)


@pytest.mark.parametrize("stepsize", [0.0, -1.0, float("nan")])
def test_invalid_stepsize(scripted_kernel, stepsize):
    with pytest.raises(ConfigurationError):
        make_sampler(scripted_kernel).set_nominal_stepsize(stepsize)


def test_max_depth_is_set_on_the_kernel(scripted_kernel):
    sampler = make_sampler(scripted_kernel)
    sampler.set_max_depth(6)
    assert scripted_kernel.max_depth == 6
    assert sampler.get_max_depth() == 6
    with pytest.raises(ConfigurationError):
        sampler.set_max_depth(0)
    with pytest.raises(ConfigurationError):
        sampler.set_max_depth(2.5)


def test_adaptation_only_while_engaged(make_kernel):
    kernel = make_kernel(accept_stats=[0.2])
    sampler = make_sampler(kernel)
    state = ChainState(np.zeros(1))
    sampler.transition(state)
    assert sampler.get_stepsize_adaptation().counter == 0
    assert sampler.get_nominal_stepsize() == 1.0

    sampler.engage_adaptation()
    assert sampler.adapting
    sampler.transition(state)
    assert sampler.get_stepsize_adaptation().counter == 1
    assert sampler.get_nominal_stepsize() < 1.0


def test_disengage_freezes_at_averaged_iterate(make_kernel):
    kernel = make_kernel(accept_stats=[0.3, 0.95, 0.6])
    sampler = make_sampler(kernel)
    sampler.engage_adaptation()
    state = ChainState(np.zeros(1))
    for _ in range(10):
        state = sampler.transition(state).state
    adaptation = sampler.get_stepsize_adaptation()
    sampler.disengage_adaptation()
    assert not sampler.adapting
    assert sampler.get_nominal_stepsize() == pytest.approx(np.exp(adaptation.x_bar))


def test_disengage_without_updates_keeps_the_stepsize(scripted_kernel):
    sampler = make_sampler(scripted_kernel)
    sampler.set_nominal_stepsize(0.25)
    sampler.engage_adaptation()
    sampler.disengage_adaptation()
    assert sampler.get_nominal_stepsize() == 0.25


def test_sampler_params_and_state_messages(scripted_kernel):
    sampler = make_sampler(scripted_kernel)
    sampler.set_nominal_stepsize(0.125)
    record = sampler.transition(ChainState(np.zeros(2)))
    assert sampler.sampler_param_names() == ["stepsize__", "treedepth__", "divergent__"]
    assert sampler.sampler_params(record) == [0.125, 1.0, 0.0]

    writer = MemoryWriter()
    sampler.write_sampler_state(writer)
    assert writer.messages == [
        "Step size = 0.125",
        "No free parameters for unit metric",
    ]
