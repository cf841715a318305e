import io
import logging
import threading

import numpy as np
import pytest

import nutsmp
from nutsmp.callbacks import FlagInterrupt, MemoryWriter, StreamWriter
from nutsmp.error_codes import ConfigurationError, ErrorCode, InitializationError
from nutsmp.services import hmc_nuts_unit_e_adapt, hmc_nuts_unit_e_adapt_chains
from nutsmp.services.run_loops import CrossChainGroup


def run_chain(model, **kwargs):
    writers = dict(
        init_writer=MemoryWriter(),
        sample_writer=MemoryWriter(),
        diagnostic_writer=MemoryWriter(),
    )
    kwargs.setdefault("refresh", 0)
    status = hmc_nuts_unit_e_adapt(model, **kwargs, **writers)
    return status, writers


def test_gaussian_moments(gaussian_model):
    status, w = run_chain(
        gaussian_model, random_seed=1234, num_warmup=300, num_samples=600
    )
    assert status == ErrorCode.OK
    draws = w["sample_writer"].to_array()[:, -2:]
    assert draws.shape == (600, 2)
    assert np.all(np.abs(draws.mean(axis=0)) < 0.3)
    assert np.all(np.abs(draws.var(axis=0) - 1.0) < 0.4)

    accept = w["sample_writer"].column("accept_stat__")
    assert 0.6 < accept.mean() <= 1.0
    stepsize = w["sample_writer"].column("stepsize__")
    assert np.all(stepsize == stepsize[0])
    assert w["sample_writer"].column("divergent__").sum() == 0


def test_output_layout(gaussian_model):
    _, w = run_chain(gaussian_model, num_warmup=20, num_samples=10, num_thin=2)
    samples, diagnostics, init = w["sample_writer"], w["diagnostic_writer"], w["init_writer"]
    sampler_cols = [
        "lp__", "accept_stat__", "stepsize__",
        "treedepth__", "n_leapfrog__", "divergent__", "energy__",
    ]
    assert samples.names == sampler_cols + ["q.1", "q.2"]
    assert diagnostics.names == sampler_cols + ["q.1", "q.2"]
    assert len(samples) == len(diagnostics) == 5
    assert init.names == ["q.1", "q.2"]
    assert len(init) == 1
    assert np.all(np.abs(init.rows[0]) <= 2.0)


def test_same_seed_and_chain_reproduce_the_run(gaussian_model):
    _, a = run_chain(gaussian_model, random_seed=7, chain=2, num_warmup=30, num_samples=20)
    _, b = run_chain(gaussian_model, random_seed=7, chain=2, num_warmup=30, num_samples=20)
    _, c = run_chain(gaussian_model, random_seed=7, chain=3, num_warmup=30, num_samples=20)
    assert np.array_equal(a["sample_writer"].to_array(), b["sample_writer"].to_array())
    assert not np.array_equal(a["sample_writer"].to_array(), c["sample_writer"].to_array())


def test_init_context_is_honored(gaussian_model):
    _, w = run_chain(
        gaussian_model, init_context={"q.1": 1.5}, init_radius=0.0,
        num_warmup=0, num_samples=1,
    )
    assert w["init_writer"].rows == [[1.5, 0.0]]


def test_zero_warmup_keeps_the_heuristic_stepsize(gaussian_model):
    _, w = run_chain(gaussian_model, num_warmup=0, num_samples=5, stepsize=0.25)
    stepsize = w["sample_writer"].column("stepsize__")
    assert np.all(stepsize == stepsize[0])
    assert np.log2(stepsize[0]) == int(np.log2(stepsize[0]))


def test_stream_writer_output(gaussian_model):
    stream = io.StringIO()
    status = hmc_nuts_unit_e_adapt(
        gaussian_model, num_warmup=10, num_samples=3, refresh=0,
        sample_writer=StreamWriter(stream),
    )
    assert status == ErrorCode.OK
    lines = stream.getvalue().splitlines()
    assert lines[0].startswith("lp__,accept_stat__,stepsize__")
    assert lines[1] == "# Adaptation terminated"
    assert lines[2].startswith("# Step size = ")
    assert lines[3] == "# No free parameters for unit metric"
    data = [line for line in lines if not line.startswith("#")][1:]
    assert len(data) == 3
    assert all(len(line.split(",")) == 9 for line in data)


@pytest.mark.parametrize(
    "kwargs",
    [
        dict(stepsize=0.0),
        dict(stepsize_jitter=1.5),
        dict(max_depth=0),
        dict(delta=1.0),
        dict(gamma=-0.1),
        dict(kappa=0.0),
        dict(t0=0.0),
        dict(num_thin=0),
        dict(chain=-1),
    ],
)
def test_invalid_settings(gaussian_model, kwargs):
    with pytest.raises(ConfigurationError) as excinfo:
        run_chain(gaussian_model, **kwargs)
    assert excinfo.value.code == ErrorCode.USAGE


def test_initialization_failure(caplog):
    model = nutsmp.LogDensityModel(lambda q: -np.inf, 2)
    with caplog.at_level(logging.ERROR, logger="nutsmp"):
        with pytest.raises(InitializationError):
            run_chain(model, num_warmup=10, num_samples=10)
    assert any("Initialization between" in r.getMessage() for r in caplog.records)


def test_flag_interrupt_before_start(gaussian_model):
    interrupt = FlagInterrupt()
    interrupt.request_stop()
    status, w = run_chain(gaussian_model, num_warmup=10, num_samples=10, interrupt=interrupt)
    assert status == ErrorCode.OK
    assert len(w["sample_writer"]) == 0


# ---------------------------------------------------------------------
# several chains


def test_independent_chains(gaussian_model):
    sample_writers = [MemoryWriter() for _ in range(3)]
    status = hmc_nuts_unit_e_adapt_chains(
        gaussian_model, 3, random_seed=5, num_warmup=50, num_samples=20,
        refresh=0, sample_writers=sample_writers,
    )
    assert status == ErrorCode.OK
    assert all(len(w) == 20 for w in sample_writers)

    # chain k of the pool is the single-chain run with chain id 1 + k
    _, w = run_chain(gaussian_model, random_seed=5, chain=2, num_warmup=50, num_samples=20)
    assert np.array_equal(sample_writers[1].to_array(), w["sample_writer"].to_array())


def test_cross_chain_adaptation_shares_the_stepsize(gaussian_model):
    sample_writers = [MemoryWriter() for _ in range(3)]
    status = hmc_nuts_unit_e_adapt_chains(
        gaussian_model, 3, random_seed=5, num_warmup=60, num_samples=10,
        refresh=0, sample_writers=sample_writers, cross_chain=True,
    )
    assert status == ErrorCode.OK
    stepsizes = [w.column("stepsize__") for w in sample_writers]
    assert stepsizes[0][0] == stepsizes[1][0] == stepsizes[2][0]


def test_chains_argument_validation(gaussian_model):
    with pytest.raises(ConfigurationError):
        hmc_nuts_unit_e_adapt_chains(gaussian_model, 0)
    with pytest.raises(ConfigurationError):
        hmc_nuts_unit_e_adapt_chains(
            gaussian_model, 2, sample_writers=[MemoryWriter()]
        )


def test_failing_chain_is_reraised_and_releases_the_group():
    model = nutsmp.LogDensityModel(lambda q: -np.inf, 1)
    with pytest.raises(InitializationError):
        hmc_nuts_unit_e_adapt_chains(
            model, 2, num_warmup=10, num_samples=10, refresh=0, cross_chain=True
        )


def test_numpy_integer_settings_are_accepted(gaussian_model):
    status, w = run_chain(
        gaussian_model,
        num_warmup=np.int64(10),
        num_samples=np.int64(5),
        num_thin=np.int32(1),
        refresh=np.int64(0),
        random_seed=np.uint32(3),
        chain=np.int64(2),
        max_depth=np.int64(8),
    )
    assert status == ErrorCode.OK
    assert len(w["sample_writer"]) == 5

    _, ref = run_chain(
        gaussian_model, num_warmup=10, num_samples=5, random_seed=3, chain=2, max_depth=8
    )
    assert np.array_equal(w["sample_writer"].to_array(), ref["sample_writer"].to_array())


def test_failing_chain_releases_a_group_run_by_hand(gaussian_model):
    group = CrossChainGroup(2)
    failing = nutsmp.LogDensityModel(lambda q: -np.inf, 2)
    outcome = {}

    def target(k, model):
        try:
            outcome[k] = run_chain(
                model, num_warmup=20, num_samples=5, random_seed=11, chain=k + 1,
                cross_chain_group=group, chain_index=k,
            )
        except Exception as e:
            outcome[k] = e

    threads = [
        threading.Thread(target=target, args=(0, failing), daemon=True),
        threading.Thread(target=target, args=(1, gaussian_model), daemon=True),
    ]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=30)
    assert not any(t.is_alive() for t in threads)
    assert group.broken
    assert isinstance(outcome[0], InitializationError)
    status, w = outcome[1]
    assert status == ErrorCode.OK
    assert len(w["sample_writer"]) == 0
