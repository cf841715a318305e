import numpy as np
import pytest

import nutsmp
import nutsmp.num as gnp
from nutsmp.model import LogDensityModel, Model
from nutsmp.services.rng import create_rng


class Quadratic(Model):
    dim = 2

    def log_prob(self, q):
        return -gnp.sum((q - 1.0) ** 2)


def test_default_names_and_gradient():
    model = Quadratic()
    assert model.unconstrained_param_names() == ["q.1", "q.2"]
    assert model.constrained_param_names() == ["q.1", "q.2"]
    lp, g = model.log_prob_grad(gnp.asarray([0.0, 2.0]))
    assert lp == pytest.approx(-2.0)
    assert np.allclose(gnp.to_np(g), [2.0, -2.0], atol=1e-6)


def test_write_array_is_the_identity_by_default():
    model = Quadratic()
    out = model.write_array(create_rng(0, 1), gnp.asarray([0.5, -0.5]))
    assert isinstance(out, np.ndarray)
    assert np.array_equal(out, [0.5, -0.5])


def test_log_density_model_names():
    model = LogDensityModel(lambda q: 0.0, 2, names=["mu", "log_sigma"])
    assert model.dim == 2
    assert model.unconstrained_param_names() == ["mu", "log_sigma"]
    with pytest.raises(ValueError):
        LogDensityModel(lambda q: 0.0, 0)
    with pytest.raises(ValueError):
        LogDensityModel(lambda q: 0.0, 2, names=["mu"])


def test_package_metadata():
    assert isinstance(nutsmp.__version__, str)
    assert nutsmp.ErrorCode.OK == 0
