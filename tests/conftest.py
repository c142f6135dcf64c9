"""Shared fixtures for modelgraph tests."""

import numpy as np
import pytest

import modelgraph as mg
from modelgraph.model.components import parameters as dists


@pytest.fixture
def chain_code() -> mg.ModelCode:
    """a -> b -> c with b = a + 1 and c ~ Normal(b, 1)."""
    code = mg.ModelCode()
    code["b"] = mg.ref("a") + 1
    code["c"] = dists.Normal(mu=mg.ref("b"), sigma=1.0)
    return code


@pytest.fixture
def chain_model(chain_code: mg.ModelCode) -> mg.Model:
    return mg.Model(chain_code, inits={"c": 0.5}, seed=1)


@pytest.fixture
def regression_data() -> np.ndarray:
    return np.array([1.2, 0.4, 2.1, 1.7, 0.9])


@pytest.fixture
def regression_model(regression_data: np.ndarray) -> mg.Model:
    """mu and sigma with five observed normal draws and their mean."""
    code = mg.ModelCode()
    code["mu"] = dists.Normal(mu=0.0, sigma=10.0)
    code["sigma"] = dists.HalfNormal(sigma=2.0)
    for i in range(1, 6):
        code[f"y[{i}]"] = dists.Normal(mu=mg.ref("mu"), sigma=mg.ref("sigma"))
    code["ybar"] = mg.operations.sum_(mg.ref("y")) / 5
    return mg.Model(
        code,
        data={"y": regression_data},
        inits={"mu": 1.0, "sigma": 1.5},
        seed=7,
    )
