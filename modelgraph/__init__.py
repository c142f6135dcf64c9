# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""
modelgraph: a dependency-ordered evaluation engine for directed graphical models.

modelgraph compiles a declarative model description into a graph of named nodes
and provides the operations that algorithms built on top of such a graph need:
dependency resolution, topological calculation and simulation passes with
log-probability bookkeeping, a resizable store of saved model states, and a
two-stage (setup/run) mechanism for specializing algorithm code to a model.

Key Features:
    - Canonical node naming (``x``, ``x[2]``, ``x[1:3]``, ``x[1, 2]``)
    - Deterministic, reproducible dependency ordering
    - Explicit, caller-ordered ``calculate``/``simulate``/``calculate_diff``
    - Stale-value diagnostics for out-of-order evaluation
    - Setup/run specialization of algorithm objects

Global Variables:
    RNG: Global random number generator used to seed new models
    __version__: Package version string

Example:
    >>> import modelgraph as mg
    >>> mg.manual_seed(42)
    >>> code = mg.ModelCode()
    >>> code["b"] = mg.ref("a") + 1
    >>> code["c"] = mg.parameters.Normal(mu=mg.ref("b"), sigma=1.0)
    >>> model = mg.Model(code, inits={"a": 2.0, "c": 0.5})
    >>> model.calculate(["a", "b", "c"])
"""

from typing import Optional, TYPE_CHECKING

from typeguard import install_import_hook

import numpy as np

# Define the version
__version__ = "0.1.0"

# Set up type checking
install_import_hook("modelgraph")

# Define the global random number generator
RNG: np.random.Generator
"""Global random number generator for modelgraph.

Models that are not given an explicit seed draw their own generator from this
one, so seeding it with :py:func:`manual_seed` makes every subsequent model
reproducible.

:type: np.random.Generator
"""

# Get custom types if TYPE_CHECKING is True
if TYPE_CHECKING:
    from modelgraph import custom_types


def manual_seed(seed: Optional["custom_types.Integer"] = None):
    """Set the seed for the global random number generator.

    :param seed: Seed value for random number generation. If None, uses
                system entropy to generate a random seed.
    :type seed: Union[custom_types.Integer, None]

    Example:
        >>> import modelgraph as mg
        >>> mg.manual_seed(42)
        >>> random_data = mg.RNG.normal(0, 1, size=100)

    Note:
        This function modifies global state and should typically be called
        once at the beginning of a script. Models that already exist keep the
        generator they were built with.
    """
    global RNG  # pylint: disable=global-statement
    RNG = np.random.default_rng(seed)


manual_seed()  # Set the seed for the global random number generator

# Import objects that should be easily accessible from the package level
# pylint: disable=wrong-import-position
from modelgraph import utils

from modelgraph.model.code import ModelCode
from modelgraph.model.components.constants import Constant
from modelgraph.model.components.references import ref
from modelgraph.model.model import Model
from modelgraph.model.model_values import ModelValues
from modelgraph.model.node_names import NodeName

parameters = utils.lazy_import("modelgraph.model.components.parameters")
operations = utils.lazy_import("modelgraph.operations")
algorithms = utils.lazy_import("modelgraph.algorithms")
