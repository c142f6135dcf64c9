# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""Algorithms specialized to modelgraph models.

This subpackage holds the setup/run specialization mechanism
(:py:mod:`~modelgraph.algorithms.specializer`), the built-in node algorithms
(:py:mod:`~modelgraph.algorithms.node_functions`) and the sampler contract
(:py:mod:`~modelgraph.algorithms.samplers`).
"""

from modelgraph.algorithms.node_functions import (
    CalcNodes,
    CalcNodesMany,
    GetLogProbNodes,
    GetLogProbNodesMany,
    SetAndCalculate,
    SimNodes,
    SimNodesMany,
)
from modelgraph.algorithms.samplers import SamplerBase
from modelgraph.algorithms.specializer import GraphFunction, graph_function, run_method
