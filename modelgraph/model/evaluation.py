# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""Evaluation passes over a compiled model.

All passes visit nodes strictly in the order given by the caller; when no nodes
are given, every node is visited in the model's topological order. Nothing is
reordered, skipped for being up to date, or recomputed implicitly: a pass over
nodes given out of dependency order reads whatever values the model currently
holds (and issues a
:py:class:`~modelgraph.exceptions.StaleDependencyWarning` when it can tell
those values are out of date).

.. list-table::
    :header-rows: 1

    * - Pass
      - Deterministic nodes
      - Stochastic nodes
    * - :py:func:`calculate`
      - Recompute and store the value
      - Recompute, store and sum the log-probability
    * - :py:func:`simulate`
      - Recompute and store the value
      - Draw and store a new value (data nodes skipped by default)
    * - :py:func:`get_log_prob`
      - Untouched
      - Sum the stored log-probability
    * - :py:func:`calculate_diff`
      - Recompute and store the value
      - Recompute and store the log-probability, summing new minus old
"""

# pylint: disable=protected-access

from __future__ import annotations

from typing import TYPE_CHECKING

import numpy as np

from modelgraph.exceptions import (
    InvalidDensityError,
    InvalidParameterName,
    MultipleNodesNotSupported,
)
from modelgraph.model.node_names import NodeName

if TYPE_CHECKING:
    from modelgraph import custom_types
    from modelgraph.model import model as model_module


def _kinds():
    # Local import; the model module imports this one
    from modelgraph.model.model import NodeKind  # pylint: disable=import-outside-toplevel

    return NodeKind


def stored_log_prob(model: "model_module.Model", name: NodeName) -> float:
    """Read the log-probability stored for a stochastic node.

    Block nodes store their log-probability at their first element.
    """
    if model.warn_stale:
        model._check_stale_log_probs([name])
    return float(model._log_probs[name.varname][name.first_element])


def store_log_prob(model: "model_module.Model", name: NodeName, value: float) -> None:
    """Store the log-probability of a stochastic node and clear its stale mark."""
    model._log_probs[name.varname][name.first_element] = value
    model._stale_log_probs.discard(name)


def declared_parameters(
    model: "model_module.Model", name: NodeName
) -> dict[str, "custom_types.SampleType"]:
    """Current values of the parameters a stochastic node was declared with."""
    return model._nodes[name].rhs.evaluate_parents(model._read_reference)


def calculate_node(model: "model_module.Model", name: NodeName) -> float:
    """Recompute a single node.

    :returns: The node's new log-probability if it is stochastic, 0 otherwise
    :rtype: float

    :raises InvalidDensityError: If the log-probability is NaN. The NaN is
        stored first.
    """
    node_kind = _kinds()
    node = model._nodes[name]

    # Deterministic nodes store their new value
    if node.kind is node_kind.DETERMINISTIC:
        model._write_region(name, node.rhs.evaluate(model._read_reference))
        return 0.0

    # Input nodes have nothing to compute
    if node.kind is node_kind.INPUT:
        return 0.0

    # Stochastic nodes store their new log-probability
    logp = node.rhs.log_density(
        model._values[name.varname][name.slices], declared_parameters(model, name)
    )
    store_log_prob(model, name, logp)
    if np.isnan(logp):
        raise InvalidDensityError(
            f"Log-probability of '{name}' in model '{model.name}' is NaN; check "
            "the values of its parameters.",
            node=str(name),
        )
    return logp


def calculate(
    model: "model_module.Model", nodes: "custom_types.NodesLike" = None
) -> float:
    """Recompute nodes in the given order and sum the stochastic log-probabilities.

    :param model: The model to evaluate
    :type model: Model
    :param nodes: Nodes to recompute, in the order to recompute them. Defaults to
        every node in topological order.
    :type nodes: custom_types.NodesLike

    :returns: Sum of the new log-probabilities of the stochastic nodes visited.
        Nodes outside of their support contribute ``-inf``.
    :rtype: float

    :raises InvalidDensityError: If a log-probability is NaN
    :raises UnknownVariable: If a pattern names a variable that does not exist
    :raises UnknownNode: If a pattern indexes outside of its variable

    Example:
        >>> model.set_value("a", 5.0)
        >>> model.calculate(model.get_dependencies("a"))
        -0.9189385332046727
    """
    total = 0.0
    for name in model._resolve_nodes(nodes):
        total += calculate_node(model, name)
    return float(total)


def simulate(
    model: "model_module.Model",
    nodes: "custom_types.NodesLike" = None,
    include_data: bool = False,
) -> None:
    """Draw new values for stochastic nodes in the given order.

    Deterministic nodes in the list are recomputed as in :py:func:`calculate`,
    so that stochastic nodes later in the list draw from up-to-date parameters.
    Log-probabilities are not updated.

    :param model: The model to simulate
    :type model: Model
    :param nodes: Nodes to simulate, in order. Input nodes are skipped.
        Defaults to every node in topological order.
    :type nodes: custom_types.NodesLike
    :param include_data: Overwrite data nodes too. Defaults to False.
    :type include_data: bool
    """
    node_kind = _kinds()
    for name in model._resolve_nodes(nodes):
        node = model._nodes[name]
        if node.kind is node_kind.DETERMINISTIC:
            calculate_node(model, name)
            continue
        if node.kind is node_kind.INPUT:
            continue
        if not include_data and model._is_data(name):
            continue
        model._write_region(
            name,
            node.rhs.sample(declared_parameters(model, name), name.shape, model.rng),
        )


def get_log_prob(
    model: "model_module.Model", nodes: "custom_types.NodesLike" = None
) -> float:
    """Sum stored log-probabilities without recomputing anything.

    :param model: The model to read
    :type model: Model
    :param nodes: Nodes to sum over. Non-stochastic nodes contribute 0. Defaults
        to every node.
    :type nodes: custom_types.NodesLike

    :returns: Sum of the stored log-probabilities
    :rtype: float
    """
    node_kind = _kinds()
    total = 0.0
    for name in model._resolve_nodes(nodes):
        if model._nodes[name].kind is node_kind.STOCHASTIC:
            total += stored_log_prob(model, name)
    return float(total)


def calculate_diff(
    model: "model_module.Model", nodes: "custom_types.NodesLike" = None
) -> float:
    """Recompute nodes and return the change in their summed log-probability.

    Equivalent to ``get_log_prob(nodes)`` before the call subtracted from
    ``calculate(nodes)``, but reads each old log-probability just before its
    node is recomputed. Old log-probabilities are expected to be stale here, so
    no warning is issued for them.

    :param model: The model to evaluate
    :type model: Model
    :param nodes: Nodes to recompute, in order. Defaults to every node in
        topological order.
    :type nodes: custom_types.NodesLike

    :returns: New minus old summed log-probability
    :rtype: float

    :raises InvalidDensityError: If a log-probability is NaN
    """
    node_kind = _kinds()
    diff = 0.0
    for name in model._resolve_nodes(nodes):
        if model._nodes[name].kind is node_kind.STOCHASTIC:
            old = float(model._log_probs[name.varname][name.first_element])
            diff += calculate_node(model, name) - old
        else:
            calculate_node(model, name)
    return float(diff)


def get_param(
    model: "model_module.Model",
    node: "custom_types.NodeLike",
    param_name: str,
) -> "custom_types.SampleType":
    """Get a distribution parameter of a stochastic node.

    The parameter is computed from the current values of the node's parents. Any
    of the family's parametrizations may be queried, whichever one the node was
    declared with.

    :param model: The model to read
    :type model: Model
    :param node: Node pattern. Must cover exactly one node.
    :type node: custom_types.NodeLike
    :param param_name: Name of the parameter, e.g. ``"sigma"``, ``"tau"`` or
        ``"mean"`` for a normal distribution
    :type param_name: str

    :returns: Current value of the parameter
    :rtype: custom_types.SampleType

    :raises MultipleNodesNotSupported: If the pattern covers several nodes
    :raises InvalidParameterName: If the node is not stochastic or its
        distribution has no such parameter

    Example:
        >>> code["y"] = mg.parameters.Normal(mu=0.0, sigma=2.0)
        >>> model.get_param("y", "tau")
        0.25
    """
    names = model._resolve_nodes(node)
    if len(names) != 1:
        raise MultipleNodesNotSupported(
            f"get_param accepts a single node; '{node}' covers {len(names)}."
        )
    name = names[0]

    distribution = model._nodes[name].distribution
    if distribution is None:
        raise InvalidParameterName(
            f"'{name}' is not stochastic and has no parameter '{param_name}'."
        )

    return distribution.get_param(param_name, declared_parameters(model, name))
