# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""Dependency resolution over a compiled model graph.

Given a set of nodes, the resolver walks the graph of a
:py:class:`~modelgraph.model.model.Model` downstream (toward children) or
upstream (toward parents) and returns the nodes reached, filtered by kind and
sorted in the model's topological order. The typical use is finding what must
be recalculated after a set of nodes changes:

.. code-block:: python

    calc_nodes = model.get_dependencies("mu", stop_at_stochastic=True)
    model.set_value("mu", proposal)
    log_ratio = model.calculate_diff(calc_nodes)

With ``stop_at_stochastic=True`` the walk does not continue past stochastic
nodes (other than the starting nodes): a stochastic node's log-probability
depends on its parents, but its value does not.
"""

# pylint: disable=protected-access

from __future__ import annotations

from typing import TYPE_CHECKING

from modelgraph.model.node_names import NodeName, format_node_names

if TYPE_CHECKING:
    from modelgraph import custom_types
    from modelgraph.model import model as model_module


def resolve_dependencies(
    model: "model_module.Model",
    nodes: "custom_types.NodesLike",
    include_self: bool = True,
    downstream: bool = True,
    stop_at_stochastic: bool = False,
    stochastic_only: bool = False,
    determ_only: bool = False,
    include_data: bool = True,
    data_only: bool = False,
) -> list[NodeName]:
    """Same as :py:func:`get_dependencies`, but returns parsed names."""
    # pylint: disable=too-many-arguments
    if stochastic_only and determ_only:
        raise ValueError("`stochastic_only` and `determ_only` are exclusive.")

    # Local import; the model module imports this one
    from modelgraph.model.model import NodeKind  # pylint: disable=import-outside-toplevel

    start = model._resolve_nodes(nodes)
    step = model._graph.successors if downstream else model._graph.predecessors

    # Breadth-first walk from the starting nodes
    reached = dict.fromkeys(start)
    frontier = list(start)
    while frontier:
        next_frontier = []
        for current in frontier:
            for neighbor in step(current):
                if neighbor in reached:
                    continue
                reached[neighbor] = None
                if (
                    stop_at_stochastic
                    and model._nodes[neighbor].kind is NodeKind.STOCHASTIC
                ):
                    continue
                next_frontier.append(neighbor)
        frontier = next_frontier

    if not include_self:
        for name in start:
            del reached[name]

    # Filter by kind
    selected = []
    for name in reached:
        kind = model._nodes[name].kind
        if stochastic_only and kind is not NodeKind.STOCHASTIC:
            continue
        if determ_only and kind is not NodeKind.DETERMINISTIC:
            continue
        if (data_only or not include_data) and model._is_data(name) != data_only:
            continue
        selected.append(name)

    return sorted(selected, key=model._rank.__getitem__)


def get_dependencies(
    model: "model_module.Model",
    nodes: "custom_types.NodesLike",
    include_self: bool = True,
    downstream: bool = True,
    stop_at_stochastic: bool = False,
    stochastic_only: bool = False,
    determ_only: bool = False,
    include_data: bool = True,
    data_only: bool = False,
) -> list[str]:
    """Find the nodes that depend on (or that are depended on by) given nodes.

    :param model: The model to search
    :type model: Model
    :param nodes: Starting node patterns
    :type nodes: custom_types.NodesLike
    :param include_self: Include the starting nodes in the result. Defaults to
        True.
    :type include_self: bool
    :param downstream: Walk toward children if True, toward parents otherwise.
        Defaults to True.
    :type downstream: bool
    :param stop_at_stochastic: Do not walk past stochastic nodes other than the
        starting nodes. The stochastic nodes reached are still returned.
        Defaults to False.
    :type stop_at_stochastic: bool
    :param stochastic_only: Only return stochastic nodes. Defaults to False.
    :type stochastic_only: bool
    :param determ_only: Only return deterministic nodes. Defaults to False.
    :type determ_only: bool
    :param include_data: Include data nodes. Defaults to True.
    :type include_data: bool
    :param data_only: Only return data nodes. Defaults to False.
    :type data_only: bool

    :returns: Canonical node names in topological order, each listed once
    :rtype: list[str]

    :raises ValueError: If both ``stochastic_only`` and ``determ_only`` are set
    :raises UnknownVariable: If a pattern names a variable that does not exist
    :raises UnknownNode: If a pattern indexes outside of its variable

    Example:
        >>> model.get_dependencies("a")
        ['a', 'b', 'c']
        >>> model.get_dependencies("c", downstream=False, include_self=False)
        ['a', 'b']
    """
    return format_node_names(
        resolve_dependencies(
            model,
            nodes,
            include_self=include_self,
            downstream=downstream,
            stop_at_stochastic=stop_at_stochastic,
            stochastic_only=stochastic_only,
            determ_only=determ_only,
            include_data=include_data,
            data_only=data_only,
        )
    )
