# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.


"""Model construction and evaluation for modelgraph.

This module provides the core infrastructure for compiling a declarative model
description into a graph and evaluating it. The primary interface is the
:py:class:`~modelgraph.model.model.Model` class, which owns the graph, the
current values and log-probabilities of every node, and exposes the dependency
and evaluation operations that algorithms are written against.

Models are described with building blocks called components, which fall under
four main categories:

    - :py:class:`Constants <modelgraph.model.components.constants.Constant>`,
      fixed values and hyperparameters.
    - :py:class:`References <modelgraph.model.components.references.NodeReference>`,
      created with :py:func:`~modelgraph.model.components.references.ref`, which
      point at other nodes and become the edges of the graph.
    - :py:class:`Parameters <modelgraph.model.components.parameters.Parameter>`,
      probability distributions. Declaring a node with one makes it stochastic.
    - :py:class:`Transformed Parameters <modelgraph.model.components.transformations.transformed_parameters.TransformedParameter>`,
      deterministic expressions built with operators and
      :py:mod:`modelgraph.operations`.

A typical workflow looks like this:

    1. **Model Description**: Fill a :py:class:`~modelgraph.model.code.ModelCode`
       with declarations.
    2. **Compilation**: Build a :py:class:`~modelgraph.model.model.Model` from the
       description, constants, data and initial values.
    3. **Evaluation**: Use ``calculate``, ``simulate`` and ``get_dependencies``
       directly, or specialize algorithms to the model with
       :py:mod:`modelgraph.algorithms`.
    4. **Storage**: Save model states to a
       :py:class:`~modelgraph.model.model_values.ModelValues` table.

Example:
    >>> import modelgraph as mg
    >>> code = mg.ModelCode()
    >>> code["mu"] = mg.parameters.Normal(mu=0.0, sigma=10.0)
    >>> for i in range(1, 4):
    ...     code[f"y[{i}]"] = mg.parameters.Normal(mu=mg.ref("mu"), sigma=1.0)
    >>> model = mg.Model(code, data={"y": [0.5, 1.2, 0.9]}, inits={"mu": 0.0})
    >>> model.calculate()
"""
