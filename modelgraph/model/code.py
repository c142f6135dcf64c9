# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""Declarative model descriptions.

A :py:class:`ModelCode` is an ordered list of declarations, each binding a
left-hand side node pattern to a right-hand side component. Declarations made
with a distribution are stochastic (``lhs ~ rhs``); all others are
deterministic (``lhs <- rhs``). Declaration order is significant: it breaks ties
whenever the graph leaves the evaluation order of two nodes free.

.. code-block:: python

    import modelgraph as mg
    from modelgraph import parameters as dists

    code = mg.ModelCode()
    code["mu"] = dists.Normal(mu=0.0, sigma=10.0)
    code["sigma"] = dists.HalfNormal(sigma=1.0)
    for i in range(1, 6):
        code[f"y[{i}]"] = dists.Normal(mu=mg.ref("mu"), sigma=mg.ref("sigma"))
    code["ybar"] = mg.operations.sum_(mg.ref("y")) / 5

The description is only checked for local consistency here; overlapping
declarations, unknown references and cycles are detected when the description
is compiled into a :py:class:`~modelgraph.model.model.Model`.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator, TYPE_CHECKING

from modelgraph.exceptions import ModelDefinitionError
from modelgraph.model.components import abstract_model_component, constants, parameters
from modelgraph.model.node_names import NodeName

if TYPE_CHECKING:
    from modelgraph import custom_types


@dataclass(frozen=True)
class Declaration:
    """A single declaration of a model description.

    :param lhs: The declared node pattern
    :type lhs: NodeName
    :param rhs: The expression or distribution
    :type rhs: abstract_model_component.AbstractModelComponent
    :param position: 0-based position of the declaration in its description
    :type position: int
    """

    lhs: NodeName
    rhs: abstract_model_component.AbstractModelComponent
    position: int

    @property
    def is_stochastic(self) -> bool:
        """Whether the declaration is made with a distribution."""
        return isinstance(self.rhs, parameters.Parameter)

    def __str__(self) -> str:
        return f"{self.lhs} {'~' if self.is_stochastic else '<-'} {self.rhs}"


class ModelCode:
    """Ordered collection of model declarations.

    :param declarations: Optional initial ``(lhs, rhs)`` pairs, added in order
    :type declarations: Optional[Iterable[tuple[custom_types.NodeLike,
        custom_types.CombinableParameterType]]]

    Declarations are added with item assignment or :py:meth:`add`. Plain
    numbers and arrays on the right-hand side declare deterministic nodes with
    a constant value.
    """

    def __init__(self, declarations=None):
        self._declarations: list[Declaration] = []
        for lhs, rhs in declarations or ():
            self.add(lhs, rhs)

    def add(
        self,
        lhs: "custom_types.NodeLike",
        rhs: "custom_types.CombinableParameterType",
    ) -> Declaration:
        """Append a declaration.

        :param lhs: Declared node pattern, e.g. ``"x[3]"``, ``"y[1:3]"`` or ``"b"``
        :type lhs: custom_types.NodeLike
        :param rhs: Distribution, expression, reference or constant value
        :type rhs: custom_types.CombinableParameterType

        :returns: The recorded declaration
        :rtype: Declaration

        :raises ModelDefinitionError: If the left-hand side has an open dimension
            or was already declared
        """
        name = lhs if isinstance(lhs, NodeName) else NodeName.parse(lhs)
        if not name.is_complete:
            raise ModelDefinitionError(
                f"Left-hand side '{name}' has an open dimension; declare explicit "
                "index ranges."
            )
        if name in self:
            raise ModelDefinitionError(f"'{name}' is declared more than once.")

        # Plain values declare constant deterministic nodes
        if not isinstance(rhs, abstract_model_component.AbstractModelComponent):
            rhs = constants.Constant(rhs)

        declaration = Declaration(name, rhs, len(self._declarations))
        self._declarations.append(declaration)
        return declaration

    def __setitem__(
        self,
        lhs: "custom_types.NodeLike",
        rhs: "custom_types.CombinableParameterType",
    ) -> None:
        self.add(lhs, rhs)

    def __getitem__(
        self, lhs: "custom_types.NodeLike"
    ) -> abstract_model_component.AbstractModelComponent:
        """Get the right-hand side declared for a left-hand side.

        :raises KeyError: If nothing was declared with exactly this left-hand side
        """
        name = lhs if isinstance(lhs, NodeName) else NodeName.parse(lhs)
        for declaration in self._declarations:
            if declaration.lhs == name:
                return declaration.rhs
        raise KeyError(str(name))

    def __contains__(self, lhs: "custom_types.NodeLike") -> bool:
        name = lhs if isinstance(lhs, NodeName) else NodeName.parse(lhs)
        return any(declaration.lhs == name for declaration in self._declarations)

    def __iter__(self) -> Iterator[Declaration]:
        return iter(self._declarations)

    def __len__(self) -> int:
        return len(self._declarations)

    def __str__(self) -> str:
        return "\n".join(str(declaration) for declaration in self._declarations)

    @property
    def varnames(self) -> list[str]:
        """Names of declared variables in order of first declaration."""
        return list(dict.fromkeys(d.lhs.varname for d in self._declarations))
