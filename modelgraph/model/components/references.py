# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""References to other nodes in a model description.

A :py:class:`NodeReference` is the only component that ties declarations
together: when a model is compiled, every reference on a right-hand side becomes
one or more edges from the referenced nodes to the declared node. References
support the same operator overloading as transformations, so expressions are
written naturally:

.. code-block:: python

    code["eta[1:3]"] = mg.ref("beta0") + mg.ref("beta1") * mg.ref("x[1:3]")

A reference to a name passed to the model as a constant is replaced by the
constant value during compilation and creates no edge.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from modelgraph.model.components import abstract_model_component
from modelgraph.model.components.transformations import transformed_parameters
from modelgraph.model.node_names import NodeName

if TYPE_CHECKING:
    from modelgraph import custom_types


class NodeReference(
    abstract_model_component.AbstractModelComponent,
    transformed_parameters.TransformableParameter,
):
    """Reference to the value of one or more nodes.

    :param pattern: Node pattern, e.g. ``"a"``, ``"x[2]"`` or ``"x[1:3, 2]"``
    :type pattern: custom_types.NodeLike

    :ivar pattern: The parsed pattern
    """

    def __init__(self, pattern: "custom_types.NodeLike"):
        self.pattern = (
            pattern if isinstance(pattern, NodeName) else NodeName.parse(pattern)
        )
        super().__init__()

    def evaluate(self, reader) -> "custom_types.SampleType":
        """Look up the current value of the referenced element(s).

        :param reader: Callable returning the current value addressed by a node
            reference
        :type reader: Callable[[NodeReference], custom_types.SampleType]

        :returns: The referenced value
        :rtype: custom_types.SampleType
        """
        return reader(self)

    @property
    def varname(self) -> str:
        """Name of the referenced variable."""
        return self.pattern.varname

    def __str__(self) -> str:
        return str(self.pattern)


def ref(pattern: "custom_types.NodeLike") -> NodeReference:
    """Create a reference to a node, node block or whole variable.

    :param pattern: Node pattern such as ``"a"``, ``"x[2]"`` or ``"x[1:3]"``
    :type pattern: custom_types.NodeLike

    :returns: A reference usable anywhere a component is accepted
    :rtype: NodeReference

    :raises UnknownNode: If the pattern is malformed

    Example:
        >>> code["b"] = mg.ref("a") + 1
    """
    return NodeReference(pattern)
