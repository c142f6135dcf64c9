# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""Custom exception and warning classes for the modelgraph package.

All custom exceptions inherit from :py:class:`ModelGraphError` so that every
package-specific failure can be caught with a single except clause. Where a
built-in exception describes the same kind of failure, the custom class also
inherits from it (an unknown variable is still a ``KeyError``, an invalid
parameter name is still a ``ValueError``), so callers that only know the
built-in types keep working.

Structural errors (unknown names, cycles, malformed declarations) are raised
and abort the operation. Numeric errors raised during evaluation carry the
offending node so the caller can decide what to do. Advisory diagnostics are
not exceptions; they are issued through :py:mod:`warnings` using
:py:class:`StaleDependencyWarning`.
"""


class ModelGraphError(Exception):
    """Base class for all exceptions in the modelgraph package.

    Example:
        >>> try:
        ...     model.expand_node_names("not_a_variable")
        ... except ModelGraphError as e:
        ...     print(f"modelgraph error occurred: {e}")
    """


class ModelDefinitionError(ModelGraphError):
    """Raised when a model description cannot be compiled into a graph.

    Typical causes are two declarations covering the same variable element,
    a left-hand side that refers to a constant, or a declaration whose
    right-hand side is not a model component.
    """


class CyclicGraphError(ModelDefinitionError):
    """Raised at model construction when the dependency graph contains a cycle.

    :ivar cycle: The offending cycle as a list of canonical node names
    """

    def __init__(self, message: str, cycle: list[str] | None = None):
        super().__init__(message)
        self.cycle = cycle or []


class UnknownVariable(ModelGraphError, KeyError):
    """Raised when a node pattern names a variable that does not exist."""

    def __str__(self) -> str:
        # KeyError quotes its message; keep it readable
        return Exception.__str__(self)


class UnknownNode(ModelGraphError, KeyError):
    """Raised when a node pattern indexes outside of its variable."""

    def __str__(self) -> str:
        return Exception.__str__(self)


class InvalidParameterName(ModelGraphError, ValueError):
    """Raised when a distribution parameter is requested that the node's
    distribution family does not define."""


class MultipleNodesNotSupported(ModelGraphError, ValueError):
    """Raised when an operation that accepts exactly one node receives more."""


class ShapeMismatch(ModelGraphError, ValueError):
    """Raised when an assigned or computed value does not match the shape of
    the node or variable it is written to."""


class InvalidDensityError(ModelGraphError, ArithmeticError):
    """Raised when a stochastic node's log-density evaluates to NaN.

    The NaN is stored as the node's log-probability before the error is
    raised, so the graph state reflects what was computed.

    :ivar node: Canonical name of the offending node
    """

    def __init__(self, message: str, node: str = ""):
        super().__init__(message)
        self.node = node


class SpecializationError(ModelGraphError, RuntimeError):
    """Raised when a specialized algorithm object is used outside of the
    phase it is in, or a frozen setup attribute is rebound."""


class StaleDependencyWarning(UserWarning):
    """Issued when a value or log-probability is read that is known not to have
    been recalculated since an upstream value changed.

    This is advisory only: modelgraph never reorders or repeats calculations
    on the caller's behalf.
    """
