# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""Core Model class for modelgraph.

This module contains the :py:class:`Model` class, the graph store at the center
of modelgraph. A model is compiled once from a
:py:class:`~modelgraph.model.code.ModelCode` description and afterwards has a
fixed structure: variables, nodes and the edges between them never change.
Only the values and log-probabilities of nodes are mutable.

Compilation proceeds as follows:

    1. **Variables** are collected from the left- and right-hand sides of every
       declaration, and from the data and initial values. Their shapes come from
       explicit ``dimensions``, from data or initial-value arrays, or from the
       largest index used.
    2. **Nodes** are created for every declaration. Elements of a variable that
       are referenced but never declared become *input* nodes: leaves that hold
       a value but have no expression or distribution.
    3. **Edges** run from every node a declaration references to the declared
       node. The graph is checked for cycles once; a cyclic description raises
       :py:class:`~modelgraph.exceptions.CyclicGraphError`.
    4. **Tables** of values and log-probabilities are allocated and filled from
       the data and initial values.

The evaluation operations (``calculate``, ``simulate``, ``get_log_prob``,
``calculate_diff`` and ``get_param``) live in
:py:mod:`~modelgraph.model.evaluation` and the dependency resolver in
:py:mod:`~modelgraph.model.dependencies`; both are exposed as methods here.

Key Features:
    - Canonical node addressing with 1-based, inclusive index ranges
    - Deterministic topological order with declaration-order tie breaking
    - Stale-value diagnostics for out-of-order evaluation
"""

# pylint: disable=too-many-lines

from __future__ import annotations

import enum
import itertools
import math
import warnings

from dataclasses import dataclass
from typing import Any, Iterable, Optional, TYPE_CHECKING, Union

import networkx as nx
import numpy as np
import numpy.typing as npt

import modelgraph

from modelgraph import utils
from modelgraph.defaults import DEFAULT_MODEL_NAME, DEFAULT_WARN_STALE, INDEX_BASE
from modelgraph.exceptions import (
    CyclicGraphError,
    ModelDefinitionError,
    ModelGraphError,
    MultipleNodesNotSupported,
    ShapeMismatch,
    StaleDependencyWarning,
    UnknownVariable,
)
from modelgraph.model import dependencies, evaluation
from modelgraph.model.code import Declaration, ModelCode
from modelgraph.model.components import (
    constants as constants_module,
    parameters as parameters_module,
)
from modelgraph.model.node_names import NodeName, format_node_names, to_node_names

if TYPE_CHECKING:
    from modelgraph import custom_types
    from modelgraph.model.components import references


class NodeKind(enum.Enum):
    """Kinds of nodes in a model graph."""

    STOCHASTIC = "stochastic"
    DETERMINISTIC = "deterministic"
    INPUT = "input"


@dataclass(frozen=True)
class Variable:
    """A named, shaped collection of node elements.

    :param name: Name of the variable
    :type name: str
    :param shape: Shape of the variable, ``()`` for scalars
    :type shape: tuple[int, ...]
    :param dtype: Element type, ``"real"`` or ``"int"``. Values are always
        stored as float64; the element type is metadata.
    :type dtype: str
    """

    name: str
    shape: tuple[int, ...]
    dtype: str = "real"

    @property
    def size(self) -> int:
        """Number of scalar elements."""
        return math.prod(self.shape)

    @property
    def ndim(self) -> int:
        """Number of dimensions."""
        return len(self.shape)


@dataclass(eq=False)
class Node:
    """A node of the model graph.

    :param name: Canonical name of the node
    :type name: NodeName
    :param kind: Whether the node is stochastic, deterministic or an input
    :type kind: NodeKind
    :param position: Declaration index used to break ties in topological order
    :type position: int
    :param declaration: The declaration that created the node. None for inputs.
    :type declaration: Optional[Declaration]
    """

    name: NodeName
    kind: NodeKind
    position: int
    declaration: Optional[Declaration] = None

    @property
    def rhs(self):
        """Right-hand side of the node's declaration."""
        return self.declaration.rhs

    @property
    def distribution(self) -> Optional[parameters_module.Parameter]:
        """The node's distribution, or None if it is not stochastic."""
        return self.rhs if self.kind is NodeKind.STOCHASTIC else None


def _coerce(
    value: "custom_types.SampleType", shape: tuple[int, ...], target: Any
) -> npt.NDArray:
    """Convert a value to a float64 array of the given shape.

    Scalars are broadcast, and values whose shapes differ from ``shape`` only
    by singleton dimensions are reshaped.

    :raises ShapeMismatch: If the value cannot be given the shape
    """
    arr = np.asarray(value, dtype=np.float64)
    if arr.shape == shape:
        return arr
    if arr.ndim == 0:
        return np.broadcast_to(arr, shape)
    if arr.size == math.prod(shape) and np.squeeze(arr).shape == tuple(
        dim for dim in shape if dim != 1
    ):
        return arr.reshape(shape)
    raise ShapeMismatch(
        f"Value with shape {arr.shape} cannot be written to '{target}' with shape "
        f"{shape}."
    )


class Model:
    """Compiled graphical model: the graph store.

    :param code: Model description. An iterable of ``(lhs, rhs)`` pairs is also
        accepted.
    :type code: Union[ModelCode, Iterable[tuple[Any, Any]]]
    :param constants: Values substituted for references to their names. Constants
        create no nodes. Defaults to None.
    :type constants: Optional[dict[str, custom_types.SampleType]]
    :param data: Observed values. NaN entries are unobserved. Nodes whose
        elements are all observed are data nodes. Defaults to None.
    :type data: Optional[dict[str, custom_types.SampleType]]
    :param inits: Initial values. Defaults to None.
    :type inits: Optional[dict[str, custom_types.SampleType]]
    :param dimensions: Explicit variable shapes. Defaults to None.
    :type dimensions: Optional[dict[str, Union[int, tuple[int, ...]]]]
    :param name: Name of the model. Defaults to
        :py:data:`~modelgraph.defaults.DEFAULT_MODEL_NAME`.
    :type name: str
    :param seed: Seed for the model's random number generator. If None, the
        generator is seeded from :py:data:`modelgraph.RNG`. Defaults to None.
    :type seed: Optional[custom_types.Integer]
    :param warn_stale: Whether to issue
        :py:class:`~modelgraph.exceptions.StaleDependencyWarning` on stale reads.
        Defaults to :py:data:`~modelgraph.defaults.DEFAULT_WARN_STALE`.
    :type warn_stale: bool

    :raises ModelDefinitionError: If declarations overlap, a declaration assigns
        to a constant or variable shapes cannot be determined
    :raises CyclicGraphError: If the dependency graph contains a cycle
    :raises UnknownNode: If an index falls outside of its variable
    :raises ShapeMismatch: If data or initial values disagree with variable shapes

    Example:
        >>> code = mg.ModelCode()
        >>> code["b"] = mg.ref("a") + 1
        >>> code["c"] = mg.parameters.Normal(mu=mg.ref("b"), sigma=1.0)
        >>> model = mg.Model(code, inits={"a": 2.0, "c": 0.5})
        >>> model.calculate(["a", "b", "c"])
        >>> model.get_value("b")
        3.0
    """

    def __init__(
        self,
        code: Union[ModelCode, Iterable[tuple[Any, Any]]],
        constants: Optional[dict[str, Any]] = None,
        data: Optional[dict[str, Any]] = None,
        inits: Optional[dict[str, Any]] = None,
        dimensions: Optional[dict[str, Any]] = None,
        name: str = DEFAULT_MODEL_NAME,
        seed: Optional["custom_types.Integer"] = None,
        warn_stale: bool = DEFAULT_WARN_STALE,
    ):
        # Record the basic attributes
        self.code = code if isinstance(code, ModelCode) else ModelCode(code)
        self.name = name
        self.warn_stale = warn_stale
        self.rng = np.random.default_rng(
            modelgraph.RNG.integers(2**32) if seed is None else seed
        )

        # Constants are substituted wherever they are referenced
        self._constants: dict[str, npt.NDArray] = {
            varname: np.asarray(value) for varname, value in (constants or {}).items()
        }
        data = self._filter_known_inputs(data, "data")
        inits = self._filter_known_inputs(inits, "inits")

        # Compile
        self._variables = self._build_variables(data, inits, dimensions or {})
        self._build_nodes()
        self._build_graph()
        self._init_tables(data, inits)

    def _filter_known_inputs(
        self, values: Optional[dict[str, Any]], source: str
    ) -> dict[str, npt.NDArray]:
        """Drop values for names the model never mentions, with a warning."""
        mentioned = set(self.code.varnames)
        for declaration in self.code:
            mentioned.update(ref.varname for ref in declaration.rhs.get_references())

        filtered = {}
        for varname, value in (values or {}).items():
            if varname in self._constants:
                raise ModelDefinitionError(
                    f"'{varname}' is given both as a constant and in {source}."
                )
            if varname not in mentioned:
                warnings.warn(
                    f"'{varname}' in {source} is not used by model '{self.name}' and "
                    "is ignored."
                )
                continue
            filtered[varname] = np.asarray(value)
        return filtered

    def _build_variables(
        self,
        data: dict[str, npt.NDArray],
        inits: dict[str, npt.NDArray],
        dimensions: dict[str, Any],
    ) -> dict[str, Variable]:
        """Collect variables and determine their shapes and element types."""
        # Gather every pattern that mentions each variable, in order of appearance
        patterns: dict[str, list[NodeName]] = {}
        bare_declarations: dict[str, list[Declaration]] = {}
        int_valued: set[str] = set()
        for declaration in self.code:
            varname = declaration.lhs.varname
            if varname in self._constants:
                raise ModelDefinitionError(
                    f"'{declaration.lhs}' is declared but '{varname}' is a constant."
                )
            patterns.setdefault(varname, []).append(declaration.lhs)
            if not declaration.lhs.index:
                bare_declarations.setdefault(varname, []).append(declaration)
            if getattr(declaration.rhs, "BASE_DTYPE", "real") == "int" and (
                declaration.is_stochastic
            ):
                int_valued.add(varname)
            for reference in declaration.rhs.get_references():
                if reference.varname not in self._constants:
                    patterns.setdefault(reference.varname, []).append(reference.pattern)
        for source in (data, inits):
            for varname, value in source.items():
                patterns.setdefault(varname, [])
                if utils.is_integer_valued(value):
                    int_valued.add(varname)

        # Build the variables
        variables = {}
        for varname, mentions in patterns.items():
            if varname in dimensions:
                shape = utils.normalize_shape(dimensions[varname])
            elif varname in data:
                shape = data[varname].shape
            elif varname in inits:
                shape = inits[varname].shape
            else:
                shape = self._infer_shape(
                    varname, mentions, bare_declarations.get(varname, [])
                )

            # Data and initial values must agree with the shape
            for source_name, source in (("data", data), ("inits", inits)):
                if varname in source and source[varname].shape != shape:
                    raise ShapeMismatch(
                        f"Shape {source[varname].shape} of '{varname}' in "
                        f"{source_name} does not match its shape {shape}."
                    )

            variables[varname] = Variable(
                varname, shape, "int" if varname in int_valued else "real"
            )

        return variables

    @staticmethod
    def _infer_shape(
        varname: str, mentions: list[NodeName], bare_declarations: list[Declaration]
    ) -> tuple[int, ...]:
        """Infer a variable's shape from its declarations and the indices used
        with it."""
        # A whole-variable declaration with a constant right-hand side, or a
        # multivariate distribution with constant parameters, fixes the shape
        for declaration in bare_declarations:
            rhs = declaration.rhs
            if isinstance(rhs, constants_module.Constant):
                return rhs.shape
            if isinstance(rhs, parameters_module.MultivariateParameter):
                for parent in rhs.parents:
                    if (
                        isinstance(parent, constants_module.Constant)
                        and parent.value.ndim >= 1
                    ):
                        return parent.shape[-1:]

        # Otherwise, the largest index used gives the size of each dimension
        indexed = [name for name in mentions if name.index]
        if not indexed:
            return ()

        # All indexed mentions must agree on the number of dimensions
        if len(ndims := {name.ndim for name in indexed}) > 1:
            raise ModelDefinitionError(
                f"'{varname}' is indexed with inconsistent numbers of dimensions: "
                f"{sorted(ndims)}."
            )

        shape = []
        for dim in range(indexed[0].ndim):
            stops = [name.index[dim][1] for name in indexed if name.index[dim] is not None]
            if not stops:
                raise ModelDefinitionError(
                    f"Cannot infer the size of dimension {dim + INDEX_BASE} of "
                    f"'{varname}'. Pass it through `dimensions`."
                )
            shape.append(max(stops) - INDEX_BASE + 1)
        return tuple(shape)

    def _build_nodes(self) -> None:
        """Create declared and input nodes and map elements to their owners."""
        self._nodes: dict[NodeName, Node] = {}
        self._node_names: list[NodeName] = []
        self._var_nodes: dict[str, list[NodeName]] = {
            varname: [] for varname in self._variables
        }
        self._owner: dict[str, npt.NDArray] = {
            varname: np.full(variable.shape, -1, dtype=np.intp)
            for varname, variable in self._variables.items()
        }

        # Declared nodes
        for declaration in self.code:
            name = declaration.lhs.complete(self._variables[declaration.lhs.varname].shape)

            # No element can be declared twice
            region = self._owner[name.varname][name.slices]
            if np.any(region >= 0):
                other = self._node_names[int(np.max(region))]
                raise ModelDefinitionError(
                    f"Declaration of '{name}' overlaps the declaration of '{other}'."
                )

            # Multivariate distributions fill vectors
            if isinstance(declaration.rhs, parameters_module.MultivariateParameter) and (
                len(name.shape) != 1
            ):
                raise ModelDefinitionError(
                    f"'{name}' is declared with a multivariate distribution but has "
                    f"shape {name.shape}; a vector is required."
                )

            self._add_node(
                Node(
                    name,
                    (
                        NodeKind.STOCHASTIC
                        if declaration.is_stochastic
                        else NodeKind.DETERMINISTIC
                    ),
                    declaration.position,
                    declaration,
                )
            )

        # Input nodes for every element nothing declares
        position = len(self.code)
        for varname, variable in self._variables.items():
            owner = self._owner[varname]
            for element in itertools.product(*(range(n) for n in variable.shape)):
                if owner[element] >= 0:
                    continue
                name = NodeName(
                    varname, tuple((i + INDEX_BASE, i + INDEX_BASE) for i in element)
                )
                self._add_node(Node(name, NodeKind.INPUT, position))
                position += 1

    def _add_node(self, node: Node) -> None:
        self._owner[node.name.varname][node.name.slices] = len(self._node_names)
        self._node_names.append(node.name)
        self._nodes[node.name] = node
        self._var_nodes[node.name.varname].append(node.name)

    def _build_graph(self) -> None:
        """Add edges for every reference, check for cycles and sort the nodes."""
        self._graph = nx.DiGraph()
        self._graph.add_nodes_from(self._node_names)

        # References resolve to canonical names and to the nodes they cover
        self._reference_names: dict["references.NodeReference", NodeName] = {}
        self._reference_parents: dict[
            "references.NodeReference", tuple[NodeName, ...]
        ] = {}
        for node in self._nodes.values():
            if node.kind is NodeKind.INPUT:
                continue
            for reference in node.rhs.get_references():
                if reference.varname in self._constants:
                    self._reference_names[reference] = reference.pattern.complete(
                        self._constants[reference.varname].shape
                    )
                    continue
                ref_name = self._complete(reference.pattern)
                parents = self._covering_nodes(ref_name)
                self._reference_names[reference] = ref_name
                self._reference_parents[reference] = tuple(parents)
                self._graph.add_edges_from((parent, node.name) for parent in parents)

        # The graph must be acyclic
        try:
            cycle = nx.find_cycle(self._graph)
        except nx.NetworkXNoCycle:
            cycle = None
        if cycle is not None:
            cycle_names = [str(parent) for parent, _ in cycle]
            raise CyclicGraphError(
                f"Model '{self.name}' contains a cycle: "
                f"{' -> '.join(cycle_names + cycle_names[:1])}",
                cycle=cycle_names,
            )

        # Ties are broken by declaration order
        self._order: list[NodeName] = list(
            nx.lexicographical_topological_sort(
                self._graph, key=lambda name: self._nodes[name].position
            )
        )
        self._rank: dict[NodeName, int] = {
            name: rank for rank, name in enumerate(self._order)
        }

    def _init_tables(
        self, data: dict[str, npt.NDArray], inits: dict[str, npt.NDArray]
    ) -> None:
        """Allocate the value and log-probability tables and fill them."""
        self._values: dict[str, npt.NDArray] = {
            varname: np.full(variable.shape, np.nan)
            for varname, variable in self._variables.items()
        }
        self._observed: dict[str, npt.NDArray] = {
            varname: np.zeros(variable.shape, dtype=bool)
            for varname, variable in self._variables.items()
        }
        self._log_probs: dict[str, npt.NDArray] = {
            varname: np.full(variable.shape, np.nan)
            for varname, variable in self._variables.items()
            if any(
                self._nodes[name].kind is NodeKind.STOCHASTIC
                for name in self._var_nodes[varname]
            )
        }

        # Initial values first, then data
        for varname, value in inits.items():
            value = value.astype(np.float64)
            known = ~np.isnan(value)
            self._values[varname][known] = value[known]
        for varname, value in data.items():
            value = value.astype(np.float64)
            observed = ~np.isnan(value)
            self._observed[varname] = observed
            self._values[varname][observed] = value[observed]

        # Stale bookkeeping starts clean
        self._stale_values: set[NodeName] = set()
        self._stale_log_probs: set[NodeName] = set()
        self._downstream: dict[NodeName, tuple[NodeName, ...]] = {}

    # Name resolution
    def _complete(self, pattern: NodeName) -> NodeName:
        """Complete a pattern against its variable's shape.

        :raises UnknownVariable: If the variable does not exist
        :raises UnknownNode: If the pattern indexes outside of the variable
        """
        if pattern.varname not in self._variables:
            raise UnknownVariable(
                f"Variable '{pattern.varname}' does not exist in model '{self.name}'."
            )
        return pattern.complete(self._variables[pattern.varname].shape)

    def _covering_nodes(self, name: NodeName) -> list[NodeName]:
        """Nodes owning the elements of a complete name, in element order."""
        if name in self._nodes:
            return [name]
        owners = np.ravel(self._owner[name.varname][name.slices]).tolist()
        return [self._node_names[i] for i in dict.fromkeys(owners)]

    def _resolve_nodes(self, nodes: "custom_types.NodesLike") -> list[NodeName]:
        """Resolve patterns to node names, keeping the requested order.

        ``None`` resolves to every node in topological order.
        """
        if nodes is None:
            return list(self._order)
        resolved = []
        for pattern in to_node_names(nodes):
            if pattern in self._nodes:
                resolved.append(pattern)
            else:
                resolved.extend(self._covering_nodes(self._complete(pattern)))
        return list(dict.fromkeys(resolved))

    def _single_pattern(self, node: "custom_types.NodeLike") -> NodeName:
        names = to_node_names(node)
        if len(names) != 1:
            raise MultipleNodesNotSupported(
                f"Exactly one node pattern is expected, got {len(names)}."
            )
        return self._complete(names[0])

    def _single_node(self, node: "custom_types.NodeLike") -> Node:
        covering = self._covering_nodes(self._single_pattern(node))
        if len(covering) != 1:
            raise MultipleNodesNotSupported(
                f"'{node}' covers {len(covering)} nodes: "
                f"{format_node_names(covering)}."
            )
        return self._nodes[covering[0]]

    # Value access
    def _read_reference(
        self, reference: "references.NodeReference"
    ) -> "custom_types.SampleType":
        """Value reader handed to components during evaluation."""
        name = self._reference_names[reference]
        if reference.varname in self._constants:
            return self._constants[reference.varname][name.slices]
        if self.warn_stale:
            self._check_stale_values(self._reference_parents[reference], str(name))
        return self._values[name.varname][name.slices]

    def _read_region(self, name: NodeName) -> "custom_types.SampleType":
        return self._values[name.varname][name.slices].copy()

    def _write_region(self, name: NodeName, value: "custom_types.SampleType") -> None:
        """Write a value and, if it changed, mark everything downstream stale."""
        new = _coerce(value, name.shape, name)
        changed = not np.array_equal(
            self._values[name.varname][name.slices], new, equal_nan=True
        )
        self._values[name.varname][name.slices] = new
        for covering in self._covering_nodes(name):
            self._mark_changed(covering, propagate=changed)

    def _read_log_prob_region(self, name: NodeName) -> npt.NDArray:
        return np.array(self._log_probs[name.varname][name.slices], dtype=np.float64)

    def _write_log_prob_region(
        self, name: NodeName, value: "custom_types.SampleType"
    ) -> None:
        """Restore stored log-probabilities, clearing their stale marks."""
        self._log_probs[name.varname][name.slices] = _coerce(value, name.shape, name)
        for covering in self._covering_nodes(name):
            self._stale_log_probs.discard(covering)

    # Stale bookkeeping
    def _downstream_of(self, name: NodeName) -> tuple[NodeName, ...]:
        """Nodes whose computation reads the value of ``name`` directly or
        through deterministic nodes only."""
        if name not in self._downstream:
            found = []
            seen = {name}
            frontier = [name]
            while frontier:
                current = frontier.pop()
                for child in self._graph.successors(current):
                    if child in seen:
                        continue
                    seen.add(child)
                    found.append(child)
                    if self._nodes[child].kind is not NodeKind.STOCHASTIC:
                        frontier.append(child)
            self._downstream[name] = tuple(found)
        return self._downstream[name]

    def _mark_changed(self, name: NodeName, propagate: bool = True) -> None:
        """Record that the value of a node was written.

        A deterministic node is up to date once written. If the value actually
        changed (``propagate``), a stochastic node's own log-probability and
        everything downstream of the node become stale.
        """
        if self._nodes[name].kind is not NodeKind.STOCHASTIC:
            self._stale_values.discard(name)
        if not propagate:
            return
        if self._nodes[name].kind is NodeKind.STOCHASTIC:
            self._stale_log_probs.add(name)
        for child in self._downstream_of(name):
            if self._nodes[child].kind is NodeKind.STOCHASTIC:
                self._stale_log_probs.add(child)
            else:
                self._stale_values.add(child)

    def _check_stale_values(self, names, what: str) -> None:
        if stale := [name for name in names if name in self._stale_values]:
            warnings.warn(
                f"Reading '{what}' from model '{self.name}', but "
                f"{format_node_names(stale)} have not been recalculated since an "
                "upstream value changed.",
                StaleDependencyWarning,
                stacklevel=4,
            )

    def _check_stale_log_probs(self, names) -> None:
        if stale := [name for name in names if name in self._stale_log_probs]:
            warnings.warn(
                f"The log-probabilities of {format_node_names(stale)} in model "
                f"'{self.name}' have not been recalculated since their values or "
                "parameters changed.",
                StaleDependencyWarning,
                stacklevel=4,
            )

    def is_stale(self, node: "custom_types.NodeLike") -> bool:
        """Whether a node's value or log-probability is known to be out of date.

        :param node: Node pattern
        :type node: custom_types.NodeLike

        :returns: True if any node covered by the pattern is stale
        :rtype: bool
        """
        return any(
            name in self._stale_values or name in self._stale_log_probs
            for name in self._resolve_nodes(node)
        )

    # Graph store operations
    def expand_node_names(
        self,
        nodes: "custom_types.NodesLike",
        return_scalar_components: bool = False,
    ) -> list[str]:
        """Resolve variable, node or range patterns to canonical node names.

        :param nodes: One or several patterns. None means every node.
        :type nodes: custom_types.NodesLike
        :param return_scalar_components: If True, return the names of the scalar
            elements addressed rather than the nodes that own them. Defaults to
            False.
        :type return_scalar_components: bool

        :returns: Canonical names in the requested order, exact repeats removed
        :rtype: list[str]

        :raises UnknownVariable: If a pattern names a variable that does not exist
        :raises UnknownNode: If a pattern indexes outside of its variable

        Example:
            >>> model.expand_node_names("x[1:3]")
            ['x[1]', 'x[2]', 'x[3]']
        """
        if not return_scalar_components:
            return format_node_names(self._resolve_nodes(nodes))

        if nodes is None:
            nodes = self._order
        elements = []
        for pattern in to_node_names(nodes):
            elements.extend(self._complete(pattern).element_names())
        return format_node_names(dict.fromkeys(elements))

    def get_value(self, node: "custom_types.NodeLike") -> "custom_types.SampleType":
        """Get the current value addressed by a pattern.

        :param node: Node, block or variable pattern
        :type node: custom_types.NodeLike

        :returns: A copy of the value. Scalars are returned as NumPy floats.
        :rtype: custom_types.SampleType

        :raises UnknownVariable: If the variable does not exist
        :raises UnknownNode: If the pattern indexes outside of the variable
        """
        name = self._single_pattern(node)
        if self.warn_stale:
            self._check_stale_values(self._covering_nodes(name), str(name))
        return self._read_region(name)

    def set_value(
        self, node: "custom_types.NodeLike", value: "custom_types.SampleType"
    ) -> None:
        """Set the value addressed by a pattern.

        Only the addressed elements are written. Nodes downstream of them are
        marked stale; nothing is recalculated.

        :param node: Node, block or variable pattern
        :type node: custom_types.NodeLike
        :param value: New value. Scalars are broadcast.
        :type value: custom_types.SampleType

        :raises ShapeMismatch: If the value does not fit the addressed elements
        """
        self._write_region(self._single_pattern(node), value)

    def get_log_prob_value(self, node: "custom_types.NodeLike") -> float:
        """Read the stored log-probability of a single node.

        :param node: Node pattern. Must cover exactly one node.
        :type node: custom_types.NodeLike

        :returns: The stored log-probability; 0 for non-stochastic nodes and NaN
            if it was never calculated
        :rtype: float

        :raises MultipleNodesNotSupported: If the pattern covers several nodes
        """
        target = self._single_node(node)
        if target.kind is not NodeKind.STOCHASTIC:
            return 0.0
        return evaluation.stored_log_prob(self, target.name)

    def set_log_prob(self, node: "custom_types.NodeLike", value: float) -> None:
        """Store a log-probability for a single stochastic node.

        :param node: Node pattern. Must cover exactly one stochastic node.
        :type node: custom_types.NodeLike
        :param value: The log-probability
        :type value: float

        :raises MultipleNodesNotSupported: If the pattern covers several nodes
        :raises ModelGraphError: If the node is not stochastic
        """
        target = self._single_node(node)
        if target.kind is not NodeKind.STOCHASTIC:
            raise ModelGraphError(
                f"'{target.name}' is not stochastic and has no log-probability."
            )
        evaluation.store_log_prob(self, target.name, float(value))

    def get_values(self, nodes: "custom_types.NodesLike") -> npt.NDArray:
        """Concatenate the flattened values of several nodes.

        :param nodes: Node patterns
        :type nodes: custom_types.NodesLike

        :returns: 1-D float64 array, nodes in the requested order
        :rtype: npt.NDArray
        """
        names = self._resolve_nodes(nodes)
        if self.warn_stale:
            self._check_stale_values(names, ", ".join(format_node_names(names)))
        if not names:
            return np.empty(0)
        return np.concatenate([np.ravel(self._read_region(name)) for name in names])

    def set_values(
        self, nodes: "custom_types.NodesLike", values: "custom_types.SampleType"
    ) -> None:
        """Write a flat vector of values into several nodes.

        :param nodes: Node patterns
        :type nodes: custom_types.NodesLike
        :param values: Flat vector with one entry per scalar element, nodes in
            the requested order
        :type values: custom_types.SampleType

        :raises ShapeMismatch: If the vector length does not match the nodes
        """
        names = self._resolve_nodes(nodes)
        flat = np.ravel(np.asarray(values, dtype=np.float64))
        if flat.size != (expected := sum(name.size for name in names)):
            raise ShapeMismatch(
                f"Expected {expected} values for {format_node_names(names)}, got "
                f"{flat.size}."
            )
        start = 0
        for name in names:
            self._write_region(name, flat[start : start + name.size].reshape(name.shape))
            start += name.size

    def __getitem__(self, varname: str) -> "custom_types.SampleType":
        """Get the value of a whole variable (or any other pattern).

        Example:
            >>> model["x"]
            array([1., 2., 3.])
        """
        return self.get_value(varname)

    def __setitem__(self, varname: str, value: "custom_types.SampleType") -> None:
        """Set the value of a whole variable (or any other pattern)."""
        self.set_value(varname, value)

    def __contains__(self, varname: str) -> bool:
        """Check if the model has a variable with the given name.

        Example:
            >>> 'mu' in model
            True
        """
        return varname in self._variables

    def get_node_names(
        self,
        stochastic_only: bool = False,
        determ_only: bool = False,
        include_data: bool = True,
        data_only: bool = False,
        include_inputs: bool = False,
        top_only: bool = False,
        end_only: bool = False,
    ) -> list[str]:
        """List node names in topological order, optionally filtered.

        :param stochastic_only: Only stochastic nodes. Defaults to False.
        :type stochastic_only: bool
        :param determ_only: Only deterministic nodes. Defaults to False.
        :type determ_only: bool
        :param include_data: Include data nodes. Defaults to True.
        :type include_data: bool
        :param data_only: Only data nodes. Defaults to False.
        :type data_only: bool
        :param include_inputs: Include input nodes. Defaults to False.
        :type include_inputs: bool
        :param top_only: Only nodes all of whose parents are input nodes.
            Defaults to False.
        :type top_only: bool
        :param end_only: Only nodes without children. Defaults to False.
        :type end_only: bool

        :returns: Canonical node names
        :rtype: list[str]

        :raises ValueError: If both ``stochastic_only`` and ``determ_only`` are set
        """
        if stochastic_only and determ_only:
            raise ValueError("`stochastic_only` and `determ_only` are exclusive.")

        names = []
        for name in self._order:
            kind = self._nodes[name].kind
            if kind is NodeKind.INPUT and not include_inputs:
                continue
            if stochastic_only and kind is not NodeKind.STOCHASTIC:
                continue
            if determ_only and kind is not NodeKind.DETERMINISTIC:
                continue
            if (data_only or not include_data) and (
                self._is_data(name) != data_only
            ):
                continue
            if top_only and any(
                self._nodes[parent].kind is not NodeKind.INPUT
                for parent in self._graph.predecessors(name)
            ):
                continue
            if end_only and self._graph.out_degree(name) > 0:
                continue
            names.append(name)

        return format_node_names(names)

    def get_var_names(self) -> list[str]:
        """Names of all variables, in order of first appearance."""
        return list(self._variables)

    def get_variable(self, varname: str) -> Variable:
        """Get the description of a variable.

        :raises UnknownVariable: If the variable does not exist
        """
        if varname not in self._variables:
            raise UnknownVariable(
                f"Variable '{varname}' does not exist in model '{self.name}'."
            )
        return self._variables[varname]

    def _is_data(self, name: NodeName) -> bool:
        return bool(np.all(self._observed[name.varname][name.slices]))

    def is_stochastic(self, node: "custom_types.NodeLike") -> bool:
        """Whether a single node is stochastic."""
        return self._single_node(node).kind is NodeKind.STOCHASTIC

    def is_deterministic(self, node: "custom_types.NodeLike") -> bool:
        """Whether a single node is deterministic. Input nodes are not."""
        return self._single_node(node).kind is NodeKind.DETERMINISTIC

    def is_input(self, node: "custom_types.NodeLike") -> bool:
        """Whether a single node is an input node."""
        return self._single_node(node).kind is NodeKind.INPUT

    def is_data(self, node: "custom_types.NodeLike") -> bool:
        """Whether every element addressed by a pattern is observed."""
        return self._is_data(self._single_pattern(node))

    def get_distribution(
        self, node: "custom_types.NodeLike"
    ) -> Optional[parameters_module.Parameter]:
        """The distribution of a single node, or None if it is not stochastic."""
        return self._single_node(node).distribution

    def set_data(
        self, data: Optional[dict[str, Any]] = None, **arrays: Any
    ) -> None:
        """Replace the observed values of one or more variables.

        NaN entries are unobserved. Observed values are written to the model and
        the nodes downstream of them are marked stale.

        :param data: Mapping from variable names to arrays. Defaults to None.
        :type data: Optional[dict[str, Any]]
        :param arrays: Further variables given as keyword arguments

        :raises UnknownVariable: If a variable does not exist
        :raises ShapeMismatch: If an array does not match its variable's shape
        """
        for varname, value in {**(data or {}), **arrays}.items():
            variable = self.get_variable(varname)
            value = np.asarray(value, dtype=np.float64)
            if value.shape != variable.shape:
                raise ShapeMismatch(
                    f"Data for '{varname}' has shape {value.shape}; expected "
                    f"{variable.shape}."
                )
            observed = ~np.isnan(value)
            self._observed[varname] = observed
            self._values[varname][observed] = value[observed]
            for name in self._var_nodes[varname]:
                if np.any(observed[name.slices]):
                    self._mark_changed(name)

    def get_parents(self, node: "custom_types.NodeLike") -> list[str]:
        """Direct parents of a single node, in topological order."""
        name = self._single_node(node).name
        return format_node_names(
            sorted(self._graph.predecessors(name), key=self._rank.__getitem__)
        )

    def get_children(self, node: "custom_types.NodeLike") -> list[str]:
        """Direct children of a single node, in topological order."""
        name = self._single_node(node).name
        return format_node_names(
            sorted(self._graph.successors(name), key=self._rank.__getitem__)
        )

    # Dependency resolver
    def get_dependencies(
        self,
        nodes: "custom_types.NodesLike",
        include_self: bool = True,
        downstream: bool = True,
        stop_at_stochastic: bool = False,
        stochastic_only: bool = False,
        determ_only: bool = False,
        include_data: bool = True,
        data_only: bool = False,
    ) -> list[str]:
        """See :py:func:`modelgraph.model.dependencies.get_dependencies`."""
        return dependencies.get_dependencies(
            self,
            nodes,
            include_self=include_self,
            downstream=downstream,
            stop_at_stochastic=stop_at_stochastic,
            stochastic_only=stochastic_only,
            determ_only=determ_only,
            include_data=include_data,
            data_only=data_only,
        )

    # Evaluation engine
    def calculate(self, nodes: "custom_types.NodesLike" = None) -> float:
        """See :py:func:`modelgraph.model.evaluation.calculate`."""
        return evaluation.calculate(self, nodes)

    def simulate(
        self, nodes: "custom_types.NodesLike" = None, include_data: bool = False
    ) -> None:
        """See :py:func:`modelgraph.model.evaluation.simulate`."""
        evaluation.simulate(self, nodes, include_data=include_data)

    def get_log_prob(self, nodes: "custom_types.NodesLike" = None) -> float:
        """See :py:func:`modelgraph.model.evaluation.get_log_prob`."""
        return evaluation.get_log_prob(self, nodes)

    def calculate_diff(self, nodes: "custom_types.NodesLike" = None) -> float:
        """See :py:func:`modelgraph.model.evaluation.calculate_diff`."""
        return evaluation.calculate_diff(self, nodes)

    def get_param(
        self, node: "custom_types.NodeLike", param_name: str
    ) -> "custom_types.SampleType":
        """See :py:func:`modelgraph.model.evaluation.get_param`."""
        return evaluation.get_param(self, node, param_name)

    # Introspection
    @property
    def variables(self) -> dict[str, Variable]:
        """Variables of the model, in order of first appearance."""
        return dict(self._variables)

    @property
    def constants(self) -> dict[str, npt.NDArray]:
        """Constants substituted into the model."""
        return dict(self._constants)

    @property
    def graph(self) -> nx.DiGraph:
        """Read-only view of the dependency graph, keyed by node name."""
        return self._graph.copy(as_view=True)

    def __len__(self) -> int:
        """Number of nodes, input nodes included."""
        return len(self._nodes)

    def __str__(self) -> str:
        """Summarize the model by node kind.

        Example:
            >>> print(model)
            Model 'model'
            =============
            Stochastic (1): c
            Deterministic (1): b
            Input (1): a
        """
        header = f"Model '{self.name}'"
        sections = []
        for kind in NodeKind:
            names = [name for name in self._order if self._nodes[name].kind is kind]
            if names:
                sections.append(
                    f"{kind.value.capitalize()} ({len(names)}): "
                    + ", ".join(format_node_names(names))
                )
        return "\n".join([header, "=" * len(header), *sections])
