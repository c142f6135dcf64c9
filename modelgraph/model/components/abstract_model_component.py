# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""Abstract base class for modelgraph model components.

Model components are the right-hand sides of a model description: probability
distributions (:py:mod:`~modelgraph.model.components.parameters`), deterministic
expressions (:py:mod:`~modelgraph.model.components.transformations`), constants
(:py:mod:`~modelgraph.model.components.constants`) and references to other
nodes (:py:mod:`~modelgraph.model.components.references`). Users typically do
not interact with this module directly.

Components form small expression trees. The leaves are constants and node
references; inner components name their inputs through keyword parameters
(``mu``, ``sigma``, ``dist1``, ...). When a model is compiled, the node
references found in a declaration's tree become the dependency edges of the
declared node, and evaluating the tree against the model's current values
yields the node's value (deterministic) or its distribution parameters
(stochastic).

Key Responsibilities:

    - Validate parameter constraints declared by subclasses
    - Convert plain numbers and arrays to constants
    - Walk the expression tree to discover node references
    - Evaluate parameters against a value reader supplied by the model
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Callable, Optional, TYPE_CHECKING

import numpy as np

from modelgraph import utils

# Lazy imports to avoid circular imports
constants_module = utils.lazy_import("modelgraph.model.components.constants")
references = utils.lazy_import("modelgraph.model.components.references")

if TYPE_CHECKING:
    from modelgraph import custom_types

    ValueReader = Callable[["references.NodeReference"], "custom_types.SampleType"]


class AbstractModelComponent(ABC):
    """Abstract base class for all modelgraph model components.

    :param model_params: Named parameters that this component depends on
    :type model_params: custom_types.CombinableParameterType

    :cvar POSITIVE_PARAMS: Set of parameter names that must be positive
    :cvar NEGATIVE_PARAMS: Set of parameter names that must be negative
    :cvar SIMPLEX_PARAMS: Set of parameter names that must be simplexes
    :cvar PROBABILITY_PARAMS: Set of parameter names that must be probabilities
    :cvar LOWER_BOUND: Lower bound constraint for component values
    :cvar UPPER_BOUND: Upper bound constraint for component values
    """

    # Define allowed ranges for the parameters used to define this one
    POSITIVE_PARAMS: set[str] = set()
    """Class variable giving the set of parent parameter names that must be positive."""

    NEGATIVE_PARAMS: set[str] = set()
    """Class variable giving the set of parent parameter names that must be negative."""

    SIMPLEX_PARAMS: set[str] = set()
    """
    Class variable giving the set of parent parameter names that must be simplexes.
    Constant values supplied for these must lie in [0, 1] and sum to 1 over the
    last dimension.
    """

    PROBABILITY_PARAMS: set[str] = set()
    """Class variable giving the set of parent parameter names that must lie in [0, 1]."""

    # Define the bounds for values of this component
    LOWER_BOUND: Optional["custom_types.Float" | "custom_types.Integer"] = None
    """Lower bound on values taken by this component. None if unbounded."""

    UPPER_BOUND: Optional["custom_types.Float" | "custom_types.Integer"] = None
    """Upper bound on values taken by this component. None if unbounded."""

    def __init__(self, **model_params: "custom_types.CombinableParameterType"):
        """Initialize a model component from its named parameters.

        The initialization process:
        1. Validates parameter constraints and bounds
        2. Converts non-component parameters to constants
        """
        self._parents: dict[str, AbstractModelComponent]

        # Validate incoming parameters
        self._validate_parameters(model_params)

        # Set parents
        self._set_parents(model_params)

    def _validate_parameters(
        self,
        model_params: dict[str, "custom_types.CombinableParameterType"],
    ) -> None:
        """Validate class-level parameter constraints.

        :param model_params: Dictionary of parameter names to values
        :type model_params: dict[str, custom_types.CombinableParameterType]

        :raises ValueError: If bounds are invalid (lower >= upper)
        """
        if (
            self.LOWER_BOUND is not None
            and self.UPPER_BOUND is not None
            and self.LOWER_BOUND >= self.UPPER_BOUND
        ):
            raise ValueError("Lower bound must be less than upper bound")

    def _set_parents(
        self,
        model_params: dict[str, "custom_types.CombinableParameterType"],
    ) -> None:
        """Record parent components, wrapping plain values in constants.

        :param model_params: Dictionary of parameter names to values/components
        :type model_params: dict[str, custom_types.CombinableParameterType]

        Plain values are converted to
        :py:class:`~modelgraph.model.components.constants.Constant` instances
        that carry the bounds implied by the parameter's constraint class, so
        an impossible constant (e.g., a negative standard deviation) fails
        immediately rather than at evaluation time.
        """
        self._parents = {}
        for name, val in model_params.items():

            # Just the value if an AbstractModelComponent
            if isinstance(val, AbstractModelComponent):
                self._parents[name] = val
                continue

            # Otherwise, convert to a constant with the appropriate bounds
            if name in self.POSITIVE_PARAMS:
                if np.any(np.asarray(val) <= 0):
                    raise ValueError(
                        f"Parameter '{name}' of {self.__class__.__name__} must be "
                        f"positive, got {val}."
                    )
                lower_bound, upper_bound = 0, None
            elif name in self.NEGATIVE_PARAMS:
                lower_bound, upper_bound = None, 0
            elif name in self.SIMPLEX_PARAMS or name in self.PROBABILITY_PARAMS:
                lower_bound, upper_bound = 0, 1
            else:
                lower_bound, upper_bound = None, None
            self._parents[name] = constants_module.Constant(
                value=val,
                lower_bound=lower_bound,
                upper_bound=upper_bound,
                simplex=name in self.SIMPLEX_PARAMS,
            )

    @abstractmethod
    def evaluate(self, reader: "ValueReader") -> "custom_types.SampleType":
        """Compute the value of this component.

        :param reader: Callable returning the current value addressed by a node
            reference
        :type reader: Callable[[NodeReference], custom_types.SampleType]

        :returns: Value of the component
        :rtype: custom_types.SampleType
        """

    def evaluate_parents(
        self, reader: "ValueReader"
    ) -> dict[str, "custom_types.SampleType"]:
        """Evaluate every parent of this component.

        :param reader: Callable returning the current value addressed by a node
            reference
        :type reader: Callable[[NodeReference], custom_types.SampleType]

        :returns: Mapping from parameter name to current value
        :rtype: dict[str, custom_types.SampleType]
        """
        return {name: parent.evaluate(reader) for name, parent in self._parents.items()}

    def walk_tree(
        self, _recursion_depth: "custom_types.Integer" = 1
    ) -> list[tuple[int, "AbstractModelComponent", "AbstractModelComponent"]]:
        """Traverse the expression tree from this component toward its leaves.

        :param _recursion_depth: Current recursion depth (internal parameter).
            Defaults to 1.
        :type _recursion_depth: custom_types.Integer

        :returns: List of (depth, current_component, parent_component) tuples
        :rtype: list[tuple[int, AbstractModelComponent, AbstractModelComponent]]
        """
        to_return = []
        for parent in self._parents.values():

            # Add the current component and the parent to the list
            to_return.append((_recursion_depth, self, parent))

            # Recurse on the parent
            to_return.extend(parent.walk_tree(_recursion_depth=_recursion_depth + 1))

        return to_return

    def get_references(self) -> list["references.NodeReference"]:
        """Collect the node references in this component's tree.

        :returns: Node references in depth-first order, each listed once
        :rtype: list[NodeReference]
        """
        found = [self] if isinstance(self, references.NodeReference) else []
        for *_, parent in self.walk_tree():
            if isinstance(parent, references.NodeReference) and not any(
                parent is other for other in found
            ):
                found.append(parent)
        return found

    def check_bounds(self, value: "custom_types.SampleType") -> bool:
        """Check a value against this component's class-level bounds.

        :param value: Value to check
        :type value: custom_types.SampleType

        :returns: True if every element lies within the bounds
        :rtype: bool
        """
        arr = np.asarray(value)
        if self.LOWER_BOUND is not None and np.any(arr < self.LOWER_BOUND):
            return False
        if self.UPPER_BOUND is not None and np.any(arr > self.UPPER_BOUND):
            return False
        return True

    def __str__(self) -> str:
        params = ", ".join(f"{name}={parent}" for name, parent in self._parents.items())
        return f"{self.__class__.__name__}({params})"

    def __repr__(self) -> str:
        return str(self)

    def __contains__(self, key: str) -> bool:
        """Check whether this component has a parameter with the given name."""
        return key in self._parents

    def __getitem__(self, key: str) -> "AbstractModelComponent":
        """Get the parent component bound to a parameter name.

        :raises KeyError: If the parameter does not exist
        """
        return self._parents[key]

    @property
    def parents(self) -> list["AbstractModelComponent"]:
        """Direct parent components, in parameter order."""
        return list(self._parents.values())

    @property
    def parameter_names(self) -> tuple[str, ...]:
        """Names of the parameters this component was declared with."""
        return tuple(self._parents)
