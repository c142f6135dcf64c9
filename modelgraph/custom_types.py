# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.


"""Custom type definitions for modelgraph.

This module provides type aliases and unions used throughout the package for
type checking and documentation purposes.

All component imports are conditional on TYPE_CHECKING to avoid circular imports
while maintaining proper type hints for development and documentation tools.
"""

from typing import Iterable, TYPE_CHECKING, Union

# Everything in this block is only imported if TYPE_CHECKING is True.
if TYPE_CHECKING:

    import numpy as np
    import numpy.typing as npt

    from modelgraph.model.components import abstract_model_component
    from modelgraph.model.node_names import NodeName

# Scalar types
Integer = Union[int, "np.integer"]
"""Type alias for integer values.

Accepts both Python's built-in int and NumPy integer types.

:type: Union[int, np.integer]
"""

Float = Union[float, "np.floating"]
"""Type alias for floating-point values.

Accepts both Python's built-in float and NumPy floating-point types.

:type: Union[float, np.floating]
"""

# Value types
SampleType = Union[int, float, "np.integer", "np.floating", "npt.NDArray"]
"""Type alias for node values: scalars or arrays.

:type: Union[int, float, npt.NDArray]
"""

CombinableParameterType = Union[
    "abstract_model_component.AbstractModelComponent", int, float, "npt.NDArray"
]
"""Type alias for anything that can appear as a parameter or operand on the
right-hand side of a declaration. Plain numbers and arrays are converted to
constants.

:type: Union[AbstractModelComponent, int, float, npt.NDArray]
"""

# Node addressing
NodeLike = Union[str, "NodeName"]
"""A single node pattern, either as text or as a parsed node name.

:type: Union[str, NodeName]
"""

NodesLike = Union[str, "NodeName", Iterable[Union[str, "NodeName"]], None]
"""One or several node patterns. ``None`` means "every node" wherever it is
accepted.

:type: Union[str, NodeName, Iterable[Union[str, NodeName]], None]
"""

IndexPair = tuple[int, int]
"""Inclusive, 1-based ``(start, stop)`` index range along one dimension.

:type: tuple[int, int]
"""
