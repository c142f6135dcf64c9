# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""Constant value components for modelgraph models.

Constants are the fixed leaves of expression trees: hyperparameters, known
covariates and any plain number or array written on the right-hand side of a
declaration. They never become nodes of the graph. Values passed to a model
through its ``constants`` mapping are substituted into expressions as
instances of :py:class:`Constant`.

**Basic Usage:**

.. code-block:: python

    import modelgraph as mg
    import numpy as np

    # Scalar constants
    scale = mg.Constant(2.5)

    # Array constants
    design = mg.Constant(np.linspace(0, 10, 11))

    # Constants with bounds
    probability = mg.Constant(0.5, lower_bound=0.0, upper_bound=1.0)
"""

from __future__ import annotations

from typing import Literal, Optional, TYPE_CHECKING, Union

import numpy as np
import numpy.typing as npt

from modelgraph.model.components import abstract_model_component

if TYPE_CHECKING:
    from modelgraph import custom_types


class Constant(abstract_model_component.AbstractModelComponent):
    """Represents a constant value component in modelgraph models.

    :param value: The constant value to wrap
    :type value: Union[custom_types.Integer, custom_types.Float, npt.NDArray]
    :param lower_bound: Optional lower bound for value validation. Defaults to None.
    :type lower_bound: Optional[custom_types.Float]
    :param upper_bound: Optional upper bound for value validation. Defaults to None.
    :type upper_bound: Optional[custom_types.Float]
    :param simplex: Whether the value must be a simplex over its last dimension.
        Defaults to False.
    :type simplex: bool

    :ivar value: The stored constant value as a NumPy array
    :ivar BASE_DTYPE: Element type ("real" or "int") inferred from value

    :raises ValueError: If value violates specified bounds or is not a simplex
        when one is required

    .. important::
        The element type follows the Python/NumPy type of the value, so
        ``Constant(100)`` is integer-typed while ``Constant(100.0)`` is real.
    """

    def __init__(
        self,
        value: Union[
            "custom_types.Integer",
            "custom_types.Float",
            npt.NDArray,
            list,
        ],
        *,
        lower_bound: Optional["custom_types.Float"] = None,
        upper_bound: Optional["custom_types.Float"] = None,
        simplex: bool = False,
    ):
        # Convert to a numpy array, remembering the element type
        value = np.array(value)
        self.BASE_DTYPE: Literal["real", "int"] = (  # pylint: disable=invalid-name
            "int"
            if np.issubdtype(value.dtype, np.integer)
            or np.issubdtype(value.dtype, np.bool_)
            else "real"
        )

        # Check bounds if provided. NaN placeholders are left for the model.
        if value.size > 0:
            if lower_bound is not None and (minimum := np.nanmin(value)) < lower_bound:
                raise ValueError(
                    f"Value {minimum.item()} is less than lower bound {lower_bound}."
                )
            if upper_bound is not None and (maximum := np.nanmax(value)) > upper_bound:
                raise ValueError(
                    f"Value {maximum.item()} is greater than upper bound {upper_bound}."
                )
        if simplex and not np.allclose(value.sum(axis=-1), 1.0):
            raise ValueError("Simplex values must sum to 1 over the last dimension.")

        # Set upper and lower bounds
        self.LOWER_BOUND = lower_bound  # pylint: disable=invalid-name
        self.UPPER_BOUND = upper_bound  # pylint: disable=invalid-name

        # Set the value
        self.value = value

        # Constants have no parents
        super().__init__()

    def evaluate(self, reader) -> npt.NDArray:
        """Return the fixed value. The reader is ignored."""
        return self.value

    @property
    def shape(self) -> tuple[int, ...]:
        """Shape of the constant value."""
        return self.value.shape

    def __str__(self) -> str:
        if self.value.ndim == 0:
            return str(self.value.item())
        return np.array2string(self.value, separator=", ", threshold=6)
