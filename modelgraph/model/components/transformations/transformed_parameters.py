# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

r"""Deterministic expression components for modelgraph models.

This module provides the library of mathematical transformations that make up
the right-hand sides of deterministic declarations. Transformations compose:
every transformation is itself transformable, so arbitrary expressions are built
from simple operations with ordinary Python syntax.

.. code-block:: python

    import modelgraph as mg

    code = mg.ModelCode()
    code["b"] = mg.ref("a") + 1
    code["c"] = mg.operations.exp(-mg.ref("b") ** 2)

All operations act elementwise with NumPy broadcasting unless stated otherwise.
Reductions (:py:class:`SumParameter`, :py:class:`NormalizeParameter`) act on
the last dimension.
"""

from __future__ import annotations

from abc import abstractmethod
from typing import Callable, TYPE_CHECKING

import numpy as np
import numpy.typing as npt
import scipy.special as sp

from modelgraph.model.components import abstract_model_component

if TYPE_CHECKING:
    from modelgraph import custom_types


class TransformableParameter:
    """Mixin class enabling mathematical operator overloading for components.

    Each operator creates the appropriate :py:class:`TransformedParameter`
    instance. Both left and right operand positions are supported, so mixed
    expressions of references, transformations and plain numbers work.

    Example:
        >>> a = mg.ref("a")
        >>> sum_param = a + mg.ref("b")
        >>> scaled_param = 2 * a
        >>> power_param = a ** 2
        >>> negated_param = -a
    """

    def __add__(self, other: "custom_types.CombinableParameterType"):
        """See :py:class:`AddParameter`."""
        return AddParameter(self, other)

    def __radd__(self, other: "custom_types.CombinableParameterType"):
        """See :py:class:`AddParameter`."""
        return AddParameter(other, self)

    def __sub__(self, other: "custom_types.CombinableParameterType"):
        """See :py:class:`SubtractParameter`."""
        return SubtractParameter(self, other)

    def __rsub__(self, other: "custom_types.CombinableParameterType"):
        """See :py:class:`SubtractParameter`."""
        return SubtractParameter(other, self)

    def __mul__(self, other: "custom_types.CombinableParameterType"):
        """See :py:class:`MultiplyParameter`."""
        return MultiplyParameter(self, other)

    def __rmul__(self, other: "custom_types.CombinableParameterType"):
        """See :py:class:`MultiplyParameter`."""
        return MultiplyParameter(other, self)

    def __truediv__(self, other: "custom_types.CombinableParameterType"):
        """See :py:class:`DivideParameter`."""
        return DivideParameter(self, other)

    def __rtruediv__(self, other: "custom_types.CombinableParameterType"):
        """See :py:class:`DivideParameter`."""
        return DivideParameter(other, self)

    def __pow__(self, other: "custom_types.CombinableParameterType"):
        """See :py:class:`PowerParameter`."""
        return PowerParameter(self, other)

    def __rpow__(self, other: "custom_types.CombinableParameterType"):
        """See :py:class:`PowerParameter`."""
        return PowerParameter(other, self)

    def __matmul__(self, other: "custom_types.CombinableParameterType"):
        """See :py:class:`MatMulParameter`."""
        return MatMulParameter(self, other)

    def __rmatmul__(self, other: "custom_types.CombinableParameterType"):
        """See :py:class:`MatMulParameter`."""
        return MatMulParameter(other, self)

    def __neg__(self):
        """See :py:class:`NegateParameter`."""
        return NegateParameter(self)


class TransformedParameter(
    abstract_model_component.AbstractModelComponent, TransformableParameter
):
    """Base class for deterministic expressions over other components.

    Subclasses implement :py:meth:`run_op`, which receives the current values
    of the parents as keyword arguments (one per parameter name) and returns
    the value of the expression.

    :cvar OPERATOR: Infix operator or function name used when displaying the
        expression
    """

    OPERATOR: str = ""
    """Operator string or function name used when printing the expression."""

    def evaluate(self, reader) -> npt.NDArray:
        """Evaluate the expression against the values returned by ``reader``.

        :param reader: Callable returning the current value addressed by a node
            reference
        :type reader: Callable[[NodeReference], custom_types.SampleType]

        :returns: Value of the expression
        :rtype: npt.NDArray
        """
        return np.asarray(self.run_op(**self.evaluate_parents(reader)))

    @abstractmethod
    def run_op(self, **values: "custom_types.SampleType") -> "custom_types.SampleType":
        """Execute the mathematical operation.

        :param values: Input values for the operation
        :type values: custom_types.SampleType

        :returns: Result of the mathematical operation
        :rtype: custom_types.SampleType
        """

    def __call__(self, *args, **kwargs):
        """Apply the operation directly to values. Equivalent to :py:meth:`run_op`."""
        return self.run_op(*args, **kwargs)

    def __str__(self) -> str:
        args = ", ".join(str(parent) for parent in self._parents.values())
        return f"{self.OPERATOR or self.__class__.__name__}({args})"


class BinaryTransformedParameter(TransformedParameter):
    """Base class for transformations involving exactly two components.

    :param dist1: First operand
    :type dist1: custom_types.CombinableParameterType
    :param dist2: Second operand
    :type dist2: custom_types.CombinableParameterType
    """

    def __init__(
        self,
        dist1: "custom_types.CombinableParameterType",
        dist2: "custom_types.CombinableParameterType",
        **kwargs,
    ):
        super().__init__(dist1=dist1, dist2=dist2, **kwargs)

    @abstractmethod
    def run_op(self, dist1, dist2):  # pylint: disable=arguments-differ
        """Execute binary operation on two inputs."""

    def __str__(self) -> str:
        return f"({self._parents['dist1']} {self.OPERATOR} {self._parents['dist2']})"


class UnaryTransformedParameter(TransformedParameter):
    """Base class for transformations involving exactly one component.

    :param dist1: Operand
    :type dist1: custom_types.CombinableParameterType
    """

    def __init__(self, dist1: "custom_types.CombinableParameterType", **kwargs):
        super().__init__(dist1=dist1, **kwargs)

    @abstractmethod
    def run_op(self, dist1):  # pylint: disable=arguments-differ
        """Execute unary operation on one input."""


class AddParameter(BinaryTransformedParameter):
    """Elementwise addition, ``dist1 + dist2``."""

    OPERATOR: str = "+"

    def run_op(self, dist1, dist2):
        return np.add(dist1, dist2)


class SubtractParameter(BinaryTransformedParameter):
    """Elementwise subtraction, ``dist1 - dist2``."""

    OPERATOR: str = "-"

    def run_op(self, dist1, dist2):
        return np.subtract(dist1, dist2)


class MultiplyParameter(BinaryTransformedParameter):
    """Elementwise multiplication, ``dist1 * dist2``."""

    OPERATOR: str = "*"

    def run_op(self, dist1, dist2):
        return np.multiply(dist1, dist2)


class DivideParameter(BinaryTransformedParameter):
    """Elementwise true division, ``dist1 / dist2``."""

    OPERATOR: str = "/"

    def run_op(self, dist1, dist2):
        return np.true_divide(dist1, dist2)


class PowerParameter(BinaryTransformedParameter):
    """Elementwise power, ``dist1 ** dist2``. Always computed in floating point."""

    OPERATOR: str = "**"

    def run_op(self, dist1, dist2):
        return np.float_power(dist1, dist2)


class MatMulParameter(BinaryTransformedParameter):
    """Matrix product, ``dist1 @ dist2``."""

    OPERATOR: str = "@"

    def run_op(self, dist1, dist2):
        return np.matmul(dist1, dist2)


class InnerProductParameter(BinaryTransformedParameter):
    r"""Inner product of two vectors, summed over the last dimension.

    .. math::
        \text{inprod}(x, y) = \sum_i x_i y_i
    """

    OPERATOR: str = "inprod"

    def run_op(self, dist1, dist2):
        return np.sum(np.multiply(dist1, dist2), axis=-1)

    def __str__(self) -> str:
        return f"inprod({self._parents['dist1']}, {self._parents['dist2']})"


class NegateParameter(UnaryTransformedParameter):
    """Elementwise negation, ``-dist1``."""

    OPERATOR: str = "-"

    def run_op(self, dist1):
        return np.negative(dist1)

    def __str__(self) -> str:
        return f"-{self._parents['dist1']}"


class AbsParameter(UnaryTransformedParameter):
    """Elementwise absolute value."""

    OPERATOR: str = "abs"
    LOWER_BOUND: "custom_types.Float" = 0.0

    def run_op(self, dist1):
        return np.abs(dist1)


class LogParameter(UnaryTransformedParameter):
    """Elementwise natural logarithm."""

    OPERATOR: str = "log"
    POSITIVE_PARAMS = {"dist1"}

    def run_op(self, dist1):
        return np.log(dist1)


class ExpParameter(UnaryTransformedParameter):
    """Elementwise exponential."""

    OPERATOR: str = "exp"
    LOWER_BOUND: "custom_types.Float" = 0.0

    def run_op(self, dist1):
        return np.exp(dist1)


class SqrtParameter(UnaryTransformedParameter):
    """Elementwise square root."""

    OPERATOR: str = "sqrt"
    POSITIVE_PARAMS = {"dist1"}
    LOWER_BOUND: "custom_types.Float" = 0.0

    def run_op(self, dist1):
        return np.sqrt(dist1)


class LogitParameter(UnaryTransformedParameter):
    r"""Elementwise log-odds.

    .. math::
        \text{logit}(p) = \log\frac{p}{1 - p}
    """

    OPERATOR: str = "logit"

    def run_op(self, dist1):
        return sp.logit(dist1)


class ExpitParameter(UnaryTransformedParameter):
    r"""Elementwise logistic sigmoid, the inverse of :py:class:`LogitParameter`.

    .. math::
        \text{expit}(x) = \frac{1}{1 + e^{-x}}
    """

    OPERATOR: str = "expit"
    LOWER_BOUND: "custom_types.Float" = 0.0
    UPPER_BOUND: "custom_types.Float" = 1.0

    def run_op(self, dist1):
        return sp.expit(dist1)


class Log1pExpParameter(UnaryTransformedParameter):
    r"""Elementwise softplus, computed stably.

    .. math::
        \text{log1p\_exp}(x) = \log(1 + e^x)
    """

    OPERATOR: str = "log1p_exp"

    def run_op(self, dist1):
        return np.logaddexp(0.0, dist1)


class StepParameter(UnaryTransformedParameter):
    """Elementwise step function: 1 where the input is non-negative, else 0."""

    OPERATOR: str = "step"

    def run_op(self, dist1):
        return np.where(np.asarray(dist1) >= 0, 1.0, 0.0)


class SumParameter(UnaryTransformedParameter):
    """Sum over the last dimension.

    :param dist1: Component to reduce
    :type dist1: custom_types.CombinableParameterType
    :param keepdims: Whether to keep the reduced dimension with size 1.
        Defaults to False.
    :type keepdims: bool
    """

    OPERATOR: str = "sum"

    def __init__(
        self,
        dist1: "custom_types.CombinableParameterType",
        keepdims: bool = False,
        **kwargs,
    ):
        # Record whether to keep the last dimension
        self.keepdims = keepdims
        super().__init__(dist1=dist1, **kwargs)

    def run_op(self, dist1):
        arr = np.asarray(dist1)
        if arr.ndim == 0:
            return arr

        # Called without an instance when applied directly to data
        keepdims = False if self is None else self.keepdims
        return np.sum(arr, axis=-1, keepdims=keepdims)


class NormalizeParameter(UnaryTransformedParameter):
    """Scale the last dimension so that it sums to one.

    Inputs are expected to be non-negative; the result is a simplex.
    """

    OPERATOR: str = "normalize"
    LOWER_BOUND: "custom_types.Float" = 0.0
    UPPER_BOUND: "custom_types.Float" = 1.0

    def run_op(self, dist1):
        arr = np.asarray(dist1, dtype=np.float64)
        return arr / np.sum(arr, axis=-1, keepdims=True)


class FunctionParameter(TransformedParameter):
    """Apply a user-supplied function to named components.

    :param func: Function called with the current values of the components as
        keyword arguments
    :type func: Callable[..., custom_types.SampleType]
    :param name: Display name. Defaults to the function's ``__name__``.
    :type name: Optional[str]
    :param model_params: Named arguments of the function
    :type model_params: custom_types.CombinableParameterType

    Example:
        >>> def logistic_growth(t, r, k):
        ...     return k / (1 + np.exp(-r * t))
        >>> code["y"] = FunctionParameter(logistic_growth, t=mg.ref("t"), r=0.3, k=10)
    """

    def __init__(
        self,
        func: Callable[..., "custom_types.SampleType"],
        name: str | None = None,
        **model_params: "custom_types.CombinableParameterType",
    ):
        self.func = func
        self.OPERATOR = name or getattr(  # pylint: disable=invalid-name
            func, "__name__", "function"
        )
        super().__init__(**model_params)

    def run_op(self, **values):
        return self.func(**values)

    def __str__(self) -> str:
        args = ", ".join(f"{name}={parent}" for name, parent in self._parents.items())
        return f"{self.OPERATOR}({args})"
