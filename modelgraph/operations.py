# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.


"""Mathematical operations for use in modelgraph model descriptions.

This module provides the functions available on the right-hand side of
deterministic declarations. Operations are built from
:py:class:`~modelgraph.model.components.transformations.transformed_parameters.TransformedParameter`
classes and handle both immediate computation on NumPy data and deferred
computation within model graphs. This module should be the access point to all
operations available in modelgraph; users should not need to directly interact
with the underlying transformation classes.

.. code-block:: python

    import modelgraph as mg
    from modelgraph import operations as ops

    code["p[1:3]"] = ops.expit(mg.ref("beta") * mg.ref("x[1:3]"))  # deferred
    ops.expit([0.0, 1.0])  # immediate: array([0.5, 0.731...])
"""

from __future__ import annotations

from modelgraph.model.components import abstract_model_component
from modelgraph.model.components.transformations import transformed_parameters

# pylint: disable=line-too-long


class MetaOperation(type):
    """Metaclass for dynamically creating operation classes.

    Validates that a ``DISTCLASS`` attribute is provided and appropriate, then
    inherits documentation from the underlying transformation class.

    :raises ValueError: If ``DISTCLASS`` is not provided in class attributes
    :raises TypeError: If ``DISTCLASS`` is not a subclass of
        :py:class:`~modelgraph.model.components.transformations.transformed_parameters.TransformedParameter`
    """

    def __new__(mcs, name, bases, attrs):

        # There must be a DISTCLASS in the class_attrs
        if "DISTCLASS" not in attrs:
            raise ValueError("DISTCLASS must be provided in class_attrs")

        # The DISTCLASS must be a subclass of TransformedParameter
        if not issubclass(
            attrs["DISTCLASS"], transformed_parameters.TransformedParameter
        ):
            raise TypeError("DISTCLASS must be a subclass of TransformedParameter")

        return super().__new__(mcs, name, bases, attrs)

    def __init__(cls, name, bases, attrs):

        # Run base init
        super().__init__(name, bases, attrs)

        # Create a new call method that runs the inherited call method but that
        # uses DISTCLASS's docstring
        def __call__(self, *args, **kwargs):
            return super(cls, self).__call__(*args, **kwargs)

        cls.__call__ = __call__
        cls.__call__.__doc__ = cls.DISTCLASS.__doc__


class Operation:
    """Base class for modelgraph mathematical operations.

    The class should never be instantiated directly. Instead, use
    :py:func:`build_operation` to create operation instances from
    :py:class:`~modelgraph.model.components.transformations.transformed_parameters.TransformedParameter`
    classes.

    :cvar DISTCLASS: The transformation class this operation wraps.
    :type DISTCLASS: type[transformed_parameters.TransformedParameter]
    """

    DISTCLASS: type[transformed_parameters.TransformedParameter]

    def __call__(self, *args, **kwargs):
        """Apply the operation to the provided inputs.

        :returns: A transformation component if any input is a model component
            (deferred computation), otherwise the result of the operation on the
            numerical inputs.
        """
        # Any model component among the inputs defers the computation to the graph
        if any(
            isinstance(arg, abstract_model_component.AbstractModelComponent)
            for arg in args
        ) or any(
            isinstance(value, abstract_model_component.AbstractModelComponent)
            for value in kwargs.values()
        ):
            return self.__class__.DISTCLASS(*args, **kwargs)

        # Otherwise, call the `run_op` method without an instance
        return self.__class__.DISTCLASS.run_op(None, *args, **kwargs)


def build_operation(
    distclass: type[transformed_parameters.TransformedParameter],
) -> Operation:
    """Build an operation instance from a TransformedParameter class.

    :param distclass: The transformation class to build the operation from.
    :type distclass: type[transformed_parameters.TransformedParameter]

    :returns: A new operation instance that wraps the provided class.
    :rtype: Operation

    Example:

    .. code-block:: python

       class Square(UnaryTransformedParameter):
           OPERATOR = "square"

           def run_op(self, dist1):
               return np.square(dist1)

       square = build_operation(Square)
       code["y"] = square(mg.ref("x"))
    """
    # Build the class via the metaclass
    return MetaOperation(
        distclass.__name__.lower(),
        (Operation,),
        {"DISTCLASS": distclass, "__doc__": distclass.__doc__},
    )()


# Define our operations
abs_ = build_operation(transformed_parameters.AbsParameter)
"""Absolute value operation. See also,
:py:class:`~modelgraph.model.components.transformations.transformed_parameters.AbsParameter`.
"""

exp = build_operation(transformed_parameters.ExpParameter)
"""Exponential operation. See also,
:py:class:`~modelgraph.model.components.transformations.transformed_parameters.ExpParameter`.

**Usage:**

.. code-block:: python

    code["rate"] = mg.operations.exp(mg.ref("log_rate"))
"""

expit = build_operation(transformed_parameters.ExpitParameter)
"""Logistic sigmoid operation, the inverse of :py:data:`logit`. See also,
:py:class:`~modelgraph.model.components.transformations.transformed_parameters.ExpitParameter`.
"""

inprod = build_operation(transformed_parameters.InnerProductParameter)
"""Inner product of two vectors. See also,
:py:class:`~modelgraph.model.components.transformations.transformed_parameters.InnerProductParameter`.

**Usage:**

.. code-block:: python

    code["eta"] = mg.operations.inprod(mg.ref("beta"), mg.ref("x"))
"""

log = build_operation(transformed_parameters.LogParameter)
"""Natural logarithm operation. See also,
:py:class:`~modelgraph.model.components.transformations.transformed_parameters.LogParameter`.
"""

log1p_exp = build_operation(transformed_parameters.Log1pExpParameter)
"""Softplus, ``log(1 + exp(x))``. See also,
:py:class:`~modelgraph.model.components.transformations.transformed_parameters.Log1pExpParameter`.
"""

logit = build_operation(transformed_parameters.LogitParameter)
"""Log-odds operation. See also,
:py:class:`~modelgraph.model.components.transformations.transformed_parameters.LogitParameter`.
"""

matmul = build_operation(transformed_parameters.MatMulParameter)
"""Matrix product. Equivalent to the ``@`` operator. See also,
:py:class:`~modelgraph.model.components.transformations.transformed_parameters.MatMulParameter`.
"""

normalize = build_operation(transformed_parameters.NormalizeParameter)
"""Normalize the last dimension to sum to one. See also,
:py:class:`~modelgraph.model.components.transformations.transformed_parameters.NormalizeParameter`.
"""

sqrt = build_operation(transformed_parameters.SqrtParameter)
"""Square root operation. See also,
:py:class:`~modelgraph.model.components.transformations.transformed_parameters.SqrtParameter`.
"""

step = build_operation(transformed_parameters.StepParameter)
"""Step function: 1 for non-negative inputs, 0 otherwise. See also,
:py:class:`~modelgraph.model.components.transformations.transformed_parameters.StepParameter`.
"""

sum_ = build_operation(transformed_parameters.SumParameter)
"""Sum over the last dimension. See also,
:py:class:`~modelgraph.model.components.transformations.transformed_parameters.SumParameter`.

**Usage:**

.. code-block:: python

    code["total"] = mg.operations.sum_(mg.ref("x"))
"""
