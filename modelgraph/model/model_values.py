# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""Resizable storage of saved model states.

A :py:class:`ModelValues` object holds, for each of a set of variables, an
array with one row per saved state. Algorithms use it to keep samples, to
remember a model state they may need to restore, and to pass states between
each other. Rows are 0-based and every row starts out as zeros.

.. code-block:: python

    mv = mg.ModelValues.from_model(model, ["mu", "sigma"], size=1000)
    for i in range(1000):
        sampler.run()
        mv.copy_from_model(model, i, ["mu", "sigma"])
    samples = mv.as_xarray()

Copies between a store and a model address model nodes with the usual node
patterns and the store's rows with plain integers. Values and
log-probabilities are stored separately; a store only holds log-probabilities
for the variables it was created with them for.
"""

from __future__ import annotations

from typing import Any, Iterable, Optional, TYPE_CHECKING, Union

import numpy as np
import numpy.typing as npt
import xarray as xr

from modelgraph import utils
from modelgraph.defaults import (
    DEFAULT_DIM_NAMES,
    DEFAULT_MODEL_VALUES_SIZE,
    DEFAULT_ROW_DIM_NAME,
)
from modelgraph.exceptions import ShapeMismatch, UnknownVariable
from modelgraph.model.node_names import NodeName

if TYPE_CHECKING:
    from modelgraph import custom_types
    from modelgraph.model import model as model_module


class ModelValues:
    """Row-indexed storage for the values of a set of variables.

    :param variables: Either a mapping from variable names to shapes, or an
        iterable of :py:class:`~modelgraph.model.model.Variable` records
    :type variables: Union[dict[str, tuple[int, ...]], Iterable[Variable]]
    :param size: Number of rows to allocate. Defaults to
        :py:data:`~modelgraph.defaults.DEFAULT_MODEL_VALUES_SIZE`.
    :type size: custom_types.Integer
    :param include_log_prob: Allocate log-probability storage as well. True for
        every variable, or an iterable of the variable names that need it.
        Defaults to False.
    :type include_log_prob: Union[bool, Iterable[str]]

    :raises ValueError: If ``size`` is negative
    """

    def __init__(
        self,
        variables: Union[dict[str, Any], Iterable[Any]],
        size: "custom_types.Integer" = DEFAULT_MODEL_VALUES_SIZE,
        include_log_prob: Union[bool, Iterable[str]] = False,
    ):
        # Normalize the variable descriptions to shapes
        if isinstance(variables, dict):
            shapes = {
                name: utils.normalize_shape(shape) for name, shape in variables.items()
            }
        else:
            shapes = {variable.name: tuple(variable.shape) for variable in variables}

        # Which variables carry log-probabilities
        if include_log_prob is True:
            log_prob_names = list(shapes)
        elif include_log_prob is False:
            log_prob_names = []
        else:
            log_prob_names = list(include_log_prob)
            if unknown := set(log_prob_names) - set(shapes):
                raise UnknownVariable(
                    f"Log-probabilities requested for unknown variables "
                    f"{sorted(unknown)}."
                )

        if size < 0:
            raise ValueError(f"Size must be non-negative, got {size}.")

        self._shapes: dict[str, tuple[int, ...]] = shapes
        self._size = int(size)
        self._values: dict[str, npt.NDArray] = {
            name: np.zeros((self._size, *shape)) for name, shape in shapes.items()
        }
        self._log_probs: dict[str, npt.NDArray] = {
            name: np.zeros((self._size, *shapes[name])) for name in log_prob_names
        }

    @classmethod
    def from_model(
        cls,
        model: "model_module.Model",
        varnames: Optional[Iterable[str]] = None,
        size: "custom_types.Integer" = DEFAULT_MODEL_VALUES_SIZE,
        include_log_prob: bool = False,
    ) -> "ModelValues":
        """Create a store matching the variables of a model.

        :param model: Model whose variables are stored
        :type model: Model
        :param varnames: Variables to store. Defaults to every variable.
        :type varnames: Optional[Iterable[str]]
        :param size: Number of rows. Defaults to
            :py:data:`~modelgraph.defaults.DEFAULT_MODEL_VALUES_SIZE`.
        :type size: custom_types.Integer
        :param include_log_prob: Also store log-probabilities of the variables
            that have stochastic nodes. Defaults to False.
        :type include_log_prob: bool

        :returns: A zero-initialized store
        :rtype: ModelValues
        """
        names = model.get_var_names() if varnames is None else list(varnames)
        variables = [model.get_variable(name) for name in names]
        return cls(
            variables,
            size=size,
            include_log_prob=(
                [name for name in names if name in model._log_probs]  # pylint: disable=protected-access
                if include_log_prob
                else False
            ),
        )

    def resize(self, size: "custom_types.Integer") -> None:
        """Change the number of rows.

        The first ``min(old, new)`` rows are preserved and new rows are zeros.

        :param size: New number of rows
        :type size: custom_types.Integer

        :raises ValueError: If ``size`` is negative
        """
        if size < 0:
            raise ValueError(f"Size must be non-negative, got {size}.")
        size = int(size)
        keep = min(size, self._size)
        for table in (self._values, self._log_probs):
            for name, old in table.items():
                new = np.zeros((size, *self._shapes[name]))
                new[:keep] = old[:keep]
                table[name] = new
        self._size = size

    def _check_variable(self, varname: str) -> None:
        if varname not in self._values:
            raise UnknownVariable(f"Variable '{varname}' is not held by this store.")

    def _regions(
        self, model: "model_module.Model", nodes: "custom_types.NodesLike"
    ) -> list[NodeName]:
        """Model regions addressed by a copy, checked against the store."""
        # pylint: disable=protected-access
        if nodes is None:
            regions = [model._complete(NodeName(name)) for name in self._values]
        else:
            regions = model._resolve_nodes(nodes)
        for name in regions:
            self._check_variable(name.varname)
            if model.get_variable(name.varname).shape != self._shapes[name.varname]:
                raise ShapeMismatch(
                    f"Variable '{name.varname}' has shape "
                    f"{model.get_variable(name.varname).shape} in the model but "
                    f"{self._shapes[name.varname]} in the store."
                )
        return regions

    def copy_from_model(
        self,
        model: "model_module.Model",
        row: "custom_types.Integer",
        nodes: "custom_types.NodesLike" = None,
        include_log_prob: bool = False,
    ) -> None:
        """Save the current state of model nodes into a row.

        :param model: Model to copy from
        :type model: Model
        :param row: 0-based row to write
        :type row: custom_types.Integer
        :param nodes: Nodes to copy. Defaults to every variable of the store.
        :type nodes: custom_types.NodesLike
        :param include_log_prob: Also copy the stored log-probabilities of the
            nodes, for variables that have log-probability storage. Defaults to
            False.
        :type include_log_prob: bool

        :raises UnknownVariable: If a node belongs to a variable the store does
            not hold
        """
        # pylint: disable=protected-access
        regions = self._regions(model, nodes)
        for name in regions:
            self._values[name.varname][(row,) + name.slices] = model._read_region(name)
        if include_log_prob:
            for name in regions:
                if name.varname in self._log_probs and name.varname in model._log_probs:
                    self._log_probs[name.varname][
                        (row,) + name.slices
                    ] = model._read_log_prob_region(name)

    def copy_to_model(
        self,
        model: "model_module.Model",
        row: "custom_types.Integer",
        nodes: "custom_types.NodesLike" = None,
        include_log_prob: bool = False,
    ) -> None:
        """Restore model nodes from a row.

        Values are written first, marking their dependents stale as any write
        does. Log-probabilities, when included, are written afterwards and
        count as up to date.

        :param model: Model to copy into
        :type model: Model
        :param row: 0-based row to read
        :type row: custom_types.Integer
        :param nodes: Nodes to restore. Defaults to every variable of the store.
        :type nodes: custom_types.NodesLike
        :param include_log_prob: Also restore log-probabilities. Defaults to
            False.
        :type include_log_prob: bool

        :raises UnknownVariable: If a node belongs to a variable the store does
            not hold
        """
        # pylint: disable=protected-access
        regions = self._regions(model, nodes)
        for name in regions:
            model._write_region(name, self._values[name.varname][(row,) + name.slices])
        if include_log_prob:
            for name in regions:
                if name.varname in self._log_probs and name.varname in model._log_probs:
                    model._write_log_prob_region(
                        name, self._log_probs[name.varname][(row,) + name.slices]
                    )

    def get(
        self, varname: str, row: "custom_types.Integer"
    ) -> "custom_types.SampleType":
        """Get a copy of the value of a variable in a row."""
        self._check_variable(varname)
        return self._values[varname][row].copy()

    def set(
        self,
        varname: str,
        row: "custom_types.Integer",
        value: "custom_types.SampleType",
    ) -> None:
        """Set the value of a variable in a row.

        :raises ShapeMismatch: If the value does not have the variable's shape
        """
        self._check_variable(varname)
        arr = np.asarray(value, dtype=np.float64)
        if arr.ndim != 0 and arr.shape != self._shapes[varname]:
            raise ShapeMismatch(
                f"Value with shape {arr.shape} does not match variable '{varname}' "
                f"with shape {self._shapes[varname]}."
            )
        self._values[varname][row] = arr

    def get_log_prob(
        self, varname: str, row: "custom_types.Integer"
    ) -> "custom_types.SampleType":
        """Get a copy of the stored log-probabilities of a variable in a row."""
        if varname not in self._log_probs:
            raise UnknownVariable(
                f"No log-probabilities are held for variable '{varname}'."
            )
        return self._log_probs[varname][row].copy()

    def get_row(self, row: "custom_types.Integer") -> dict[str, "custom_types.SampleType"]:
        """Get copies of every variable's value in a row."""
        return {name: values[row].copy() for name, values in self._values.items()}

    def __getitem__(self, varname: str) -> npt.NDArray:
        """All rows of a variable, with rows along the first axis.

        Example:
            >>> mv["mu"].shape
            (1000,)
        """
        self._check_variable(varname)
        return self._values[varname].copy()

    def __contains__(self, varname: str) -> bool:
        return varname in self._values

    def __len__(self) -> int:
        return self._size

    @property
    def size(self) -> int:
        """Number of rows."""
        return self._size

    @property
    def varnames(self) -> list[str]:
        """Names of the stored variables."""
        return list(self._values)

    @property
    def log_prob_varnames(self) -> list[str]:
        """Names of the variables with log-probability storage."""
        return list(self._log_probs)

    def get_shape(self, varname: str) -> tuple[int, ...]:
        """Shape of a single row of a variable."""
        self._check_variable(varname)
        return self._shapes[varname]

    def as_xarray(self) -> xr.Dataset:
        """Export the store as an xarray Dataset.

        Every variable becomes a data variable with a leading row dimension.
        Variable dimensions are named from
        :py:data:`~modelgraph.defaults.DEFAULT_DIM_NAMES`, suffixed with the
        variable name. Log-probabilities are exported as ``logprob_<name>``.

        :returns: Dataset with a ``row`` coordinate
        :rtype: xr.Dataset
        """
        data_vars = {}
        for prefix, table in (("", self._values), ("logprob_", self._log_probs)):
            for name, values in table.items():
                dims = (DEFAULT_ROW_DIM_NAME,) + tuple(
                    f"{DEFAULT_DIM_NAMES[i]}_{name}" for i in range(values.ndim - 1)
                )
                data_vars[f"{prefix}{name}"] = (dims, values.copy())

        return xr.Dataset(
            data_vars, coords={DEFAULT_ROW_DIM_NAME: np.arange(self._size)}
        )

    def __str__(self) -> str:
        return (
            f"ModelValues(size={self._size}, variables="
            f"{', '.join(f'{name}{list(shape)}' for name, shape in self._shapes.items())})"
        )
