# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.


"""Utility functions for the modelgraph package.

This module provides small helpers that support the core functionality of
modelgraph, including:

    - Lazy importing mechanisms for performance and to break import cycles
    - Normalization of user-supplied shapes and values to NumPy conventions
    - Progress-bar wrapping for long algorithm loops

Users will not typically need to interact with this module directly--it is designed
to be used internally by modelgraph.
"""

from __future__ import annotations

import importlib.util
import sys

from typing import Iterable, TYPE_CHECKING

import numpy as np

from tqdm import tqdm

if TYPE_CHECKING:
    from modelgraph import custom_types


def lazy_import(name: str):
    """Import a module only when it is first needed.

    :param name: The fully qualified module name to import
    :type name: str

    :returns: The imported module
    :rtype: module

    :raises ImportError: If the specified module cannot be found

    .. note::
        If the module is already imported, returns the cached version
        from sys.modules for efficiency.
    """
    # Check if the module is already imported
    if name in sys.modules:
        return sys.modules[name]

    # If not, import it lazily (modified from here:
    # https://docs.python.org/3/library/importlib.html#implementing-lazy-imports)
    spec = importlib.util.find_spec(name)

    # If the spec is None, raise an ImportError
    if spec is None:
        raise ImportError(f"Module '{name}' not found.")

    # Create the module with a lazy loader
    spec.loader = importlib.util.LazyLoader(spec.loader)
    module = importlib.util.module_from_spec(spec)

    sys.modules[name] = module
    spec.loader.exec_module(module)
    return module


def normalize_shape(
    shape: "custom_types.Integer" | Iterable["custom_types.Integer"],
) -> tuple[int, ...]:
    """Convert an integer or sequence of integers to a tuple of Python ints.

    :param shape: Shape specification
    :type shape: Union[custom_types.Integer, Iterable[custom_types.Integer]]

    :returns: Shape as a tuple of ints
    :rtype: tuple[int, ...]

    :raises ValueError: If any dimension is negative
    """
    try:
        dims = tuple(int(dim) for dim in shape)
    except TypeError:
        dims = (int(shape),)

    if any(dim < 0 for dim in dims):
        raise ValueError(f"Dimensions must be non-negative, got {dims}")

    return dims


def is_integer_valued(value: "custom_types.SampleType") -> bool:
    """Check whether a value carries an integer (or boolean) NumPy dtype.

    :param value: Scalar or array-like value
    :type value: custom_types.SampleType

    :returns: True if the value was supplied as integers
    :rtype: bool
    """
    dtype = np.asarray(value).dtype
    return np.issubdtype(dtype, np.integer) or np.issubdtype(dtype, np.bool_)


def progress(iterable: Iterable, show: bool, desc: str = "", total: int | None = None):
    """Optionally wrap an iterable in a ``tqdm`` progress bar.

    :param iterable: Iterable to wrap
    :type iterable: Iterable
    :param show: Whether to display the progress bar
    :type show: bool
    :param desc: Description shown next to the bar. Defaults to "".
    :type desc: str
    :param total: Length hint for the bar. Defaults to None.
    :type total: Optional[int]

    :returns: The wrapped or original iterable
    """
    if not show:
        return iterable
    return tqdm(iterable, desc=desc, total=total)
