# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""Canonical node addressing for modelgraph models.

Nodes are identified internally by :py:class:`NodeName`, a hashable structured
key made of a variable name and a tuple of inclusive, 1-based ``(start, stop)``
index ranges (one per dimension of the variable). Text patterns are only a
parsing and display format:

.. list-table::

    * - ``x``
      - The whole variable ``x``
    * - ``x[2]``
      - The second element of a vector
    * - ``x[1:3]``
      - Elements one through three, inclusive
    * - ``x[1, 2]``
      - A single element of a matrix
    * - ``x[1:3, 2]``
      - A column block of a matrix
    * - ``x[, 2]``
      - A whole column (an open dimension; pattern only)

The canonical text form places a single space after each comma and no other
whitespace, and writes a range whose start equals its stop as a single index.
``NodeName.parse(str(name)) == name`` holds for every complete name.
"""

from __future__ import annotations

import functools
import itertools
import re

from dataclasses import dataclass
from typing import Iterable, Iterator, Optional, TYPE_CHECKING

from modelgraph.defaults import INDEX_BASE
from modelgraph.exceptions import UnknownNode

if TYPE_CHECKING:
    from modelgraph import custom_types

_NAME_PATTERN = re.compile(r"^\s*([A-Za-z_][A-Za-z0-9_.]*)\s*(?:\[(.*)\])?\s*$")
_RANGE_PATTERN = re.compile(r"^\s*(-?\d+)\s*(?::\s*(-?\d+)\s*)?$")


@dataclass(frozen=True)
class NodeName:
    """Structured identifier of a node, a node block, or a variable pattern.

    :param varname: Name of the variable the node belongs to
    :type varname: str
    :param index: One inclusive ``(start, stop)`` pair per dimension. ``None``
        marks an open dimension in a pattern. An empty tuple addresses the whole
        variable.
    :type index: tuple[Optional[custom_types.IndexPair], ...]

    Instances are immutable and hashable, so they are used directly as keys in
    the model's graph and tables.
    """

    varname: str
    index: tuple[Optional[tuple[int, int]], ...] = ()

    @classmethod
    def parse(cls, text: str) -> "NodeName":
        """Parse a node pattern.

        :param text: Pattern such as ``"x"``, ``"x[2]"`` or ``"x[1:3, 2]"``
        :type text: str

        :returns: The parsed (possibly incomplete) name
        :rtype: NodeName

        :raises UnknownNode: If the text is not a valid node pattern
        """
        return _parse(text)

    def __str__(self) -> str:
        if not self.index:
            return self.varname
        return f"{self.varname}[{', '.join(_format_pair(pair) for pair in self.index)}]"

    def __repr__(self) -> str:
        return f"NodeName('{self}')"

    @property
    def is_complete(self) -> bool:
        """Whether every dimension has an explicit range."""
        return all(pair is not None for pair in self.index)

    @property
    def ndim(self) -> int:
        """Number of indexed dimensions."""
        return len(self.index)

    @property
    def shape(self) -> tuple[int, ...]:
        """Shape of the value addressed by this name.

        Dimensions indexed by a single position are dropped, matching NumPy's
        behavior for integer indexing.
        """
        self._check_complete()
        return tuple(stop - start + 1 for start, stop in self.index if start != stop)

    @property
    def size(self) -> int:
        """Number of scalar elements addressed."""
        self._check_complete()
        size = 1
        for start, stop in self.index:
            size *= stop - start + 1
        return size

    @property
    def slices(self) -> tuple[int | slice, ...]:
        """0-based NumPy index equivalent to this name."""
        self._check_complete()
        return tuple(
            start - INDEX_BASE
            if start == stop
            else slice(start - INDEX_BASE, stop - INDEX_BASE + 1)
            for start, stop in self.index
        )

    @property
    def first_element(self) -> tuple[int, ...]:
        """0-based position of the first element addressed."""
        self._check_complete()
        return tuple(start - INDEX_BASE for start, _ in self.index)

    def elements(self) -> Iterator[tuple[int, ...]]:
        """Iterate over the 1-based positions of all addressed elements in
        row-major order."""
        self._check_complete()
        yield from itertools.product(
            *(range(start, stop + 1) for start, stop in self.index)
        )

    def element_names(self) -> Iterator["NodeName"]:
        """Iterate over single-element names in row-major order."""
        for element in self.elements():
            yield NodeName(self.varname, tuple((i, i) for i in element))

    def complete(self, shape: tuple["custom_types.Integer", ...]) -> "NodeName":
        """Fill open dimensions from a variable shape and check bounds.

        :param shape: Shape of the variable this name addresses
        :type shape: tuple[custom_types.Integer, ...]

        :returns: A complete name with every dimension explicit
        :rtype: NodeName

        :raises UnknownNode: If the number of indices does not match the number
            of dimensions or an index falls outside of the variable
        """
        # A bare variable name addresses everything
        if not self.index:
            return NodeName(
                self.varname,
                tuple((INDEX_BASE, INDEX_BASE + int(n) - 1) for n in shape),
            )

        if len(self.index) != len(shape):
            raise UnknownNode(
                f"'{self}' has {len(self.index)} indices but variable "
                f"'{self.varname}' has {len(shape)} dimensions"
            )

        pairs = []
        for pair, dimsize in zip(self.index, shape):
            if pair is None:
                pair = (INDEX_BASE, INDEX_BASE + int(dimsize) - 1)
            start, stop = pair
            if start < INDEX_BASE or stop > INDEX_BASE + dimsize - 1 or start > stop:
                raise UnknownNode(
                    f"'{self}' is out of range for variable '{self.varname}' "
                    f"with shape {tuple(shape)}"
                )
            pairs.append(pair)

        return NodeName(self.varname, tuple(pairs))

    def covers(self, other: "NodeName") -> bool:
        """Whether every element of ``other`` is addressed by this name."""
        if self.varname != other.varname or self.ndim != other.ndim:
            return False
        return all(
            start <= other_start and other_stop <= stop
            for (start, stop), (other_start, other_stop) in zip(
                self.index, other.index
            )
        )

    def _check_complete(self) -> None:
        if not self.is_complete:
            raise UnknownNode(f"'{self}' has open dimensions and is only a pattern")


def _format_pair(pair: Optional[tuple[int, int]]) -> str:
    if pair is None:
        return ""
    start, stop = pair
    return str(start) if start == stop else f"{start}:{stop}"


@functools.lru_cache(maxsize=4096)
def _parse(text: str) -> NodeName:
    match = _NAME_PATTERN.match(text)
    if match is None:
        raise UnknownNode(f"Malformed node name: '{text}'")

    varname, inner = match.groups()
    if inner is None:
        return NodeName(varname)

    pairs = []
    for part in inner.split(","):
        if part.strip() == "":
            pairs.append(None)
            continue
        range_match = _RANGE_PATTERN.match(part)
        if range_match is None:
            raise UnknownNode(f"Malformed index '{part.strip()}' in node name '{text}'")
        start = int(range_match.group(1))
        stop = int(range_match.group(2)) if range_match.group(2) is not None else start
        pairs.append((start, stop))

    return NodeName(varname, tuple(pairs))


def to_node_names(nodes: "custom_types.NodesLike") -> list[NodeName]:
    """Normalize one or several node patterns to a list of parsed names.

    :param nodes: A pattern, a parsed name, or an iterable of either
    :type nodes: custom_types.NodesLike

    :returns: Parsed names in the order given
    :rtype: list[NodeName]
    """
    if nodes is None:
        return []
    if isinstance(nodes, NodeName):
        return [nodes]
    if isinstance(nodes, str):
        return [_parse(nodes)]
    return [node if isinstance(node, NodeName) else _parse(node) for node in nodes]


def format_node_names(names: Iterable[NodeName]) -> list[str]:
    """Convert parsed names to their canonical text form."""
    return [str(name) for name in names]
