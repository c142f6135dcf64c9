# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.


"""Default configuration values for modelgraph components.

This module centralizes default values used across the package, including
model naming, diagnostic behavior, value-store sizing and the naming of
dimensions when exporting stored rows.

Default values cannot be programmatically altered; every consumer accepts an
explicit argument that overrides the default. This documentation serves as a
reference for the standard configuration.
"""

import string

# Model defaults
DEFAULT_MODEL_NAME: str = "model"
"""Default name given to a compiled model.

:type: str
"""

DEFAULT_WARN_STALE: bool = True
"""Default setting for stale-dependency diagnostics.

When True, reading a value or log-probability that has not been recalculated
since an upstream change issues a
:py:class:`~modelgraph.exceptions.StaleDependencyWarning`.

:type: bool
"""

# Node naming
INDEX_BASE: int = 1
"""Index of the first element of a variable in node names.

Node names follow the usual modeling-language convention of 1-based,
inclusive index ranges: ``x[1:3]`` names the first three elements of ``x``.

:type: int
"""

# Value-store defaults
DEFAULT_MODEL_VALUES_SIZE: int = 1
"""Default number of rows allocated for a new value store.

:type: int
"""

DEFAULT_ROW_DIM_NAME: str = "row"
"""Name of the row dimension when a value store is exported to xarray.

:type: str
"""

DEFAULT_DIM_NAMES: tuple[str, ...] = tuple(
    l for l in string.ascii_lowercase if l not in ("r", "n")
)
"""Default names for variable dimensions when exporting to xarray.

Generated from lowercase ASCII letters, excluding 'r' (reserved for rows) and
'n' (reserved for sample counts). The dimension name is suffixed with the
variable name so that variables with different shapes never collide.

:type: tuple[str, ...]
"""

# Algorithm defaults
DEFAULT_SHOW_PROGRESS: bool = False
"""Default setting for progress bars in the built-in many-row algorithms.

:type: bool
"""
