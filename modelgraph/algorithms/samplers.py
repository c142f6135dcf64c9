# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""Contract for samplers built on modelgraph.

A sampler updates a set of target nodes in place. Between updates, the model
and a saved copy of its state (``mv_saved``, a one-row
:py:class:`~modelgraph.model.model_values.ModelValues` with log-probabilities)
agree. A typical update proposes new target values, recalculates the nodes that
depend on the targets, and then either keeps the new state (copying it into
``mv_saved``) or restores the saved one:

.. code-block:: python

    class RandomWalk(SamplerBase):
        def setup(self, model, mv_saved, target, control=None):
            super().setup(model, mv_saved, target, control)
            self.scale = self.control.get("scale", 1.0)

        def run(self) -> None:
            current = self.model.get_values(self.target)
            proposal = current + self.model.rng.normal(0, self.scale, current.size)
            self.model.set_values(self.target, proposal)
            if self.decide(self.model.calculate_diff(self.calc_nodes)):
                self.accept()
            else:
                self.reject()
"""

from __future__ import annotations

from typing import Any, Optional, TYPE_CHECKING

import numpy as np

from modelgraph.algorithms.specializer import GraphFunction, run_method

if TYPE_CHECKING:
    from modelgraph import custom_types
    from modelgraph.model import model as model_module, model_values


class SamplerBase(GraphFunction):
    """Base class for samplers.

    :param model: Model to sample
    :type model: Model
    :param mv_saved: Saved model state. Must hold the variables of every node
        in ``calc_nodes``, with log-probabilities. Shared, not copied.
    :type mv_saved: ModelValues
    :param target: Nodes updated by the sampler
    :type target: custom_types.NodesLike
    :param control: Sampler-specific settings. Defaults to None.
    :type control: Optional[dict[str, Any]]

    Setup records:

        - ``target``: the target nodes
        - ``calc_nodes``: the target nodes and everything whose value or
          log-probability depends on them, stopping at stochastic nodes
        - ``control``: a copy of the settings
    """

    def setup(
        self,
        model: "model_module.Model",
        mv_saved: "model_values.ModelValues",
        target: "custom_types.NodesLike",
        control: Optional[dict[str, Any]] = None,
    ) -> None:
        self.mv_saved = mv_saved
        self.target = model.expand_node_names(target)
        self.calc_nodes = model.get_dependencies(self.target, stop_at_stochastic=True)
        self.control = dict(control or {})

    def run(self) -> None:
        """Perform one update. Implemented by subclasses."""
        raise NotImplementedError(f"{type(self).__name__} does not define `run`.")

    @run_method
    def reset(self) -> None:
        """Reset adaptive state. Samplers without such state do nothing."""

    def accept(self) -> None:
        """Keep the current model state by saving it into ``mv_saved``."""
        self.mv_saved.copy_from_model(
            self.model, 0, self.calc_nodes, include_log_prob=True
        )

    def reject(self) -> None:
        """Restore the model state saved in ``mv_saved``."""
        self.mv_saved.copy_to_model(
            self.model, 0, self.calc_nodes, include_log_prob=True
        )

    def decide(self, log_ratio: float) -> bool:
        """Metropolis-Hastings acceptance decision.

        :param log_ratio: Log of the acceptance ratio
        :type log_ratio: float

        :returns: True with probability ``min(1, exp(log_ratio))``. Always False
            for a NaN ratio.
        :rtype: bool
        """
        return bool(np.log(self.model.rng.uniform()) < log_ratio)
