# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""Core model components for modelgraph.

This submodule contains the building blocks of model descriptions: constants,
references to other nodes, deterministic transformations and probability
distributions.
"""
