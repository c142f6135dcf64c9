# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""Transformation components for deterministic expressions in modelgraph models.

This submodule provides the operations that make up the right-hand sides of
deterministic declarations. Transformations compose through operator
overloading and the functions of :py:mod:`modelgraph.operations`.
"""
