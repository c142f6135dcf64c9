# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""Two-stage specialization of algorithm code to a model.

Algorithms in modelgraph are written as :py:class:`GraphFunction` subclasses
and run in two phases:

    1. **Setup** runs once, when the object is created with a model. It is
       ordinary, unrestricted Python: it queries the model's structure and
       records whatever the algorithm needs (ordered node lists, value stores,
       tuning constants) as attributes.
    2. **Run** is the repeated, fixed-signature part. When setup returns, every
       attribute it created is frozen: lists become tuples and rebinding an
       attribute raises :py:class:`~modelgraph.exceptions.SpecializationError`
       unless its name is listed in ``MUTABLE``. New attributes cannot be
       created after setup either, except those named in ``MUTABLE``. The
       ``run`` method, and any method decorated with :py:func:`run_method`,
       become entry points whose arguments and return values are checked
       against their annotations on every call.

.. code-block:: python

    class Gibbsish(GraphFunction):
        MUTABLE = ("n_calls",)

        def setup(self, model, target):
            self.target = model.expand_node_names(target)
            self.calc_nodes = model.get_dependencies(target)
            self.n_calls = 0

        def run(self, value: float) -> float:
            self.n_calls += 1
            self.model.set_values(self.target, [value])
            return self.model.calculate(self.calc_nodes)

    specialized = Gibbsish(model, "mu")
    specialized(1.5)

The same kind of class can be generated from plain functions with
:py:func:`graph_function`.
"""

from __future__ import annotations

import functools
import inspect
import typing

from typing import Any, Callable, Optional, TYPE_CHECKING

from typeguard import check_type

from modelgraph.exceptions import SpecializationError

if TYPE_CHECKING:
    from modelgraph.model import model as model_module

_SETUP_PHASE = "setup"
_RUN_PHASE = "run"
_INTERNAL_ATTRIBUTES = frozenset({"_phase", "_frozen"})


def run_method(func: Callable) -> Callable:
    """Mark a method as an additional run-phase entry point.

    :param func: Method to mark
    :type func: Callable

    :returns: The same method, marked
    :rtype: Callable
    """
    func.__run_method__ = True
    return func


def _entry_point(func: Callable) -> Callable:
    """Wrap a method so that it only runs after setup and checks its types."""
    signature = inspect.signature(func)
    hints = {}

    @functools.wraps(func)
    def wrapper(self, *args, **kwargs):

        # Entry points belong to the run phase
        if getattr(self, "_phase", None) != _RUN_PHASE:
            raise SpecializationError(
                f"'{func.__name__}' of {type(self).__name__} was called before "
                "setup completed."
            )

        # Annotations are resolved on first use, once everything is importable
        if not hints:
            hints.update(typing.get_type_hints(func))
            hints.setdefault("return", Any)

        # Check the arguments
        for name, value in signature.bind(self, *args, **kwargs).arguments.items():
            if name in hints and signature.parameters[name].kind not in (
                inspect.Parameter.VAR_POSITIONAL,
                inspect.Parameter.VAR_KEYWORD,
            ):
                check_type(value, hints[name])

        # Run and check the result
        result = func(self, *args, **kwargs)
        check_type(result, hints["return"])
        return result

    wrapper.__entry_point__ = True
    return wrapper


class GraphFunction:
    """Base class for algorithms specialized to a model.

    :param model: The model to specialize to. Stored as ``self.model``.
    :type model: Model
    :param args: Passed on to :py:meth:`setup`
    :param kwargs: Passed on to :py:meth:`setup`

    :cvar MUTABLE: Names of setup attributes that may be rebound during the run
        phase

    :raises SpecializationError: If an entry point is called before setup
        completes, or a frozen attribute is rebound
    """

    MUTABLE: tuple[str, ...] = ()
    """Names of setup attributes that may be rebound during the run phase."""

    _ENTRY_POINT_NAMES: tuple[str, ...] = ("run",)

    def __init_subclass__(cls, **kwargs):
        super().__init_subclass__(**kwargs)

        # Wrap the entry points defined by this class
        names = list(cls._ENTRY_POINT_NAMES)
        for name, value in list(vars(cls).items()):
            if not callable(value) or getattr(value, "__entry_point__", False):
                continue
            if name == "run" or getattr(value, "__run_method__", False):
                setattr(cls, name, _entry_point(value))
                names.append(name)

        cls._ENTRY_POINT_NAMES = tuple(dict.fromkeys(names))

    def __init__(self, model: "model_module.Model", *args, **kwargs):
        object.__setattr__(self, "_phase", _SETUP_PHASE)
        object.__setattr__(self, "_frozen", frozenset())

        # Setup
        self.model = model
        self.setup(model, *args, **kwargs)

        # Freeze everything setup created
        frozen = []
        for name, value in list(vars(self).items()):
            if name in _INTERNAL_ATTRIBUTES or name in self.MUTABLE:
                continue
            if isinstance(value, list):
                object.__setattr__(self, name, tuple(value))
            frozen.append(name)

        object.__setattr__(self, "_frozen", frozenset(frozen))
        object.__setattr__(self, "_phase", _RUN_PHASE)

    def setup(self, model: "model_module.Model", *args, **kwargs) -> None:
        """Record what the run phase needs. Overridden by subclasses."""

    def run(self, *args, **kwargs):
        """The main run-phase entry point. Overridden by subclasses."""
        raise NotImplementedError(f"{type(self).__name__} does not define `run`.")

    def __setattr__(self, name: str, value: Any) -> None:
        """Block rebinding of frozen setup attributes, and the creation of new
        attributes, during the run phase.

        :raises SpecializationError: If the attribute is frozen, or is new and the
            object is in the run phase
        """
        if name in _INTERNAL_ATTRIBUTES or name in getattr(self, "_frozen", ()):
            raise SpecializationError(
                f"'{name}' of {type(self).__name__} was fixed during setup and "
                "cannot be rebound. List it in MUTABLE to allow rebinding."
            )
        if getattr(self, "_phase", None) == _RUN_PHASE and name not in self.MUTABLE:
            raise SpecializationError(
                f"'{name}' was not created during setup of {type(self).__name__}. "
                "Run-phase code may only bind attributes listed in MUTABLE."
            )
        super().__setattr__(name, value)

    @property
    def phase(self) -> str:
        """Either ``"setup"`` or ``"run"``."""
        return self._phase

    @property
    def entry_points(self) -> dict[str, Callable]:
        """Run-phase entry points, bound to this object."""
        return {name: getattr(self, name) for name in self._ENTRY_POINT_NAMES}

    def __call__(self, *args, **kwargs):
        """Call :py:meth:`run`."""
        return self.run(*args, **kwargs)

    def __str__(self) -> str:
        return (
            f"{type(self).__name__}(model='{self.model.name}', "
            f"entry_points={list(self._ENTRY_POINT_NAMES)})"
        )


# The base run method is an entry point too
GraphFunction.run = _entry_point(GraphFunction.run)


def graph_function(
    setup: Optional[Callable] = None,
    run: Optional[Callable] = None,
    methods: Optional[dict[str, Callable]] = None,
    mutable: tuple[str, ...] = (),
    name: Optional[str] = None,
) -> type[GraphFunction]:
    """Build a :py:class:`GraphFunction` subclass from plain functions.

    :param setup: Setup function, called as ``setup(self, model, *args,
        **kwargs)``. Defaults to None (no setup).
    :type setup: Optional[Callable]
    :param run: Run function, called as ``run(self, ...)``. Defaults to None.
    :type run: Optional[Callable]
    :param methods: Additional run-phase entry points. Defaults to None.
    :type methods: Optional[dict[str, Callable]]
    :param mutable: Setup attributes that may be rebound during the run phase.
        Defaults to ().
    :type mutable: tuple[str, ...]
    :param name: Name of the generated class. Defaults to the name of ``run``.
    :type name: Optional[str]

    :returns: The generator: calling it with a model performs setup and returns
        the specialized object
    :rtype: type[GraphFunction]

    Example:
        >>> def setup(self, model, nodes):
        ...     self.nodes = model.get_dependencies(nodes)
        >>> def run(self) -> float:
        ...     return self.model.calculate(self.nodes)
        >>> calc_mu = mg.algorithms.graph_function(setup=setup, run=run)
        >>> calc_mu(model, "mu")()
    """
    namespace: dict[str, Any] = {"MUTABLE": tuple(mutable)}
    if setup is not None:
        namespace["setup"] = setup
    if run is not None:
        namespace["run"] = run
    for method_name, method in (methods or {}).items():
        namespace[method_name] = run_method(method)

    class_name = name or getattr(run, "__name__", "graph_function")
    return type(class_name, (GraphFunction,), namespace)
