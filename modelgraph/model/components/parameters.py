# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""Probability distributions for stochastic declarations in modelgraph models.

Declaring a node with one of the classes in this module makes it stochastic:
its value is drawn from the distribution by ``simulate`` and its
log-probability is computed by ``calculate``. Parameters of a distribution may
be constants, references to other nodes or deterministic expressions.

Densities and random draws are computed with the corresponding SciPy
distributions. Every family accepts one or more *parametrizations*: a set of
canonical parameters in which the density is computed, plus alternate names
that may replace one canonical parameter each (``Normal`` accepts ``sigma``,
``tau`` or ``var`` for its scale). Whatever parametrization a node is
declared with, every canonical, alternate and derived parameter of its family
can be queried through ``Model.get_param``.

The following distributions are currently supported in modelgraph:

Continuous Univariate
^^^^^^^^^^^^^^^^^^^^^
- :py:class:`~modelgraph.model.components.parameters.Normal`
- :py:class:`~modelgraph.model.components.parameters.HalfNormal`
- :py:class:`~modelgraph.model.components.parameters.LogNormal`
- :py:class:`~modelgraph.model.components.parameters.Beta`
- :py:class:`~modelgraph.model.components.parameters.Gamma`
- :py:class:`~modelgraph.model.components.parameters.InverseGamma`
- :py:class:`~modelgraph.model.components.parameters.Exponential`
- :py:class:`~modelgraph.model.components.parameters.Uniform`

Continuous Multivariate
^^^^^^^^^^^^^^^^^^^^^^^
- :py:class:`~modelgraph.model.components.parameters.Dirichlet`
- :py:class:`~modelgraph.model.components.parameters.MultivariateNormal`

Discrete Univariate
^^^^^^^^^^^^^^^^^^^
- :py:class:`~modelgraph.model.components.parameters.Bernoulli`
- :py:class:`~modelgraph.model.components.parameters.Binomial`
- :py:class:`~modelgraph.model.components.parameters.Poisson`

Discrete Multivariate
^^^^^^^^^^^^^^^^^^^^^
- :py:class:`~modelgraph.model.components.parameters.Multinomial`

Univariate families may be used to declare a block of nodes (``x[1:3]``); the
elements are then independent draws and the block's log-probability is the sum
over its elements.
"""

from __future__ import annotations

from typing import Any, Callable, TYPE_CHECKING

import numpy as np
import numpy.typing as npt

from scipy import stats

from modelgraph.exceptions import InvalidParameterName, ModelDefinitionError
from modelgraph.model.components import abstract_model_component

if TYPE_CHECKING:
    from modelgraph import custom_types

# pylint: disable=too-many-lines, invalid-name


# Conversions between alternate and canonical parameters. These are defined at
# module level to avoid pickling issues with lambda functions.
def _identity(x):
    return x


def _inverse_transform(x):
    """Apply element-wise inverse transformation (1/x)."""
    return 1 / np.asarray(x, dtype=np.float64)


def _exp_transform(x):
    """Apply element-wise exponential transformation."""
    return np.exp(x)


def _precision_to_sd(x):
    return 1 / np.sqrt(x)


def _sd_to_precision(x):
    return 1 / np.square(x)


def _variance_to_sd(x):
    return np.sqrt(x)


def _sd_to_variance(x):
    return np.square(x)


def _matrix_inverse(x):
    return np.linalg.inv(x)


# Derived parameters are functions of a family's canonical parameters, which
# are passed as keyword arguments.
def _location_mean(*, mu, **_):
    return mu


def _probability_mean(*, theta):
    return theta


def _rate_mean(*, beta):
    return _inverse_transform(beta)


def _gamma_mean(*, alpha, beta):
    return np.asarray(alpha) / beta


def _inverse_gamma_mean(*, alpha, beta):
    alpha = np.asarray(alpha, dtype=np.float64)
    with np.errstate(divide="ignore"):
        return np.where(alpha > 1, beta / (alpha - 1.0), np.inf)


def _lognormal_mean(*, mu, sigma):
    return np.exp(mu + np.square(sigma) / 2)


def _beta_mean(*, alpha, beta):
    return np.asarray(alpha) / (np.asarray(alpha) + beta)


def _uniform_mean(*, lower, upper):
    return (np.asarray(lower) + upper) / 2


def _count_mean(*, N, theta):
    return np.multiply(N, theta)


def _dirichlet_mean(*, alpha):
    alpha = np.asarray(alpha, dtype=np.float64)
    return alpha / alpha.sum(axis=-1, keepdims=True)


class Parameter(abstract_model_component.AbstractModelComponent):
    """Base class for all probability distributions in modelgraph models.

    :param kwargs: The distribution's parameters, named according to one of the
        family's accepted parametrizations

    :raises TypeError: If the parameters given do not form an accepted
        parametrization
    :raises ValueError: If a constant parameter violates its constraint

    :cvar SCIPY_DIST: Corresponding SciPy distribution
    :cvar CANONICAL_PARAMS: Names of the parameters the density is computed in
    :cvar ALTERNATE_PARAMS: Alternate names that may replace one canonical
        parameter
    :cvar DERIVED_PARAMS: Additional queryable parameters
    :cvar SCIPY_NAMES: Canonical parameter name mapping for the SciPy interface
    :cvar SCIPY_TRANSFORMS: Functions converting canonical parameters to SciPy's
        parametrization
    :cvar BASE_DTYPE: Element type of values drawn from the distribution
    :cvar IS_MULTIVARIATE: Whether a single draw is a vector
    """

    SCIPY_DIST: Any = None
    """The SciPy distribution used for densities and random draws."""

    CANONICAL_PARAMS: tuple[str, ...] = ()
    """Parameters in which the density is computed, in display order."""

    ALTERNATE_PARAMS: dict[str, tuple[str, Callable, Callable]] = {}
    """
    Alternate parameter names accepted at declaration. Each maps to the
    canonical parameter it replaces, a function converting the alternate's value
    to the canonical one, and the inverse of that function.
    """

    DERIVED_PARAMS: dict[str, Callable] = {}
    """
    Parameters that can be queried but not declared. Each maps to a function
    called with the canonical parameters as keywords.
    """

    SCIPY_NAMES: dict[str, str] = {}
    """Mapping from canonical parameter names to SciPy keyword names."""

    SCIPY_TRANSFORMS: dict[str, Callable] = {}
    """
    Some distributions are parametrized differently here and in SciPy. This
    dictionary provides transformation functions to convert canonical
    parameters to SciPy's parametrization.
    """

    BASE_DTYPE: str = "real"
    """Element type of values drawn from the distribution."""

    IS_MULTIVARIATE: bool = False
    """Whether the distribution is over vectors rather than scalars."""

    def __init__(self, **kwargs: "custom_types.CombinableParameterType"):
        """Initialize the distribution after checking its parametrization."""
        # Check for parameters that no parametrization accepts
        if unexpected := set(kwargs) - self.accepted_params():
            raise TypeError(
                f"Unexpected parameters {sorted(unexpected)} for "
                f"{self.__class__.__name__}. Accepted parameters are "
                f"{sorted(self.accepted_params())}."
            )

        # Every canonical parameter must be given exactly once, either directly
        # or through one of its alternates
        for canonical in self.CANONICAL_PARAMS:
            options = [canonical] + [
                alt
                for alt, (target, *_) in self.ALTERNATE_PARAMS.items()
                if target == canonical
            ]
            given = [name for name in options if name in kwargs]
            if len(given) == 0:
                raise TypeError(f"{self.__class__.__name__} requires one of {options}.")
            if len(given) > 1:
                raise TypeError(
                    f"Parameters {given} of {self.__class__.__name__} are mutually "
                    "exclusive."
                )

        super().__init__(**kwargs)

        # Nested distributions have no value to pass on
        for name, parent in self._parents.items():
            if isinstance(parent, Parameter):
                raise ModelDefinitionError(
                    f"Parameter '{name}' of {self.__class__.__name__} is itself a "
                    "distribution. Declare it as a separate node and reference it."
                )

    @classmethod
    def accepted_params(cls) -> set[str]:
        """Names that may appear in a declaration of this family."""
        return set(cls.CANONICAL_PARAMS) | set(cls.ALTERNATE_PARAMS)

    @classmethod
    def queryable_params(cls) -> set[str]:
        """Names accepted by :py:meth:`get_param`."""
        return cls.accepted_params() | set(cls.DERIVED_PARAMS)

    def evaluate(self, reader):
        """Distributions have no single value and cannot be nested in expressions.

        :raises ModelDefinitionError: Always
        """
        raise ModelDefinitionError(
            f"{self.__class__.__name__} can only appear as the top-level right-hand "
            "side of a declaration."
        )

    def canonical_values(
        self, declared: dict[str, "custom_types.SampleType"]
    ) -> dict[str, "custom_types.SampleType"]:
        """Convert declared parameter values to the canonical parametrization.

        :param declared: Current values of the declared parameters
        :type declared: dict[str, custom_types.SampleType]

        :returns: Values of the canonical parameters, in canonical order
        :rtype: dict[str, custom_types.SampleType]
        """
        canonical = {}
        for name, value in declared.items():
            if name in self.ALTERNATE_PARAMS:
                target, to_canonical, _ = self.ALTERNATE_PARAMS[name]
                canonical[target] = to_canonical(value)
            else:
                canonical[name] = value
        return {name: canonical[name] for name in self.CANONICAL_PARAMS}

    def get_param(
        self, name: str, declared: dict[str, "custom_types.SampleType"]
    ) -> "custom_types.SampleType":
        """Get a parameter of the distribution, whatever the declaration used.

        :param name: Canonical, alternate or derived parameter name
        :type name: str
        :param declared: Current values of the declared parameters
        :type declared: dict[str, custom_types.SampleType]

        :returns: Value of the parameter
        :rtype: custom_types.SampleType

        :raises InvalidParameterName: If the family has no such parameter
        """
        if name not in self.queryable_params():
            raise InvalidParameterName(
                f"{self.__class__.__name__} has no parameter '{name}'. Valid "
                f"parameters are {sorted(self.queryable_params())}."
            )

        # Declared values are returned as given
        if name in declared:
            return declared[name]

        canonical = self.canonical_values(declared)
        if name in canonical:
            return canonical[name]
        if name in self.DERIVED_PARAMS:
            return self.DERIVED_PARAMS[name](**canonical)

        # An alternate that was not declared is computed from its canonical form
        target, _, from_canonical = self.ALTERNATE_PARAMS[name]
        return from_canonical(canonical[target])

    def scipy_kwargs(
        self, canonical: dict[str, "custom_types.SampleType"]
    ) -> dict[str, "custom_types.SampleType"]:
        """Transform and rename canonical parameters for the SciPy interface."""
        return {
            self.SCIPY_NAMES[name]: self.SCIPY_TRANSFORMS.get(name, _identity)(value)
            for name, value in canonical.items()
        }

    def log_density(
        self,
        value: "custom_types.SampleType",
        declared: dict[str, "custom_types.SampleType"],
    ) -> float:
        """Log-density (or log-mass) of a value, summed over its elements.

        :param value: Value of the node
        :type value: custom_types.SampleType
        :param declared: Current values of the declared parameters
        :type declared: dict[str, custom_types.SampleType]

        :returns: Total log-probability. ``-inf`` outside of the support, NaN if
            the parameters are invalid.
        :rtype: float
        """
        kwargs = self.scipy_kwargs(self.canonical_values(declared))
        with np.errstate(all="ignore"):
            if isinstance(self.SCIPY_DIST, stats.rv_discrete):
                logp = self.SCIPY_DIST.logpmf(value, **kwargs)
            else:
                logp = self.SCIPY_DIST.logpdf(value, **kwargs)
        return float(np.sum(logp))

    def sample(
        self,
        declared: dict[str, "custom_types.SampleType"],
        shape: tuple[int, ...],
        rng: np.random.Generator,
    ) -> npt.NDArray:
        """Draw a value from the distribution.

        :param declared: Current values of the declared parameters
        :type declared: dict[str, custom_types.SampleType]
        :param shape: Shape of the node being simulated
        :type shape: tuple[int, ...]
        :param rng: Random number generator to draw with
        :type rng: np.random.Generator

        :returns: A draw with the node's shape
        :rtype: npt.NDArray
        """
        kwargs = self.scipy_kwargs(self.canonical_values(declared))
        draws = self.SCIPY_DIST.rvs(
            **kwargs, size=shape if shape else None, random_state=rng
        )
        return np.reshape(np.asarray(draws, dtype=np.float64), shape)


class ContinuousDistribution(Parameter):
    """Base class for distributions with continuous sample spaces."""


class DiscreteDistribution(Parameter):
    """Base class for distributions with discrete sample spaces.

    Variables with a node declared from a discrete distribution are
    integer-typed.

    :cvar BASE_DTYPE: Element type for discrete variables ("int")
    :cvar LOWER_BOUND: Default lower bound for discrete values (0)
    """

    BASE_DTYPE: str = "int"
    LOWER_BOUND: "custom_types.Integer" = 0


class Normal(ContinuousDistribution):
    r"""Normal (Gaussian) distribution.

    :param mu: Location parameter (mean)
    :type mu: custom_types.CombinableParameterType
    :param sigma: Scale parameter (standard deviation). Exclusive with ``tau``
        and ``var``.
    :type sigma: custom_types.CombinableParameterType
    :param tau: Precision, :math:`1 / \sigma^2`
    :type tau: custom_types.CombinableParameterType
    :param var: Variance, :math:`\sigma^2`
    :type var: custom_types.CombinableParameterType

    Mathematical Definition:
        .. math::
            P(x | \mu, \sigma) = \frac{1}{\sigma\sqrt{2\pi}} *
            \exp\left(-\frac{((x-\mu)/\sigma)^2}{2}\right)

    Example:
        >>> code["y"] = Normal(mu=mg.ref("mu"), tau=4.0)
        >>> model.get_param("y", "sigma")  # 0.5
    """

    POSITIVE_PARAMS = {"sigma", "tau", "var"}
    SCIPY_DIST = stats.norm
    CANONICAL_PARAMS = ("mu", "sigma")
    ALTERNATE_PARAMS = {
        "tau": ("sigma", _precision_to_sd, _sd_to_precision),
        "var": ("sigma", _variance_to_sd, _sd_to_variance),
    }
    DERIVED_PARAMS = {"mean": _location_mean}
    SCIPY_NAMES = {"mu": "loc", "sigma": "scale"}


class HalfNormal(ContinuousDistribution):
    r"""Half-normal distribution, the absolute value of a zero-mean normal.

    :param sigma: Scale parameter. Exclusive with ``tau`` and ``var``.
    :type sigma: custom_types.CombinableParameterType

    Support: :math:`[0, \infty)`
    """

    POSITIVE_PARAMS = {"sigma", "tau", "var"}
    LOWER_BOUND: "custom_types.Float" = 0.0
    SCIPY_DIST = stats.halfnorm
    CANONICAL_PARAMS = ("sigma",)
    ALTERNATE_PARAMS = {
        "tau": ("sigma", _precision_to_sd, _sd_to_precision),
        "var": ("sigma", _variance_to_sd, _sd_to_variance),
    }
    SCIPY_NAMES = {"sigma": "scale"}


class LogNormal(ContinuousDistribution):
    r"""Log-normal distribution.

    :param mu: Mean of the logarithm
    :type mu: custom_types.CombinableParameterType
    :param sigma: Standard deviation of the logarithm. Exclusive with ``tau``.
    :type sigma: custom_types.CombinableParameterType

    Mathematical Definition:
        .. math::
            \log X \sim \text{Normal}(\mu, \sigma)

    The mean of the distribution itself is available as the derived parameter
    ``mean``.
    """

    POSITIVE_PARAMS = {"sigma", "tau"}
    LOWER_BOUND: "custom_types.Float" = 0.0
    SCIPY_DIST = stats.lognorm
    CANONICAL_PARAMS = ("mu", "sigma")
    ALTERNATE_PARAMS = {"tau": ("sigma", _precision_to_sd, _sd_to_precision)}
    DERIVED_PARAMS = {"mean": _lognormal_mean}
    SCIPY_NAMES = {"mu": "scale", "sigma": "s"}
    SCIPY_TRANSFORMS = {"mu": _exp_transform}


class Beta(ContinuousDistribution):
    r"""Beta distribution.

    :param alpha: First shape parameter
    :type alpha: custom_types.CombinableParameterType
    :param beta: Second shape parameter
    :type beta: custom_types.CombinableParameterType

    Support: :math:`[0, 1]`. Derived parameter: ``mean``.
    """

    POSITIVE_PARAMS = {"alpha", "beta"}
    LOWER_BOUND: "custom_types.Float" = 0.0
    UPPER_BOUND: "custom_types.Float" = 1.0
    SCIPY_DIST = stats.beta
    CANONICAL_PARAMS = ("alpha", "beta")
    DERIVED_PARAMS = {"mean": _beta_mean}
    SCIPY_NAMES = {"alpha": "a", "beta": "b"}


class Gamma(ContinuousDistribution):
    r"""Gamma distribution with shape and rate.

    :param alpha: Shape parameter
    :type alpha: custom_types.CombinableParameterType
    :param beta: Rate parameter. Exclusive with ``scale``.
    :type beta: custom_types.CombinableParameterType
    :param scale: Scale parameter, :math:`1 / \beta`
    :type scale: custom_types.CombinableParameterType

    Derived parameter: ``mean`` (:math:`\alpha / \beta`).
    """

    POSITIVE_PARAMS = {"alpha", "beta", "scale"}
    LOWER_BOUND: "custom_types.Float" = 0.0
    SCIPY_DIST = stats.gamma
    CANONICAL_PARAMS = ("alpha", "beta")
    ALTERNATE_PARAMS = {"scale": ("beta", _inverse_transform, _inverse_transform)}
    DERIVED_PARAMS = {"mean": _gamma_mean}
    SCIPY_NAMES = {"alpha": "a", "beta": "scale"}
    SCIPY_TRANSFORMS = {"beta": _inverse_transform}


class InverseGamma(ContinuousDistribution):
    r"""Inverse-gamma distribution with shape and scale.

    :param alpha: Shape parameter
    :type alpha: custom_types.CombinableParameterType
    :param beta: Scale parameter. Exclusive with ``rate``.
    :type beta: custom_types.CombinableParameterType
    :param rate: Rate parameter, :math:`1 / \beta`
    :type rate: custom_types.CombinableParameterType

    Derived parameter: ``mean`` (:math:`\beta / (\alpha - 1)` for
    :math:`\alpha > 1`, infinite otherwise).
    """

    POSITIVE_PARAMS = {"alpha", "beta", "rate"}
    LOWER_BOUND: "custom_types.Float" = 0.0
    SCIPY_DIST = stats.invgamma
    CANONICAL_PARAMS = ("alpha", "beta")
    ALTERNATE_PARAMS = {"rate": ("beta", _inverse_transform, _inverse_transform)}
    DERIVED_PARAMS = {"mean": _inverse_gamma_mean}
    SCIPY_NAMES = {"alpha": "a", "beta": "scale"}


class Exponential(ContinuousDistribution):
    r"""Exponential distribution with rate ``beta``.

    :param beta: Rate parameter. Exclusive with ``scale``.
    :type beta: custom_types.CombinableParameterType
    :param scale: Scale parameter (the mean), :math:`1 / \beta`
    :type scale: custom_types.CombinableParameterType
    """

    POSITIVE_PARAMS = {"beta", "scale"}
    LOWER_BOUND: "custom_types.Float" = 0.0
    SCIPY_DIST = stats.expon
    CANONICAL_PARAMS = ("beta",)
    ALTERNATE_PARAMS = {"scale": ("beta", _inverse_transform, _inverse_transform)}
    DERIVED_PARAMS = {"mean": _rate_mean}
    SCIPY_NAMES = {"beta": "scale"}
    SCIPY_TRANSFORMS = {"beta": _inverse_transform}


class Uniform(ContinuousDistribution):
    """Continuous uniform distribution on ``[lower, upper]``.

    :param lower: Lower end of the support
    :type lower: custom_types.CombinableParameterType
    :param upper: Upper end of the support
    :type upper: custom_types.CombinableParameterType
    """

    SCIPY_DIST = stats.uniform
    CANONICAL_PARAMS = ("lower", "upper")
    DERIVED_PARAMS = {"mean": _uniform_mean}

    def scipy_kwargs(self, canonical):
        # SciPy parametrizes by location and width
        return {
            "loc": canonical["lower"],
            "scale": np.subtract(canonical["upper"], canonical["lower"]),
        }


class Bernoulli(DiscreteDistribution):
    """Bernoulli distribution.

    :param theta: Success probability
    :type theta: custom_types.CombinableParameterType
    """

    PROBABILITY_PARAMS = {"theta"}
    UPPER_BOUND: "custom_types.Integer" = 1
    SCIPY_DIST = stats.bernoulli
    CANONICAL_PARAMS = ("theta",)
    DERIVED_PARAMS = {"mean": _probability_mean}
    SCIPY_NAMES = {"theta": "p"}


class Binomial(DiscreteDistribution):
    """Binomial distribution.

    :param N: Number of trials
    :type N: custom_types.CombinableParameterType
    :param theta: Success probability
    :type theta: custom_types.CombinableParameterType
    """

    POSITIVE_PARAMS = {"N"}
    PROBABILITY_PARAMS = {"theta"}
    SCIPY_DIST = stats.binom
    CANONICAL_PARAMS = ("N", "theta")
    DERIVED_PARAMS = {"mean": _count_mean}
    SCIPY_NAMES = {"N": "n", "theta": "p"}


class Poisson(DiscreteDistribution):
    r"""Poisson distribution.

    :param lambda_: Rate parameter. Named with a trailing underscore because
        ``lambda`` is a Python keyword.
    :type lambda_: custom_types.CombinableParameterType
    """

    POSITIVE_PARAMS = {"lambda_"}
    SCIPY_DIST = stats.poisson
    CANONICAL_PARAMS = ("lambda_",)
    SCIPY_NAMES = {"lambda_": "mu"}


class MultivariateParameter(Parameter):
    """Base class for distributions over vectors.

    A node declared from a multivariate distribution must be a vector block
    (``x[1:k]``) or a whole vector variable. A single draw fills the node.
    Subclasses implement ``_logp`` and ``_rvs`` against SciPy's multivariate
    interface.
    """

    IS_MULTIVARIATE = True

    def _logp(self, value, kwargs):
        raise NotImplementedError

    def _rvs(self, kwargs, rng):
        raise NotImplementedError

    def log_density(self, value, declared) -> float:
        kwargs = self.scipy_kwargs(self.canonical_values(declared))
        with np.errstate(all="ignore"):
            return float(self._logp(np.asarray(value, dtype=np.float64), kwargs))

    def sample(self, declared, shape, rng) -> npt.NDArray:
        kwargs = self.scipy_kwargs(self.canonical_values(declared))
        return np.reshape(np.asarray(self._rvs(kwargs, rng), dtype=np.float64), shape)


class Dirichlet(MultivariateParameter, ContinuousDistribution):
    r"""Dirichlet distribution over simplexes.

    :param alpha: Concentration parameters, one per element
    :type alpha: custom_types.CombinableParameterType

    Support: vectors with non-negative elements that sum to one. Values off the
    simplex have a log-density of ``-inf``.
    """

    POSITIVE_PARAMS = {"alpha"}
    LOWER_BOUND: "custom_types.Float" = 0.0
    UPPER_BOUND: "custom_types.Float" = 1.0
    SCIPY_DIST = stats.dirichlet
    CANONICAL_PARAMS = ("alpha",)
    DERIVED_PARAMS = {"mean": _dirichlet_mean}
    SCIPY_NAMES = {"alpha": "alpha"}

    def _logp(self, value, kwargs):
        alpha = np.asarray(kwargs["alpha"], dtype=np.float64)
        if not np.all(np.isfinite(alpha) & (alpha > 0)):
            return np.nan
        try:
            return stats.dirichlet.logpdf(value, alpha)
        except ValueError:
            # Off the simplex
            return -np.inf

    def _rvs(self, kwargs, rng):
        return stats.dirichlet.rvs(kwargs["alpha"], size=1, random_state=rng)[0]


class MultivariateNormal(MultivariateParameter, ContinuousDistribution):
    r"""Multivariate normal distribution.

    :param mu: Mean vector
    :type mu: custom_types.CombinableParameterType
    :param cov: Covariance matrix. Exclusive with ``prec``.
    :type cov: custom_types.CombinableParameterType
    :param prec: Precision matrix, the inverse of the covariance
    :type prec: custom_types.CombinableParameterType
    """

    SCIPY_DIST = stats.multivariate_normal
    CANONICAL_PARAMS = ("mu", "cov")
    ALTERNATE_PARAMS = {"prec": ("cov", _matrix_inverse, _matrix_inverse)}
    DERIVED_PARAMS = {"mean": _location_mean}
    SCIPY_NAMES = {"mu": "mean", "cov": "cov"}

    def _logp(self, value, kwargs):
        try:
            return stats.multivariate_normal.logpdf(value, **kwargs)
        except (ValueError, np.linalg.LinAlgError):
            # Not a valid covariance matrix
            return np.nan

    def _rvs(self, kwargs, rng):
        return stats.multivariate_normal.rvs(**kwargs, size=1, random_state=rng)


class Multinomial(MultivariateParameter, DiscreteDistribution):
    """Multinomial distribution.

    :param N: Number of trials
    :type N: custom_types.CombinableParameterType
    :param theta: Category probabilities (a simplex)
    :type theta: custom_types.CombinableParameterType
    """

    POSITIVE_PARAMS = {"N"}
    SIMPLEX_PARAMS = {"theta"}
    SCIPY_DIST = stats.multinomial
    CANONICAL_PARAMS = ("N", "theta")
    DERIVED_PARAMS = {"mean": _count_mean}
    SCIPY_NAMES = {"N": "n", "theta": "p"}

    def scipy_kwargs(self, canonical):
        return {
            "n": np.asarray(canonical["N"], dtype=np.float64),
            "p": np.asarray(canonical["theta"], dtype=np.float64),
        }

    @staticmethod
    def _trials(n) -> int | None:
        """The number of trials as an integer, or None if it is not a finite,
        non-negative whole number."""
        if n.size != 1 or not np.isfinite(n).all() or n.item() < 0:
            return None
        if n.item() != np.rint(n.item()):
            return None
        return int(n.item())

    def _logp(self, value, kwargs):
        if (n := self._trials(kwargs["n"])) is None:
            return np.nan
        return stats.multinomial.logpmf(value, n=n, p=kwargs["p"])

    def _rvs(self, kwargs, rng):
        if (n := self._trials(kwargs["n"])) is None:
            raise ValueError(
                "Multinomial number of trials must be a non-negative integer, "
                f"got {kwargs['n']}."
            )
        return stats.multinomial.rvs(n=n, p=kwargs["p"], size=1, random_state=rng)[0]
