"""
Protocol definition for spatial surface models.

A surface model fits a smooth trend `value ~ f(x, y)` over the colonies of
one plate and returns a fitted surface that can be evaluated at any
position, including positions whose own measurement was excluded.
Strategies are interchangeable; the spatial-effect stage only talks to
this interface.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List, Tuple
import logging

import numpy as np

from ..config import FitMethod
from ..errors import ConfigurationError, NormalizationError

logger = logging.getLogger(__name__)


def polynomial_terms(degree: int) -> List[Tuple[int, int]]:
    """
    Exponent pairs (i, j) of x**i * y**j with i + j <= degree.

    Example:
        >>> polynomial_terms(2)
        [(0, 0), (1, 0), (0, 1), (2, 0), (1, 1), (0, 2)]
    """
    terms = []
    for total in range(degree + 1):
        for j in range(total + 1):
            terms.append((total - j, j))
    return terms


def polynomial_design(x: np.ndarray, y: np.ndarray, degree: int) -> np.ndarray:
    """Design matrix of a full bivariate polynomial, intercept first."""
    x = np.asarray(x, dtype=float)
    y = np.asarray(y, dtype=float)
    return np.column_stack([x ** i * y ** j for i, j in polynomial_terms(degree)])


class FittedSurface(ABC):
    """A fitted trend surface that can be evaluated at any position."""

    @abstractmethod
    def predict(self, x, y) -> np.ndarray:
        """
        Evaluate the surface.

        Parameters
        ----------
        x : array_like
            Column positions.
        y : array_like
            Row positions (same length as x).

        Returns
        -------
        np.ndarray
            Predicted values, one per position.
        """
        pass

    def __call__(self, x, y) -> np.ndarray:
        return self.predict(x, y)


@dataclass
class FlatSurface(FittedSurface):
    """Constant surface, used when every observed value is identical."""
    level: float

    def predict(self, x, y) -> np.ndarray:
        return np.full(np.shape(np.asarray(x, dtype=float)), self.level, dtype=float)


class SurfaceModel(ABC):
    """
    Abstract base class for surface-fitting strategies.

    Subclasses should:
    1. Set the `method` class attribute
    2. Implement _fit() for finite, non-constant data
    3. Tighten validation in __init__ when needed
    """

    method: FitMethod

    def __init__(self, degree: int = 2):
        if isinstance(degree, bool) or not isinstance(degree, int) or degree < 1:
            raise ConfigurationError(f"degree must be a positive integer, got {degree!r}")
        self.degree = degree

    @property
    def n_terms(self) -> int:
        """Number of polynomial coefficients."""
        return (self.degree + 1) * (self.degree + 2) // 2

    @property
    def min_points(self) -> int:
        """Fewest usable observations a fit needs."""
        return self.n_terms

    def fit(self, x, y, value) -> FittedSurface:
        """
        Fit the surface to observations.

        Non-finite observations are dropped before fitting.

        Parameters
        ----------
        x, y : array_like
            Colony positions.
        value : array_like
            Measured sizes; NaN marks excluded colonies.

        Returns
        -------
        FittedSurface
            Surface that can be evaluated at any position.

        Raises
        ------
        NormalizationError
            Too few usable observations, or positions that cannot support
            a surface of this degree.
        """
        x = np.asarray(x, dtype=float)
        y = np.asarray(y, dtype=float)
        value = np.asarray(value, dtype=float)
        if not (x.shape == y.shape == value.shape):
            raise ValueError("x, y and value must have the same length")

        usable = np.isfinite(x) & np.isfinite(y) & np.isfinite(value)
        n_usable = int(usable.sum())
        if n_usable < self.min_points:
            raise NormalizationError(
                f"degenerate surface fit: {n_usable} usable colonies, "
                f"need at least {self.min_points}"
            )

        x, y, value = x[usable], y[usable], value[usable]

        if np.ptp(value) == 0:
            return FlatSurface(level=float(value[0]))

        design = polynomial_design(_standardize(x), _standardize(y), self.degree)
        if np.linalg.matrix_rank(design) < self.n_terms:
            raise NormalizationError(
                f"degenerate surface fit: colony positions cannot support "
                f"a degree-{self.degree} surface"
            )

        return self._fit(x, y, value)

    @abstractmethod
    def _fit(self, x: np.ndarray, y: np.ndarray, value: np.ndarray) -> FittedSurface:
        """Fit finite, non-constant observations."""
        pass

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(degree={self.degree})"


def _standardize(values: np.ndarray) -> np.ndarray:
    spread = values.std()
    return (values - values.mean()) / (spread if spread > 0 else 1.0)
