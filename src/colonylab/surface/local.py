"""
Local polynomial regression surface (loess).

For every evaluation point the surface is a weighted least-squares
polynomial fitted to the nearest floor(span * n) observations, with tricube
weights on the distance to the point:

    w_i = (1 - (d_i / d_max) ** 3) ** 3,   d_i < d_max

Distances are plain Euclidean distances on the colony grid. Row and column
positions already share one integer scale, so the coordinates are not
normalized. With span > 1 every observation is used and d_max is inflated
by span ** (1/2). Each point is evaluated directly (no interpolation
grid), so positions outside the observed hull are extrapolated.
"""

from dataclasses import dataclass
import logging

import numpy as np
from scipy.spatial import cKDTree

from ..config import FitMethod
from ..errors import ConfigurationError
from .protocol import FittedSurface, SurfaceModel, polynomial_design

logger = logging.getLogger(__name__)


def tricube(u: np.ndarray) -> np.ndarray:
    """Tricube kernel, zero for |u| >= 1."""
    u = np.clip(np.abs(u), 0.0, 1.0)
    return (1.0 - u ** 3) ** 3


@dataclass
class LocalSurface(FittedSurface):
    """
    Loess surface over stored observations.

    Attributes:
        x: Observed column positions.
        y: Observed row positions.
        value: Observed sizes.
        degree: Local polynomial degree (1 or 2).
        span: Neighbourhood fraction.
    """
    x: np.ndarray
    y: np.ndarray
    value: np.ndarray
    degree: int = 2
    span: float = 0.75

    def __post_init__(self):
        self._tree = cKDTree(np.column_stack([self.x, self.y]))

    @property
    def n_neighbours(self) -> int:
        n = len(self.value)
        n_terms = (self.degree + 1) * (self.degree + 2) // 2
        return int(min(n, max(np.floor(self.span * n), n_terms)))

    def predict(self, x, y) -> np.ndarray:
        x = np.atleast_1d(np.asarray(x, dtype=float))
        y = np.atleast_1d(np.asarray(y, dtype=float))
        k = self.n_neighbours

        distances, neighbours = self._tree.query(np.column_stack([x, y]), k=k)
        if k == 1:
            distances = distances[:, None]
            neighbours = neighbours[:, None]

        radius = distances[:, -1].copy()
        if self.span > 1:
            radius *= self.span ** 0.5
        radius[radius <= 0] = 1.0

        predicted = np.empty(len(x), dtype=float)
        for i in range(len(x)):
            idx = neighbours[i]
            weights = np.sqrt(tricube(distances[i] / radius[i]))
            design = polynomial_design(self.x[idx] - x[i], self.y[idx] - y[i], self.degree)
            beta, *_ = np.linalg.lstsq(
                design * weights[:, None],
                self.value[idx] * weights,
                rcond=None,
            )
            # Local coordinates are centred on the evaluation point
            predicted[i] = beta[0]

        return predicted


class LocalRegressionSurface(SurfaceModel):
    """
    Locally weighted polynomial surface.

    Example:
        >>> model = LocalRegressionSurface(degree=2, span=0.75)
        >>> trend = model.fit(colony_col, colony_row, size).predict(colony_col, colony_row)
    """

    method = FitMethod.LOCAL

    def __init__(self, degree: int = 2, span: float = 0.75):
        super().__init__(degree=degree)
        if self.degree > 2:
            raise ConfigurationError(f"local regression supports degree 1 or 2, got {degree}")
        if not span > 0:
            raise ConfigurationError(f"span must be positive, got {span}")
        self.span = float(span)

    def _fit(self, x: np.ndarray, y: np.ndarray, value: np.ndarray) -> LocalSurface:
        logger.debug(f"Local regression over {len(value)} colonies (span={self.span})")
        return LocalSurface(x=x, y=y, value=value, degree=self.degree, span=self.span)

    def __repr__(self) -> str:
        return f"LocalRegressionSurface(degree={self.degree}, span={self.span})"
