"""
Robust polynomial surface.

Fits a full bivariate polynomial of total degree d in (x, y) by
M-estimation (iteratively reweighted least squares with the Huber norm), so
a handful of unusually large or small colonies do not bend the surface.
Coordinates are centred and scaled before building the design matrix; the
fitted values are identical to those of an orthogonal-polynomial basis.
"""

from dataclasses import dataclass
from typing import Tuple
import logging

import numpy as np
import statsmodels.api as sm

from ..config import FitMethod
from ..errors import NormalizationError
from .protocol import FittedSurface, SurfaceModel, polynomial_design

logger = logging.getLogger(__name__)


@dataclass
class PolynomialSurface(FittedSurface):
    """
    Polynomial surface in standardized coordinates.

    Attributes:
        coefficients: Coefficients in polynomial_terms(degree) order.
        degree: Total polynomial degree.
        center: (x, y) means used for standardization.
        scale: (x, y) spreads used for standardization.
    """
    coefficients: np.ndarray
    degree: int
    center: Tuple[float, float]
    scale: Tuple[float, float]

    def predict(self, x, y) -> np.ndarray:
        x = (np.asarray(x, dtype=float) - self.center[0]) / self.scale[0]
        y = (np.asarray(y, dtype=float) - self.center[1]) / self.scale[1]
        return polynomial_design(x, y, self.degree) @ self.coefficients


class RobustPolynomialSurface(SurfaceModel):
    """
    Polynomial surface fitted with statsmodels RLM (Huber's T norm).

    Example:
        >>> model = RobustPolynomialSurface(degree=2)
        >>> surface = model.fit(colony_col, colony_row, size)
        >>> trend = surface.predict(colony_col, colony_row)
    """

    method = FitMethod.ROBUST

    def __init__(self, degree: int = 2, max_iter: int = 50, tol: float = 1e-8):
        super().__init__(degree=degree)
        self.max_iter = max_iter
        self.tol = tol

    def _fit(self, x: np.ndarray, y: np.ndarray, value: np.ndarray) -> PolynomialSurface:
        center = (float(x.mean()), float(y.mean()))
        scale = (float(x.std()) or 1.0, float(y.std()) or 1.0)
        design = polynomial_design(
            (x - center[0]) / scale[0],
            (y - center[1]) / scale[1],
            self.degree,
        )

        coefficients, *_ = np.linalg.lstsq(design, value, rcond=None)
        residuals = value - design @ coefficients

        # Zero residual scale: the polynomial fits exactly and there is nothing to reweight
        if sm.robust.scale.mad(residuals, center=0) <= 1e-12 * max(1.0, np.abs(value).max()):
            logger.debug("Exact polynomial fit; using least-squares coefficients")
        else:
            try:
                result = sm.RLM(value, design, M=sm.robust.norms.HuberT()).fit(
                    maxiter=self.max_iter, tol=self.tol
                )
            except (np.linalg.LinAlgError, ValueError) as e:
                raise NormalizationError(f"degenerate surface fit: {e}") from e
            coefficients = np.asarray(result.params, dtype=float)

        if not np.all(np.isfinite(coefficients)):
            raise NormalizationError("degenerate surface fit: robust regression diverged")

        return PolynomialSurface(
            coefficients=coefficients,
            degree=self.degree,
            center=center,
            scale=scale,
        )

    def __repr__(self) -> str:
        return f"RobustPolynomialSurface(degree={self.degree}, max_iter={self.max_iter})"
