"""
ColonyLab Surface: Smooth trend surfaces over plate positions.

Two interchangeable strategies estimate the systematic growth gradient
across a plate (humidity, agar thickness, temperature):

- RobustPolynomialSurface: degree-d polynomial, Huber M-estimator
- LocalRegressionSurface: locally weighted polynomial (loess)

Example:
    >>> from colonylab.surface import get_surface_model
    >>> model = get_surface_model("robust", degree=2)
    >>> surface = model.fit(colony_col, colony_row, size)
    >>> trend = surface.predict(colony_col, colony_row)
"""

from typing import Union
import numpy as np

from ..config import FitMethod
from .protocol import (
    FittedSurface,
    FlatSurface,
    SurfaceModel,
    polynomial_design,
    polynomial_terms,
)
from .robust import PolynomialSurface, RobustPolynomialSurface
from .local import LocalRegressionSurface, LocalSurface, tricube


def get_surface_model(
    method: Union[FitMethod, str] = FitMethod.ROBUST,
    degree: int = 2,
    span: float = 0.75,
) -> SurfaceModel:
    """
    Build a surface model for a fitting method.

    Args:
        method: "robust" or "local" (or a FitMethod).
        degree: Polynomial degree.
        span: Neighbourhood fraction (local regression only).

    Returns:
        SurfaceModel instance.

    Raises:
        ConfigurationError: Unknown method or invalid parameters.
    """
    method = FitMethod.coerce(method)
    if method == FitMethod.LOCAL:
        return LocalRegressionSurface(degree=degree, span=span)
    return RobustPolynomialSurface(degree=degree)


def spatial_effect(
    x,
    y,
    value,
    method: Union[FitMethod, str] = FitMethod.ROBUST,
    degree: int = 2,
    **kwargs,
) -> np.ndarray:
    """
    Compute the effect of plate position on colony growth.

    Fits a smooth surface to the finite values and evaluates it at every
    input position.

    Args:
        x: Colony x positions (e.g. column).
        y: Colony y positions (e.g. row).
        value: Measured colony sizes; non-finite values are left out of the
            fit but still receive a prediction.
        method: "robust" or "local".
        degree: Polynomial degree.
        **kwargs: Further arguments for the surface model (e.g. span).

    Returns:
        Array with the same length as value.
    """
    model = get_surface_model(method, degree=degree, **kwargs)
    return model.fit(x, y, value).predict(x, y)


__all__ = [
    # Protocol
    "SurfaceModel",
    "FittedSurface",
    "FlatSurface",
    "polynomial_terms",
    "polynomial_design",
    # Strategies
    "RobustPolynomialSurface",
    "PolynomialSurface",
    "LocalRegressionSurface",
    "LocalSurface",
    "tricube",
    # Convenience
    "get_surface_model",
    "spatial_effect",
]
