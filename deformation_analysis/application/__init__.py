"""Application layer: use cases for deformation analysis."""

from .use_case import CompareCapturesUseCase

__all__ = ["CompareCapturesUseCase"]
