"""Infrastructure layer: adapters for deformation analysis."""

from .filesystem import JsonComparisonRepository, result_to_dict
from .numpy_adapter import NumpyBackend, cloud_from_arrays

__all__ = [
    "JsonComparisonRepository",
    "result_to_dict",
    "NumpyBackend",
    "cloud_from_arrays",
]
