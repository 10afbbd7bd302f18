"""Deformation analysis bounded context (DDD layered package).

This package intentionally keeps `__init__` **side-effect free**: importing the
package should not import heavy numeric libraries or IO backends.

Use explicit imports for entrypoints:
`from deformation_analysis.entrypoints.compare_point_clouds import DeformationEngine`
"""

__all__: list[str] = []
