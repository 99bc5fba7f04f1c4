"""Material handles for bodies."""

from .materials import (
    BaseMaterial,
    WeaklyCompressibleFluid,
    LinearElasticSolid
)

__all__ = [
    'BaseMaterial',
    'WeaklyCompressibleFluid',
    'LinearElasticSolid'
]
