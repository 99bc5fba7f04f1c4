"""
Material handles bound to bodies.

The engine treats a material as opaque: dynamics only ask it for a
reference density and, for fluids, the pressure of a given density.
"""

from dataclasses import dataclass

import numpy as np


@dataclass
class BaseMaterial:
    """Material with a reference density."""
    name: str = "material"
    density_ref: float = 1.0  # Reference density kg/m³

    def __post_init__(self):
        if self.density_ref <= 0.0:
            raise ValueError(f"{self.name}: density_ref must be positive, got {self.density_ref}")

    def reference_density(self) -> float:
        return self.density_ref


@dataclass
class WeaklyCompressibleFluid(BaseMaterial):
    """Fluid with the linear equation of state p = c0² (ρ - ρ0)."""
    name: str = "fluid"
    sound_speed_ref: float = 10.0  # Artificial sound speed m/s

    def __post_init__(self):
        super().__post_init__()
        if self.sound_speed_ref <= 0.0:
            raise ValueError(f"{self.name}: sound_speed_ref must be positive, got {self.sound_speed_ref}")

    @property
    def p0(self) -> float:
        """Reference pressure ρ0 c0²."""
        return self.density_ref * self.sound_speed_ref ** 2

    def get_pressure(self, rho):
        """Pressure for density ``rho`` (scalar or array)."""
        return self.p0 * (rho / self.density_ref - 1.0)

    def get_density(self, p):
        """Inverse of ``get_pressure``."""
        return self.density_ref * (p / self.p0 + 1.0)

    def get_sound_speed(self, p=0.0, rho=None) -> float:
        return self.sound_speed_ref


@dataclass
class LinearElasticSolid(BaseMaterial):
    """Isotropic linear elastic solid."""
    name: str = "solid"
    youngs_modulus: float = 1.0  # Pa
    poisson_ratio: float = 0.3

    def __post_init__(self):
        super().__post_init__()
        if self.youngs_modulus <= 0.0:
            raise ValueError(f"{self.name}: youngs_modulus must be positive, got {self.youngs_modulus}")
        if not -1.0 < self.poisson_ratio < 0.5:
            raise ValueError(f"{self.name}: poisson_ratio must be in (-1, 0.5), got {self.poisson_ratio}")

    @property
    def bulk_modulus(self) -> float:
        return self.youngs_modulus / (3.0 * (1.0 - 2.0 * self.poisson_ratio))

    @property
    def shear_modulus(self) -> float:
        return 0.5 * self.youngs_modulus / (1.0 + self.poisson_ratio)

    @property
    def sound_speed_ref(self) -> float:
        return float(np.sqrt(self.bulk_modulus / self.density_ref))
