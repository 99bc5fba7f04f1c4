"""
Vectorized cubic spline kernel used to fill neighbor configurations.

W(q) = σ/h^d * { 1 - 1.5q² + 0.75q³   if 0 ≤ q ≤ 1
               { 0.25(2-q)³           if 1 < q ≤ 2
               { 0                    if q > 2

where q = r/h.
"""

import numpy as np


class CubicSplineKernel:
    """Cubic spline kernel with compact support 2h."""

    def __init__(self, dim: int = 2):
        self.dim = dim
        if dim == 2:
            self.norm_factor = 10.0 / (7.0 * np.pi)
        elif dim == 3:
            self.norm_factor = 1.0 / np.pi
        else:
            raise ValueError(f"Unsupported dimension: {dim}")

    @staticmethod
    def cutoff_radius(h: float) -> float:
        return 2.0 * h

    def W(self, r: np.ndarray, h: float) -> np.ndarray:
        """Kernel values for distances ``r``."""
        q = np.asarray(r, dtype=np.float64) / h
        w = np.zeros_like(q)

        mask1 = q <= 1.0
        q1 = q[mask1]
        w[mask1] = 1.0 - 1.5 * q1**2 + 0.75 * q1**3

        mask2 = (q > 1.0) & (q <= 2.0)
        q2 = q[mask2]
        w[mask2] = 0.25 * (2.0 - q2)**3

        return w * (self.norm_factor / h**self.dim)

    def dW(self, r: np.ndarray, h: float) -> np.ndarray:
        """Radial derivative dW/dr for distances ``r`` (non-positive)."""
        q = np.asarray(r, dtype=np.float64) / h
        grad = np.zeros_like(q)

        mask1 = q <= 1.0
        q1 = q[mask1]
        grad[mask1] = -3.0 * q1 + 2.25 * q1**2

        mask2 = (q > 1.0) & (q <= 2.0)
        q2 = q[mask2]
        grad[mask2] = -0.75 * (2.0 - q2)**2

        return grad * (self.norm_factor / h**(self.dim + 1))

    def W0(self, h: float) -> float:
        """Kernel value at r=0 (self-contribution)."""
        return self.norm_factor / h**self.dim
