"""Physical time owned by one simulation system."""


class SimulationClock:
    """Monotonically advancing physical time.

    The outer time loop advances it; dynamics only read ``physical_time``.
    """

    def __init__(self, start_time: float = 0.0):
        self._physical_time = float(start_time)

    @property
    def physical_time(self) -> float:
        return self._physical_time

    def advance(self, dt: float) -> float:
        """Advance by ``dt`` and return the new time."""
        if dt < 0.0:
            raise ValueError(f"Physical time can only advance, got dt={dt}")
        self._physical_time += dt
        return self._physical_time

    def reset(self, start_time: float = 0.0):
        self._physical_time = float(start_time)

    def __repr__(self):
        return f"SimulationClock(physical_time={self._physical_time!r})"
