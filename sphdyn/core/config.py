"""
Engine-wide configuration and logging setup.

Settings are plain dataclass fields with defaults; ``SPHSystem`` applies them
to the shared worker pool and the package logger.
"""

import logging
import os
from dataclasses import dataclass, fields
from typing import Any, Mapping, Optional, Union

# Floor for near-zero denominators (distances, zone widths, gradient norms)
TINY_REAL = 1e-15

# Minimum number of particles handed to one worker task
DEFAULT_GRAIN_SIZE = 256

PACKAGE_LOGGER = "sphdyn"


@dataclass
class EngineConfig:
    """Execution settings for one simulation.

    Attributes:
        num_threads: Worker threads in the shared pool (None uses cpu_count)
        grain_size: Minimum particles per parallel chunk
        cell_grain_size: Cells per chunk when sweeping one color
        log_level: Level name or number for the ``sphdyn`` logger
        h_spacing_ratio: Smoothing length over particle spacing
    """
    num_threads: Optional[int] = None
    grain_size: int = DEFAULT_GRAIN_SIZE
    cell_grain_size: int = 1
    log_level: Union[str, int] = "INFO"
    h_spacing_ratio: float = 1.3

    def __post_init__(self):
        if self.num_threads is None:
            self.num_threads = os.cpu_count() or 1
        if self.num_threads < 1:
            raise ValueError(f"num_threads must be positive, got {self.num_threads}")
        if self.grain_size < 1 or self.cell_grain_size < 1:
            raise ValueError("grain sizes must be positive")
        if self.h_spacing_ratio <= 0:
            raise ValueError(f"h_spacing_ratio must be positive, got {self.h_spacing_ratio}")

    @classmethod
    def from_dict(cls, mapping: Mapping[str, Any]) -> "EngineConfig":
        """Build a config from a plain dict, rejecting unknown keys."""
        known = {f.name for f in fields(cls)}
        unknown = set(mapping) - known
        if unknown:
            raise ValueError(f"Unknown engine settings: {sorted(unknown)}. Valid: {sorted(known)}")
        return cls(**dict(mapping))


def configure_logging(log_level: Union[str, int] = "INFO") -> logging.Logger:
    """Set the package log level and attach a console handler once."""
    logger = logging.getLogger(PACKAGE_LOGGER)
    if isinstance(log_level, str):
        level = getattr(logging, log_level.upper(), logging.INFO)
    else:
        level = int(log_level)
    logger.setLevel(level)
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter("%(message)s"))
        logger.addHandler(handler)
    return logger
