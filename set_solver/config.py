import os
import logging
from dataclasses import dataclass, fields, replace
from typing import Mapping, Optional

logger = logging.getLogger(__name__)

ENV_PREFIX = "SET_SOLVER_"


@dataclass(frozen=True)
class DetectorConfig:
    """
    Tunable constants for the detection pipeline.

    Defaults are calibrated for phone photos of a 3-row grid downscaled to at
    most 1920px on the long side. Every field can be overridden through a
    ``SET_SOLVER_<FIELD_NAME>`` environment variable, see :meth:`from_env`.
    """
    # Region location
    min_card_area: float = 5000.0
    max_card_area: float = 500000.0
    search_margin: float = 0.15
    fallback_margin: float = 0.05
    blur_kernel: int = 5
    adaptive_block_size: int = 11
    adaptive_c: float = 2.0
    poly_epsilon: float = 0.02

    # Dimension validation: accepted ratio band is [1 - tol, 1 + tol]
    dimension_tolerance: float = 0.3

    # Color handling
    clahe_clip_limit: float = 2.0
    clahe_tile_size: int = 8
    sample_stride: int = 3
    colored_pixel_threshold: int = 235
    max_clusters: int = 3
    kmeans_attempts: int = 5
    kmeans_max_iter: int = 20
    kmeans_epsilon: float = 1.0

    # Feature extraction
    border_trim: float = 0.1
    symbol_threshold: int = 128
    min_symbol_area: float = 100.0
    max_symbol_fraction: float = 0.8
    parallel_tolerance: float = 10.0
    shading_inset: float = 0.05
    solid_ratio: float = 0.4
    striped_ratio: float = 0.15

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "DetectorConfig":
        """Build a config, overriding defaults from ``SET_SOLVER_*`` variables."""
        environ = os.environ if environ is None else environ
        overrides = {}
        for f in fields(cls):
            raw = environ.get(ENV_PREFIX + f.name.upper())
            if raw is None:
                continue
            try:
                overrides[f.name] = type(f.default)(raw)
            except ValueError:
                raise ValueError(f"Invalid value for {ENV_PREFIX}{f.name.upper()}: {raw!r}")
        if overrides:
            logger.info(f"Detector config overrides from environment: {overrides}")
        return replace(cls(), **overrides)
