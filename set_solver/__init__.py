# Expose key functions for easier package access
from .card import Card, CardColor, GridSpacing, Number, Shading, Shape, normalize_angle
from .classification import CardDetector, cards_to_dataframe, detect_cards, extract_features
from .clustering import ColorCluster, cluster_colors
from .config import DetectorConfig
from .detection import (
    canonicalize_rotation,
    estimate_grid_columns,
    estimate_grid_spacing,
    filter_by_dimensions,
    locate_card_regions,
    normalize_region,
)
from .diagnostics import (
    BufferedDiagnosticLogger,
    DiagnosticLogger,
    LoggingDiagnosticLogger,
    NullDiagnosticLogger,
)
from .drawing import draw_cards_on_image, draw_sets_on_image
from .set_finder import SetFinder, find_sets, is_set
