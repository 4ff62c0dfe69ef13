import numpy as np
import cv2
import pandas as pd
import math
import traceback
from typing import List, Optional, Sequence, Tuple
import logging

from set_solver.card import Card, CardColor, Number, Shading, Shape
from set_solver.clustering import (
    ColorCluster,
    Palette,
    cluster_colors,
    enhance_contrast,
    sample_masked_pixels,
    symbol_mask,
)
from set_solver.config import DetectorConfig
from set_solver.detection import filter_by_dimensions, locate_card_regions
from set_solver.diagnostics import DiagnosticLogger, NullDiagnosticLogger

logger = logging.getLogger(__name__)

CARD_COLUMNS = ["Number", "Shape", "Color", "Shading", "X", "Y", "Width", "Height", "Rotation"]


def trim_border(card_image: np.ndarray, fraction: float) -> np.ndarray:
    """Cut `fraction` of the size off every side so the card edge and table do not read as symbols."""
    h, w = card_image.shape[:2]
    dx, dy = int(w * fraction), int(h * fraction)
    if w - 2 * dx <= 0 or h - 2 * dy <= 0:
        return card_image
    return card_image[dy:h - dy, dx:w - dx]


def prepare_card_image(card_image: np.ndarray, config: DetectorConfig) -> np.ndarray:
    return enhance_contrast(trim_border(card_image, config.border_trim), config)


def find_symbol_contours(card_image: np.ndarray, config: DetectorConfig) -> Tuple[list, list]:
    """
    Extract external contours of the dark printed shapes on a card.

    Returns:
        tuple: (all_contours, symbol_contours) where symbol_contours keeps only
               contours between the minimum symbol area and the card-size cap
    """
    gray = cv2.cvtColor(card_image, cv2.COLOR_BGR2GRAY)
    _, thresh = cv2.threshold(gray, config.symbol_threshold, 255, cv2.THRESH_BINARY_INV)
    contours, _ = cv2.findContours(thresh, cv2.RETR_EXTERNAL, cv2.CHAIN_APPROX_SIMPLE)

    card_area = card_image.shape[0] * card_image.shape[1]
    max_area = config.max_symbol_fraction * card_area
    symbols = [c for c in contours if config.min_symbol_area < cv2.contourArea(c) < max_area]
    return list(contours), symbols


def detect_number(symbol_contours: Sequence[np.ndarray]) -> Number:
    return Number.from_count(len(symbol_contours))


def edge_angles(polygon: np.ndarray) -> List[float]:
    """Direction in degrees of each edge of a closed polygon."""
    points = np.asarray(polygon, dtype=np.float64).reshape(-1, 2)
    angles = []
    for i in range(len(points)):
        dx, dy = points[(i + 1) % len(points)] - points[i]
        angles.append(math.degrees(math.atan2(dy, dx)))
    return angles


def count_parallel_edge_pairs(polygon: np.ndarray, tolerance: float = 10.0) -> int:
    """
    Count disjoint pairs of parallel edges.

    Two edges are parallel when their directions differ by less than
    `tolerance` degrees from 0 or 180. An edge joins at most one pair.
    """
    angles = edge_angles(polygon)
    used = [False] * len(angles)
    pairs = 0
    for i in range(len(angles)):
        if used[i]:
            continue
        for j in range(i + 1, len(angles)):
            if used[j]:
                continue
            diff = abs(angles[i] - angles[j]) % 180.0
            if diff <= tolerance or diff >= 180.0 - tolerance:
                used[i] = used[j] = True
                pairs += 1
                break
    return pairs


def shape_from_parallel_pairs(pairs: int) -> Shape:
    # Diamonds approximate to four sides in two pairs; rounded ovals and
    # ellipses keep straight sides or come out as 6-10 sided polygons
    if pairs == 2:
        return Shape.DIAMOND
    if pairs >= 1:
        return Shape.OVAL
    return Shape.SQUIGGLE


def detect_shape(contours: Sequence[np.ndarray], config: DetectorConfig) -> Shape:
    """Classify the largest symbol outline by how many parallel edge pairs its polygon has."""
    if not contours:
        return Shape.SQUIGGLE
    largest = max(contours, key=cv2.contourArea)
    peri = cv2.arcLength(largest, True)
    approx = cv2.approxPolyDP(largest, config.poly_epsilon * peri, True)
    pairs = count_parallel_edge_pairs(approx, config.parallel_tolerance)
    logger.debug(f"Shape polygon: {len(approx)} vertices, {pairs} parallel pairs")
    return shape_from_parallel_pairs(pairs)


def color_from_cluster(cluster: ColorCluster) -> CardColor:
    """Map a centroid to the card color named by its dominant RGB channel."""
    r, g, b = cluster.rgb
    if r > g and r > b:
        return CardColor.RED
    if g > r and g > b:
        return CardColor.GREEN
    return CardColor.PURPLE


def dominant_cluster(pixels: np.ndarray, palette: Palette) -> Optional[ColorCluster]:
    """Cluster collecting the most nearest-centroid votes from the given RGB pixels."""
    if not palette or len(pixels) == 0:
        return None
    centers = np.array([c.rgb for c in palette], dtype=np.float32)
    distances = np.linalg.norm(pixels[:, None, :] - centers[None, :, :], axis=2)
    votes = np.bincount(distances.argmin(axis=1), minlength=len(palette))
    return palette[int(votes.argmax())]


def detect_color(colored: np.ndarray, palette: Palette) -> CardColor:
    cluster = dominant_cluster(colored, palette)
    if cluster is None:
        return CardColor.PURPLE
    return color_from_cluster(cluster)


def shading_region(mask: np.ndarray, config: DetectorConfig) -> np.ndarray:
    """
    Fill the outlines found in a symbol mask.

    Open and striped symbols only mark their ink in the Otsu mask, so the
    filled outline is what the fill ratio is measured against. Falls back to
    the mask itself when no outline is symbol-sized.
    """
    contours, _ = cv2.findContours(mask, cv2.RETR_EXTERNAL, cv2.CHAIN_APPROX_SIMPLE)
    max_area = config.max_symbol_fraction * mask.shape[0] * mask.shape[1]
    symbols = [c for c in contours if config.min_symbol_area < cv2.contourArea(c) < max_area]
    if not symbols:
        return mask
    filled = np.zeros_like(mask)
    cv2.drawContours(filled, symbols, -1, 255, cv2.FILLED)
    return filled


def classify_shading(ratio: float, config: Optional[DetectorConfig] = None) -> Shading:
    config = config or DetectorConfig()
    if ratio > config.solid_ratio:
        return Shading.SOLID
    if ratio > config.striped_ratio:
        return Shading.STRIPED
    return Shading.OPEN


def shading_ratio(mask: np.ndarray, config: DetectorConfig) -> float:
    """
    Fraction of the symbol interior covered by ink.

    The filled outlines are eroded inward so the printed border of open and
    striped symbols is not counted; what remains is sampled on the same stride
    as the colour samples and checked against the Otsu ink mask.
    """
    region = shading_region(mask, config)
    inset = max(1, int(config.shading_inset * min(mask.shape[:2])))
    interior = cv2.erode(region, np.ones((3, 3), np.uint8), iterations=inset)
    if not np.any(interior):
        interior = region

    step = config.sample_stride
    inside = interior[::step, ::step] > 0
    total = np.count_nonzero(inside)
    if total == 0:
        return 0.0
    ink = mask[::step, ::step] > 0
    return float(np.count_nonzero(ink & inside)) / total


def extract_features(card_image: np.ndarray,
                     palette: Palette,
                     rect: Tuple[int, int, int, int] = (0, 0, 0, 0),
                     rotation: float = 0.0,
                     config: Optional[DetectorConfig] = None) -> Card:
    """
    Derive Number, Shape, Color and Shading for one upright card.

    Args:
        card_image (numpy.ndarray): Contrast-enhanced BGR crop, see prepare_card_image
        palette (tuple): Color clusters of the capture the card belongs to
        rect (tuple): (x, y, width, height) of the card in the source image
        rotation (float): Rotation the crop was corrected by, in degrees
        config (DetectorConfig): Thresholds

    Returns:
        Card: The classified card
    """
    config = config or DetectorConfig()

    contours, symbols = find_symbol_contours(card_image, config)
    number = detect_number(symbols)
    shape = detect_shape(symbols or contours, config)

    mask = symbol_mask(card_image)
    samples, colored = sample_masked_pixels(card_image, mask, config)
    color = detect_color(samples[colored], palette)
    shading = classify_shading(shading_ratio(mask, config), config)

    x, y, w, h = rect
    return Card(
        number=number,
        shape=shape,
        color=color,
        shading=shading,
        x=float(x),
        y=float(y),
        width=float(w),
        height=float(h),
        rotation=rotation,
    )


def cards_to_dataframe(cards: Sequence[Card]) -> pd.DataFrame:
    """Tabulate cards with one row per card, in detection order."""
    if not cards:
        return pd.DataFrame(columns=CARD_COLUMNS)
    return pd.DataFrame([{
        "Number": card.number.count,
        "Shape": card.shape.value,
        "Color": card.color.value,
        "Shading": card.shading.value,
        "X": card.x,
        "Y": card.y,
        "Width": card.width,
        "Height": card.height,
        "Rotation": round(card.rotation, 1),
    } for card in cards], columns=CARD_COLUMNS)


class CardDetector:
    """
    Runs the full pipeline on one board image: grid regions, dimension check,
    capture palette, then per-card features.

    The palette is a local value of each :meth:`detect_cards` call, so one
    detector can serve several captures, even concurrently.
    """

    def __init__(self, config: Optional[DetectorConfig] = None,
                 diagnostics: Optional[DiagnosticLogger] = None):
        self.config = config or DetectorConfig()
        self.diagnostics = diagnostics or NullDiagnosticLogger()

    def detect_cards(self, image: np.ndarray) -> List[Card]:
        """
        Detect and classify every card in a BGR board image.

        Never raises: a failure that escapes the per-card handling is logged
        and an empty list is returned.

        Args:
            image (numpy.ndarray): Board image in BGR format

        Returns:
            list: Cards in grid row-major order
        """
        try:
            return self._detect(image)
        except Exception as e:
            logger.error(f"Error detecting cards: {str(e)}")
            logger.error(traceback.format_exc())
            self.diagnostics.log(f"Detection failed: {e}")
            return []

    def _detect(self, image: np.ndarray) -> List[Card]:
        config = self.config
        diagnostics = self.diagnostics

        if image is None or image.size == 0:
            raise ValueError("Empty image")
        if image.ndim == 2:
            image = cv2.cvtColor(image, cv2.COLOR_GRAY2BGR)
        elif image.shape[2] == 4:
            image = cv2.cvtColor(image, cv2.COLOR_BGRA2BGR)

        diagnostics.log_section("Card detection")
        regions = locate_card_regions(image, config, diagnostics)
        valid = filter_by_dimensions(regions, config.dimension_tolerance)
        diagnostics.log(f"{len(valid)} of {len(regions)} regions passed the dimension check")

        prepared = [prepare_card_image(region.image, config) for region in valid]
        palette = cluster_colors(prepared, config, enhance=False)
        diagnostics.log(f"Palette ({len(palette)} clusters): "
                        + ", ".join(f"({c.r:.0f}, {c.g:.0f}, {c.b:.0f})" for c in palette))

        cards = []
        for index, (region, card_image) in enumerate(zip(valid, prepared)):
            try:
                card = extract_features(card_image, palette, region.rect, region.rotation, config)
            except Exception as e:
                logger.error(f"Error recognizing card {index} at {region.rect}: {str(e)}")
                logger.error(traceback.format_exc())
                continue
            cards.append(card)

        logger.info(f"Detected {len(cards)} cards")
        diagnostics.log_section("Cards")
        if cards:
            diagnostics.log(cards_to_dataframe(cards).to_string(index=False))
        else:
            diagnostics.log("No cards were detected in the image")
        return cards


def detect_cards(image: np.ndarray,
                 config: Optional[DetectorConfig] = None,
                 diagnostics: Optional[DiagnosticLogger] = None) -> List[Card]:
    """Convenience wrapper around :class:`CardDetector`."""
    return CardDetector(config, diagnostics).detect_cards(image)
