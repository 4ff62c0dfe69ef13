import numpy as np
import cv2
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple
import logging

from set_solver.config import DetectorConfig

logger = logging.getLogger(__name__)

NEUTRAL_GRAY = (128.0, 128.0, 128.0)


@dataclass(frozen=True)
class ColorCluster:
    """RGB centroid of one group of symbol pixels."""
    r: float
    g: float
    b: float

    @property
    def rgb(self) -> Tuple[float, float, float]:
        return (self.r, self.g, self.b)


# A capture's palette: 1-3 clusters, built per capture and passed explicitly
Palette = Tuple[ColorCluster, ...]


def enhance_contrast(card_image: np.ndarray, config: DetectorConfig) -> np.ndarray:
    """
    Apply CLAHE to the lightness channel of a BGR card image.

    Evens out local contrast so colour and shading decisions depend less on
    how the capture was lit.
    """
    lab = cv2.cvtColor(card_image, cv2.COLOR_BGR2LAB)
    l_ch, a_ch, b_ch = cv2.split(lab)
    tile = config.clahe_tile_size
    clahe = cv2.createCLAHE(clipLimit=config.clahe_clip_limit, tileGridSize=(tile, tile))
    l_ch = clahe.apply(l_ch)
    return cv2.cvtColor(cv2.merge([l_ch, a_ch, b_ch]), cv2.COLOR_LAB2BGR)


def symbol_mask(card_image: np.ndarray) -> np.ndarray:
    """Otsu-thresholded inverted grayscale: symbols 255, card background 0."""
    gray = cv2.cvtColor(card_image, cv2.COLOR_BGR2GRAY)
    _, mask = cv2.threshold(gray, 0, 255, cv2.THRESH_BINARY_INV + cv2.THRESH_OTSU)
    return mask


def sample_masked_pixels(card_image: np.ndarray, mask: np.ndarray, config: DetectorConfig) -> Tuple[np.ndarray, np.ndarray]:
    """
    Sample pixels on a fixed stride inside the mask.

    Returns:
        tuple: (rgb_samples, colored) where rgb_samples is an (N, 3) float32 array
               of every sampled masked pixel and colored is a boolean (N,) array
               marking pixels with all channels below the brightness threshold
    """
    step = config.sample_stride
    rgb = cv2.cvtColor(card_image, cv2.COLOR_BGR2RGB)[::step, ::step]
    selected = mask[::step, ::step] > 0
    samples = rgb[selected].reshape(-1, 3).astype(np.float32)
    colored = np.all(samples < config.colored_pixel_threshold, axis=1)
    return samples, colored


def colored_pixels(card_image: np.ndarray, config: DetectorConfig) -> np.ndarray:
    """Colored symbol pixels (RGB, float32) of one contrast-enhanced card image."""
    samples, colored = sample_masked_pixels(card_image, symbol_mask(card_image), config)
    return samples[colored]


def cluster_colors(card_images: Sequence[np.ndarray],
                   config: Optional[DetectorConfig] = None,
                   enhance: bool = True) -> Palette:
    """
    Build the symbol colour palette shared by every card of one capture.

    Pools coloured pixel samples across all cards, then runs k-means for
    k = 1..max_clusters and keeps the result with the lowest compactness.
    k=1 is always accepted as the baseline. Pooling across the capture avoids
    inventing colour boundaries on single-colour cards.

    Args:
        card_images (list): Upright BGR card crops of one capture
        config (DetectorConfig): Sampling and k-means settings
        enhance (bool): Apply CLAHE first; pass False for already enhanced crops

    Returns:
        tuple: 1 to max_clusters ColorCluster values, a single neutral gray
               cluster when no coloured pixels were found
    """
    config = config or DetectorConfig()

    pooled: List[np.ndarray] = []
    for card_image in card_images:
        if enhance:
            card_image = enhance_contrast(card_image, config)
        pixels = colored_pixels(card_image, config)
        if len(pixels):
            pooled.append(pixels)

    if not pooled:
        logger.debug("No colored pixels in capture, using neutral palette")
        return (ColorCluster(*NEUTRAL_GRAY),)

    samples = np.concatenate(pooled).astype(np.float32)
    criteria = (cv2.TERM_CRITERIA_EPS + cv2.TERM_CRITERIA_MAX_ITER,
                config.kmeans_max_iter, config.kmeans_epsilon)

    best_centers = None
    best_compactness = None
    for k in range(1, config.max_clusters + 1):
        if len(samples) < k:
            break
        compactness, _, centers = cv2.kmeans(samples, k, None, criteria,
                                             config.kmeans_attempts, cv2.KMEANS_RANDOM_CENTERS)
        logger.debug(f"k={k}: compactness={compactness:.1f}")
        if best_compactness is None or compactness < best_compactness:
            best_compactness = compactness
            best_centers = centers

    palette = tuple(ColorCluster(float(c[0]), float(c[1]), float(c[2])) for c in best_centers)
    logger.debug(f"Palette from {len(samples)} samples: {[tuple(round(v) for v in c.rgb) for c in palette]}")
    return palette
