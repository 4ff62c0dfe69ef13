import numpy as np
import cv2
from dataclasses import dataclass
from typing import List, Optional, Tuple
import logging

from set_solver.card import GridSpacing, normalize_angle
from set_solver.config import DetectorConfig
from set_solver.diagnostics import DiagnosticLogger, NullDiagnosticLogger

logger = logging.getLogger(__name__)

GRID_ROWS = 3


@dataclass(frozen=True)
class SearchRegion:
    """Axis-aligned rectangle in source-image pixels."""
    x: int
    y: int
    width: int
    height: int


@dataclass(frozen=True)
class RotatedRegion:
    """Minimum-area rectangle: width runs along `angle` (degrees), as in OpenCV."""
    center: Tuple[float, float]
    size: Tuple[float, float]
    angle: float


@dataclass
class LocatedRegion:
    """
    An upright card crop together with where it came from.

    `rect` is (x, y, width, height) in source-image pixels.
    """
    image: np.ndarray
    rect: Tuple[int, int, int, int]
    rotation: float
    from_fallback: bool = False


def estimate_grid_columns(width: int, height: int) -> int:
    """Landscape captures hold 5 columns of cards, the rest 4."""
    if height <= 0:
        return 4
    return 5 if width / height > 1.0 else 4


def estimate_grid_spacing(width: int, height: int) -> GridSpacing:
    """
    Estimate the uniform card layout for an image of the given size.

    Args:
        width (int): Image width in pixels
        height (int): Image height in pixels

    Returns:
        GridSpacing: Nominal cell size and origin; rows are fixed at 3
    """
    num_cols = estimate_grid_columns(width, height)
    return GridSpacing(
        card_width=width // num_cols,
        card_height=height // GRID_ROWS,
        grid_origin_x=0,
        grid_origin_y=0,
        num_cols=num_cols,
    )


def grid_cell(spacing: GridSpacing, row: int, col: int) -> SearchRegion:
    return SearchRegion(
        x=spacing.grid_origin_x + col * spacing.card_width,
        y=spacing.grid_origin_y + row * spacing.card_height,
        width=spacing.card_width,
        height=spacing.card_height,
    )


def expand_region(cell: SearchRegion, margin: float, image_width: int, image_height: int) -> SearchRegion:
    """Grow a cell by `margin` of its size on every side, clipped to the image."""
    dx = int(cell.width * margin)
    dy = int(cell.height * margin)
    x1 = max(0, cell.x - dx)
    y1 = max(0, cell.y - dy)
    x2 = min(image_width, cell.x + cell.width + dx)
    y2 = min(image_height, cell.y + cell.height + dy)
    return SearchRegion(x1, y1, x2 - x1, y2 - y1)


def canonicalize_rotation(width: float, height: float, angle: float) -> Tuple[float, float, float]:
    """
    Make width the longer side and wrap the angle into (-180, 180].

    Returns:
        tuple: (width, height, angle)
    """
    if width < height:
        width, height = height, width
        angle += 90.0
    return width, height, normalize_angle(angle)


def rotated_region_from_contour(contour: np.ndarray) -> RotatedRegion:
    """
    Minimum-area rectangle of a contour with its angle in [-90, 0).

    OpenCV >= 4.5.1 reports angles in (0, 90] while older releases used
    [-90, 0). Each 90 degree step swaps the sides, so the rectangle described
    is the same either way.
    """
    (cx, cy), (w, h), angle = cv2.minAreaRect(contour)
    while angle >= 0.0:
        angle -= 90.0
        w, h = h, w
    while angle < -90.0:
        angle += 90.0
        w, h = h, w
    return RotatedRegion(center=(float(cx), float(cy)), size=(float(w), float(h)), angle=float(angle))


def find_card_quad(window: np.ndarray, config: DetectorConfig) -> Optional[RotatedRegion]:
    """
    Search a BGR window for the largest quadrilateral contour in the card-area band.

    Args:
        window (numpy.ndarray): Search window cut from the board image
        config (DetectorConfig): Thresholds for blur, adaptive threshold and area

    Returns:
        RotatedRegion or None: Rectangle in window coordinates, None if nothing qualifies
    """
    gray = cv2.cvtColor(window, cv2.COLOR_BGR2GRAY)
    k = config.blur_kernel
    blurred = cv2.GaussianBlur(gray, (k, k), 0)
    thresh = cv2.adaptiveThreshold(
        blurred, 255,
        cv2.ADAPTIVE_THRESH_GAUSSIAN_C,
        cv2.THRESH_BINARY_INV,
        config.adaptive_block_size,
        config.adaptive_c,
    )
    contours, _ = cv2.findContours(thresh, cv2.RETR_EXTERNAL, cv2.CHAIN_APPROX_SIMPLE)

    best_contour = None
    best_area = 0.0
    for contour in contours:
        area = cv2.contourArea(contour)
        if not (config.min_card_area <= area <= config.max_card_area):
            continue
        peri = cv2.arcLength(contour, True)
        approx = cv2.approxPolyDP(contour, config.poly_epsilon * peri, True)
        if len(approx) == 4 and area > best_area:
            best_contour = contour
            best_area = area

    if best_contour is None:
        return None
    return rotated_region_from_contour(best_contour)


def normalize_region(image: np.ndarray, region: RotatedRegion,
                     offset: Tuple[int, int] = (0, 0)) -> Optional[LocatedRegion]:
    """
    De-rotate a located card into an upright crop.

    The whole image is rotated about the card center rather than just the
    window so the crop never picks up blank corners from the warp.

    Args:
        image (numpy.ndarray): Full board image
        region (RotatedRegion): Rectangle in search-window coordinates
        offset (tuple): (x, y) of the search window inside the image

    Returns:
        LocatedRegion or None: None when the clipped crop is empty
    """
    img_h, img_w = image.shape[:2]
    width, height, angle = canonicalize_rotation(region.size[0], region.size[1], region.angle)
    cx = region.center[0] + offset[0]
    cy = region.center[1] + offset[1]

    matrix = cv2.getRotationMatrix2D((cx, cy), angle, 1.0)
    rotated = cv2.warpAffine(image, matrix, (img_w, img_h), flags=cv2.INTER_LINEAR,
                             borderMode=cv2.BORDER_REPLICATE)

    x1 = max(0, int(round(cx - width / 2)))
    y1 = max(0, int(round(cy - height / 2)))
    x2 = min(img_w, int(round(cx + width / 2)))
    y2 = min(img_h, int(round(cy + height / 2)))
    if x2 - x1 <= 0 or y2 - y1 <= 0:
        logger.debug(f"Degenerate crop at ({cx:.0f}, {cy:.0f}), skipping")
        return None
    crop = rotated[y1:y2, x1:x2].copy()

    corners = cv2.boxPoints(((cx, cy), (width, height), angle))
    bx, by, bw, bh = cv2.boundingRect(np.int32(np.round(corners)))
    rx1, ry1 = max(0, bx), max(0, by)
    rx2, ry2 = min(img_w, bx + bw), min(img_h, by + bh)
    if rx2 - rx1 <= 0 or ry2 - ry1 <= 0:
        return None

    return LocatedRegion(image=crop, rect=(rx1, ry1, rx2 - rx1, ry2 - ry1), rotation=angle)


def fallback_region(image: np.ndarray, cell: SearchRegion, margin: float) -> Optional[LocatedRegion]:
    """Crop the nominal grid cell shrunk by `margin` on every side, rotation 0."""
    img_h, img_w = image.shape[:2]
    dx = int(cell.width * margin)
    dy = int(cell.height * margin)
    x1 = max(0, cell.x + dx)
    y1 = max(0, cell.y + dy)
    x2 = min(img_w, cell.x + cell.width - dx)
    y2 = min(img_h, cell.y + cell.height - dy)
    if x2 - x1 <= 0 or y2 - y1 <= 0:
        return None
    return LocatedRegion(
        image=image[y1:y2, x1:x2].copy(),
        rect=(x1, y1, x2 - x1, y2 - y1),
        rotation=0.0,
        from_fallback=True,
    )


def locate_card_regions(image: np.ndarray,
                        config: Optional[DetectorConfig] = None,
                        diagnostics: Optional[DiagnosticLogger] = None) -> List[LocatedRegion]:
    """
    Find one card region per grid cell, in row-major order.

    Each cell is widened by the search margin to tolerate cards that sit off
    their ideal position. Cells where no quadrilateral turns up fall back to a
    plain crop of the cell so every position still yields a card candidate.

    Args:
        image (numpy.ndarray): Board image in BGR format
        config (DetectorConfig): Detection constants
        diagnostics (DiagnosticLogger): Optional operator log

    Returns:
        list: LocatedRegion per cell that produced a usable crop
    """
    config = config or DetectorConfig()
    diagnostics = diagnostics or NullDiagnosticLogger()

    img_h, img_w = image.shape[:2]
    spacing = estimate_grid_spacing(img_w, img_h)
    diagnostics.log(f"Image {img_w}x{img_h}, grid {spacing.num_rows}x{spacing.num_cols}, "
                    f"cell {spacing.card_width}x{spacing.card_height}")

    regions = []
    fallbacks = 0
    for row in range(spacing.num_rows):
        for col in range(spacing.num_cols):
            cell = grid_cell(spacing, row, col)
            search = expand_region(cell, config.search_margin, img_w, img_h)
            if search.width <= 0 or search.height <= 0:
                continue
            window = image[search.y:search.y + search.height, search.x:search.x + search.width]

            located = None
            quad = find_card_quad(window, config)
            if quad is not None:
                located = normalize_region(image, quad, (search.x, search.y))
            if located is None:
                located = fallback_region(image, cell, config.fallback_margin)
                if located is not None:
                    fallbacks += 1
            if located is None:
                logger.debug(f"No region for cell ({row}, {col})")
                continue

            logger.debug(f"Cell ({row}, {col}): rect={located.rect}, rotation={located.rotation:.1f}, "
                         f"fallback={located.from_fallback}")
            regions.append(located)

    diagnostics.log(f"Located {len(regions)} regions ({fallbacks} from grid fallback)")
    return regions


def filter_by_dimensions(regions: List[LocatedRegion], tolerance: float = 0.3) -> List[LocatedRegion]:
    """
    Drop regions whose width or height strays too far from the capture median.

    Cards in one photo are the same physical size, so a region more than
    `tolerance` away from the median in either dimension is almost always a
    partial contour or a merge of neighbours.

    Args:
        regions (list): LocatedRegion candidates for one capture
        tolerance (float): Allowed relative deviation from the median

    Returns:
        list: Surviving regions in their original order
    """
    if not regions:
        return []

    widths = np.array([r.rect[2] for r in regions], dtype=np.float64)
    heights = np.array([r.rect[3] for r in regions], dtype=np.float64)
    median_w = float(np.median(widths))
    median_h = float(np.median(heights))
    if median_w <= 0 or median_h <= 0:
        return []

    low, high = 1.0 - tolerance, 1.0 + tolerance
    kept = []
    for region, w, h in zip(regions, widths, heights):
        w_ratio = w / median_w
        h_ratio = h / median_h
        if low <= w_ratio <= high and low <= h_ratio <= high:
            kept.append(region)
        else:
            logger.debug(f"Rejected region {region.rect}: ratios {w_ratio:.2f} x {h_ratio:.2f}")
    return kept
