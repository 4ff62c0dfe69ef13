"""
Synthetic scenes for the detector tests. Everything is drawn with OpenCV
primitives, so no image assets are needed.
"""
import numpy as np
import cv2

# BGR
RED = (40, 40, 200)
GREEN = (40, 160, 40)
PURPLE = (150, 40, 120)

CARD_BG = 245
TABLE_BG = 40

STRIPE_PERIOD = 4

# Irregular outline with no parallel sides, centred on the origin
BLOB = np.array([[-60, -60], [40, -50], [70, 10], [0, 60], [-70, 0]])


def symbol_outline(shape: str, size, center, half_width: int, half_height: int) -> np.ndarray:
    """Filled single-channel mask of one symbol."""
    mask = np.zeros(size, np.uint8)
    cx, cy = center
    if shape == "ellipse":
        cv2.ellipse(mask, center, (half_width, half_height), 0, 0, 360, 255, -1)
    elif shape == "diamond":
        points = np.array([[cx, cy - half_height], [cx + half_width, cy],
                           [cx, cy + half_height], [cx - half_width, cy]], np.int32)
        cv2.fillPoly(mask, [points], 255)
    elif shape == "oval":
        # Stadium: straight sides with round ends
        straight = half_height - half_width
        cv2.rectangle(mask, (cx - half_width, cy - straight), (cx + half_width, cy + straight), 255, -1)
        cv2.circle(mask, (cx, cy - straight), half_width, 255, -1)
        cv2.circle(mask, (cx, cy + straight), half_width, 255, -1)
    elif shape == "blob":
        scale = half_height / 60.0
        points = np.int32(np.round(BLOB * scale)) + np.array([cx, cy])
        cv2.fillPoly(mask, [points], 255)
    else:
        raise ValueError(f"Unknown shape: {shape}")
    return mask


def draw_symbols(card: np.ndarray, count: int, color,
                 shape: str = "ellipse", shading: str = "solid") -> np.ndarray:
    """
    Draw `count` upright symbols side by side, the way they sit on a landscape card.

    Solid symbols are filled; striped ones get a 2 px border and a 1 px line
    every STRIPE_PERIOD rows; open ones only the border.
    """
    h, w = card.shape[:2]
    half_width, half_height = max(3, int(w * 0.07)), max(5, int(h * 0.3))
    rows = np.arange(h)[:, None]
    for i in range(count):
        center = (int(w * (i + 1) / (count + 1)), h // 2)
        mask = symbol_outline(shape, (h, w), center, half_width, half_height)
        if shading == "solid":
            card[mask > 0] = color
            continue
        if shading == "striped":
            card[(mask > 0) & (rows % STRIPE_PERIOD == 0)] = color
        contours, _ = cv2.findContours(mask, cv2.RETR_EXTERNAL, cv2.CHAIN_APPROX_NONE)
        cv2.drawContours(card, contours, -1, color, 2)
    return card


def make_card(width: int = 300, height: int = 200, count: int = 2, color=RED,
              shape: str = "ellipse", shading: str = "solid", paper: int = CARD_BG) -> np.ndarray:
    card = np.full((height, width, 3), paper, np.uint8)
    return draw_symbols(card, count, color, shape, shading)


def make_board(width: int = 800, height: int = 810, cols: int = 4,
               card_size=(170, 110), colors=(RED, GREEN, PURPLE),
               shading: str = "solid", paper: int = CARD_BG):
    """
    A 3-row grid of landscape cards centred in their grid cells on a dark table.

    Returns:
        tuple: (board_image, list of (x, y, w, h) card rectangles in row-major order)
    """
    board = np.full((height, width, 3), TABLE_BG, np.uint8)
    cell_w, cell_h = width // cols, height // 3
    card_w, card_h = card_size
    rects = []
    for row in range(3):
        for col in range(cols):
            index = row * cols + col
            x = col * cell_w + (cell_w - card_w) // 2
            y = row * cell_h + (cell_h - card_h) // 2
            card = make_card(card_w, card_h, count=index % 3 + 1,
                             color=colors[index % len(colors)],
                             shading=shading, paper=paper)
            board[y:y + card_h, x:x + card_w] = card
            rects.append((x, y, card_w, card_h))
    return board, rects
