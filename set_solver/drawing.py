import cv2
import numpy as np
from collections import defaultdict
from typing import Any, Dict, List, Sequence

from set_solver.card import Card

# BGR
COLORS = [
    (255, 0, 0),   # Blue
    (0, 255, 0),   # Green
    (0, 0, 255),   # Red
    (255, 255, 0), # Cyan
    (255, 0, 255), # Magenta
    (0, 255, 255)  # Yellow
]


def draw_cards_on_image(board_image: np.ndarray, cards: Sequence[Card]) -> np.ndarray:
    """Outline every detected card and label it with its attributes."""
    result_image = board_image.copy()
    img_height, img_width = board_image.shape[:2]
    img_diagonal = np.sqrt(img_width**2 + img_height**2)
    thickness = max(1, int(img_diagonal * 0.002))
    font_scale = max(0.35, img_diagonal * 0.0004)

    for card in cards:
        x1, y1, x2, y2 = card.box
        cv2.rectangle(result_image, (x1, y1), (x2, y2), (200, 200, 200), thickness)
        cv2.putText(result_image, card.describe(), (x1, max(12, y1 - 4)),
                    cv2.FONT_HERSHEY_SIMPLEX, font_scale, (200, 200, 200), thickness)
    return result_image


def draw_sets_on_image(board_image: np.ndarray, cards: Sequence[Card],
                       sets_info: List[Dict[str, Any]]) -> np.ndarray:
    """
    Draw bounding boxes and labels for the detected sets on the provided board image.

    A card that belongs to several sets gets a slightly larger box for each
    later set so every membership stays visible.

    Args:
        board_image (numpy.ndarray): Board image in BGR format.
        cards (list): Detected cards, indexed by the sets' 'set_indices'.
        sets_info (list): Output of find_sets.

    Returns:
        numpy.ndarray: The annotated board image.
    """
    if not sets_info:
        return board_image.copy()

    img_height, img_width = board_image.shape[:2]
    img_diagonal = np.sqrt(img_width**2 + img_height**2)

    # Scale parameters based on image size
    thickness = max(1, int(img_diagonal * 0.004))
    base_expansion = max(5, int(img_diagonal * 0.008))
    font_scale = max(0.5, img_diagonal * 0.0007)
    text_margin = max(5, int(img_diagonal * 0.008))

    result_image = board_image.copy()

    # {card_index: [set_indices]}
    card_set_membership = defaultdict(list)
    for set_idx, set_info in enumerate(sets_info):
        for card_idx in set_info["set_indices"]:
            card_set_membership[card_idx].append(set_idx)

    for set_idx, set_info in enumerate(sets_info):
        color = COLORS[set_idx % len(COLORS)]

        for i, card_idx in enumerate(set_info["set_indices"]):
            x1, y1, x2, y2 = cards[card_idx].box

            # 0 for a card's first set, then one step per later set, capped at two
            appearance_idx = card_set_membership[card_idx].index(set_idx)
            expansion = min(appearance_idx, 2) * base_expansion

            x1_expanded = max(0, x1 - expansion)
            y1_expanded = max(0, y1 - expansion)
            x2_expanded = min(img_width, x2 + expansion)
            y2_expanded = min(img_height, y2 + expansion)

            cv2.rectangle(
                result_image,
                (x1_expanded, y1_expanded),
                (x2_expanded, y2_expanded),
                color,
                thickness
            )

            # Only label the first card in each set
            if i == 0:
                text_y = max(text_margin, y1_expanded - text_margin)
                cv2.putText(
                    result_image,
                    f"Set {set_idx + 1}",
                    (x1_expanded, text_y),
                    cv2.FONT_HERSHEY_SIMPLEX,
                    font_scale,
                    color,
                    thickness
                )

    return result_image
