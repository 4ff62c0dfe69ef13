import numpy as np

from set_solver.card import Card, CardColor, Number, Shading, Shape
from set_solver.drawing import draw_cards_on_image, draw_sets_on_image
from set_solver.set_finder import find_sets


def _cards():
    layout = [
        (Number.ONE, Shape.DIAMOND, CardColor.RED, Shading.SOLID),
        (Number.TWO, Shape.OVAL, CardColor.GREEN, Shading.STRIPED),
        (Number.THREE, Shape.SQUIGGLE, CardColor.PURPLE, Shading.OPEN),
        (Number.ONE, Shape.OVAL, CardColor.PURPLE, Shading.STRIPED),
        (Number.ONE, Shape.SQUIGGLE, CardColor.GREEN, Shading.OPEN),
    ]
    return [Card(*attrs, x=20 + 110 * i, y=40, width=90, height=60) for i, attrs in enumerate(layout)]


def test_no_sets_returns_untouched_copy():
    image = np.zeros((200, 600, 3), np.uint8)

    result = draw_sets_on_image(image, _cards(), [])

    assert result is not image
    assert np.array_equal(result, image)


def test_sets_are_outlined():
    image = np.zeros((200, 600, 3), np.uint8)
    cards = _cards()
    sets_info = find_sets(cards)

    result = draw_sets_on_image(image, cards, sets_info)

    assert len(sets_info) == 2
    assert result.shape == image.shape
    assert result.any()
    assert not image.any()


def test_shared_card_gets_expanded_box():
    image = np.zeros((200, 600, 3), np.uint8)
    cards = _cards()
    sets_info = [{"set_indices": [0, 1, 2]}, {"set_indices": [0, 3, 4]}]

    result = draw_sets_on_image(image, cards, sets_info)

    # Second set's box around card 0 sits outside the first one
    x1, y1, _, _ = cards[0].box
    assert result[y1 + 30, x1 - 6:x1 - 3].any()


def test_cards_are_outlined():
    image = np.zeros((200, 600, 3), np.uint8)

    result = draw_cards_on_image(image, _cards())

    assert result.any()
    assert not image.any()
