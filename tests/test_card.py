import dataclasses

import pytest

from set_solver.card import Card, CardColor, GridSpacing, Number, Shading, Shape, normalize_angle


def test_card_defaults_to_origin():
    card = Card(Number.ONE, Shape.DIAMOND, CardColor.RED, Shading.SOLID)

    assert card.number == Number.ONE
    assert card.shape == Shape.DIAMOND
    assert card.color == CardColor.RED
    assert card.shading == Shading.SOLID
    assert (card.x, card.y, card.width, card.height, card.rotation) == (0.0, 0.0, 0.0, 0.0, 0.0)


def test_card_is_immutable():
    card = Card(Number.TWO, Shape.OVAL, CardColor.GREEN, Shading.STRIPED, x=100, y=200)

    with pytest.raises(dataclasses.FrozenInstanceError):
        card.x = 5

    moved = dataclasses.replace(card, x=30)
    assert moved.x == 30
    assert card.x == 100


def test_card_equality():
    a = Card(Number.ONE, Shape.DIAMOND, CardColor.RED, Shading.SOLID)
    b = Card(Number.ONE, Shape.DIAMOND, CardColor.RED, Shading.SOLID)
    c = Card(Number.TWO, Shape.DIAMOND, CardColor.RED, Shading.SOLID)

    assert a == b
    assert a != c


def test_number_counts():
    assert [n.count for n in Number] == [1, 2, 3]
    assert Number.from_count(0) == Number.ONE
    assert Number.from_count(2) == Number.TWO
    assert Number.from_count(7) == Number.THREE


def test_every_attribute_has_three_values():
    assert len(Number) == len(Shape) == len(CardColor) == len(Shading) == 3


@pytest.mark.parametrize("raw, expected", [
    (0, 0),
    (180, 180),
    (-180, 180),
    (190, -170),
    (-190, 170),
    (540, 180),
    (-45, -45),
])
def test_normalize_angle(raw, expected):
    assert normalize_angle(raw) == pytest.approx(expected)


def test_card_rotation_is_normalized():
    card = Card(Number.ONE, Shape.OVAL, CardColor.PURPLE, Shading.OPEN, rotation=270)
    assert card.rotation == pytest.approx(-90)


def test_card_box_and_description():
    card = Card(Number.THREE, Shape.SQUIGGLE, CardColor.PURPLE, Shading.OPEN,
                x=10, y=20, width=100, height=50)

    assert card.box == (10, 20, 110, 70)
    assert card.describe() == "3 purple open squiggle"


def test_grid_spacing_has_three_rows():
    spacing = GridSpacing(card_width=200, card_height=300, grid_origin_x=50, grid_origin_y=60, num_cols=4)

    assert spacing.num_rows == 3
    assert spacing == GridSpacing(200, 300, 50, 60, 4)
    assert spacing != dataclasses.replace(spacing, num_cols=5)
