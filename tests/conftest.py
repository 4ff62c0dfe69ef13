import pytest

from synthetic import GREEN, RED, make_board


@pytest.fixture
def board():
    return make_board()


@pytest.fixture
def red_board():
    return make_board(colors=(RED,))


@pytest.fixture
def green_board():
    return make_board(colors=(GREEN,))
