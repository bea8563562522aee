import pytest

from participation_dashboard.numeric import as_number, mean, percentage, round_half_up, round_scaled


@pytest.mark.parametrize(
    "value, places, expected",
    [
        (4.125, 2, 4.13),
        (2.675, 2, 2.67),
        (4.25, 1, 4.3),
        (4.333333, 1, 4.3),
        (0.5, 0, 1.0),
        (3.666666, 2, 3.67),
    ],
)
def test_round_half_up(value, places, expected):
    assert round_half_up(value, places) == expected


@pytest.mark.parametrize(
    "part, whole, expected",
    [(1, 3, 33), (2, 3, 67), (1, 8, 13), (5, 0, 0), (0, 7, 0), (7, 7, 100)],
)
def test_percentage(part, whole, expected):
    assert percentage(part, whole) == expected


def test_mean():
    assert mean([], 2) == 0.0
    assert mean([4, 5, 2], 2) == 3.67
    assert mean([4, 4, 5], 1) == 4.3


@pytest.mark.parametrize(
    "value, expected",
    [
        (4, 4.0),
        (4.5, 4.5),
        ("2", 2.0),
        (" 3.5 ", 3.5),
        ("n/a", None),
        (None, None),
        (True, None),
        (float("nan"), None),
        (float("inf"), None),
        ([4], None),
    ],
)
def test_as_number(value, expected):
    assert as_number(value) == expected


@pytest.mark.parametrize(
    "value, places, expected",
    [
        (4.35, 1, 4.4),
        (1.15, 1, 1.2),
        (4.85, 1, 4.9),
        (4.333333, 1, 4.3),
        (4.25, 1, 4.3),
    ],
)
def test_round_scaled_rounds_halves_after_scaling(value, places, expected):
    assert round_scaled(value, places) == expected


def test_mean_accepts_rounder():
    ratings = [5] * 7 + [4] * 13

    assert mean(ratings, 1) == 4.3
    assert mean(ratings, 1, rounder=round_scaled) == 4.4
