from __future__ import annotations

import pytest

from tempo.core.config import settings
from tempo.services.preferences_service import WorkdayWindow
from tempo.services.slot_finder import density_penalty, pick_start, priority_penalty

WINDOW = WorkdayWindow(start_minute=9 * 60, end_minute=17 * 60, lunch_start_minute=12 * 60, lunch_end_minute=13 * 60)
NINE_TO_TEN = (9 * 60, 10 * 60)


def test_spacing_controls_how_far_same_priority_work_is_pushed():
    neighbours = [(*NINE_TO_TEN, 2)]

    strict = priority_penalty(600, 660, 2, neighbours, spacing="strict")
    moderate = priority_penalty(600, 660, 2, neighbours, spacing="moderate")
    loose = priority_penalty(600, 660, 2, neighbours, spacing="loose")

    assert strict == pytest.approx(5.0)
    assert moderate == pytest.approx(7 / 3)
    assert loose == 0.0


def test_less_important_neighbours_weigh_less():
    same = priority_penalty(600, 660, 1, [(*NINE_TO_TEN, 1)], spacing="moderate")
    lower = priority_penalty(600, 660, 1, [(*NINE_TO_TEN, 3)], spacing="moderate")

    assert lower == pytest.approx(0.5)
    assert lower < same


def test_neighbours_without_priority_add_no_priority_pressure():
    assert priority_penalty(600, 660, 1, [(*NINE_TO_TEN, None)]) == 0.0


def test_density_counts_nearby_placements_up_to_a_cap():
    nearby = [(*NINE_TO_TEN, None)] * 3
    crowded = [(*NINE_TO_TEN, None)] * 12
    far = [(16 * 60, 17 * 60, None)]

    assert density_penalty(600, 660, nearby) == 6.0
    assert density_penalty(600, 660, crowded) == 20.0
    assert density_penalty(600, 660, far) == 0.0


def test_free_preferred_start_wins_even_next_to_important_work(monkeypatch):
    monkeypatch.setattr(settings, "priority_spacing", "strict")

    start = pick_start(
        [NINE_TO_TEN],
        duration=60,
        earliest=9 * 60,
        window=WINDOW,
        preferred=10 * 60,
        neighbours=[(*NINE_TO_TEN, 1)],
        priority=1,
    )

    assert start == 10 * 60


def test_taken_preferred_start_moves_away_from_same_priority_work():
    start = pick_start(
        [NINE_TO_TEN],
        duration=60,
        earliest=9 * 60,
        window=WINDOW,
        preferred=9 * 60,
        neighbours=[(*NINE_TO_TEN, 1)],
        priority=1,
    )

    assert start == 13 * 60


def test_equal_scores_take_the_earliest_start():
    start = pick_start([NINE_TO_TEN], duration=60, earliest=9 * 60, window=WINDOW, preferred=9 * 60)

    assert start == 10 * 60


def test_no_room_left_in_the_day():
    start = pick_start([(9 * 60, 12 * 60), (13 * 60, 17 * 60)], duration=30, earliest=9 * 60, window=WINDOW)

    assert start is None
