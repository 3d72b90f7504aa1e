"""Finder/alignment location and symbol resampling"""

import numpy as np
import pytest

from qr_codec import make_symbol
from qr_errors import PatternNotFoundError
from qr_pattern_finder import (
    ALIGNMENT, FINDER, PatternCandidate, RunPattern, add_candidate, estimate_dimension, find_finders,
    line_runs, locate_symbol, order_finders, perspective_transform, select_finders,
)
from qr_raster import Raster


def line(text):
    return np.array([ch == 'X' for ch in text])


def test_candidate_matching_and_merge():
    a = PatternCandidate(10, 10, 2)
    assert a.matches(PatternCandidate(11, 11, 2))
    assert not a.matches(PatternCandidate(20, 10, 2))
    assert not a.matches(PatternCandidate(11, 11, 5.5))
    merged = a.merge(PatternCandidate(11, 12, 3))
    assert (merged.x, merged.y, merged.module_size, merged.count) == (10.5, 11, 2.5, 2)


def test_add_candidate_accumulates():
    candidates = []
    for x in (10, 10.5, 11, 40):
        add_candidate(candidates, PatternCandidate(x, 10, 2))
    assert len(candidates) == 2
    assert candidates[0].count == 3
    assert candidates[0].x == pytest.approx(10.5)


def test_run_pattern_validation():
    with pytest.raises(ValueError):
        RunPattern((True, False))
    with pytest.raises(ValueError):
        RunPattern((True, False, True), (1, 1))


def test_check_size():
    assert FINDER.check_size([1, 1, 3, 1, 1], 1)
    assert FINDER.check_size([1, 1, 2, 1, 1], 1)
    assert not FINDER.check_size([2, 1, 3, 1, 1], 1)
    assert FINDER.check_size([4, 4, 12, 4, 5], 4)


def test_line_runs():
    values, starts, lengths = line_runs(line('XX  X'))
    assert values.tolist() == [True, False, True]
    assert starts.tolist() == [0, 2, 4]
    assert lengths.tolist() == [2, 2, 1]
    assert len(line_runs(np.zeros(0, dtype=bool))[0]) == 0


def test_scan_line_finds_finder_center():
    hits = FINDER.scan_line(line('  X XXX X  '))
    assert len(hits) == 1
    assert hits[0][0] == 5.5
    assert FINDER.scan_line(line('  X X X X  ')) == []
    # Finder touching the edges of the line
    assert FINDER.scan_line(line('XX  XXXXXX  XX'))[0][0] == 7


def test_scan_line_with_known_module_size():
    hits = ALIGNMENT.scan_line(line('X  XX  X'), module_size=2)
    assert [center for center, _ in hits] == [4]
    assert ALIGNMENT.scan_line(line('X  XX  X'), module_size=4) == []


def test_cross_check():
    grid = Raster.from_string("X\n \nX\nX\nX\n \nX").dark_mask()
    runs, first = FINDER.cross_check(grid, (0, 3), (0, 1))
    assert runs == [1, 1, 3, 1, 1]
    assert first == (0, 0)
    assert FINDER.cross_check(grid, (0, 3), (0, 1), max_count=0.5) is None


def test_order_finders():
    tl = PatternCandidate(3.5, 3.5, 1)
    tr = PatternCandidate(17.5, 3.5, 1)
    bl = PatternCandidate(3.5, 17.5, 1)
    assert order_finders(bl, tr, tl) == (tl, tr, bl)
    assert order_finders(tr, bl, tl) == (tl, tr, bl)


def test_select_finders_needs_three():
    with pytest.raises(PatternNotFoundError):
        select_finders([PatternCandidate(3.5, 3.5, 1, 3), PatternCandidate(17.5, 3.5, 1, 3)])


def test_select_finders_ignores_stray_candidate():
    tl = PatternCandidate(3.5, 3.5, 1, 3)
    tr = PatternCandidate(17.5, 3.5, 1, 3)
    bl = PatternCandidate(3.5, 17.5, 1, 3)
    stray = PatternCandidate(12.5, 15.5, 1, 2)
    assert select_finders([stray, tr, bl, tl]) == (tl, tr, bl)


def test_estimate_dimension():
    tl = PatternCandidate(3.5, 3.5, 1)
    assert estimate_dimension(tl, PatternCandidate(17.5, 3.5, 1), PatternCandidate(3.5, 17.5, 1), 1) == 21
    # 20 would be off by one module: rounded back to 21
    assert estimate_dimension(tl, PatternCandidate(16.5, 3.5, 1), PatternCandidate(3.5, 16.5, 1), 1) == 21
    with pytest.raises(PatternNotFoundError):
        estimate_dimension(tl, PatternCandidate(19.5, 3.5, 1), PatternCandidate(3.5, 19.5, 1), 1)


def test_perspective_transform_identity():
    points = [(0, 0), (10, 0), (0, 10), (10, 10)]
    assert np.allclose(perspective_transform(points, points), np.eye(3))
    with pytest.raises(PatternNotFoundError):
        perspective_transform(points, [(0, 0)] * 4)


def test_no_symbol():
    blank = Raster(40).rect(0, None, False)
    assert find_finders(blank.dark_mask()) == []
    with pytest.raises(PatternNotFoundError):
        locate_symbol(blank)


@pytest.mark.parametrize("text,version,border,scale", [
    ('HELLO WORLD', None, 2, 1),
    ('HELLO WORLD', None, 0, 3),
    ('pattern finder', 3, 4, 2),
    ('https://example.com/alignment', 7, 3, 2),
])
def test_locate_resamples_symbol(text, version, border, scale):
    symbol = make_symbol(text, version=version).raster
    grid = symbol.border(border, False).scale(scale)
    assert locate_symbol(grid) == symbol


def test_locate_rotated_symbol():
    symbol = make_symbol('rotated', version=2).raster
    grid = Raster.from_grid(np.rot90(symbol.data).copy())
    located = locate_symbol(grid.border(2, False).scale(2))
    assert located == symbol
