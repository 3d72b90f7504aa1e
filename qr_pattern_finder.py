"""
QR Pattern Finder Module
Locates finder/alignment patterns in a sampled grid and resamples the symbol
"""

import logging
import math
from dataclasses import dataclass
from itertools import combinations
from typing import List, Optional, Sequence, Tuple

import numpy as np
from numpy.lib.stride_tricks import sliding_window_view

from qr_errors import PatternNotFoundError
from qr_raster import Raster
from qr_tables import MAX_VERSION, symbol_size

logger = logging.getLogger(__name__)

PATTERN_VARIANCE = 2
ALIGNMENT_ALLOWANCES = (4, 8, 16)
MAX_FINDER_CANDIDATES = 12


@dataclass
class PatternCandidate:
    """Estimated pattern center (pixels) and module size, averaged over ``count`` hits."""
    x: float
    y: float
    module_size: float
    count: int = 1

    def matches(self, other: 'PatternCandidate') -> bool:
        if abs(other.y - self.y) <= other.module_size and abs(other.x - self.x) <= other.module_size:
            diff = abs(other.module_size - self.module_size)
            return diff <= 1 or diff <= self.module_size
        return False

    def merge(self, other: 'PatternCandidate') -> 'PatternCandidate':
        count = self.count + other.count
        return PatternCandidate(
            x=(self.count * self.x + other.count * other.x) / count,
            y=(self.count * self.y + other.count * other.y) / count,
            module_size=(self.count * self.module_size + other.count * other.module_size) / count,
            count=count,
        )

    def distance(self, other: 'PatternCandidate') -> float:
        return math.hypot(self.x - other.x, self.y - other.y)


def add_candidate(candidates: List[PatternCandidate], found: PatternCandidate) -> PatternCandidate:
    """Merge ``found`` into the first matching candidate, or append it."""
    for i, cur in enumerate(candidates):
        if cur.matches(found):
            candidates[i] = cur.merge(found)
            return candidates[i]
    candidates.append(found)
    return found


def line_runs(line: np.ndarray) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """Run-length encode a boolean line: (values, starts, lengths)."""
    if not len(line):
        empty = np.zeros(0, dtype=int)
        return np.zeros(0, dtype=bool), empty, empty
    change = np.flatnonzero(line[1:] != line[:-1]) + 1
    starts = np.concatenate(([0], change))
    lengths = np.diff(np.concatenate((starts, [len(line)])))
    return line[starts], starts, lengths


class RunPattern:
    """
    Alternating dark/light runs with fixed relative widths.

    A run sequence matches when every run is within half a module (times
    its relative width) of the expected length.
    """

    def __init__(self, colors: Sequence[bool], sizes: Optional[Sequence[int]] = None):
        if sizes is None:
            sizes = [1] * len(colors)
        if len(colors) != len(sizes):
            raise ValueError("Wrong pattern")
        if not len(colors) % 2:
            raise ValueError("Pattern length should be odd")
        self.colors = tuple(colors)
        self.sizes = np.array(sizes, dtype=float)
        self.length = len(colors)
        self.center = self.length // 2
        self.total_size = int(self.sizes.sum())

    def module_size(self, runs) -> float:
        return float(sum(runs)) / self.total_size

    def check_size(self, runs, module_size: float, variance: float = PATTERN_VARIANCE) -> bool:
        expected = self.sizes * module_size
        return bool(np.all(np.abs(expected - np.asarray(runs)) < expected / variance))

    def to_center(self, first: float, runs) -> float:
        """Center of the middle run, given where the first run starts."""
        return float(first + sum(runs[:self.center]) + runs[self.center] / 2)

    def scan_line(self, line: np.ndarray, module_size: Optional[float] = None) -> List[Tuple[float, np.ndarray]]:
        """(center, runs) for every run window of ``line`` matching the pattern."""
        values, starts, lengths = line_runs(line)
        if len(lengths) < self.length:
            return []
        windows = sliding_window_view(lengths, self.length)
        if module_size is None:
            sizes = windows.sum(axis=1) / self.total_size
        else:
            sizes = np.full(len(windows), float(module_size))
        expected = sizes[:, None] * self.sizes
        ok = np.all(np.abs(expected - windows) < expected / PATTERN_VARIANCE, axis=1)
        ok &= values[:len(windows)] == self.colors[0]
        return [(self.to_center(starts[i], windows[i]), windows[i]) for i in np.flatnonzero(ok)]

    def cross_check(self, dark: np.ndarray, start: Tuple[int, int], step: Tuple[int, int],
                    max_count: Optional[float] = None) -> Optional[Tuple[List[int], Tuple[int, int]]]:
        """
        Measure the pattern runs through ``start`` along ``step``.

        Returns (runs, first pixel of the first run) or None when a run is
        missing or an outer run is longer than ``max_count`` modules.
        """
        height, width = dark.shape
        runs = [0] * self.length
        dx, dy = step

        def walk(x, y, index, sign):
            while 0 <= x < width and 0 <= y < height and bool(dark[y, x]) == self.colors[index]:
                runs[index] += 1
                x += sign * dx
                y += sign * dy
            return x, y

        def bad(index):
            if runs[index] == 0:
                return True
            return bool(max_count) and index != self.center and runs[index] > self.sizes[index] * max_count

        x, y = start
        for index in range(self.center, -1, -1):
            x, y = walk(x, y, index, -1)
            if bad(index):
                return None
        first = (x + dx, y + dy)

        x, y = start[0] + dx, start[1] + dy
        for index in range(self.center, self.length):
            x, y = walk(x, y, index, 1)
            if bad(index):
                return None
        return runs, first


FINDER = RunPattern((True, False, True, False, True), (1, 1, 3, 1, 1))
ALIGNMENT = RunPattern((False, True, False))


def _confirm_finder(dark: np.ndarray, cx: float, y: int, h_runs) -> Optional[PatternCandidate]:
    """Vertical, horizontal and diagonal checks around a row hit."""
    h_total = float(sum(h_runs))
    vertical = FINDER.cross_check(dark, (int(cx), y), (0, 1), max_count=h_runs[2])
    if vertical is None:
        return None
    v_runs, first = vertical
    v_total = float(sum(v_runs))
    if 5 * abs(v_total - h_total) >= 2 * h_total:
        return None
    if not FINDER.check_size(v_runs, FINDER.module_size(v_runs)):
        return None
    cy = FINDER.to_center(first[1], v_runs)

    horizontal = FINDER.cross_check(dark, (int(cx), int(cy)), (1, 0), max_count=v_runs[2])
    if horizontal is None:
        return None
    h_runs, first = horizontal
    if not FINDER.check_size(h_runs, FINDER.module_size(h_runs)):
        return None
    cx = FINDER.to_center(first[0], h_runs)

    diagonal = FINDER.cross_check(dark, (int(cx), int(cy)), (1, 1))
    if diagonal is None or not FINDER.check_size(diagonal[0], FINDER.module_size(diagonal[0])):
        return None
    module_size = (sum(h_runs) + sum(v_runs)) / (2.0 * FINDER.total_size)
    return PatternCandidate(cx, cy, module_size)


def find_finders(dark: np.ndarray) -> List[PatternCandidate]:
    """All confirmed finder candidates, merged across scan lines."""
    candidates = []
    for y in range(dark.shape[0]):
        for cx, runs in FINDER.scan_line(dark[y]):
            found = _confirm_finder(dark, cx, y, runs)
            if found is not None:
                add_candidate(candidates, found)
    logger.debug(f"Finder candidates: {len(candidates)}")
    return candidates


def order_finders(a: PatternCandidate, b: PatternCandidate, c: PatternCandidate):
    """(top-left, top-right, bottom-left); the longest side joins TR and BL."""
    points = [a, b, c]
    pairs = [(0, 1), (0, 2), (1, 2)]
    i, j = max(pairs, key=lambda p: points[p[0]].distance(points[p[1]]))
    top_left = points[3 - i - j]
    p1, p2 = points[i], points[j]
    v1 = (p1.x - top_left.x, p1.y - top_left.y)
    v2 = (p2.x - top_left.x, p2.y - top_left.y)
    if v1[0] * v2[1] - v1[1] * v2[0] > 0:
        return top_left, p1, p2
    return top_left, p2, p1


def _triple_score(top_left, top_right, bottom_left) -> Optional[float]:
    sizes = [p.module_size for p in (top_left, top_right, bottom_left)]
    if max(sizes) / min(sizes) >= 2:
        return None
    d_tr = top_left.distance(top_right)
    d_bl = top_left.distance(bottom_left)
    d_diag = top_right.distance(bottom_left)
    module_size = sum(sizes) / 3
    # Version 1 finders are 14 modules apart
    if min(d_tr, d_bl) < 10 * module_size:
        return None
    dot = (top_right.x - top_left.x) * (bottom_left.x - top_left.x) + \
        (top_right.y - top_left.y) * (bottom_left.y - top_left.y)
    if abs(dot / (d_tr * d_bl)) >= 0.5:  # angle outside 60..120 degrees
        return None
    return (abs(d_tr - d_bl) / max(d_tr, d_bl)
            + abs(d_diag - math.hypot(d_tr, d_bl)) / d_diag
            + (max(sizes) - min(sizes)) / module_size)


def select_finders(candidates: List[PatternCandidate]):
    """Best mutually consistent triple as (top-left, top-right, bottom-left)."""
    pool = [c for c in candidates if c.count >= 2]
    if len(pool) < 3:
        pool = list(candidates)
    if len(pool) < 3:
        raise PatternNotFoundError(f"Finder patterns: found {len(pool)}, need 3")
    pool = sorted(pool, key=lambda c: -c.count)[:MAX_FINDER_CANDIDATES]
    best, best_score = None, None
    for triple in combinations(pool, 3):
        ordered = order_finders(*triple)
        score = _triple_score(*ordered)
        if score is None:
            continue
        if best_score is None or score < best_score:
            best, best_score = ordered, score
    if best is None:
        raise PatternNotFoundError(f"No consistent finder triple among {len(pool)} candidates")
    logger.debug(f"Finders: TL=({best[0].x:.1f}, {best[0].y:.1f}) TR=({best[1].x:.1f}, {best[1].y:.1f}) "
                 f"BL=({best[2].x:.1f}, {best[2].y:.1f})")
    return best


def _is_alignment(dark: np.ndarray, cx: float, cy: float, module_size: float) -> bool:
    """Dark center, light ring at one module, dark ring at two modules."""
    height, width = dark.shape
    mismatches = 0
    for my in range(-2, 3):
        for mx in range(-2, 3):
            x = int(math.floor(cx + mx * module_size))
            y = int(math.floor(cy + my * module_size))
            expected = max(abs(mx), abs(my)) != 1
            actual = 0 <= x < width and 0 <= y < height and bool(dark[y, x])
            mismatches += actual != expected
    return mismatches <= 2


def find_alignment(dark: np.ndarray, estimate: Tuple[float, float], module_size: float) -> Optional[PatternCandidate]:
    """Alignment pattern closest to ``estimate`` within a growing search window."""
    height, width = dark.shape
    ex, ey = estimate
    for allowance in ALIGNMENT_ALLOWANCES:
        reach = allowance * module_size
        left, right = max(0, int(ex - reach)), min(width, int(math.ceil(ex + reach)) + 1)
        top, bottom = max(0, int(ey - reach)), min(height, int(math.ceil(ey + reach)) + 1)
        if right - left < 3 or bottom - top < 3:
            continue
        candidates = []
        for y in range(top, bottom):
            for cx, _ in ALIGNMENT.scan_line(dark[y, left:right], module_size):
                cx += left
                vertical = ALIGNMENT.cross_check(dark, (int(cx), y), (0, 1), max_count=2 * module_size)
                if vertical is None or not ALIGNMENT.check_size(vertical[0], module_size):
                    continue
                cy = ALIGNMENT.to_center(vertical[1][1], vertical[0])
                if _is_alignment(dark, cx, cy, module_size):
                    add_candidate(candidates, PatternCandidate(cx, cy, module_size))
        if candidates:
            target = PatternCandidate(ex, ey, module_size)
            found = min(candidates, key=target.distance)
            logger.debug(f"Alignment at ({found.x:.1f}, {found.y:.1f}), estimate ({ex:.1f}, {ey:.1f})")
            return found
    return None


def perspective_transform(src: Sequence[Tuple[float, float]], dst: Sequence[Tuple[float, float]]) -> np.ndarray:
    """3x3 homography mapping the four ``src`` points onto ``dst``."""
    rows, rhs = [], []
    for (u, v), (x, y) in zip(src, dst):
        rows.append([u, v, 1, 0, 0, 0, -u * x, -v * x])
        rows.append([0, 0, 0, u, v, 1, -u * y, -v * y])
        rhs.extend([x, y])
    try:
        h = np.linalg.solve(np.array(rows, dtype=float), np.array(rhs, dtype=float))
    except np.linalg.LinAlgError as e:
        raise PatternNotFoundError(f"Degenerate finder geometry: {e}") from e
    return np.append(h, 1.0).reshape(3, 3)


def sample_grid(dark: np.ndarray, transform: np.ndarray, dimension: int) -> Raster:
    """Read the pixel under every module center; outside the grid reads light."""
    height, width = dark.shape
    my, mx = np.mgrid[0:dimension, 0:dimension] + 0.5
    points = np.stack([mx.ravel(), my.ravel(), np.ones(mx.size)])
    px, py, pw = transform @ points
    px = np.floor(px / pw).astype(int)
    py = np.floor(py / pw).astype(int)
    inside = (px >= 0) & (px < width) & (py >= 0) & (py < height)
    values = np.zeros(mx.size, dtype=bool)
    values[inside] = dark[py[inside], px[inside]]
    return Raster(dimension, dimension, values.reshape(dimension, dimension).astype(np.uint8))


def estimate_dimension(top_left, top_right, bottom_left, module_size: float) -> int:
    legs = (top_left.distance(top_right) + top_left.distance(bottom_left)) / 2
    dimension = int(round(legs / module_size)) + 7
    remainder = dimension % 4
    if remainder == 0:
        dimension += 1
    elif remainder == 2:
        dimension -= 1
    elif remainder == 3:
        raise PatternNotFoundError(f"Cannot derive symbol size from finder distance ({dimension})")
    if not symbol_size(1) <= dimension <= symbol_size(MAX_VERSION):
        raise PatternNotFoundError(f"Symbol size {dimension} out of range")
    return dimension


def locate_symbol(grid) -> Raster:
    """
    Find the symbol inside ``grid`` and resample it one cell per module.

    ``grid`` may carry a quiet zone and be an integer upscale of the symbol;
    unknown cells are treated as light.
    """
    dark = Raster.from_grid(grid).dark_mask()
    top_left, top_right, bottom_left = select_finders(find_finders(dark))
    module_size = (top_left.module_size + top_right.module_size + bottom_left.module_size) / 3
    dimension = estimate_dimension(top_left, top_right, bottom_left, module_size)
    version = (dimension - 17) // 4
    logger.debug(f"Module size {module_size:.2f}, dimension {dimension} (version {version})")

    br_x = top_right.x - top_left.x + bottom_left.x
    br_y = top_right.y - top_left.y + bottom_left.y
    src = [(3.5, 3.5), (dimension - 3.5, 3.5), (3.5, dimension - 3.5)]
    dst = [(top_left.x, top_left.y), (top_right.x, top_right.y), (bottom_left.x, bottom_left.y)]
    alignment = None
    if version >= 2:
        correction = 1 - 3.0 / (dimension - 7)
        estimate = (top_left.x + correction * (br_x - top_left.x),
                    top_left.y + correction * (br_y - top_left.y))
        alignment = find_alignment(dark, estimate, module_size)
    if alignment is not None:
        src.append((dimension - 6.5, dimension - 6.5))
        dst.append((alignment.x, alignment.y))
    else:
        src.append((dimension - 3.5, dimension - 3.5))
        dst.append((br_x, br_y))
    return sample_grid(dark, perspective_transform(src, dst), dimension)
