"""
QR Mask Module
Zigzag data placement, mask patterns and penalty-based mask selection
"""

import logging
from itertools import groupby
from typing import Callable, Optional, Sequence

import numpy as np
from numpy.lib.stride_tricks import sliding_window_view

from qr_errors import CapacityError, ValidationError
from qr_raster import Cell, Raster
from qr_template import draw_template
from qr_tables import validate_mask

logger = logging.getLogger(__name__)

MASK_PATTERNS = (
    lambda x, y: (x + y) % 2 == 0,
    lambda x, y: y % 2 == 0,
    lambda x, y: x % 3 == 0,
    lambda x, y: (x + y) % 3 == 0,
    lambda x, y: (y // 2 + x // 3) % 2 == 0,
    lambda x, y: (x * y) % 2 + (x * y) % 3 == 0,
    lambda x, y: ((x * y) % 2 + (x * y) % 3) % 2 == 0,
    lambda x, y: ((x + y) % 2 + (x * y) % 3) % 2 == 0,
)

# Finder-like run with 4 light modules on one side
FINDER_LIKE = (True, False, True, True, True, False, True)
LIGHT_RUN = (False, False, False, False)
PENALTY_PATTERNS = (
    np.array(FINDER_LIKE + LIGHT_RUN),
    np.array(LIGHT_RUN + FINDER_LIKE),
)


def zigzag(template: Raster, mask: int, visit: Callable[[int, int, bool], None]):
    """
    Visit every unknown template cell in placement order.

    Column pairs go right to left starting at the bottom-right corner; the
    vertical direction flips after each pair and column 6 (timing) is skipped.
    ``visit(x, y, mask_bit)`` is called once per data cell.
    """
    validate_mask(mask)
    pattern = MASK_PATTERNS[mask]
    size = template.height
    data = template.data
    direction = -1
    y = size - 1
    x_offset = size - 1
    while x_offset > 0:
        if x_offset == 6:
            x_offset = 5
        while True:
            for j in range(2):
                x = x_offset - j
                if data[y, x] != Cell.UNKNOWN:
                    continue
                visit(x, y, pattern(x, y))
            if not 0 <= y + direction < size:
                break
            y += direction
        direction = -direction
        x_offset -= 2


def draw_qr(version: int, ecc: str, data: Sequence[int], mask: int, test: bool = False) -> Raster:
    """Template + data bits XOR mask. Data bits beyond the payload are 0."""
    res = draw_template(version, ecc, mask, test)
    need = 8 * len(data)
    pos = 0

    def place(x, y, mask_bit):
        nonlocal pos
        bit = False
        if pos < need:
            bit = (data[pos >> 3] >> (7 - (pos & 7))) & 1 == 1
            pos += 1
        res.data[y, x] = Cell.of(bit != mask_bit)

    zigzag(res, mask, place)
    if pos != need:
        raise CapacityError(f"{need - pos} data bits left after drawing version {version}")
    return res


def extract_data(raster: Raster, template: Raster, mask: int, total: int) -> bytes:
    """
    Read ``total`` codewords back from the data cells of ``raster``.

    ``template`` decides which cells carry data; unknown sampled cells read
    as light.
    """
    if raster.size() != template.size():
        raise ValidationError(f"Raster size {raster.size()} does not match template {template.size()}")
    cells = raster.data
    bits = []

    def read(x, y, mask_bit):
        bits.append((cells[y, x] == Cell.DARK) != mask_bit)

    zigzag(template, mask, read)
    if len(bits) < 8 * total:
        raise ValidationError(f"Symbol holds {len(bits)} data bits, need {8 * total}")
    res = bytearray(total)
    for i in range(8 * total):
        if bits[i]:
            res[i >> 3] |= 0x80 >> (i & 7)
    return bytes(res)


def _run_penalty(line) -> int:
    score = 0
    for _, run in groupby(line):
        length = sum(1 for _ in run)
        if length >= 5:
            score += 3 + (length - 5)
    return score


def _finder_penalty(lines: np.ndarray) -> int:
    if lines.shape[1] < len(PENALTY_PATTERNS[0]):
        return 0
    windows = sliding_window_view(lines, len(PENALTY_PATTERNS[0]), axis=1)
    return 40 * sum(int(np.all(windows == p, axis=-1).sum()) for p in PENALTY_PATTERNS)


def penalty(raster: Raster) -> int:
    """Sum of the four mask penalty scores; lower is better."""
    dark = raster.dark_mask()
    columns = raster.inverse().dark_mask()

    adjacent = sum(_run_penalty(row) for row in dark.tolist())
    adjacent += sum(_run_penalty(column) for column in columns.tolist())

    top_left = dark[:-1, :-1]
    same = (top_left == dark[1:, :-1]) & (top_left == dark[:-1, 1:]) & (top_left == dark[1:, 1:])
    box = 3 * int(same.sum())

    finder = _finder_penalty(dark) + _finder_penalty(columns)

    dark_percent = 100 * int(dark.sum()) / dark.size
    balance = 10 * int(abs(dark_percent - 50) // 5)

    return adjacent + box + finder + balance


def select_best_mask(version: int, ecc: str, data: Sequence[int]) -> int:
    """Mask with the lowest penalty; the first one wins ties."""
    best, best_score = None, None
    for mask in range(len(MASK_PATTERNS)):
        score = penalty(draw_qr(version, ecc, data, mask, test=True))
        logger.debug(f"Mask {mask}: penalty {score}")
        if best_score is None or score < best_score:
            best, best_score = mask, score
    return best


def draw_best(version: int, ecc: str, data: Sequence[int], mask: Optional[int] = None) -> Raster:
    """Final symbol; searches for the mask unless one is given."""
    if mask is None:
        mask = select_best_mask(version, ecc, data)
    return draw_qr(version, ecc, data, mask)
