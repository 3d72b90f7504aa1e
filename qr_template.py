"""
QR Template Module
Function patterns (finders, alignment, timing) and format/version information
"""

import logging
from typing import Tuple

from qr_errors import ECCUncorrectableError
from qr_raster import Cell, Raster
from qr_tables import (
    ECC_LEVELS, MAX_VERSION, alignment_patterns, format_bits, symbol_size,
    validate_ecc, validate_mask, validate_version, version_bits,
)

logger = logging.getLogger(__name__)

# Valid BCH words are at least 7 bits apart
MAX_INFO_ERRORS = 3


def finder_pattern() -> Raster:
    """7x7 finder inside a 1-module light separator (9x9)."""
    return Raster(3).rect(0, 3, True).border(1, False).border(1, True).border(1, False)


def alignment_pattern() -> Raster:
    return Raster(1).rect(0, 1, True).border(1, False).border(1, True)


def _format_points(size: int):
    """Cells of the two format copies, indexed by bit (LSB first)."""
    first = [(8, i) for i in range(6)] + [(8, 7), (8, 8), (7, 8)] + [(14 - i, 8) for i in range(9, 15)]
    second = [(size - 1 - i, 8) for i in range(8)] + [(8, size - 15 + i) for i in range(8, 15)]
    return first, second


def _version_points(size: int):
    """Cells of the two version copies (top-right, bottom-left), indexed by bit."""
    top_right = [(i % 3 + size - 11, i // 3) for i in range(18)]
    bottom_left = [(i // 3, i % 3 + size - 11) for i in range(18)]
    return top_right, bottom_left


def draw_template(version: int, ecc: str, mask: int, test: bool = False) -> Raster:
    """
    Empty symbol with every function cell drawn and data cells unknown.

    With ``test`` the format/version bits and the dark module are drawn
    light, so drawings with different masks only differ in data cells.
    """
    validate_version(version)
    validate_ecc(ecc)
    validate_mask(mask)
    size = symbol_size(version)

    # Finders are drawn on a 1-module wider canvas so their separators clip
    finder = finder_pattern()
    b = Raster(size + 2)
    b.embed(0, finder).embed((-finder.width, 0), finder).embed((0, -finder.height), finder)
    b = b.slice(1, size)

    align = alignment_pattern()
    positions = alignment_patterns(version)
    for y in positions:
        for x in positions:
            if b.get((x, y)) is not Cell.UNKNOWN:
                continue
            b.embed((x - 2, y - 2), align)

    b.hline((0, 6), None, lambda p, cur: p[0] % 2 == 0 if cur is Cell.UNKNOWN else cur)
    b.vline((6, 0), None, lambda p, cur: p[1] % 2 == 0 if cur is Cell.UNKNOWN else cur)

    bits = format_bits(ecc, mask)
    for points in _format_points(size):
        for i, point in enumerate(points):
            b.set(point, not test and (bits >> i) & 1 == 1)
    b.set((8, size - 8), not test)

    if version >= 7:
        bits = version_bits(version)
        for points in _version_points(size):
            for i, point in enumerate(points):
                b.set(point, not test and (bits >> i) & 1 == 1)
    return b


def _read_word(raster: Raster, points) -> int:
    word = 0
    for i, point in enumerate(points):
        if raster.get(point):
            word |= 1 << i
    return word


def read_format_bits(raster: Raster) -> Tuple[int, int]:
    """Both 15-bit format copies as drawn by draw_template."""
    first, second = _format_points(raster.height)
    return _read_word(raster, first), _read_word(raster, second)


def read_version_bits(raster: Raster) -> Tuple[int, int]:
    """Both 18-bit version copies (only meaningful for version >= 7)."""
    top_right, bottom_left = _version_points(raster.height)
    return _read_word(raster, top_right), _read_word(raster, bottom_left)


def decode_format(*words: int) -> Tuple[str, int]:
    """Nearest valid (ECC level, mask) to any of the read format words."""
    best, best_distance = None, None
    for ecc in ECC_LEVELS:
        for mask in range(8):
            expected = format_bits(ecc, mask)
            distance = min(bin(word ^ expected).count('1') for word in words)
            if best_distance is None or distance < best_distance:
                best, best_distance = (ecc, mask), distance
    if best_distance > MAX_INFO_ERRORS:
        raise ECCUncorrectableError(f"Format information unreadable ({best_distance} bit errors)")
    logger.debug(f"Format: ecc={best[0]} mask={best[1]} ({best_distance} bit errors)")
    return best


def decode_version(*words: int) -> int:
    """Nearest valid version (7..40) to any of the read version words."""
    best, best_distance = None, None
    for version in range(7, MAX_VERSION + 1):
        expected = version_bits(version)
        distance = min(bin(word ^ expected).count('1') for word in words)
        if best_distance is None or distance < best_distance:
            best, best_distance = version, distance
    if best_distance > MAX_INFO_ERRORS:
        raise ECCUncorrectableError(f"Version information unreadable ({best_distance} bit errors)")
    return best
