"""Function patterns and format/version information"""

import numpy as np
import pytest

from qr_errors import ECCUncorrectableError, ValidationError
from qr_raster import Cell
from qr_tables import BYTES, ECC_LEVELS, format_bits, version_bits
from qr_template import (
    alignment_pattern, decode_format, decode_version, draw_template, finder_pattern,
    read_format_bits, read_version_bits,
)


def data_modules(version):
    """Modules left for data (including remainder bits) per version."""
    res = (16 * version + 128) * version + 64
    if version >= 2:
        count = version // 7 + 2
        res -= (25 * count - 10) * count - 55
        if version >= 7:
            res -= 36
    return res


def flip(word, *bits):
    for bit in bits:
        word ^= 1 << bit
    return word


def test_finder_and_alignment_patterns():
    finder = finder_pattern()
    assert finder.size() == (9, 9)
    assert str(finder).split('\n')[1] == ' XXXXXXX '
    assert str(finder).split('\n')[4] == ' X XXX X '
    assert str(alignment_pattern()) == "XXXXX\nX   X\nX X X\nX   X\nXXXXX"


def test_version_1_layout():
    t = draw_template(1, 'medium', 0)
    assert t.size() == (21, 21)
    assert t.get((0, 0)) is Cell.DARK
    assert t.get((1, 1)) is Cell.LIGHT
    assert t.get((3, 3)) is Cell.DARK
    assert t.get((7, 0)) is Cell.LIGHT
    assert t.get((-1, 0)) is Cell.DARK
    assert t.get((0, -1)) is Cell.DARK
    # Timing lines
    assert [bool(t.get((x, 6))) for x in range(8, 13)] == [True, False, True, False, True]
    assert [bool(t.get((6, y))) for y in range(8, 13)] == [True, False, True, False, True]
    # Dark module
    assert t.get((8, 13)) is Cell.DARK
    assert t.get((20, 20)) is Cell.UNKNOWN


@pytest.mark.parametrize("version", range(1, 41))
def test_data_module_count(version):
    t = draw_template(version, 'low', 0)
    unknown = int(np.count_nonzero(t.data == Cell.UNKNOWN))
    assert unknown == data_modules(version)
    assert unknown // 8 == BYTES[version - 1]


def test_alignment_pattern_drawn():
    t = draw_template(7, 'low', 0)
    # Centers on the timing lines are kept, those under finders are skipped
    assert t.get((22, 22)) is Cell.DARK
    assert t.get((21, 22)) is Cell.LIGHT
    assert t.get((20, 22)) is Cell.DARK
    assert t.get((22, 6)) is Cell.DARK
    assert t.get((23, 6)) is Cell.LIGHT
    assert t.get((38, 38)) is Cell.DARK


def test_test_mode_hides_format():
    size = 29
    t = draw_template(3, 'low', 2, test=True)
    assert t.get((8, size - 8)) is Cell.LIGHT
    assert read_format_bits(t) == (0, 0)
    assert t == draw_template(3, 'low', 6, test=True)
    assert t != draw_template(3, 'low', 2)


def test_test_mode_hides_version():
    t = draw_template(7, 'low', 0, test=True)
    assert read_version_bits(t) == (0, 0)


@pytest.mark.parametrize("ecc", ECC_LEVELS)
def test_format_round_trip(ecc):
    for mask in range(8):
        t = draw_template(2, ecc, mask)
        expected = format_bits(ecc, mask)
        assert read_format_bits(t) == (expected, expected)
        assert decode_format(*read_format_bits(t)) == (ecc, mask)


def test_format_tolerates_three_bit_errors():
    word = format_bits('quartile', 5)
    assert decode_format(flip(word, 0, 7, 14)) == ('quartile', 5)
    # One good copy is enough
    assert decode_format(0, word) == ('quartile', 5)


def test_format_unreadable():
    words = [format_bits(ecc, mask) for ecc in ECC_LEVELS for mask in range(8)]
    far = next(w for w in range(1 << 15) if min(bin(w ^ v).count('1') for v in words) > 3)
    with pytest.raises(ECCUncorrectableError):
        decode_format(far, far)


@pytest.mark.parametrize("version", [7, 21, 40])
def test_version_round_trip(version):
    t = draw_template(version, 'high', 3)
    words = read_version_bits(t)
    assert words == (version_bits(version), version_bits(version))
    assert decode_version(*words) == version
    assert decode_version(flip(words[0], 1, 9, 17)) == version


def test_version_unreadable():
    with pytest.raises(ECCUncorrectableError):
        decode_version(0, 0)


def test_invalid_arguments():
    with pytest.raises(ValidationError):
        draw_template(41, 'low', 0)
    with pytest.raises(ValidationError):
        draw_template(1, 'low', 8)
