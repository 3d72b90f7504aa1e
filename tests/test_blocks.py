"""Block split, interleave and de-interleave"""

import random

import pytest

from qr_blocks import BlockLayout, interleave_bytes
from qr_errors import ECCUncorrectableError, ValidationError
from qr_tables import BYTES


def test_interleave_skips_short_blocks():
    assert interleave_bytes([1, 2, 3], [4, 5, 6, 7]) == bytes([1, 4, 2, 5, 3, 6, 7])
    assert interleave_bytes() == b''


def test_layout_fields():
    layout = BlockLayout(5, 'quartile')
    assert layout.block_lengths() == [15, 15, 16, 16]
    assert layout.data_bytes == 62
    assert layout.total == 134


def test_encode_interleaves_data_then_ecc():
    layout = BlockLayout(5, 'quartile')
    data = bytes(range(62))
    res = layout.encode(data)
    assert len(res) == 134
    assert list(res[:8]) == [0, 15, 30, 46, 1, 16, 31, 47]
    # Long blocks contribute their extra byte after the common part
    assert list(res[60:62]) == [45, 61]
    first_ecc = layout.rs.encode(data[:15])
    assert res[62] == first_ecc[0]
    assert res[66] == first_ecc[1]


def test_single_block_is_data_plus_ecc():
    layout = BlockLayout(1, 'medium')
    data = bytes(range(16))
    assert layout.encode(data) == data + layout.rs.encode(data)


@pytest.mark.parametrize("version,ecc", [(1, 'low'), (5, 'quartile'), (7, 'high'), (15, 'medium'), (40, 'low')])
def test_round_trip(version, ecc):
    layout = BlockLayout(version, ecc)
    rng = random.Random(version)
    data = bytes(rng.randrange(256) for _ in range(layout.data_bytes))
    codewords = layout.encode(data)
    assert len(codewords) == BYTES[version - 1]
    assert layout.decode(codewords) == data


def test_decode_spreads_burst_over_blocks():
    layout = BlockLayout(5, 'quartile')
    data = bytes(range(62))
    damaged = bytearray(layout.encode(data))
    # 32 consecutive codewords hit each of the 4 blocks 8 times, each corrects 9
    for i in range(40, 72):
        damaged[i] ^= 0x5A
    assert layout.decode(damaged) == data


def test_decode_too_damaged():
    layout = BlockLayout(1, 'low')
    data = bytes(range(19))
    damaged = bytearray(layout.encode(data))
    for i in range(0, 26, 2):
        damaged[i] ^= 0xFF
    with pytest.raises(ECCUncorrectableError):
        layout.decode(damaged)


def test_wrong_lengths():
    layout = BlockLayout(1, 'low')
    with pytest.raises(ValidationError):
        layout.encode(bytes(18))
    with pytest.raises(ValidationError):
        layout.decode(bytes(25))
