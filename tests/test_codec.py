"""End-to-end encode/decode"""

import pytest

from qr_codec import EncodeOptions, decode_qr, decode_symbol, encode_qr, make_symbol
from qr_errors import CapacityError, ValidationError
from qr_raster import Raster
from qr_tables import ECC_LEVELS
from qr_template import read_format_bits

TEXTS = [
    '',
    '0',
    '31415926535897932384626433832795',
    'HELLO WORLD',
    'hello, world',
    'Ünïcödé ✓ 漢字',
    'https://example.com/some/path?query=value&other=1',
    'Lorem ipsum dolor sit amet, consectetur adipiscing elit. ' * 4,
]


def test_hello_world():
    symbol = make_symbol('HELLO WORLD')
    assert symbol.version == 1
    assert symbol.ecc == 'medium'
    assert symbol.encoding == 'alphanumeric'
    assert symbol.raster.size() == (21, 21)
    assert decode_qr(encode_qr('HELLO WORLD', output='raster')) == 'HELLO WORLD'


@pytest.mark.parametrize("ecc", ECC_LEVELS)
@pytest.mark.parametrize("text", TEXTS)
def test_round_trip(text, ecc):
    symbol = make_symbol(text, ecc=ecc)
    assert decode_symbol(symbol.raster) == text


@pytest.mark.parametrize("text", TEXTS[2:6])
def test_round_trip_through_locator(text):
    assert decode_qr(encode_qr(text, output='raw')) == text


def test_decode_with_border_and_scale():
    grid = encode_qr('scaled symbol', output='raster', border=5, scale=4)
    assert grid.size() == ((21 + 10) * 4, (21 + 10) * 4)
    assert decode_qr(grid) == 'scaled symbol'


def test_explicit_version_and_mask():
    symbol = make_symbol('HELLO WORLD', version=5, mask=3, ecc='high')
    assert (symbol.version, symbol.mask) == (5, 3)
    assert symbol.raster.size() == (37, 37)
    assert decode_symbol(symbol.raster) == 'HELLO WORLD'


def test_large_version_round_trip():
    text = 'x' * 1000
    symbol = make_symbol(text, ecc='low')
    assert symbol.version >= 7
    assert decode_symbol(symbol.raster) == text


def test_determinism():
    a = encode_qr('determinism', output='svg', version=3, mask=2)
    b = encode_qr('determinism', output='svg', version=3, mask=2)
    assert a == b
    assert encode_qr('determinism', output='gif') == encode_qr('determinism', output='gif')
    assert make_symbol('determinism').mask == make_symbol('determinism').mask


@pytest.mark.parametrize("ecc", ECC_LEVELS)
def test_capacity_monotonicity(ecc):
    text = 'MONOTONIC 12345 ' * 8
    ok = []
    for version in range(1, 15):
        try:
            make_symbol(text, ecc=ecc, version=version, mask=0)
            ok.append(True)
        except CapacityError:
            ok.append(False)
    first = ok.index(True)
    assert all(ok[first:])
    assert make_symbol(text, ecc=ecc).version == first + 1


def test_capacity_errors():
    # 30 bytes > 26 codewords of a version 1-L symbol
    with pytest.raises(CapacityError):
        encode_qr('a' * 30, version=1, ecc='low')
    with pytest.raises(CapacityError):
        make_symbol('a' * 3000, ecc='high')


def test_damaged_symbol_still_decodes():
    symbol = make_symbol('damaged but readable', ecc='high')
    raster = symbol.raster.clone()
    size = raster.height
    # First codeword lives in the bottom-right corner
    for x, y in [(size - 1, size - 1), (size - 2, size - 1), (size - 1, size - 2), (size - 2, size - 2)]:
        raster.set((x, y), not raster.get((x, y)))
    # Two bit errors in the first format copy
    raster.set((8, 0), not raster.get((8, 0)))
    raster.set((0, 8), not raster.get((0, 8)))
    assert read_format_bits(raster)[0] != read_format_bits(symbol.raster)[0]
    assert decode_symbol(raster) == 'damaged but readable'
    assert decode_qr(raster.border(3, False).scale(2)) == 'damaged but readable'


def test_outputs():
    raw = encode_qr('out', border=1)
    assert len(raw) == 23 and len(raw[0]) == 23
    assert raw[0][0] is False
    assert isinstance(encode_qr('out', output='raster'), Raster)
    assert encode_qr('out', output='gif').startswith(b'GIF87a')
    assert encode_qr('out', output='svg').endswith('</svg>')
    assert '\x1b[' in encode_qr('out', output='term')
    ascii_art = encode_qr('out', output='ascii')
    assert ascii_art.count('\n') == (21 + 4 + 1) // 2


def test_invalid_options():
    with pytest.raises(ValidationError):
        encode_qr('x', output='png')
    with pytest.raises(ValidationError):
        encode_qr('x', colour='red')
    with pytest.raises(ValidationError):
        encode_qr('ABC', encoding='numeric')
    with pytest.raises(ValidationError):
        encode_qr('x', encoding='kanji')
    with pytest.raises(ValidationError):
        encode_qr('x', mask=9)
    with pytest.raises(ValidationError):
        encode_qr('x', scale=0)
    with pytest.raises(ValidationError):
        encode_qr('x', border=-1)
    with pytest.raises(ValidationError):
        make_symbol(b'bytes')


def test_options_defaults():
    opts = EncodeOptions()
    assert (opts.ecc, opts.border, opts.scale, opts.version, opts.mask) == ('medium', 2, None, None, None)
    opts.validate()


def test_decode_symbol_rejects_bad_sizes():
    with pytest.raises(ValidationError):
        decode_symbol(Raster(22).rect(0, None, False))
    with pytest.raises(ValidationError):
        decode_symbol(Raster(21, 25).rect(0, None, False))
