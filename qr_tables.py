"""
QR Tables Module
Static version/ECC tables, BCH-protected format/version words and argument validation
"""

from collections import namedtuple
from typing import List

from qr_errors import ValidationError

ECC_LEVELS = ('low', 'medium', 'quartile', 'high')
ENCODINGS = ('numeric', 'alphanumeric', 'byte', 'kanji', 'eci')
SUPPORTED_ENCODINGS = ('numeric', 'alphanumeric', 'byte')

MIN_VERSION = 1
MAX_VERSION = 40

# Total codewords per version
BYTES = [
    # 1,  2,  3,   4,   5,   6,   7,   8,   9,  10,  11,  12,  13,  14,  15,  16,  17,  18,  19,   20
    26, 44, 70, 100, 134, 172, 196, 242, 292, 346, 404, 466, 532, 581, 655, 733, 815, 901, 991, 1085,
    #  21,   22,   23,   24,   25,   26,   27,   28,   29,   30,   31,   32,   33,   34,   35,   36,   37,   38,   39,   40
    1156, 1258, 1364, 1474, 1588, 1706, 1828, 1921, 2051, 2185, 2323, 2465, 2611, 2761, 2876, 3034, 3196, 3362, 3532, 3706,
]

# ECC codewords per block
WORDS_PER_BLOCK = {
    # Version  1,  2,  3,  4,  5,  6,  7,  8,  9, 10, 11, 12, 13, 14, 15, 16, 17, 18, 19, 20, 21, 22, 23, 24, 25, 26, 27, 28, 29, 30, 31, 32, 33, 34, 35, 36, 37, 38, 39, 40
    'low':      [7, 10, 15, 20, 26, 18, 20, 24, 30, 18, 20, 24, 26, 30, 22, 24, 28, 30, 28, 28, 28, 28, 30, 30, 26, 28, 30, 30, 30, 30, 30, 30, 30, 30, 30, 30, 30, 30, 30, 30],
    'medium':   [10, 16, 26, 18, 24, 16, 18, 22, 22, 26, 30, 22, 22, 24, 24, 28, 28, 26, 26, 26, 26, 28, 28, 28, 28, 28, 28, 28, 28, 28, 28, 28, 28, 28, 28, 28, 28, 28, 28, 28],
    'quartile': [13, 22, 18, 26, 18, 24, 18, 22, 20, 24, 28, 26, 24, 20, 30, 24, 28, 28, 26, 30, 28, 30, 30, 30, 30, 28, 30, 30, 30, 30, 30, 30, 30, 30, 30, 30, 30, 30, 30, 30],
    'high':     [17, 28, 22, 16, 22, 28, 26, 26, 24, 28, 24, 28, 22, 24, 24, 30, 28, 28, 26, 28, 30, 24, 30, 30, 30, 30, 30, 30, 30, 30, 30, 30, 30, 30, 30, 30, 30, 30, 30, 30],
}

# Number of error correction blocks
ECC_BLOCKS = {
    # Version  1, 2, 3, 4, 5, 6, 7, 8, 9,10, 11, 12, 13, 14, 15, 16, 17, 18, 19, 20, 21, 22, 23, 24, 25, 26, 27, 28, 29, 30, 31, 32, 33, 34, 35, 36, 37, 38, 39, 40
    'low':      [1, 1, 1, 1, 1, 2, 2, 2, 2, 4, 4, 4, 4, 4, 6, 6, 6, 6, 7, 8, 8, 9, 9, 10, 12, 12, 12, 13, 14, 15, 16, 17, 18, 19, 19, 20, 21, 22, 24, 25],
    'medium':   [1, 1, 1, 2, 2, 4, 4, 4, 5, 5, 5, 8, 9, 9, 10, 10, 11, 13, 14, 16, 17, 17, 18, 20, 21, 23, 25, 26, 28, 29, 31, 33, 35, 37, 38, 40, 43, 45, 47, 49],
    'quartile': [1, 1, 2, 2, 4, 4, 6, 6, 8, 8, 8, 10, 12, 16, 12, 17, 16, 18, 21, 20, 23, 23, 25, 27, 29, 34, 34, 35, 38, 40, 43, 45, 48, 51, 53, 56, 59, 62, 65, 68],
    'high':     [1, 1, 2, 4, 4, 4, 5, 6, 8, 8, 11, 11, 16, 16, 18, 16, 19, 21, 25, 25, 25, 34, 30, 32, 35, 37, 40, 42, 45, 48, 51, 54, 57, 60, 63, 66, 70, 74, 77, 81],
}

# Error correction level bits of the format word
ECC_CODE = {'low': 0b01, 'medium': 0b00, 'quartile': 0b11, 'high': 0b10}

FORMAT_MASK = 0b101010000010010
FORMAT_GENERATOR = 0b10100110111     # x^10 + x^8 + x^5 + x^4 + x^2 + x + 1
VERSION_GENERATOR = 0b1111100100101  # x^12 + x^11 + x^10 + x^9 + x^8 + x^5 + x^2 + 1

MODE_BITS = {
    'numeric': '0001',
    'alphanumeric': '0010',
    'byte': '0100',
    'kanji': '1000',
    'eci': '0111',
}

# Character count indicator width per version tier (1-9, 10-26, 27-40)
LENGTH_BITS = {
    'numeric': (10, 12, 14),
    'alphanumeric': (9, 11, 13),
    'byte': (8, 16, 16),
    'kanji': (8, 10, 12),
    'eci': (0, 0, 0),
}

Capacity = namedtuple('Capacity', 'words num_blocks short_blocks block_len capacity total')


def validate_version(version):
    if not isinstance(version, int) or isinstance(version, bool) or not MIN_VERSION <= version <= MAX_VERSION:
        raise ValidationError(f"Invalid version={version}. Expected number [{MIN_VERSION}..{MAX_VERSION}]")


def validate_ecc(ecc):
    if ecc not in ECC_LEVELS:
        raise ValidationError(f"Invalid error correction mode={ecc}. Expected: {', '.join(ECC_LEVELS)}")


def validate_encoding(encoding):
    if encoding not in ENCODINGS:
        raise ValidationError(f"Encoding: invalid mode={encoding}. Expected: {', '.join(ENCODINGS)}")
    if encoding not in SUPPORTED_ENCODINGS:
        raise ValidationError(f"Encoding: {encoding} is not supported")


def validate_mask(mask):
    if not isinstance(mask, int) or isinstance(mask, bool) or not 0 <= mask <= 7:
        raise ValidationError(f"Invalid mask={mask}. Expected number [0..7]")


def symbol_size(version: int) -> int:
    return 21 + 4 * (version - 1)


def version_for_size(size: int) -> int:
    if size < symbol_size(MIN_VERSION) or (size - 17) % 4:
        raise ValidationError(f"Invalid symbol size={size}")
    version = (size - 17) // 4
    validate_version(version)
    return version


def size_type(version: int) -> int:
    """Version tier used by the length field table."""
    return (version + 7) // 17


def length_bits(version: int, mode: str) -> int:
    return LENGTH_BITS[mode][size_type(version)]


def alignment_patterns(version: int) -> List[int]:
    """Row/column coordinates of alignment pattern centers, evenly spaced."""
    if version == 1:
        return []
    first = 6
    last = symbol_size(version) - first - 1
    distance = last - first
    count = -(-distance // 28)
    interval = distance // count
    if interval % 2:
        interval += 1
    elif (distance % count) * 2 >= count:
        interval += 2
    res = [first]
    for m in range(1, count):
        res.append(last - (count - m) * interval)
    res.append(last)
    return res


def bch_remainder(value: int, generator: int, shift: int) -> int:
    """Remainder of value * x^shift modulo the generator polynomial."""
    top = generator.bit_length() - 1
    rem = value << shift
    for bit in range(rem.bit_length() - 1, top - 1, -1):
        if rem & (1 << bit):
            rem ^= generator << (bit - top)
    return rem


def format_bits(ecc: str, mask: int) -> int:
    """15-bit format word: ECC level + mask, BCH(15,5), XOR the format mask."""
    data = (ECC_CODE[ecc] << 3) | mask
    return ((data << 10) | bch_remainder(data, FORMAT_GENERATOR, 10)) ^ FORMAT_MASK


def version_bits(version: int) -> int:
    """18-bit version word, BCH(18,6)."""
    return (version << 12) | bch_remainder(version, VERSION_GENERATOR, 12)


def capacity(version: int, ecc: str) -> Capacity:
    total_bytes = BYTES[version - 1]
    words = WORDS_PER_BLOCK[ecc][version - 1]
    num_blocks = ECC_BLOCKS[ecc][version - 1]
    block_len = total_bytes // num_blocks - words
    short_blocks = num_blocks - total_bytes % num_blocks
    return Capacity(
        words=words,
        num_blocks=num_blocks,
        short_blocks=short_blocks,
        block_len=block_len,
        capacity=(total_bytes - words * num_blocks) * 8,
        total=(words + block_len) * num_blocks + num_blocks - short_blocks,
    )
