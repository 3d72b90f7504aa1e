"""
QR Bitstream Module
Mode detection, segment packing and padding, and the inverse bitstream parser
"""

import logging
from typing import Tuple

from qr_errors import CapacityError, ValidationError
from qr_tables import (
    MODE_BITS, capacity, length_bits, validate_ecc, validate_encoding, validate_version,
)

logger = logging.getLogger(__name__)

NUMERIC = '0123456789'
ALPHANUMERIC = '0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZ $%*+-./:'
PADDING = '1110110000010001'  # 0xEC 0x11
TERMINATOR = '0000'

_MODES = {bits: mode for mode, bits in MODE_BITS.items()}


def bin_str(value: int, width: int) -> str:
    return format(value, f'0{width}b')


def bitstream_to_bytes(bitstream: str) -> bytes:
    """Convert bit string to byte array"""
    return bytes(int(bitstream[i:i + 8], 2) for i in range(0, len(bitstream), 8))


def bytes_to_bitstream(byte_data) -> str:
    """Convert byte array to bit string"""
    return ''.join(f"{byte:08b}" for byte in byte_data)


def detect_mode(text: str) -> str:
    """Most compact of numeric / alphanumeric / byte able to hold ``text``."""
    mode = 'numeric'
    for ch in text:
        if ch in NUMERIC:
            continue
        mode = 'alphanumeric'
        if ch not in ALPHANUMERIC:
            return 'byte'
    return mode


def _indexes(text: str, alphabet: str, mode: str):
    res = []
    for ch in text:
        index = alphabet.find(ch)
        if index == -1:
            raise ValidationError(f"Unknown letter for {mode} mode: {ch!r}. Allowed: {alphabet}")
        res.append(index)
    return res


def encode_numeric(text: str) -> str:
    """Three digits per 10 bits; a trailing 1 or 2 digits take 4 or 7 bits."""
    digits = _indexes(text, NUMERIC, 'numeric')
    n = len(digits)
    bits = []
    for i in range(0, n - 2, 3):
        bits.append(bin_str(digits[i] * 100 + digits[i + 1] * 10 + digits[i + 2], 10))
    if n % 3 == 1:
        bits.append(bin_str(digits[-1], 4))
    elif n % 3 == 2:
        bits.append(bin_str(digits[-2] * 10 + digits[-1], 7))
    return ''.join(bits)


def encode_alphanumeric(text: str) -> str:
    """Two characters per 11 bits; a trailing character takes 6 bits."""
    values = _indexes(text, ALPHANUMERIC, 'alphanumeric')
    n = len(values)
    bits = [bin_str(values[i] * 45 + values[i + 1], 11) for i in range(0, n - 1, 2)]
    if n % 2:
        bits.append(bin_str(values[-1], 6))
    return ''.join(bits)


def encode_byte(text: str) -> Tuple[str, int]:
    """UTF-8 bytes, 8 bits each. Returns (bits, byte count)."""
    data = text.encode('utf-8')
    return bytes_to_bitstream(data), len(data)


def build_bitstream(version: int, ecc: str, text: str, mode: str) -> str:
    """
    Mode indicator + length field + data, terminated and padded to capacity.

    Raises CapacityError if the unpadded stream is already too long.
    """
    validate_version(version)
    validate_ecc(ecc)
    validate_encoding(mode)
    if mode == 'numeric':
        encoded, count = encode_numeric(text), len(text)
    elif mode == 'alphanumeric':
        encoded, count = encode_alphanumeric(text), len(text)
    else:
        encoded, count = encode_byte(text)

    count_width = length_bits(version, mode)
    if count >= 1 << count_width:
        raise CapacityError(f"{count} characters do not fit a {count_width}-bit length field")
    cap = capacity(version, ecc).capacity
    bits = MODE_BITS[mode] + bin_str(count, count_width) + encoded
    if len(bits) > cap:
        raise CapacityError(f"Capacity overflow: {len(bits)} bits > {cap} (version {version}, {ecc})")

    bits += '0' * min(len(TERMINATOR), cap - len(bits))
    if len(bits) % 8:
        bits += '0' * (8 - len(bits) % 8)
    pad = []
    for i in range(cap - len(bits)):
        pad.append(PADDING[i % len(PADDING)])
    return bits + ''.join(pad)


def encode_data(version: int, ecc: str, text: str, mode: str) -> bytes:
    """Padded data codewords for one symbol."""
    return bitstream_to_bytes(build_bitstream(version, ecc, text, mode))


class _BitReader:
    def __init__(self, bits: str):
        self.bits = bits
        self.pos = 0

    def remaining(self) -> int:
        return len(self.bits) - self.pos

    def read(self, n: int) -> int:
        if n > self.remaining():
            raise ValidationError(f"Bitstream truncated: need {n} bits, {self.remaining()} left")
        value = int(self.bits[self.pos:self.pos + n] or '0', 2)
        self.pos += n
        return value


def decode_bitstream(data: bytes, version: int) -> str:
    """
    Parse corrected data codewords back into text.

    Stops at the terminator or when fewer than 4 bits remain.
    """
    reader = _BitReader(bytes_to_bitstream(data))
    result = []
    while reader.remaining() >= 4:
        mode_bits = bin_str(reader.read(4), 4)
        if mode_bits == TERMINATOR:
            break
        mode = _MODES.get(mode_bits)
        if mode is None:
            raise ValidationError(f"Unknown segment mode {mode_bits}")
        if mode in ('kanji', 'eci'):
            raise ValidationError(f"Encoding: {mode} is not supported")
        count = reader.read(length_bits(version, mode))
        logger.debug(f"Segment: {mode}, {count} chars")
        if mode == 'numeric':
            digits = []
            for _ in range(count // 3):
                value = reader.read(10)
                if value > 999:
                    raise ValidationError(f"Invalid numeric group {value}")
                digits.append(f"{value:03d}")
            if count % 3 == 1:
                value = reader.read(4)
                if value > 9:
                    raise ValidationError(f"Invalid numeric digit {value}")
                digits.append(str(value))
            elif count % 3 == 2:
                value = reader.read(7)
                if value > 99:
                    raise ValidationError(f"Invalid numeric pair {value}")
                digits.append(f"{value:02d}")
            result.append(''.join(digits))
        elif mode == 'alphanumeric':
            chars = []
            for _ in range(count // 2):
                value = reader.read(11)
                if value >= 45 * 45:
                    raise ValidationError(f"Invalid alphanumeric pair {value}")
                chars.append(ALPHANUMERIC[value // 45] + ALPHANUMERIC[value % 45])
            if count % 2:
                value = reader.read(6)
                if value >= 45:
                    raise ValidationError(f"Invalid alphanumeric character {value}")
                chars.append(ALPHANUMERIC[value])
            result.append(''.join(chars))
        else:
            raw = bytes(reader.read(8) for _ in range(count))
            result.append(raw.decode('utf-8', errors='replace'))
    return ''.join(result)
