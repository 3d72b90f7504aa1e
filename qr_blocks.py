"""
QR Block Layout Module
Splits data codewords into Reed-Solomon blocks and interleaves them
"""

import logging
from typing import List, Sequence

from qr_error_correction import ReedSolomon
from qr_errors import ValidationError
from qr_tables import capacity, validate_ecc, validate_version

logger = logging.getLogger(__name__)


def interleave_bytes(*blocks: Sequence[int]) -> bytes:
    """Byte-position-major interleave; shorter blocks are simply skipped."""
    length = max((len(b) for b in blocks), default=0)
    res = []
    for i in range(length):
        for block in blocks:
            if i < len(block):
                res.append(block[i])
    return bytes(res)


class BlockLayout:
    """Codeword layout for one (version, ECC level) pair."""

    def __init__(self, version: int, ecc: str):
        validate_version(version)
        validate_ecc(ecc)
        self.version = version
        self.ecc = ecc
        cap = capacity(version, ecc)
        self.words = cap.words
        self.num_blocks = cap.num_blocks
        self.short_blocks = cap.short_blocks
        self.block_len = cap.block_len
        self.total = cap.total
        self.data_bytes = cap.capacity // 8
        self.rs = ReedSolomon(self.words)

    def block_lengths(self) -> List[int]:
        """Data codewords per block, short blocks first."""
        return [self.block_len + (0 if i < self.short_blocks else 1) for i in range(self.num_blocks)]

    def encode(self, data: Sequence[int]) -> bytes:
        """Data codewords -> interleaved data blocks followed by interleaved ECC blocks."""
        if len(data) != self.data_bytes:
            raise ValidationError(f"BlockLayout.encode: len(data)={len(data)}, expected {self.data_bytes}")
        data = bytes(data)
        blocks = []
        ecc_blocks = []
        for length in self.block_lengths():
            block, data = data[:length], data[length:]
            blocks.append(block)
            ecc_blocks.append(self.rs.encode(block))
        return interleave_bytes(*blocks) + interleave_bytes(*ecc_blocks)

    def decode(self, codewords: Sequence[int]) -> bytes:
        """Interleaved codewords -> corrected data codewords (ECC dropped)."""
        if len(codewords) != self.total:
            raise ValidationError(f"BlockLayout.decode: len(data)={len(codewords)}, total={self.total}")
        lengths = self.block_lengths()
        blocks = [[0] * (self.words + length) for length in lengths]
        pos = 0
        for i in range(self.block_len):
            for block in blocks:
                block[i] = codewords[pos]
                pos += 1
        for j in range(self.short_blocks, self.num_blocks):
            blocks[j][self.block_len] = codewords[pos]
            pos += 1
        for i in range(self.block_len, self.block_len + self.words):
            for j, block in enumerate(blocks):
                block[i + (0 if j < self.short_blocks else 1)] = codewords[pos]
                pos += 1
        res = bytearray()
        for j, block in enumerate(blocks):
            corrected = self.rs.decode(block)
            if corrected != bytes(block):
                logger.debug(f"Block {j}: corrected {sum(a != b for a, b in zip(block, corrected))} bytes")
            res += corrected[:lengths[j]]
        return bytes(res)
