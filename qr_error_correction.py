"""
QR Error Correction Module
Reed-Solomon encoding and syndrome-based correction of codeword blocks
"""

import logging
from typing import List, Sequence

from qr_errors import ECCUncorrectableError, FieldArithmeticError
from qr_galois import GF256, gf

logger = logging.getLogger(__name__)


class ReedSolomon:
    """Reed-Solomon code with ``ecc_words`` check codewords per block."""

    def __init__(self, ecc_words: int, field: GF256 = gf):
        self.ecc_words = ecc_words
        self.field = field

    def encode(self, data: Sequence[int]) -> bytes:
        """ECC codewords: remainder of data * x^n divided by the generator."""
        generator = self.field.generator(self.ecc_words)
        message = list(data) + [0] * self.ecc_words
        return bytes(self.field.poly_remainder(message, generator))

    def syndromes(self, block: Sequence[int]) -> List[int]:
        """Received polynomial evaluated at 2^0 .. 2^(n-1)."""
        received = self.field.poly(block)
        return [self.field.poly_eval(received, self.field.exp(i)) for i in range(self.ecc_words)]

    def decode(self, block: Sequence[int]) -> bytes:
        """
        Correct up to ecc_words // 2 byte errors in ``block`` (data + ECC).

        Returns the full corrected block; raises ECCUncorrectableError when
        the damage cannot be reconciled.
        """
        res = list(block)
        field = self.field
        syndrome = self.syndromes(res)
        if not any(syndrome):
            return bytes(res)

        # Highest power first: syndrome i is the coefficient of x^i
        syndrome_poly = field.poly(syndrome[::-1])
        try:
            locator, evaluator = field.euclidean(
                field.monomial(self.ecc_words, 1), syndrome_poly, self.ecc_words)
        except FieldArithmeticError as e:
            raise ECCUncorrectableError(f"RS.decode: {e}") from e

        # Brute-force root search over the non-zero field elements
        error_count = field.degree(locator)
        locations = []
        for i in range(1, 256):
            if len(locations) >= error_count:
                break
            if field.poly_eval(locator, i) == 0:
                locations.append(field.inverse(i))
        if len(locations) != error_count:
            raise ECCUncorrectableError(
                f"RS.decode: wrong errors number ({len(locations)} roots for degree {error_count})")

        for i, location in enumerate(locations):
            pos = len(res) - 1 - field.log(location)
            if pos < 0:
                raise ECCUncorrectableError("RS.decode: wrong error location")
            xi_inverse = field.inverse(location)
            denominator = 1
            for j, other in enumerate(locations):
                if i != j:
                    denominator = field.multiply(denominator, 1 ^ field.multiply(other, xi_inverse))
            magnitude = field.multiply(field.poly_eval(evaluator, xi_inverse), field.inverse(denominator))
            logger.debug(f"RS: byte {pos}: {res[pos]} -> {res[pos] ^ magnitude}")
            res[pos] ^= magnitude

        if any(self.syndromes(res)):
            raise ECCUncorrectableError("RS.decode: block still inconsistent after correction")
        return bytes(res)
