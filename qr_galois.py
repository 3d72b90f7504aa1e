"""
QR Galois Field Module
GF(2^8) arithmetic and polynomial operations used by Reed-Solomon
"""

from typing import List, Tuple

from qr_errors import FieldArithmeticError

Poly = List[int]


# Galois Field GF(2^8) utilities
class GF256:
    """
    GF(2^8) over the QR primitive polynomial x^8 + x^4 + x^3 + x^2 + 1.

    Polynomials are lists of coefficients, most significant first, kept
    without leading zeros; the zero polynomial is ``[0]``.
    """

    def __init__(self, prim_poly: int = 0x11D):
        self.prim_poly = prim_poly
        self.exp_table = [0] * 256
        self.log_table = [0] * 256
        self._generators = {}
        self._build_tables()

    def _build_tables(self):
        x = 1
        for i in range(255):
            self.exp_table[i] = x
            self.log_table[x] = i
            x <<= 1
            if x & 0x100:
                x ^= self.prim_poly
        self.exp_table[255] = self.exp_table[0]

    def exp(self, n: int) -> int:
        return self.exp_table[n % 255]

    def log(self, a: int) -> int:
        if a == 0:
            raise FieldArithmeticError(f"GF.log: wrong arg={a}")
        return self.log_table[a]

    def add(self, a: int, b: int) -> int:
        return a ^ b

    def multiply(self, a: int, b: int) -> int:
        if a == 0 or b == 0:
            return 0
        return self.exp_table[(self.log_table[a] + self.log_table[b]) % 255]

    def divide(self, a: int, b: int) -> int:
        if b == 0:
            raise FieldArithmeticError("Division by zero")
        if a == 0:
            return 0
        return self.exp_table[(self.log_table[a] - self.log_table[b]) % 255]

    def pow(self, a: int, e: int) -> int:
        if a == 0:
            return 0 if e else 1
        return self.exp_table[(self.log_table[a] * e) % 255]

    def inverse(self, a: int) -> int:
        if a == 0:
            raise FieldArithmeticError(f"GF.inverse: wrong arg={a}")
        return self.exp_table[(255 - self.log_table[a]) % 255]

    # ------------------------------------------------------------------
    # Polynomials
    # ------------------------------------------------------------------

    def poly(self, coefficients) -> Poly:
        """Normalize: drop leading zero coefficients."""
        coefficients = list(coefficients)
        if not coefficients:
            raise FieldArithmeticError("GF.poly: empty polynomial")
        for i, c in enumerate(coefficients):
            if c != 0:
                return coefficients[i:]
        return [0]

    def monomial(self, degree: int, coefficient: int) -> Poly:
        if degree < 0:
            raise FieldArithmeticError(f"GF.monomial: wrong degree={degree}")
        if coefficient == 0:
            return [0]
        return [coefficient] + [0] * degree

    @staticmethod
    def degree(a: Poly) -> int:
        return len(a) - 1

    def coefficient(self, a: Poly, degree: int) -> int:
        return a[self.degree(a) - degree]

    def poly_add(self, a: Poly, b: Poly) -> Poly:
        if a[0] == 0:
            return b
        if b[0] == 0:
            return a
        if len(a) < len(b):
            a, b = b, a
        diff = len(a) - len(b)
        res = a[:diff] + [x ^ y for x, y in zip(a[diff:], b)]
        return self.poly(res)

    def poly_multiply(self, a: Poly, b: Poly) -> Poly:
        if a[0] == 0 or b[0] == 0:
            return [0]
        res = [0] * (len(a) + len(b) - 1)
        for i, x in enumerate(a):
            for j, y in enumerate(b):
                res[i + j] ^= self.multiply(x, y)
        return self.poly(res)

    def poly_scale(self, a: Poly, scalar: int) -> Poly:
        if scalar == 0:
            return [0]
        if scalar == 1:
            return a
        return self.poly([self.multiply(c, scalar) for c in a])

    def poly_multiply_monomial(self, a: Poly, degree: int, coefficient: int) -> Poly:
        if degree < 0:
            raise FieldArithmeticError(f"GF.poly_multiply_monomial: wrong degree={degree}")
        if coefficient == 0:
            return [0]
        return self.poly([self.multiply(c, coefficient) for c in a] + [0] * degree)

    def poly_remainder(self, data: Poly, divisor: Poly) -> Poly:
        """
        Remainder of synthetic division by ``divisor``.

        The result always has ``len(divisor) - 1`` coefficients (leading
        zeros kept) since it is used directly as ECC codewords.
        """
        out = list(data)
        lead_inverse = self.inverse(divisor[0])
        for i in range(len(data) - len(divisor) + 1):
            factor = self.multiply(out[i], lead_inverse)
            if factor == 0:
                continue
            for j in range(1, len(divisor)):
                if divisor[j]:
                    out[i + j] ^= self.multiply(divisor[j], factor)
        return out[len(data) - len(divisor) + 1:]

    def poly_eval(self, a: Poly, x: int) -> int:
        """Evaluate with Horner's method."""
        if x == 0:
            return self.coefficient(a, 0)
        res = a[0]
        for c in a[1:]:
            res = self.multiply(x, res) ^ c
        return res

    def generator(self, degree: int) -> Poly:
        """(x - 2^0)(x - 2^1)...(x - 2^(degree-1))"""
        if degree not in self._generators:
            g = [1]
            for i in range(degree):
                g = self.poly_multiply(g, [1, self.pow(2, i)])
            self._generators[degree] = g
        return self._generators[degree]

    def euclidean(self, a: Poly, b: Poly, threshold: int) -> Tuple[Poly, Poly]:
        """
        Extended Euclid stopped once deg(r) < threshold / 2.

        Returns (error locator, error evaluator), both scaled so the
        locator's constant term is 1.
        """
        if self.degree(a) < self.degree(b):
            a, b = b, a
        r_last, r = a, b
        t_last, t = [0], [1]
        while 2 * self.degree(r) >= threshold:
            r_last_last, t_last_last = r_last, t_last
            r_last, t_last = r, t
            if r_last[0] == 0:
                raise FieldArithmeticError("GF.euclidean: r_last is zero")
            r = r_last_last
            q = [0]
            lead_inverse = self.inverse(r_last[0])
            while self.degree(r) >= self.degree(r_last) and r[0] != 0:
                degree_diff = self.degree(r) - self.degree(r_last)
                scale = self.multiply(r[0], lead_inverse)
                q = self.poly_add(q, self.monomial(degree_diff, scale))
                r = self.poly_add(r, self.poly_multiply_monomial(r_last, degree_diff, scale))
            t = self.poly_add(self.poly_multiply(q, t_last), t_last_last)
            if self.degree(r) >= self.degree(r_last):
                raise FieldArithmeticError(f"GF.euclidean: division failed r={r}, r_last={r_last}")
        sigma_at_zero = self.coefficient(t, 0)
        if sigma_at_zero == 0:
            raise FieldArithmeticError("GF.euclidean: sigma(0) was zero")
        inverse = self.inverse(sigma_at_zero)
        return self.poly_scale(t, inverse), self.poly_scale(r, inverse)


gf = GF256()
