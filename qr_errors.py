"""
QR Codec Errors
Exception taxonomy shared by the encoder and decoder
"""


class QRError(Exception):
    """Base class for every error raised by the codec."""


class ValidationError(QRError, ValueError):
    """Bad version/ECC/mask/encoding argument or malformed input."""


class MalformedRasterError(ValidationError):
    """Raster still holds undetermined cells."""


class CapacityError(QRError):
    """Bitstream does not fit the chosen version and ECC level."""


class FieldArithmeticError(QRError, ArithmeticError):
    """log/inverse of zero or a broken polynomial invariant in GF(256)."""


class ECCUncorrectableError(QRError):
    """Data too damaged to recover."""


class PatternNotFoundError(QRError):
    """Not a recognizable QR symbol."""
