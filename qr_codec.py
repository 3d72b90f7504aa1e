"""
QR Codec Module
High-level encode/decode entry points tying the pipeline together
"""

import logging
from dataclasses import asdict, dataclass, fields
from typing import Optional

from qr_bitstream import decode_bitstream, detect_mode, encode_data
from qr_blocks import BlockLayout
from qr_errors import CapacityError, ValidationError
from qr_mask import draw_qr, extract_data, select_best_mask
from qr_pattern_finder import locate_symbol
from qr_raster import Raster
from qr_tables import (
    MAX_VERSION, MIN_VERSION, validate_ecc, validate_encoding, validate_mask, validate_version,
    version_for_size,
)
from qr_template import decode_format, decode_version, draw_template, read_format_bits, read_version_bits

logger = logging.getLogger(__name__)

OUTPUTS = ('raw', 'raster', 'ascii', 'svg', 'gif', 'term')


@dataclass
class EncodeOptions:
    """Encoding parameters; ``None`` means choose automatically."""
    ecc: str = 'medium'
    encoding: Optional[str] = None
    version: Optional[int] = None
    mask: Optional[int] = None
    border: int = 2
    scale: Optional[int] = None

    def validate(self):
        validate_ecc(self.ecc)
        if self.encoding is not None:
            validate_encoding(self.encoding)
        if self.version is not None:
            validate_version(self.version)
        if self.mask is not None:
            validate_mask(self.mask)
        if not isinstance(self.border, int) or isinstance(self.border, bool) or self.border < 0:
            raise ValidationError(f"Wrong border width={self.border!r}")


@dataclass
class QRSymbol:
    """Drawn symbol (no border) and the parameters it was drawn with."""
    raster: Raster
    version: int
    ecc: str
    mask: int
    encoding: str


def _options(options) -> EncodeOptions:
    known = {f.name for f in fields(EncodeOptions)}
    unknown = set(options) - known
    if unknown:
        raise ValidationError(f"Unknown encode options: {', '.join(sorted(unknown))}")
    opts = EncodeOptions(**options)
    opts.validate()
    return opts


def make_symbol(text: str, **options) -> QRSymbol:
    """
    Encode ``text`` into a fully drawn symbol.

    Without an explicit version the smallest one that fits is used; the
    CapacityError of version 40 is raised when nothing fits.
    """
    if not isinstance(text, str):
        raise ValidationError(f"Expected text, got {type(text).__name__}")
    opts = _options(options)
    encoding = opts.encoding or detect_mode(text)

    if opts.version is not None:
        version = opts.version
        data = encode_data(version, opts.ecc, text, encoding)
    else:
        data = None
        error = None
        for version in range(MIN_VERSION, MAX_VERSION + 1):
            try:
                data = encode_data(version, opts.ecc, text, encoding)
                break
            except CapacityError as e:
                error = e
        if data is None:
            raise error
    logger.debug(f"Encoding {len(text)} chars as {encoding}: version {version}, ecc {opts.ecc}")

    codewords = BlockLayout(version, opts.ecc).encode(data)
    mask = opts.mask
    if mask is None:
        mask = select_best_mask(version, opts.ecc, codewords)
    raster = draw_qr(version, opts.ecc, codewords, mask)
    raster.assert_fully_drawn()
    return QRSymbol(raster, version, opts.ecc, mask, encoding)


def encode_qr(text: str, output: str = 'raw', **options):
    """
    Encode ``text`` and render it.

    Outputs: ``raw`` (rows of True/False), ``raster`` (Raster), ``ascii``,
    ``svg``, ``gif`` (bytes) and ``term``. Options are the EncodeOptions
    fields.
    """
    if output not in OUTPUTS:
        raise ValidationError(f"Unknown output={output}. Expected: {', '.join(OUTPUTS)}")
    opts = _options(options)
    symbol = make_symbol(text, **asdict(opts))
    res = symbol.raster.border(opts.border, False)
    if opts.scale is not None:
        res = res.scale(opts.scale)
    if output == 'raster':
        return res
    if output == 'ascii':
        return res.to_ascii()
    if output == 'svg':
        return res.to_svg()
    if output == 'gif':
        return res.to_gif()
    if output == 'term':
        return res.to_term()
    return res.to_rows()


def decode_symbol(grid) -> str:
    """Decode a grid holding exactly one module per cell and no border."""
    raster = Raster.from_grid(grid)
    if raster.width != raster.height:
        raise ValidationError(f"Symbol must be square, got {raster.width}x{raster.height}")
    version = version_for_size(raster.height)
    if version >= 7:
        read_version = decode_version(*read_version_bits(raster))
        if read_version != version:
            logger.warning(f"Version bits say {read_version}, symbol size says {version}")
    ecc, mask = decode_format(*read_format_bits(raster))
    layout = BlockLayout(version, ecc)
    template = draw_template(version, ecc, mask)
    codewords = extract_data(raster, template, mask, layout.total)
    text = decode_bitstream(layout.decode(codewords), version)
    logger.debug(f"Decoded version {version}, ecc {ecc}, mask {mask}: {len(text)} chars")
    return text


def decode_qr(grid) -> str:
    """
    Decode a sampled grid (tri-state cells, optional quiet zone and scale).

    Raises PatternNotFoundError when no symbol can be located and
    ECCUncorrectableError when it is too damaged to read.
    """
    return decode_symbol(locate_symbol(grid))
