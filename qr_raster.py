"""
QR Raster Module
Tri-state module grid (dark / light / unknown) with drawing and rendering helpers
"""

from enum import IntEnum
from typing import Callable, List, Optional, Tuple, Union

import numpy as np

from qr_errors import MalformedRasterError, ValidationError

MAX_SCALE = 1024
GIF_CHUNK = 126  # literal codes between two LZW clear codes

Point = Tuple[int, int]


class Cell(IntEnum):
    """Module state; a cell is truthy only when it is dark."""
    LIGHT = 0
    DARK = 1
    UNKNOWN = 2

    def __bool__(self):
        return self is Cell.DARK

    @classmethod
    def of(cls, value) -> 'Cell':
        """Normalize bool / None / Cell / cell code into a Cell."""
        if value is None:
            return cls.UNKNOWN
        if isinstance(value, Cell):
            return value
        if isinstance(value, (int, np.integer)) and not isinstance(value, bool):
            try:
                return cls(int(value))
            except ValueError:
                raise ValidationError(f"Unknown cell value: {value}")
        return cls.DARK if value else cls.LIGHT


_CELLS = (Cell.LIGHT, Cell.DARK, Cell.UNKNOWN)
_SYMBOLS = {'X': Cell.DARK, ' ': Cell.LIGHT, '?': Cell.UNKNOWN}


class Raster:
    """
    2-D grid of cells stored row-major in ``data[y, x]``.

    Points are ``(x, y)`` tuples (an int ``n`` means ``(n, n)``) and wrap
    around the edges, so ``(-7, 0)`` addresses the seventh column from the
    right. Rectangular operations are clipped to the grid.
    """

    def __init__(self, height: int, width: Optional[int] = None, data: Optional[np.ndarray] = None):
        if width is None:
            width = height
        for name, value in (('height', height), ('width', width)):
            if not isinstance(value, (int, np.integer)) or value < 0:
                raise ValidationError(f"Raster: wrong {name}={value}")
        self.height = int(height)
        self.width = int(width)
        if data is None:
            data = np.full((self.height, self.width), Cell.UNKNOWN, dtype=np.uint8)
        elif data.shape != (self.height, self.width):
            raise ValidationError(f"Raster: data shape {data.shape} != {(self.height, self.width)}")
        self.data = data

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    @classmethod
    def from_string(cls, text: str) -> 'Raster':
        """Parse the ``str()`` form: 'X' dark, ' ' light, '?' unknown."""
        lines = text.strip('\n').split('\n') if text.strip('\n') else []
        width = None
        rows = []
        for line in lines:
            try:
                row = [_SYMBOLS[ch] for ch in line]
            except KeyError as e:
                raise ValidationError(f"Raster.from_string: unknown symbol={e.args[0]!r}")
            if width is not None and len(row) != width:
                raise ValidationError(
                    f"Raster.from_string different row sizes: width={width} cur={len(row)}")
            width = len(row)
            rows.append(row)
        if not rows:
            return cls(0, 0)
        return cls(len(rows), width, np.array(rows, dtype=np.uint8))

    @classmethod
    def from_grid(cls, grid) -> 'Raster':
        """
        Build a raster from any grid-like input.

        Accepts another Raster, a numpy array (bool, or cell codes 0/1/2),
        nested sequences of bool/None, or an object exposing ``height``,
        ``width`` and ``get((x, y))``.
        """
        if isinstance(grid, Raster):
            return grid.clone()
        if isinstance(grid, np.ndarray):
            if grid.ndim != 2:
                raise ValidationError(f"Expected a 2-D grid, got shape {grid.shape}")
            if grid.dtype == bool:
                data = grid.astype(np.uint8)
            elif np.issubdtype(grid.dtype, np.integer):
                if grid.size and (grid.min() < 0 or grid.max() > Cell.UNKNOWN):
                    raise ValidationError("Integer grids must hold cell codes 0, 1 or 2")
                data = grid.astype(np.uint8)
            else:
                data = np.array([[Cell.of(v) for v in row] for row in grid], dtype=np.uint8)
            return cls(data.shape[0], data.shape[1], data)
        if hasattr(grid, 'height') and hasattr(grid, 'width') and hasattr(grid, 'get'):
            res = cls(grid.height, grid.width)
            return res.rect(0, None, lambda p, _: grid.get(p))
        rows = [[Cell.of(v) for v in row] for row in grid]
        if not rows:
            return cls(0, 0)
        width = len(rows[0])
        if any(len(row) != width for row in rows):
            raise ValidationError("Grid rows have different lengths")
        return cls(len(rows), width, np.array(rows, dtype=np.uint8).reshape(len(rows), width))

    # ------------------------------------------------------------------
    # Coordinates
    # ------------------------------------------------------------------

    def xy(self, point: Union[int, Point]) -> Point:
        if isinstance(point, (int, np.integer)):
            x = y = point
        else:
            x, y = point
        if not isinstance(x, (int, np.integer)) or isinstance(x, bool):
            raise ValidationError(f"Raster: wrong x={x}")
        if not isinstance(y, (int, np.integer)) or isinstance(y, bool):
            raise ValidationError(f"Raster: wrong y={y}")
        if not self.width or not self.height:
            raise ValidationError("Raster: empty raster has no points")
        return int(x) % self.width, int(y) % self.height

    def is_inside(self, point: Point) -> bool:
        x, y = point
        return 0 <= x < self.width and 0 <= y < self.height

    def size(self, offset: Optional[Union[int, Point]] = None) -> Point:
        """(width, height), or what remains to the right/below ``offset``."""
        if offset is None:
            return self.width, self.height
        x, y = self.xy(offset)
        return self.width - x, self.height - y

    def get(self, point: Union[int, Point]) -> Cell:
        x, y = self.xy(point)
        return _CELLS[self.data[y, x]]

    def set(self, point: Union[int, Point], value) -> 'Raster':
        x, y = self.xy(point)
        self.data[y, x] = Cell.of(value)
        return self

    @staticmethod
    def _extent(size, limit: Point) -> Point:
        if size is None:
            width, height = limit
        elif isinstance(size, (int, np.integer)):
            width = height = int(size)
        else:
            width, height = size
        return max(0, min(width, limit[0])), max(0, min(height, limit[1]))

    # ------------------------------------------------------------------
    # Drawing
    # ------------------------------------------------------------------

    def rect(self, origin, size, value) -> 'Raster':
        """
        Fill a rectangle clipped to the raster.

        ``value`` is either a constant (Cell/bool/None), a numpy array whose
        top-left part is copied in, or a function ``fn((x, y), current)``
        called with rectangle-relative coordinates.
        """
        x, y = self.xy(origin)
        width, height = self._extent(size, self.size((x, y)))
        if isinstance(value, np.ndarray):
            self.data[y:y + height, x:x + width] = value[:height, :width].astype(np.uint8)
        elif callable(value):
            for dy in range(height):
                row = self.data[y + dy]
                for dx in range(width):
                    row[x + dx] = Cell.of(value((dx, dy), _CELLS[row[x + dx]]))
        else:
            self.data[y:y + height, x:x + width] = Cell.of(value)
        return self

    def rect_read(self, origin, size, fn: Callable[[Point, Cell], None]) -> 'Raster':
        """Visit a rectangle without changing it."""
        def visit(point, cur):
            fn(point, cur)
            return cur
        return self.rect(origin, size, visit)

    def hline(self, origin, length, value) -> 'Raster':
        return self.rect(origin, (self.width if length is None else length, 1), value)

    def vline(self, origin, length, value) -> 'Raster':
        return self.rect(origin, (1, self.height if length is None else length), value)

    def border(self, width: int = 2, value=None) -> 'Raster':
        """New raster surrounded by ``width`` cells of ``value``."""
        if not isinstance(width, int) or isinstance(width, bool) or width < 0:
            raise ValidationError(f"Wrong border width={width!r}")
        res = Raster(self.height + 2 * width, self.width + 2 * width)
        if not res.width or not res.height:
            return res
        res.rect(0, None, value)
        if not self.width or not self.height:
            return res
        return res.embed((width, width), self)

    def embed(self, origin, other: 'Raster') -> 'Raster':
        """Draw ``other`` on top of this raster at ``origin``."""
        return self.rect(origin, other.size(), other.data)

    def slice(self, origin, size=None) -> 'Raster':
        x, y = self.xy(origin)
        width, height = self._extent(size, self.size((x, y)))
        res = Raster(height, width)
        if not width or not height:
            return res
        return res.rect(0, None, self.data[y:y + height, x:x + width])

    def inverse(self) -> 'Raster':
        """Swap rows and columns (data[y][x] -> data[x][y])."""
        res = Raster(self.width, self.height)
        if not res.width or not res.height:
            return res
        return res.rect(0, None, self.data.T)

    def scale(self, factor: int) -> 'Raster':
        """Every cell becomes a ``factor`` x ``factor`` square."""
        if not isinstance(factor, (int, np.integer)) or isinstance(factor, bool) or not 1 <= factor <= MAX_SCALE:
            raise ValidationError(f"Wrong scale factor: {factor}")
        factor = int(factor)
        res = Raster(self.height * factor, self.width * factor)
        if not res.width or not res.height:
            return res
        grown = np.repeat(np.repeat(self.data, factor, axis=0), factor, axis=1)
        return res.rect(0, None, grown)

    def clone(self) -> 'Raster':
        res = Raster(self.height, self.width)
        if not self.width or not self.height:
            return res
        return res.rect(0, None, self.data)

    def is_fully_drawn(self) -> bool:
        return not np.any(self.data == Cell.UNKNOWN)

    def assert_fully_drawn(self):
        unknown = int(np.count_nonzero(self.data == Cell.UNKNOWN))
        if unknown:
            raise MalformedRasterError(f"Malformed Raster: {unknown} cells are not drawn")

    def dark_mask(self) -> np.ndarray:
        """Boolean array, True where the cell is dark (unknown counts as light)."""
        return self.data == Cell.DARK

    def __eq__(self, other):
        if not isinstance(other, Raster):
            return NotImplemented
        return self.data.shape == other.data.shape and bool(np.array_equal(self.data, other.data))

    __hash__ = None

    def __repr__(self):
        return f"Raster(height={self.height}, width={self.width})"

    def __str__(self):
        return self.to_string()

    # ------------------------------------------------------------------
    # Rendering
    # ------------------------------------------------------------------

    def to_string(self) -> str:
        symbols = {Cell.DARK: 'X', Cell.LIGHT: ' ', Cell.UNKNOWN: '?'}
        return '\n'.join(''.join(symbols[_CELLS[v]] for v in row) for row in self.data)

    def to_rows(self) -> List[List[Optional[bool]]]:
        """Raw tri-state grid: True dark, False light, None unknown."""
        values = {Cell.DARK: True, Cell.LIGHT: False, Cell.UNKNOWN: None}
        return [[values[_CELLS[v]] for v in row] for row in self.data]

    def to_ascii(self) -> str:
        """Two module rows per text line; light modules are drawn as blocks."""
        dark = self.dark_mask()
        out = []
        for y in range(0, self.height, 2):
            line = []
            for x in range(self.width):
                first = dark[y, x]
                second = True if y + 1 >= self.height else dark[y + 1, x]
                if not first and not second:
                    line.append('█')
                elif not first and second:
                    line.append('▀')
                elif first and not second:
                    line.append('▄')
                else:
                    line.append(' ')
            out.append(''.join(line) + '\n')
        return ''.join(out)

    def to_term(self) -> str:
        reset = '\x1b[0m'
        white = f'\x1b[1;47m  {reset}'
        black = f'\x1b[40m  {reset}'
        dark = self.dark_mask()
        return '\n'.join(''.join(black if v else white for v in row) for row in dark)

    def to_svg(self) -> str:
        out = [
            '<svg xmlns:svg="http://www.w3.org/2000/svg" '
            f'viewBox="0 0 {self.width} {self.height}" version="1.1" '
            'xmlns="http://www.w3.org/2000/svg">'
        ]
        for y, x in zip(*np.nonzero(self.dark_mask())):
            out.append(f'<rect x="{x}" y="{y}" width="1" height="1" />')
        out.append('</svg>')
        return ''.join(out)

    def to_gif(self) -> bytes:
        """
        Single-frame GIF87a.

        The palette has 128 entries (white, then black). Pixels are written
        as raw 8-bit LZW literals with a clear code every 126 pixels so the
        code width never grows, which keeps the writer compression-free.
        """
        def u16le(value):
            return [value & 0xFF, (value >> 8) & 0xFF]

        dims = u16le(self.width) + u16le(self.height)
        pixels = self.dark_mask().astype(np.uint8).ravel().tolist()
        out = bytearray(b'GIF87a')
        out += bytes(dims + [0xF6, 0, 0])
        out += bytes([255, 255, 255] + [0] * (3 * 127))
        out += bytes([0x2C, 0, 0, 0, 0] + dims + [0, 7])
        full_chunks = len(pixels) // GIF_CHUNK
        for i in range(full_chunks):
            out += bytes([GIF_CHUNK + 1, 0x80] + pixels[GIF_CHUNK * i:GIF_CHUNK * (i + 1)])
        rest = pixels[GIF_CHUNK * full_chunks:]
        out += bytes([len(rest) + 1, 0x80] + rest)
        out += bytes([1, 0x81, 0, 0x3B])
        return bytes(out)

    def to_image(self, rgb: bool = False) -> np.ndarray:
        """Pixel array (height, width, 3 or 4) with dark=0 and light=255."""
        value = np.where(self.dark_mask(), 0, 255).astype(np.uint8)
        channels = [value, value, value]
        if not rgb:
            channels.append(np.full_like(value, 255))
        return np.stack(channels, axis=-1)
