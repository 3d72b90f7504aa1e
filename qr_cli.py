#!/usr/bin/env python3
"""
QR Codec - Command Line Interface
Encode text into QR symbols and decode sampled grids, with progress tracking
"""

import argparse
import logging
import sys
from pathlib import Path

from tqdm import tqdm

from qr_codec import decode_qr, decode_symbol, encode_qr
from qr_errors import QRError
from qr_raster import Raster
from qr_tables import ECC_LEVELS, SUPPORTED_ENCODINGS

logger = logging.getLogger(__name__)

FORMATS = {
    # CLI format: (encode_qr output, file extension)
    'raw': ('raster', 'txt'),
    'ascii': ('ascii', 'txt'),
    'svg': ('svg', 'svg'),
    'gif': ('gif', 'gif'),
    'term': ('term', 'txt'),
}


def print_banner():
    """Display tool banner"""
    print("=" * 70, file=sys.stderr)
    print("🔳 QR Codec", file=sys.stderr)
    print("   Reed-Solomon encoder + grid decoder", file=sys.stderr)
    print("=" * 70, file=sys.stderr)


def setup_logging(verbose=False, log_file=None):
    handlers = [logging.StreamHandler()]
    if log_file:
        handlers.append(logging.FileHandler(log_file, mode='w'))
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format='%(message)s',
        handlers=handlers,
        force=True,
    )


def render(text, args):
    output, _ = FORMATS[args.format]
    res = encode_qr(
        text,
        output=output,
        ecc=args.ecc,
        encoding=args.encoding,
        version=args.qr_version,
        mask=args.mask,
        border=args.border,
        scale=args.scale,
    )
    if args.format == 'raw':
        res = res.to_string() + '\n'
    return res


def write_result(result, path=None):
    if path is None:
        if isinstance(result, bytes):
            sys.stdout.buffer.write(result)
            sys.stdout.flush()
        else:
            sys.stdout.write(result if result.endswith('\n') else result + '\n')
        return
    if isinstance(result, bytes):
        Path(path).write_bytes(result)
    else:
        Path(path).write_text(result, encoding='utf-8')


def cmd_encode(args):
    if args.batch is None:
        if args.text is None:
            logger.error("❌ Error: nothing to encode (give TEXT or --batch FILE)")
            return 1
        write_result(render(args.text, args), args.output)
        if args.output:
            logger.info(f"   ✓ Saved to: {args.output}")
        return 0

    batch = Path(args.batch)
    if not batch.exists():
        logger.error(f"❌ Error: Batch file '{args.batch}' not found!")
        return 1
    out_dir = Path(args.output or '.')
    out_dir.mkdir(parents=True, exist_ok=True)
    lines = [line for line in batch.read_text(encoding='utf-8').splitlines() if line]

    print_banner()
    logger.info(f"📝 Encoding {len(lines)} texts into {out_dir}")
    _, ext = FORMATS[args.format]
    failed = 0
    for i, line in enumerate(tqdm(lines, desc="   Encoding", unit="code", disable=args.no_progress)):
        try:
            write_result(render(line, args), out_dir / f"{i:04d}.{ext}")
        except QRError as e:
            failed += 1
            logger.warning(f"   ⚠️  Line {i + 1}: {e}")
    logger.info(f"   ✓ {len(lines) - failed} encoded, {failed} failed")
    return 1 if failed else 0


def cmd_decode(args):
    path = Path(args.grid)
    if not path.exists():
        logger.error(f"❌ Error: Grid file '{args.grid}' not found!")
        return 1
    grid = Raster.from_string(path.read_text(encoding='utf-8'))
    logger.debug(f"Read {grid.width}x{grid.height} grid from {path}")
    text = decode_symbol(grid) if args.exact else decode_qr(grid)
    write_result(text)
    return 0


def build_parser():
    parser = argparse.ArgumentParser(
        prog='qr-codec',
        description='Encode text as QR codes and decode QR grids',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Print a QR code for a URL in the terminal
  qr-codec encode "https://example.com" --format ascii

  # Fixed version and ECC level, written as SVG
  qr-codec encode "HELLO WORLD" --qr-version 2 --ecc high --format svg --output hello.svg

  # One GIF per line of a text file
  qr-codec encode --batch urls.txt --format gif --scale 4 --output codes/

  # Decode a grid of 'X' (dark) and ' ' (light) cells
  qr-codec decode code.txt -v
        """
    )
    parser.add_argument('-v', '--verbose', action='store_true',
                        help='Verbose output')
    parser.add_argument('--log-file', type=str, default=None,
                        help='Also write log output to this file')
    sub = parser.add_subparsers(dest='command', required=True)

    enc = sub.add_parser('encode', help='Encode text into a QR code')
    enc.add_argument('text', nargs='?', default=None, help='Text to encode')
    enc.add_argument('--ecc', choices=ECC_LEVELS, default='medium',
                     help='Error correction level (default: medium)')
    enc.add_argument('--encoding', choices=SUPPORTED_ENCODINGS, default=None,
                     help='Encoding mode (default: detected from the text)')
    enc.add_argument('--qr-version', type=int, default=None,
                     help='QR code version 1-40 (default: smallest that fits)')
    enc.add_argument('--mask', type=int, default=None,
                     help='Mask pattern 0-7 (default: lowest penalty)')
    enc.add_argument('--border', type=int, default=2,
                     help='Quiet zone width in modules (default: 2)')
    enc.add_argument('--scale', type=int, default=None,
                     help='Pixels per module (default: 1)')
    enc.add_argument('--format', choices=sorted(FORMATS), default='raw',
                     help='Output format (default: raw)')
    enc.add_argument('--output', type=str, default=None,
                     help='Output file (or directory with --batch)')
    enc.add_argument('--batch', type=str, default=None,
                     help='Encode every line of this file')
    enc.add_argument('--no-progress', action='store_true',
                     help='Disable progress bars')
    enc.set_defaults(func=cmd_encode)

    dec = sub.add_parser('decode', help='Decode a text grid of X / space / ? cells')
    dec.add_argument('grid', type=str, help='Grid file path')
    dec.add_argument('--exact', action='store_true',
                     help='Grid is exactly one symbol (no quiet zone, no scaling)')
    dec.set_defaults(func=cmd_decode)
    return parser


def main(argv=None):
    args = build_parser().parse_args(argv)
    setup_logging(args.verbose, args.log_file)
    try:
        return args.func(args)
    except QRError as e:
        logger.error(f"❌ {type(e).__name__}: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
