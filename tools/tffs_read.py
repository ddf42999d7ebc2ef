#!/usr/bin/env python3
"""
tffs_read.py - Read values from a TFFS partition (AVM Fritz!Box name-value store)

Usage:
    python tools/tffs_read.py -l                          # list supported keys
    python tools/tffs_read.py -i mtd.bin -a               # all key=value pairs
    python tools/tffs_read.py -i mtd.bin -n macwlan       # one value
    python tools/tffs_read.py -i mtd.bin -a -s 0x20000    # smaller partition
    python tools/tffs_read.py -i mtd.bin -a --yaml        # YAML document

Exit status is 0 when at least one requested value was printed and the
partition had no malformed records, 1 otherwise.
"""

import argparse
import json
import sys
from pathlib import Path
from typing import Dict, List, Optional

import yaml

sys.path.insert(0, str(Path(__file__).parent))
from tffs_keys import all_names
from tffs_decoder import (
    DEFAULT_TFFS_SIZE, DecodedValue, KeyNotFoundError, ScanResult,
    TffsDecoder, UnknownKeyError,
)


def parse_size(value: str) -> int:
    """Parse a size with automatic base (262144, 0x40000, 0o1000000)."""
    try:
        size = int(value, 0)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid size: {value!r}")
    if size < 0:
        raise argparse.ArgumentTypeError(f"size must not be negative: {value!r}")
    return size


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='tffs-read',
        description='Read name-value pairs from a TFFS file or device'
    )
    parser.add_argument('-a', '--all', action='store_true', dest='show_all',
                       help='list all key value pairs found in the TFFS file/device')
    parser.add_argument('-i', '--input', metavar='FILE',
                       help='inspect the given TFFS file/device')
    parser.add_argument('-l', '--list', action='store_true', dest='list_keys',
                       help='list all supported keys')
    parser.add_argument('-n', '--name', metavar='KEY',
                       help='display the value of the given key')
    parser.add_argument('-s', '--size', type=parse_size, default=DEFAULT_TFFS_SIZE,
                       help=f'the (max) size of the TFFS file/device (default: {DEFAULT_TFFS_SIZE})')
    fmt = parser.add_mutually_exclusive_group()
    fmt.add_argument('--json', action='store_true',
                    help='Output results as JSON')
    fmt.add_argument('--yaml', action='store_true',
                    help='Output results as YAML')
    parser.add_argument('--hex', action='store_true',
                       help='Show values as hex instead of text')
    return parser


def error(message: str) -> None:
    print(f"ERROR: {message}", file=sys.stderr)


def read_partition(path: Path, size: int) -> Optional[bytes]:
    """Read exactly ``size`` bytes from ``path``; None on a short read."""
    with open(path, 'rb') as f:
        data = f.read(size)
    if len(data) != size:
        return None
    return data


def select_values(result: ScanResult, name: Optional[str]) -> Dict[str, DecodedValue]:
    """Values to print: all decoded ones, or the single requested key."""
    if name is None:
        return dict(result.items())
    return {name: result.lookup(name)}


def render_document(values: Dict[str, DecodedValue], args: argparse.Namespace,
                    result: ScanResult) -> str:
    """JSON or YAML document; payloads as text or hex strings."""
    doc = {
        'file': str(args.input),
        'count': result.count,
        'values': {
            key: (value.hex if args.hex else value.text)
            for key, value in values.items()
        },
    }
    if result.malformed:
        doc['errors'] = list(result.errors)
    if args.json:
        return json.dumps(doc, indent=2)
    return yaml.safe_dump(doc, sort_keys=False).rstrip('\n')


def render_lines(values: Dict[str, DecodedValue], with_names: bool,
                 as_hex: bool) -> bytes:
    """
    Plain output as bytes: ``name=value`` lines, or bare values.

    Values are written as stored up to the first NUL, without decoding,
    so binary and non-UTF-8 payloads come out unchanged.
    """
    out = bytearray()
    for key, value in values.items():
        if with_names:
            out += key.encode('ascii') + b'='
        out += value.hex.encode('ascii') if as_hex else value.raw
        out += b'\n'
    return bytes(out)


def write_bytes(data: bytes) -> None:
    sys.stdout.flush()
    sys.stdout.buffer.write(data)
    sys.stdout.buffer.flush()


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    if args.list_keys:
        for name in all_names():
            print(name)
        return 0

    if not args.input:
        error("No input file (-i <file>) given!")
        return 1

    path = Path(args.input)
    if not path.exists():
        error(f"{args.input} does not exist")
        return 1

    if not args.show_all and args.name is None:
        error("either -a or -n <key name> is required!")
        return 1

    try:
        data = read_partition(path, args.size)
    except OSError as e:
        error(f"Failed to open tffs input file {args.input}: {e}")
        return 1
    if data is None:
        error(f"Failed read tffs file {args.input}")
        return 1

    result = TffsDecoder().decode(data, args.size)

    if result.count == 0:
        if result.malformed:
            error(f"Malformed record in tffs file {args.input}: {result.errors[0]}")
        else:
            error(f"No values found in tffs file {args.input}")
        return 1

    try:
        values = select_values(result, None if args.show_all else args.name)
    except UnknownKeyError:
        error(f"Unknown key '{args.name}'")
        return 1
    except KeyNotFoundError:
        error(f"Key '{args.name}' was not found in {args.input}")
        return 1

    if values:
        if args.json or args.yaml:
            print(render_document(values, args, result))
        else:
            write_bytes(render_lines(values, args.show_all, args.hex))

    if result.malformed:
        error(f"Malformed record in tffs file {args.input}: {result.errors[0]}")
        return 1

    return 0 if values else 1


if __name__ == '__main__':
    sys.exit(main())
