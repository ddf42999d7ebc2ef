#!/usr/bin/env python3
"""
validate_vectors.py - Run TFFS test vectors from a YAML file

Usage:
    python tools/validate_vectors.py vectors/fritzbox_basic.yaml
    python tools/validate_vectors.py vectors/fritzbox_basic.yaml --verbose
    python tools/validate_vectors.py vectors/fritzbox_basic.yaml --json

Vector file format:
    name: fritzbox_basic
    size: 32                       # optional default scan size
    test_vectors:
      - name: productid_only
        payload: "01 01 00 04 41 42 43 44 ff ff 00 00"
        expected: {productid: ABCD}
        expected_hex: {}           # optional, compares raw payload hex
        count: 1                   # optional
        malformed: false           # optional

Other keys on a vector (``description`` and the like) are ignored.
"""

import argparse
import json
import re
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

sys.path.insert(0, str(Path(__file__).parent))
from tffs_decoder import TffsDecoder
from tffs_keys import find_by_name


HEX_NOISE = re.compile(r'0[xX]|[\s,:]')


@dataclass
class VectorResult:
    """Outcome of one vector: the decoded values and any mismatches."""
    name: str
    actual: Dict[str, str] = field(default_factory=dict)
    errors: List[str] = field(default_factory=list)

    @property
    def passed(self) -> bool:
        return not self.errors

    def to_dict(self) -> Dict[str, Any]:
        return {'name': self.name, 'passed': self.passed,
                'actual': self.actual, 'errors': self.errors}


@dataclass
class VectorFileResult:
    file_errors: List[str] = field(default_factory=list)
    vectors: List[VectorResult] = field(default_factory=list)

    @property
    def failed(self) -> List[VectorResult]:
        return [v for v in self.vectors if not v.passed]

    @property
    def all_passed(self) -> bool:
        return not self.file_errors and not self.failed

    def to_dict(self) -> Dict[str, Any]:
        return {
            'file_errors': self.file_errors,
            'passed': len(self.vectors) - len(self.failed),
            'failed': len(self.failed),
            'all_passed': self.all_passed,
            'vectors': [v.to_dict() for v in self.vectors],
        }


def parse_payload(payload: Any) -> bytes:
    """
    Bytes from a vector payload: a list of ints, or a hex string in which
    ``0x`` prefixes, whitespace, commas and colons are ignored.
    """
    if isinstance(payload, (bytes, bytearray)):
        return bytes(payload)
    if isinstance(payload, list):
        return bytes(payload)
    if isinstance(payload, str):
        return bytes.fromhex(HEX_NOISE.sub('', payload))
    raise ValueError(f"Cannot parse payload: {payload!r}")


def validate_vectors_structure(doc: Any) -> List[str]:
    """Check a loaded vector document for structural problems."""
    errors = []

    if not isinstance(doc, dict):
        return ["Vector file must be a mapping"]

    if 'size' in doc and not isinstance(doc['size'], int):
        errors.append("'size' must be an integer")

    vectors = doc.get('test_vectors')
    if vectors is None:
        errors.append("Missing 'test_vectors'")
        return errors
    if not isinstance(vectors, list):
        errors.append("'test_vectors' must be an array")
        return errors

    for i, tv in enumerate(vectors):
        if not isinstance(tv, dict):
            errors.append(f"Test vector {i}: must be an object")
            continue

        label = tv.get('name', '?')
        if 'name' not in tv:
            errors.append(f"Test vector {i}: missing 'name'")
        if 'payload' not in tv:
            errors.append(f"Test vector {i} ({label}): missing 'payload'")
        if 'expected' not in tv and 'expected_hex' not in tv and 'count' not in tv:
            errors.append(f"Test vector {i} ({label}): needs 'expected', 'expected_hex' or 'count'")

        for key in ('expected', 'expected_hex'):
            section = tv.get(key, {})
            if not isinstance(section, dict):
                errors.append(f"Test vector {i} ({label}): '{key}' must be a mapping")
                continue
            for name in section:
                if find_by_name(name) is None:
                    errors.append(f"Test vector {i} ({label}): unknown key '{name}'")

    return errors


def run_test_vector(tv: Dict[str, Any], size: Optional[int] = None,
                    decoder: Optional[TffsDecoder] = None) -> VectorResult:
    """Decode one vector's payload and compare it against its expectations."""
    decoder = decoder or TffsDecoder()
    expected = dict(tv.get('expected') or {})
    expected_hex = dict(tv.get('expected_hex') or {})
    result = VectorResult(name=tv.get('name', 'unnamed'))

    try:
        payload = parse_payload(tv.get('payload', ''))
    except ValueError as e:
        result.errors.append(f"Failed to parse payload: {e}")
        return result

    try:
        scan = decoder.decode(payload, tv.get('size', size))
    except ValueError as e:
        result.errors.append(f"Decode failed: {e}")
        return result

    result.actual = {name: value.text for name, value in scan.items()}

    want_malformed = bool(tv.get('malformed', False))
    if scan.malformed != want_malformed:
        if scan.malformed:
            result.errors.extend(scan.errors)
        else:
            result.errors.append("Expected a malformed record, scan was clean")

    if 'count' in tv and tv['count'] != scan.count:
        result.errors.append(f"count: expected {tv['count']}, got {scan.count}")

    for name, want in expected.items():
        value = scan.get(name)
        if value is None:
            result.errors.append(f"Missing key in output: '{name}'")
        elif value.text != str(want):
            result.errors.append(f"{name}: expected '{want}', got '{value.text}'")

    for name, want in expected_hex.items():
        value = scan.get(name)
        if value is None:
            result.errors.append(f"Missing key in output: '{name}'")
            continue
        want_hex = parse_payload(str(want)).hex()
        if value.hex != want_hex:
            result.errors.append(f"{name}: expected hex {want_hex}, got {value.hex}")

    return result


def validate_vectors(doc: Any) -> VectorFileResult:
    """Check a vector document and run every vector in it."""
    result = VectorFileResult(file_errors=validate_vectors_structure(doc))
    if result.file_errors:
        return result

    decoder = TffsDecoder()
    for tv in doc['test_vectors']:
        result.vectors.append(run_test_vector(tv, doc.get('size'), decoder))
    return result


def print_results(result: VectorFileResult, verbose: bool = False):
    for error in result.file_errors:
        print(f"INVALID: {error}")
    if result.file_errors:
        return

    for vr in result.vectors:
        print(f"{'PASS' if vr.passed else 'FAIL'} {vr.name}")
        for err in vr.errors:
            print(f"    {err}")
        if verbose:
            for name, text in vr.actual.items():
                print(f"    {name}={text}")

    failed = len(result.failed)
    if failed:
        print(f"FAILED: {failed} of {len(result.vectors)} vectors")
    else:
        print(f"PASSED: {len(result.vectors)} vectors")


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        prog='tffs-validate',
        description='Run TFFS test vectors from a YAML file'
    )
    parser.add_argument('vectors', help='Path to vector YAML file')
    parser.add_argument('-v', '--verbose', action='store_true',
                       help="Print each vector's decoded values")
    parser.add_argument('--json', action='store_true',
                       help='Output results as JSON')
    args = parser.parse_args(argv)

    try:
        with open(args.vectors) as f:
            doc = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        print(f"Error loading vectors: {e}", file=sys.stderr)
        return 1

    result = validate_vectors(doc)

    if args.json:
        print(json.dumps(result.to_dict(), indent=2))
    else:
        print(f"Validating: {args.vectors}")
        print_results(result, args.verbose)

    return 0 if result.all_passed else 1


if __name__ == '__main__':
    sys.exit(main())
