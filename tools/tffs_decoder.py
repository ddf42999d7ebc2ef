#!/usr/bin/env python3
"""
tffs_decoder.py - Decoder for TFFS name-value partitions

A TFFS partition is a flat stream of tag-length-value records:

    Per Record: tag(2, BE) + length(2, BE) + payload(length)
                + padding to the next 4-byte boundary

The stream ends at a record whose tag is 0xFFFF, or when fewer than
RECORD_HEADER_SIZE bytes remain before the declared scan length. There is
no header, footer or checksum at the partition level.

Only tags present in the key table (tffs_keys.KEYS) are materialized;
every other record is skipped by its padded length. When a tag appears
more than once the later record replaces the earlier value.

A record whose payload would run past the declared length is malformed.
The scan stops there and the values decoded so far are returned with the
error recorded on the result, so callers can decide whether a partial
result is usable.

Usage:
    from tffs_decoder import TffsDecoder

    result = TffsDecoder().decode(buffer, 256 * 1024)
    if result.malformed:
        print(result.errors)
    for name, value in result.items():
        print(f"{name}={value.text}")
"""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, Iterator, List, Mapping, Optional, Tuple

import tffs_keys
from tffs_keys import KeyEntry


DEFAULT_TFFS_SIZE = 256 * 1024
RECORD_HEADER_SIZE = 4
END_OF_STORE = 0xFFFF


class TffsError(Exception):
    """Base error for TFFS decoding and lookups."""
    pass


class UnknownKeyError(TffsError, KeyError):
    """Requested name is not in the key table."""
    pass


class KeyNotFoundError(TffsError, KeyError):
    """Requested name is registered but was not present in the scan."""
    pass


def read_u16be(buf: bytes, pos: int) -> int:
    """Read a big-endian u16 at ``pos``."""
    if pos < 0 or pos + 2 > len(buf):
        raise ValueError(f"Buffer too short: need 2 bytes at pos {pos}")
    return int.from_bytes(buf[pos:pos + 2], 'big')


def padded_length(length: int) -> int:
    """Round a payload length up to the 4-byte record alignment."""
    return (length + 3) & ~3


@dataclass(frozen=True)
class RecordHeader:
    """Header of one record as read off the wire."""
    tag: int
    length: int
    payload_offset: int

    @property
    def payload_end(self) -> int:
        return self.payload_offset + self.length

    @property
    def next_offset(self) -> int:
        return self.payload_offset + padded_length(self.length)


@dataclass(frozen=True)
class DecodedValue:
    """Payload of a matched record."""
    name: str
    tag: int
    offset: int
    payload: bytes

    @property
    def length(self) -> int:
        return len(self.payload)

    @property
    def raw(self) -> bytes:
        """Payload up to the first NUL, as the firmware reads it."""
        return self.payload.split(b'\x00', 1)[0]

    @property
    def text(self) -> str:
        return self.raw.decode('utf-8', errors='replace')

    @property
    def hex(self) -> str:
        return self.payload.hex()


@dataclass(frozen=True)
class ScanResult:
    """Result of one scan over a TFFS buffer. Read-only once returned."""
    values: Mapping[str, DecodedValue] = field(default_factory=lambda: MappingProxyType({}))
    matched_records: int = 0
    skipped_records: int = 0
    bytes_consumed: int = 0
    terminated: bool = False
    errors: Tuple[str, ...] = ()
    error_offset: Optional[int] = None

    @property
    def count(self) -> int:
        """Number of distinct keys that were decoded."""
        return len(self.values)

    @property
    def malformed(self) -> bool:
        return len(self.errors) > 0

    @property
    def success(self) -> bool:
        return not self.malformed

    def __contains__(self, name: str) -> bool:
        return name in self.values

    def __len__(self) -> int:
        return len(self.values)

    def get(self, name: str) -> Optional[DecodedValue]:
        """Decoded value for ``name``, or None when it was not found."""
        return self.values.get(name)

    def lookup(self, name: str) -> DecodedValue:
        """
        Decoded value for ``name``.

        Raises UnknownKeyError when the name is not in the key table and
        KeyNotFoundError when it is registered but absent from this scan.
        """
        if tffs_keys.find_by_name(name) is None:
            raise UnknownKeyError(name)
        value = self.values.get(name)
        if value is None:
            raise KeyNotFoundError(name)
        return value

    def items(self) -> Iterator[Tuple[str, DecodedValue]]:
        """Decoded values in key table order."""
        for name in tffs_keys.all_names():
            if name in self.values:
                yield name, self.values[name]

    def to_dict(self, as_hex: bool = False) -> Dict[str, Any]:
        return {
            'count': self.count,
            'matched_records': self.matched_records,
            'skipped_records': self.skipped_records,
            'bytes_consumed': self.bytes_consumed,
            'terminated': self.terminated,
            'malformed': self.malformed,
            'errors': list(self.errors),
            'values': {
                name: (value.hex if as_hex else value.text)
                for name, value in self.items()
            },
        }


class TffsDecoder:
    """
    Linear-scan decoder for TFFS record streams.

    The key table is read-only, so one decoder may be shared across
    threads; each call to decode() builds its own ScanResult.
    """

    def __init__(self, find_key=tffs_keys.find_by_tag):
        self._find_key = find_key

    def read_header(self, buf: bytes, pos: int) -> RecordHeader:
        """Read the 4-byte header at ``pos``."""
        tag = read_u16be(buf, pos)
        length = read_u16be(buf, pos + 2)
        return RecordHeader(tag=tag, length=length,
                            payload_offset=pos + RECORD_HEADER_SIZE)

    def decode(self, buffer: bytes, buffer_length: Optional[int] = None) -> ScanResult:
        """
        Scan ``buffer`` and collect the values of all known tags.

        ``buffer_length`` is the declared scan size and defaults to
        ``len(buffer)``. Bytes past it are never read.
        """
        if not isinstance(buffer, (bytes, bytearray, memoryview)):
            raise ValueError(f"Expected a bytes-like buffer, got {type(buffer).__name__}")
        buf = bytes(buffer)

        if buffer_length is None:
            buffer_length = len(buf)
        if buffer_length < 0:
            raise ValueError(f"Negative buffer length: {buffer_length}")
        if buffer_length > len(buf):
            raise ValueError(
                f"Declared length {buffer_length} exceeds buffer size {len(buf)}")

        values: Dict[str, DecodedValue] = {}
        errors: List[str] = []
        error_offset = None
        matched = skipped = 0
        terminated = False
        pos = 0

        # The last RECORD_HEADER_SIZE bytes are never read as a header.
        while pos + RECORD_HEADER_SIZE < buffer_length:
            header = self.read_header(buf, pos)

            if header.tag == END_OF_STORE:
                terminated = True
                break

            entry: Optional[KeyEntry] = self._find_key(header.tag)
            if entry is None:
                skipped += 1
            else:
                if header.payload_end > buffer_length:
                    errors.append(
                        f"Record 0x{header.tag:04X} ({entry.name}) at pos {pos}: "
                        f"length {header.length} runs past end of buffer "
                        f"({buffer_length} bytes)")
                    error_offset = pos
                    break

                values[entry.name] = DecodedValue(
                    name=entry.name,
                    tag=header.tag,
                    offset=header.payload_offset,
                    payload=buf[header.payload_offset:header.payload_end],
                )
                matched += 1

            pos = header.next_offset

        return ScanResult(
            values=MappingProxyType(values),
            matched_records=matched,
            skipped_records=skipped,
            bytes_consumed=min(pos, buffer_length),
            terminated=terminated,
            errors=tuple(errors),
            error_offset=error_offset,
        )


def decode_tffs(buffer: bytes, buffer_length: Optional[int] = None) -> Dict[str, bytes]:
    """Convenience function: decode and return ``{name: payload}``."""
    result = TffsDecoder().decode(buffer, buffer_length)
    if result.malformed:
        raise TffsError(f"Decode errors: {result.errors}")
    return {name: value.payload for name, value in result.items()}


if __name__ == '__main__':
    print("=== TFFS Decoder Demo ===\n")

    # productid="ABCD", macbluetooth=6 bytes + 2 padding, end sentinel
    buffer = bytes([
        0x01, 0x01, 0x00, 0x04, 0x41, 0x42, 0x43, 0x44,
        0x01, 0x84, 0x00, 0x06, 0x00, 0x11, 0x22, 0x33, 0x44, 0x55, 0x00, 0x00,
        0xFF, 0xFF, 0x00, 0x00,
    ])

    print(f"Buffer: {buffer.hex().upper()}")
    print(f"Buffer length: {len(buffer)} bytes\n")

    result = TffsDecoder().decode(buffer)
    print("Decoded:")
    for name, value in result.items():
        print(f"  {name}: {value.payload.hex()} ({value.length} bytes)")

    print(f"\nCount: {result.count}")
    print(f"Terminated by sentinel: {result.terminated}")
