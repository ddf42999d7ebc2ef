#!/usr/bin/env python3
"""
fuzz_tffs.py - Fuzz test the TFFS decoder

Verifies the decoder neither crashes nor reads past the declared scan
length on malformed partitions.

Usage:
    python tools/fuzz_tffs.py                    # 10 second fuzz
    python tools/fuzz_tffs.py --duration 60      # 1 minute fuzz
    python tools/fuzz_tffs.py --seed 12345       # Reproducible
"""

import argparse
import random
import struct
import sys
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

sys.path.insert(0, str(Path(__file__).parent))
from tffs_decoder import END_OF_STORE, TffsDecoder, padded_length
from tffs_keys import KEYS


@dataclass
class FuzzStats:
    """Statistics from a fuzz run."""
    total_inputs: int = 0
    clean_scans: int = 0
    empty_scans: int = 0
    malformed_scans: int = 0
    crashes: int = 0
    duration_sec: float = 0.0
    seed: int = 0
    crash_inputs: List[bytes] = field(default_factory=list)

    @property
    def inputs_per_sec(self) -> float:
        if self.duration_sec > 0:
            return self.total_inputs / self.duration_sec
        return 0.0


def pack_record(tag: int, payload: bytes) -> bytes:
    """Lay out one record with its padding."""
    pad = padded_length(len(payload)) - len(payload)
    return struct.pack('>HH', tag, len(payload)) + payload + b'\x00' * pad


class DecoderFuzzer:
    """Fuzz tester for the TFFS decoder."""

    def __init__(self, seed: Optional[int] = None):
        self.decoder = TffsDecoder()
        self.seed = seed if seed is not None else random.randint(0, 2**32)
        self.rng = random.Random(self.seed)
        self.stats = FuzzStats(seed=self.seed)

    def generate_random_bytes(self, min_len: int = 0, max_len: int = 255) -> bytes:
        """Generate random byte sequence."""
        length = self.rng.randint(min_len, max_len)
        return bytes(self.rng.randint(0, 255) for _ in range(length))

    def generate_partition(self, records: int = 8) -> bytes:
        """Well-formed partition mixing known and unknown tags."""
        out = bytearray()
        for _ in range(records):
            if self.rng.random() < 0.7:
                tag = self.rng.choice(KEYS).tag
            else:
                tag = self.rng.randint(0, END_OF_STORE - 1)
            out += pack_record(tag, self.generate_random_bytes(0, 40))
        out += struct.pack('>HH', END_OF_STORE, 0) + b'\xff' * 4
        return bytes(out)

    def generate_truncated(self, valid: bytes) -> bytes:
        """Generate truncated version of a valid partition."""
        if len(valid) == 0:
            return b''
        cut_point = self.rng.randint(0, len(valid) - 1)
        return valid[:cut_point]

    def generate_extended(self, valid: bytes) -> bytes:
        """Generate extended version of a valid partition."""
        return valid + self.generate_random_bytes(1, 50)

    def generate_bitflip(self, valid: bytes) -> bytes:
        """Flip random bits in a valid partition."""
        if len(valid) == 0:
            return b''
        data = bytearray(valid)
        num_flips = self.rng.randint(1, max(1, len(data) // 8))
        for _ in range(num_flips):
            pos = self.rng.randint(0, len(data) - 1)
            bit = self.rng.randint(0, 7)
            data[pos] ^= (1 << bit)
        return bytes(data)

    def generate_long_length(self) -> bytes:
        """Known tag whose length field points far past the buffer."""
        tag = self.rng.choice(KEYS).tag
        length = self.rng.randint(64, 0xFFFF)
        return struct.pack('>HH', tag, length) + self.generate_random_bytes(0, 60)

    def fuzz_one(self, buffer: bytes) -> bool:
        """
        Fuzz with one buffer.
        Returns True if the decoder handled it safely, False if crash.
        """
        self.stats.total_inputs += 1
        try:
            result = self.decoder.decode(buffer)
        except Exception:
            self.stats.crashes += 1
            self.stats.crash_inputs.append(buffer)
            return False

        if result.bytes_consumed > len(buffer) or any(
                v.offset + v.length > len(buffer) for v in result.values.values()):
            self.stats.crashes += 1
            self.stats.crash_inputs.append(buffer)
            return False

        if result.malformed:
            self.stats.malformed_scans += 1
        elif result.count == 0:
            self.stats.empty_scans += 1
        else:
            self.stats.clean_scans += 1
        return True

    def run(self, duration_sec: float = 10.0) -> FuzzStats:
        """Run fuzzing for specified duration."""
        seeds = [self.generate_partition(self.rng.randint(1, 12)) for _ in range(5)]

        start_time = time.time()
        end_time = start_time + duration_sec

        generators = [
            lambda: self.generate_random_bytes(0, 255),
            lambda: self.generate_random_bytes(0, 10),  # Short
            lambda: self.generate_partition(self.rng.randint(1, 20)),
            lambda: self.generate_truncated(self.rng.choice(seeds)),
            lambda: self.generate_extended(self.rng.choice(seeds)),
            lambda: self.generate_bitflip(self.rng.choice(seeds)),
            self.generate_long_length,
            lambda: bytes(self.rng.randint(1, 64)),  # All zeros
            lambda: b'\xff' * self.rng.randint(1, 64),
            lambda: b'',
        ]

        while time.time() < end_time:
            generator = self.rng.choice(generators)
            self.fuzz_one(generator())

        self.stats.duration_sec = time.time() - start_time
        return self.stats


def print_stats(stats: FuzzStats):
    """Print fuzzing statistics."""
    print("\nDecoder Fuzzing Results")
    print("=" * 50)
    print(f"Seed: {stats.seed}")
    print(f"Duration: {stats.duration_sec:.1f}s")
    print(f"Total inputs: {stats.total_inputs}")
    print(f"Rate: {stats.inputs_per_sec:.0f} inputs/sec")
    print(f"Scans with values: {stats.clean_scans}")
    print(f"Empty scans: {stats.empty_scans}")
    print(f"Malformed scans: {stats.malformed_scans} (expected)")
    print(f"Crashes: {stats.crashes}")

    if stats.crashes > 0:
        print("\nCRASH INPUTS (reproducible with --seed):")
        for i, buffer in enumerate(stats.crash_inputs[:5]):
            print(f"  {i+1}: {buffer.hex()}")
        print("\nFAILED: Decoder crashed on malformed input!")
    else:
        print("\nPASSED: No crashes detected")


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        prog='tffs-fuzz',
        description='Fuzz test the TFFS decoder'
    )
    parser.add_argument('-d', '--duration', type=float, default=10.0,
                       help='Fuzz duration in seconds (default: 10)')
    parser.add_argument('-s', '--seed', type=int,
                       help='Random seed for reproducibility')
    args = parser.parse_args(argv)

    fuzzer = DecoderFuzzer(seed=args.seed)
    stats = fuzzer.run(args.duration)
    print_stats(stats)

    return 1 if stats.crashes > 0 else 0


if __name__ == '__main__':
    sys.exit(main())
