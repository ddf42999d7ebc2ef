"""
pytest configuration and fixtures for TFFS reader tests.

Provides reusable fixtures for:
- Building TFFS record streams
- Writing partition images to disk
- Hypothesis property-based testing configuration
"""

import os
import struct
import sys
from pathlib import Path

import pytest
from hypothesis import settings, Verbosity, Phase

# Add project paths
sys.path.insert(0, str(Path(__file__).parent.parent / "tools"))

# Configure Hypothesis profiles

# Default profile: balanced speed and coverage
settings.register_profile(
    "default",
    max_examples=100,
    deadline=None,
)

# CI profile: more thorough testing
settings.register_profile(
    "ci",
    max_examples=500,
    deadline=None,
    suppress_health_check=[],
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
)

# Dev profile: fast iteration
settings.register_profile(
    "dev",
    max_examples=10,
    deadline=None,
)

# Debug profile: verbose output
settings.register_profile(
    "debug",
    max_examples=10,
    verbosity=Verbosity.verbose,
    deadline=None,
)

settings.load_profile(os.environ.get("HYPOTHESIS_PROFILE", "default"))


def record(tag: int, payload: bytes, length: int = None) -> bytes:
    """
    One TFFS record: BE tag, BE length, payload, zero padding to 4 bytes.

    ``length`` overrides the header length field (for malformed records).
    """
    if length is None:
        length = len(payload)
    pad = (-len(payload)) % 4
    return struct.pack('>HH', tag, length) + payload + b'\x00' * pad


# End marker followed by 4 bytes of slack, so the marker is actually read.
END = struct.pack('>HH', 0xFFFF, 0) + b'\xff' * 4


@pytest.fixture
def make_image(tmp_path):
    """
    Write a TFFS image to a temporary file.

    Usage:
        def test_read(make_image):
            path = make_image(record(0x0101, b'ABCD') + END)
    """
    def _make(data: bytes, name: str = "tffs.bin") -> Path:
        path = tmp_path / name
        path.write_bytes(data)
        return path
    return _make


# Markers for test categorization
def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )
