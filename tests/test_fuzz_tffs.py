"""
Tests for the TFFS decoder fuzzer.
"""

import pytest

from fuzz_tffs import DecoderFuzzer, main, pack_record
from tffs_decoder import TffsDecoder


class TestGenerators:
    """Generated inputs have the expected shape."""

    def test_pack_record_padding(self):
        assert pack_record(0x0101, b'ABCDE') == b'\x01\x01\x00\x05ABCDE\x00\x00\x00'

    def test_partition_decodes_cleanly(self):
        fuzzer = DecoderFuzzer(seed=1)
        for _ in range(20):
            result = TffsDecoder().decode(fuzzer.generate_partition(6))
            assert not result.malformed
            assert result.terminated

    def test_long_length_is_malformed(self):
        fuzzer = DecoderFuzzer(seed=2)
        for _ in range(20):
            data = fuzzer.generate_long_length()
            result = TffsDecoder().decode(data)
            if len(data) > 4:
                assert result.malformed

    def test_seed_reproducible(self):
        a = DecoderFuzzer(seed=42).generate_partition(5)
        b = DecoderFuzzer(seed=42).generate_partition(5)
        assert a == b


class TestFuzzOne:
    """Outcome accounting."""

    def test_counts(self):
        fuzzer = DecoderFuzzer(seed=3)
        assert fuzzer.fuzz_one(b'')
        assert fuzzer.fuzz_one(pack_record(0x0101, b'AB') + b'\xff' * 8)
        assert fuzzer.fuzz_one(b'\x01\x01\x01\x00' + b'\x00' * 4)
        stats = fuzzer.stats
        assert stats.total_inputs == 3
        assert stats.empty_scans == 1
        assert stats.clean_scans == 1
        assert stats.malformed_scans == 1
        assert stats.crashes == 0


@pytest.mark.slow
class TestRun:
    """Short fuzz runs."""

    def test_run_no_crashes(self):
        stats = DecoderFuzzer(seed=1234).run(duration_sec=0.5)
        assert stats.total_inputs > 0
        assert stats.crashes == 0

    def test_main(self, capsys):
        assert main(['-d', '0.2', '-s', '7']) == 0
        assert 'PASSED: No crashes detected' in capsys.readouterr().out
