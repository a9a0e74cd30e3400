"""
Test Suite for the vin-scan Command Line
========================================

Run with: pytest tests/test_cli.py -v
"""

import io
import json

import pytest
import yaml

from vin_scan.cli import build_parser, main


HONDA_VIN = "1HGBH41JXMN109186"


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for key in ('VIN_MAX_CORRECTION_EDITS', 'VIN_MIN_CONFIDENCE', 'VIN_MAX_ATTEMPTS',
                'VIN_ACCEPT_UNVERIFIED', 'VIN_LOG_LEVEL', 'VIN_LOG_FILE'):
        monkeypatch.delenv(key, raising=False)


class TestScanCommand:

    def test_accepted(self, capsys):
        assert main(['scan', 'VIN:1HGBH41JXMN109186']) == 0
        out = capsys.readouterr().out
        assert f"ACCEPTED: {HONDA_VIN}" in out
        assert "Checksum: OK" in out

    def test_corrected_json(self, capsys):
        assert main(['scan', '1HG8H41JXMN109186', '--source', 'barcode', '--json']) == 0
        data = json.loads(capsys.readouterr().out)
        assert data['status'] == 'accepted'
        assert data['result']['source'] == 'barcode'
        assert data['result']['edit_distance'] == 1

    def test_rejected(self, capsys):
        assert main(['scan', '1HGBH41J2MN109186']) == 1
        out = capsys.readouterr().out
        assert "REJECTED: ChecksumMismatchExhausted" in out
        assert "Closest candidate: 1HGBH41J2MN109186" in out

    def test_max_edits_override(self, capsys):
        assert main(['--max-edits', '0', 'scan', '1HG8H41JXMN109186']) == 1

    def test_low_confidence_exit_code(self, capsys):
        assert main(['--min-confidence', '0.95', 'scan', '1HG8H41JXMN109186']) == 1
        assert "LOW_CONFIDENCE" in capsys.readouterr().out

    def test_invalid_threshold(self, capsys):
        assert main(['--min-confidence', '2', 'scan', HONDA_VIN]) == 1
        assert "min_confidence" in capsys.readouterr().err


class TestSessionCommand:

    def test_accepted_after_retry(self, capsys, monkeypatch):
        monkeypatch.setattr('sys.stdin', io.StringIO("nothing\n\n1HG8H41JXMN109186\n"))
        assert main(['session']) == 0
        out = capsys.readouterr().out
        assert "REJECTED: NoCandidateFound" in out
        assert f"ACCEPTED: {HONDA_VIN}" in out

    def test_exhausted(self, capsys, monkeypatch):
        monkeypatch.setattr('sys.stdin', io.StringIO("a\nb\nc\n" + HONDA_VIN + "\n"))
        assert main(['session']) == 1
        out = capsys.readouterr().out
        assert "[attempt 3/3]" in out
        assert "enter it manually" in out
        assert "ACCEPTED" not in out


class TestValidateAndDecode:

    def test_validate_ok(self, capsys):
        assert main(['validate', HONDA_VIN]) == 0
        assert "VALID" in capsys.readouterr().out

    def test_validate_bad_checksum(self, capsys):
        assert main(['validate', '1HGBH41J2MN109186', '--json']) == 1
        assert json.loads(capsys.readouterr().out)['checksum_valid'] is False

    def test_decode(self, capsys):
        assert main(['decode', HONDA_VIN]) == 0
        out = capsys.readouterr().out
        assert "WMI (Manufacturer): 1HG (Honda)" in out
        assert "2021 (or 1991)" in out

    def test_decode_error(self, capsys):
        assert main(['decode', 'ABC']) == 1


class TestEvaluateCommand:

    def test_evaluate_to_file(self, tmp_path, capsys):
        samples = tmp_path / "samples.yaml"
        samples.write_text(yaml.safe_dump([
            {'text': HONDA_VIN, 'vin': HONDA_VIN},
            {'text': '1HG8H41JXMN109186', 'vin': HONDA_VIN},
        ]))
        output = tmp_path / "metrics.json"
        assert main(['evaluate', str(samples), '--output', str(output), '--json']) == 0
        data = json.loads(output.read_text())
        assert data['scan_level']['accuracy'] == 1.0

    def test_missing_samples(self, tmp_path, capsys):
        assert main(['evaluate', str(tmp_path / 'missing.yaml')]) == 1
        assert "Failed to load samples" in capsys.readouterr().err


class TestParser:

    def test_no_command_prints_help(self, capsys):
        assert main([]) == 0
        assert "usage" in capsys.readouterr().out.lower()

    def test_source_choices(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args(['scan', HONDA_VIN, '--source', 'camera'])
