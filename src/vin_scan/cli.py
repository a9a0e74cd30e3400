#!/usr/bin/env python3
"""
VIN Scan CLI - Command Line Interface
=====================================

Usage:
    vin-scan scan "<text>" [--source barcode] [--json]   Run the pipeline once
    vin-scan session [--source ocr]                       One attempt per stdin line
    vin-scan validate <vin>                               Check length, charset, checksum
    vin-scan decode <vin>                                 Decode VIN structure
    vin-scan evaluate <samples.yaml> [--output out.json]  Accuracy over labelled samples
"""

import argparse
import json
import logging
import sys
from dataclasses import replace
from typing import List, Optional

from .config import PipelineConfig, setup_logging
from .core.vin_utils import decode_vin, validate_vin
from .evaluation.metrics import evaluate_samples, load_samples, save_metrics_to_json
from .exceptions import PipelineError
from .pipeline.consensus import FrameConsensus
from .pipeline.feedback import build_feedback
from .pipeline.results import Accepted, Rejected, RejectionReason, ScanOutcome, is_success
from .pipeline.vin_pipeline import VINScanPipeline

logger = logging.getLogger(__name__)


def _print_outcome(outcome: ScanOutcome, as_json: bool = False):
    if as_json:
        print(json.dumps(outcome.to_dict(), indent=2))
        return

    feedback = build_feedback(outcome)
    if is_success(outcome):
        result = outcome.result
        print(f"{outcome.status.value.upper()}: {result.vin}")
        print(f"  Confidence: {result.confidence:.3f}")
        print(f"  Source: {result.source.value}")
        print(f"  Checksum: {'OK' if result.checksum_valid else 'UNVERIFIED'}")
        if result.edits:
            print(f"  Corrected positions: {result.edited_positions}")
    else:
        print(f"REJECTED: {outcome.reason.value}")
        if outcome.best_invalid is not None:
            print(f"  Closest candidate: {outcome.best_invalid.vin}")
    if feedback is not None:
        print(f"  {feedback.message}")


def cmd_scan(args, pipeline: VINScanPipeline) -> int:
    """Run the pipeline over one text."""
    outcome = pipeline.process(args.text, source=args.source)
    _print_outcome(outcome, args.json)
    return 0 if isinstance(outcome, Accepted) else 1


def cmd_session(args, pipeline: VINScanPipeline) -> int:
    """Treat each stdin line as one scan attempt within a single session."""
    session = pipeline.new_session()
    consensus = FrameConsensus()

    for line in sys.stdin:
        text = line.rstrip('\n')
        if not text.strip():
            continue

        outcome = pipeline.process(text, source=args.source, session=session)
        consensus.add(outcome)
        print(f"[attempt {session.attempts}/{session.max_attempts}]", end=' ')
        _print_outcome(outcome, args.json)

        if isinstance(outcome, Accepted):
            return 0
        if isinstance(outcome, Rejected) and (
            outcome.session_exhausted or outcome.reason is RejectionReason.SESSION_EXHAUSTED
        ):
            break

    agreed = consensus.consensus()
    if agreed is not None:
        print(f"Consensus: {agreed.vin} ({agreed.confidence:.0%} confidence, "
              f"{agreed.stability:.0%} stability)")
    return 1


def cmd_validate(args, pipeline: VINScanPipeline) -> int:
    """Validate a VIN string."""
    result = validate_vin(args.vin)
    if args.json:
        print(json.dumps(result.to_dict(), indent=2))
    else:
        status = "VALID" if result.is_fully_valid else "INVALID"
        print(f"VIN: {result.vin} - {status}")
        print(f"  Length: {'OK' if result.is_valid_length else 'INVALID'}")
        char_status = 'OK' if result.has_valid_chars else f"INVALID ({result.invalid_chars})"
        print(f"  Characters: {char_status}")
        print(f"  Checksum: {'OK' if result.checksum_valid else 'INVALID'}")
    return 0 if result.is_fully_valid else 1


def cmd_decode(args, pipeline: VINScanPipeline) -> int:
    """Decode a VIN string structure."""
    result = decode_vin(args.vin)
    if args.json:
        print(json.dumps(result, indent=2))
        return 1 if 'error' in result else 0

    if 'error' in result:
        print(f"Error: {result['error']}")
        return 1
    print(f"VIN: {result['vin']}")
    print(f"  WMI (Manufacturer): {result['wmi']} ({result['manufacturer'] or 'Unknown'})")
    print(f"  Region: {result['region'] or 'Unknown'}")
    print(f"  VDS (Descriptor): {result['vds']}")
    print(f"  Check Digit: {result['check_digit']} "
          f"({'OK' if result['checksum_valid'] else 'INVALID'})")
    print(f"  Model Year: {result['model_year_display']}")
    print(f"  Plant Code: {result['plant_code']}")
    print(f"  Sequential: {result['sequential']}")
    return 0


def cmd_evaluate(args, pipeline: VINScanPipeline) -> int:
    """Evaluate the pipeline over a labelled sample file."""
    samples = load_samples(args.samples)
    metrics = evaluate_samples(pipeline, samples, print_summary=not args.json)
    if args.json:
        print(json.dumps(metrics.to_dict(), indent=2))
    if args.output:
        save_metrics_to_json(metrics, args.output)
        print(f"Metrics saved to: {args.output}", file=sys.stderr)
    return 0


def _build_config(args) -> PipelineConfig:
    config = PipelineConfig.load(args.config) if args.config else PipelineConfig.from_env()
    overrides = {}
    if args.max_edits is not None:
        overrides['max_correction_edits'] = args.max_edits
    if args.min_confidence is not None:
        overrides['min_confidence'] = args.min_confidence
    if args.verbose:
        overrides['logging'] = replace(config.logging, level='DEBUG')
    return replace(config, **overrides).validate()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='vin-scan',
        description='VIN Scan - Recover Vehicle Identification Numbers from OCR and barcode text',
    )
    parser.add_argument('--version', action='version', version='%(prog)s 1.0.0')
    parser.add_argument('--config', '-c', metavar='FILE',
                        help='JSON or YAML configuration file')
    parser.add_argument('--max-edits', type=int, default=None,
                        help='Maximum confusable substitutions (default: 2)')
    parser.add_argument('--min-confidence', type=float, default=None,
                        help='Acceptance threshold (default: 0.7)')
    parser.add_argument('-v', '--verbose', action='store_true', help='Verbose output')

    subparsers = parser.add_subparsers(dest='command', help='Available commands')

    scan_parser = subparsers.add_parser('scan', help='Run the pipeline over one text')
    scan_parser.add_argument('text', help='Decoded OCR or barcode text')
    scan_parser.add_argument('--source', '-s', default='ocr', choices=['ocr', 'barcode'])
    scan_parser.add_argument('--json', '-j', action='store_true', help='Output as JSON')

    session_parser = subparsers.add_parser('session', help='Scan stdin lines as one session')
    session_parser.add_argument('--source', '-s', default='ocr', choices=['ocr', 'barcode'])
    session_parser.add_argument('--json', '-j', action='store_true', help='Output as JSON')

    validate_parser = subparsers.add_parser('validate', help='Validate a VIN')
    validate_parser.add_argument('vin', help='VIN to validate')
    validate_parser.add_argument('--json', '-j', action='store_true', help='Output as JSON')

    decode_parser = subparsers.add_parser('decode', help='Decode VIN structure')
    decode_parser.add_argument('vin', help='VIN to decode')
    decode_parser.add_argument('--json', '-j', action='store_true', help='Output as JSON')

    evaluate_parser = subparsers.add_parser('evaluate', help='Evaluate over labelled samples')
    evaluate_parser.add_argument('samples', help='JSON or YAML sample file')
    evaluate_parser.add_argument('--output', '-o', help='Output JSON file')
    evaluate_parser.add_argument('--json', '-j', action='store_true', help='Output as JSON')

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    try:
        config = _build_config(args)
        setup_logging(config.logging)
        pipeline = VINScanPipeline(config)
    except (PipelineError, OSError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    commands = {
        'scan': cmd_scan,
        'session': cmd_session,
        'validate': cmd_validate,
        'decode': cmd_decode,
        'evaluate': cmd_evaluate,
    }

    try:
        return commands[args.command](args, pipeline)
    except PipelineError as e:
        logger.error(e.message)
        print(f"Error: {e.message}", file=sys.stderr)
        return 1


if __name__ == '__main__':
    sys.exit(main())
