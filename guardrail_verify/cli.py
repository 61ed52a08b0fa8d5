#!/usr/bin/env python3
"""
guardrail_verify/cli.py - Command-Line Interface

Usage:
    guardrail-verify verify audit_export.json
    guardrail-verify verify audit_export.json --output report.json

Exit Codes:
    0 = PASS
    1 = DEGRADED
    2 = FAIL
"""
import argparse
import json
import sys
from pathlib import Path

from .verifier import verify_file


def main(argv=None):
    """Parse arguments and dispatch the guardrail-verify command."""
    parser = argparse.ArgumentParser(
        prog="guardrail-verify",
        description="Offline verifier for guardrail audit trail exports"
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    verify_parser = subparsers.add_parser("verify", help="Verify a JSON audit export")
    verify_parser.add_argument("export_file", help="Path to the JSON export")
    verify_parser.add_argument(
        "--output", "-o",
        help="Path to write the verification report"
    )
    verify_parser.add_argument(
        "--quiet", "-q",
        action="store_true",
        help="Only output exit code"
    )

    args = parser.parse_args(argv)

    if args.command == "verify":
        run_verify(args)


def run_verify(args):
    """
    Verify args.export_file, print a summary unless quiet, and exit with
    the report's exit code (2 when the file is missing or unreadable).
    """
    export_path = Path(args.export_file)

    if not export_path.exists():
        print(f"Error: File not found: {export_path}", file=sys.stderr)
        sys.exit(2)

    try:
        report = verify_file(str(export_path))
    except (OSError, ValueError) as e:
        print(f"Error: Verification failed: {e}", file=sys.stderr)
        sys.exit(2)

    report_dict = report.to_dict()

    if args.output:
        with open(args.output, 'w', encoding='utf-8') as f:
            json.dump(report_dict, f, indent=2)
        if not args.quiet:
            print(f"Report written to: {args.output}")

    if not args.quiet:
        print(f"\n{'='*60}")
        print(f"VERIFICATION RESULT: {report.status.value}")
        print(f"{'='*60}")
        print(f"Trail:            {report.trail_name}")
        print(f"Entry Count:      {report.entry_count}")
        print(f"Algorithm:        {report.algorithm}")
        print(f"Complete Export:  {report.complete}")
        print(f"Digest:           {report.digest}")
        print(f"Final Checksum:   {report.final_checksum}")

        if report.findings:
            print(f"\nFindings ({len(report.findings)}):")
            for f in report.findings:
                print(f"  [{f.severity.value}] {f.finding_type.value}: {f.message}")

        print(f"\nExit Code: {report.exit_code}")

    sys.exit(report.exit_code)


if __name__ == "__main__":
    main()
