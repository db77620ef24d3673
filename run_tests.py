#!/usr/bin/env python3
"""
Test Runner for the Uppercase Stream Pipeline
=============================================

Runs the test suite with various options.
"""

import sys
import subprocess
import argparse
from pathlib import Path


def build_command(args):
    """Build the pytest command line for the parsed options"""
    cmd = ["pytest", "tests/"]

    if args.verbose:
        cmd.append("-v")

    if args.coverage:
        cmd.extend(["--cov=.", "--cov-report=html", "--cov-report=term"])

    if args.test:
        cmd.extend(["-k", args.test])

    # Skip subprocess and timer based tests
    if args.fast:
        cmd.extend(["-m", "not slow"])

    if args.show_output:
        cmd.append("-s")

    if args.unit_only:
        cmd[1] = "tests/unit/"

    return cmd


def run_tests(args):
    """Run pytest with specified options"""
    cmd = build_command(args)
    print(f"Running: {' '.join(cmd)}")
    result = subprocess.run(cmd, cwd=Path(__file__).parent)
    return result.returncode


def parse_arguments(argv=None):
    parser = argparse.ArgumentParser(description="Run tests for the uppercase stream pipeline")

    parser.add_argument("-v", "--verbose", action="store_true",
                       help="Verbose test output")
    parser.add_argument("-c", "--coverage", action="store_true",
                       help="Generate coverage report")
    parser.add_argument("-t", "--test", type=str,
                       help="Run specific test by name pattern")
    parser.add_argument("-f", "--fast", action="store_true",
                       help="Skip slow tests")
    parser.add_argument("-s", "--show-output", action="store_true",
                       help="Show print statements during tests")
    parser.add_argument("-u", "--unit-only", action="store_true",
                       help="Run only tests/unit")
    parser.add_argument("--install-deps", action="store_true",
                       help="Install test dependencies first")

    return parser.parse_args(argv)


def main():
    args = parse_arguments()

    if args.install_deps:
        print("Installing test dependencies...")
        subprocess.run([sys.executable, "-m", "pip", "install", "-e", ".[test]"])

    exit_code = run_tests(args)

    if args.coverage and exit_code == 0:
        print("\nCoverage report generated in htmlcov/index.html")

    sys.exit(exit_code)


if __name__ == "__main__":
    main()
