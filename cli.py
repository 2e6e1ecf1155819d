#!/usr/bin/env python3
"""
Command-line interface for the pet tag scan notifier.

Usage:
    uv run python cli.py [command] [options]

Commands:
    scan        Process one scan with the configured store and transport
    demo        Run demo scenarios against the fixtures
    test        Run the test suite
    serve       Start the API server

Examples:
    uv run python cli.py scan pet-001 --lat 14.5995 --lng 120.9842
    uv run python cli.py demo concurrent
    uv run python cli.py serve --reload
"""

import argparse
import logging
import subprocess
import sys


def run_scan(pet_id: str, lat: float, lng: float, ua: str) -> None:
    """Process a single scan and print the response the API would give."""
    from tagscan.config import get_settings
    from tagscan.errors import TagScanError
    from tagscan.models import ScanRequest
    from tagscan.notifier import build_notifier

    logging.basicConfig(
        level=get_settings().log_level.upper(),
        format="%(asctime)s | %(name)-24s | %(levelname)-5s | %(message)s",
        datefmt="%H:%M:%S",
    )

    try:
        notifier = build_notifier(get_settings())
        result = notifier.handle_scan(ScanRequest(pet_id=pet_id, lat=lat, lng=lng, ua=ua))
    except TagScanError as e:
        print(f"{e.status_code} {e.public_message}")
        sys.exit(1)

    print(f"200 {result.message}")


def run_demo(scenario: str) -> None:
    """Run a demo scenario."""
    from tagscan import demo

    if scenario == "repeat":
        demo.run_repeat_scan_demo()
    elif scenario == "concurrent":
        demo.run_concurrent_scan_demo()
    elif scenario == "rejected":
        demo.run_rejected_scan_demo()
    elif scenario == "all":
        demo.run_all_demos()
    else:
        print(f"Unknown scenario: {scenario}")
        sys.exit(1)


def run_tests(args: list[str]) -> None:
    """Run the test suite."""
    cmd = ["uv", "run", "pytest"] + args
    subprocess.run(cmd)


def run_server(host: str, port: int, reload: bool) -> None:
    """Start the API server."""
    cmd = ["uv", "run", "uvicorn", "api.main:app", f"--host={host}", f"--port={port}"]
    if reload:
        cmd.append("--reload")

    print(f"Starting server at http://{host}:{port}")
    print(f"API docs available at http://{host}:{port}/docs")
    subprocess.run(cmd)


def main() -> None:
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Pet Tag Scan Notifier CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s scan pet-001 --lat 14.5995 --lng 120.9842
  %(prog)s demo all
  %(prog)s test -v
  %(prog)s serve --reload
        """,
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    # Scan command
    scan_parser = subparsers.add_parser("scan", help="Process one tag scan")
    scan_parser.add_argument("pet_id", help="Pet id encoded in the tag")
    scan_parser.add_argument("--lat", type=float, default=None, help="Scanner latitude")
    scan_parser.add_argument("--lng", type=float, default=None, help="Scanner longitude")
    scan_parser.add_argument("--ua", default=None, help="Scanner user agent")

    # Demo command
    demo_parser = subparsers.add_parser("demo", help="Run demo scenarios")
    demo_parser.add_argument(
        "scenario",
        choices=["repeat", "concurrent", "rejected", "all"],
        help="Which scenario to run",
    )

    # Test command
    test_parser = subparsers.add_parser("test", help="Run the test suite")
    test_parser.add_argument(
        "pytest_args",
        nargs="*",
        default=[],
        help="Arguments to pass to pytest",
    )

    # Serve command
    serve_parser = subparsers.add_parser("serve", help="Start the API server")
    serve_parser.add_argument("--host", default="127.0.0.1", help="Host to bind to")
    serve_parser.add_argument("--port", type=int, default=8000, help="Port to bind to")
    serve_parser.add_argument("--reload", action="store_true", help="Enable auto-reload")

    args = parser.parse_args()

    if args.command == "scan":
        run_scan(args.pet_id, args.lat, args.lng, args.ua)
    elif args.command == "demo":
        run_demo(args.scenario)
    elif args.command == "test":
        run_tests(args.pytest_args)
    elif args.command == "serve":
        run_server(args.host, args.port, args.reload)
    else:
        parser.print_help()


if __name__ == "__main__":
    main()
