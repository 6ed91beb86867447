"""
Main CLI entry point for logship.

Reads newline-delimited records from stdin and ships them to CloudWatch Logs:

    some-command | logship --log-group-name /app/web

Exit codes: 0 after a clean drain, 1 on a missing group name or any fatal
bootstrap/upload failure, 130 on interrupt.
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from typing import BinaryIO, Sequence, TextIO

from ..core import diagnostics
from ..core.errors import ConfigurationError
from ..core.pipeline import Pipeline
from ..core.settings import Settings
from ..plugins.sinks import LogServiceClient
from ..plugins.sinks.cloudwatch import CloudWatchLogsClient


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="logship",
        description="Ship stdin lines to an AWS CloudWatch Logs stream.",
    )
    # Single-dash spellings accepted alongside the long options
    parser.add_argument(
        "--log-group-name",
        "-log-group-name",
        dest="log_group_name",
        help="The name of the log group.",
    )
    parser.add_argument(
        "--log-stream-name",
        "-log-stream-name",
        dest="log_stream_name",
        help="The name of the log stream. (Default=<log-group-name>/<uuid>)",
    )
    parser.add_argument(
        "--quiet",
        "-quiet",
        dest="quiet",
        action="store_true",
        default=None,
        help="Suppress output. (Default=false)",
    )
    parser.add_argument("--region", dest="region", help="AWS region override.")
    parser.add_argument(
        "--max-items", dest="max_items", type=int, help="Maximum events per batch."
    )
    parser.add_argument(
        "--max-bytes", dest="max_bytes", type=int, help="Maximum bytes per batch."
    )
    parser.add_argument(
        "--max-age",
        dest="max_age_seconds",
        type=float,
        help="Maximum seconds a batch stays open.",
    )
    parser.add_argument(
        "--max-attempts",
        dest="max_attempts",
        type=int,
        help="Upload attempts per batch before failing. (Default=1)",
    )
    parser.add_argument(
        "--long-line-policy",
        dest="long_line_policy",
        choices=("truncate", "split", "stop"),
        help="Handling of lines longer than the event size limit.",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        dest="verbose",
        action="store_true",
        help="Emit internal diagnostics to stderr.",
    )
    return parser


def load_settings(args: argparse.Namespace) -> Settings:
    """Environment settings with command-line flags applied on top."""
    return Settings.load().with_overrides(
        stream={
            "log_group_name": args.log_group_name,
            "log_stream_name": args.log_stream_name,
            "region": args.region,
            "quiet": args.quiet,
        },
        batch={
            "max_items": args.max_items,
            "max_bytes": args.max_bytes,
            "max_age_seconds": args.max_age_seconds,
        },
        input={"long_line_policy": args.long_line_policy},
        upload={"max_attempts": args.max_attempts},
    )


async def main(
    argv: Sequence[str] | None = None,
    *,
    client: LogServiceClient | None = None,
    stdin: BinaryIO | None = None,
    stdout: TextIO | None = None,
) -> int:
    """Main CLI entry point."""
    args = build_parser().parse_args(argv)
    if args.verbose:
        diagnostics.force_enabled(True)
    try:
        settings = load_settings(args)
        settings.require_log_group()
    except ConfigurationError as e:
        print(e.message, file=sys.stderr)
        return 1

    try:
        if client is None:
            client = CloudWatchLogsClient(region=settings.stream.region)
        pipeline = Pipeline(
            settings,
            client=client,
            stdin=stdin if stdin is not None else sys.stdin.buffer,
            stdout=stdout,
        )
        await pipeline.run()
        return 0
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


def cli_main(argv: Sequence[str] | None = None) -> int:
    """CLI main function for non-async entry."""
    try:
        return asyncio.run(main(argv))
    except KeyboardInterrupt:
        return 130


if __name__ == "__main__":
    sys.exit(cli_main())
