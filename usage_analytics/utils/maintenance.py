#!/usr/bin/env python3
"""CLI utility for usage analytics maintenance."""

import argparse
import asyncio
import json
import sys

from usage_analytics.core.config import get_settings
from usage_analytics.services.analytics import UsageAnalytics
from usage_analytics.services.storage import StorageIOError


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Maintain usage analytics storage")
    parser.add_argument(
        "--config-dir",
        help="Directory holding history.json and aggregate.json (default: from settings)",
    )

    commands = parser.add_subparsers(dest="command", required=True)
    commands.add_parser("stats", help="Print the usage report as JSON")

    export_history = commands.add_parser("export-history", help="Export recent history as CSV")
    export_history.add_argument("-o", "--output", help="Write to file instead of stdout")

    export_aggregate = commands.add_parser(
        "export-aggregate", help="Export the cumulative aggregate as JSON"
    )
    export_aggregate.add_argument("-o", "--output", help="Write to file instead of stdout")

    commands.add_parser("clear-history", help="Empty recent history, keep the aggregate")
    commands.add_parser("reset-analytics", help="Delete the aggregate, keep recent history")
    commands.add_parser("migrate", help="Build the aggregate from legacy history if missing")
    return parser


def load_analytics(config_dir: str | None) -> UsageAnalytics:
    storage = get_settings().storage
    if config_dir:
        storage = storage.model_copy(update={"config_dir": config_dir})
    return UsageAnalytics.from_config(storage)


def run(args: argparse.Namespace) -> int:
    """Execute one maintenance command. Returns the process exit code."""
    analytics = load_analytics(args.config_dir)

    try:
        if args.command == "stats":
            report = analytics.query.query()
            print(json.dumps(report.model_dump(mode="json", by_alias=True), indent=2))
        elif args.command == "export-history":
            if args.output:
                print(f"Wrote {analytics.exporter.write_history_csv(args.output)}")
            else:
                sys.stdout.write(analytics.exporter.export_history_csv())
        elif args.command == "export-aggregate":
            if args.output:
                print(f"Wrote {analytics.exporter.write_aggregate(args.output)}")
            else:
                print(json.dumps(analytics.exporter.export_aggregate(), indent=2))
        elif args.command == "clear-history":
            asyncio.run(analytics.recorder.clear_history())
            print("History cleared")
        elif args.command == "reset-analytics":
            asyncio.run(analytics.recorder.reset_analytics())
            print("Analytics reset")
        elif args.command == "migrate":
            print(analytics.migrate().value)
    except StorageIOError as exc:
        print(f"Warning: {exc}", file=sys.stderr)
        return 1

    return 0


def main() -> None:
    """Parse arguments and run the requested command."""
    sys.exit(run(build_parser().parse_args()))


if __name__ == "__main__":
    main()
