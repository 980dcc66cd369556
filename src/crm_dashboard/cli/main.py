"""Main CLI entry point."""

import argparse
import json
import logging
import sys
import time
from pathlib import Path
from typing import Optional

from crm_dashboard.errors import DashboardError


def main(argv: Optional[list[str]] = None) -> None:
    """Parse args and dispatch to subcommands."""
    parser = argparse.ArgumentParser(prog="crm-dashboard", description="CRM sales dashboard builder")
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Log pipeline progress to stderr",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    # fetch
    fetch_parser = subparsers.add_parser("fetch", help="Fetch the raw payload from the webhook")
    fetch_parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to settings YAML",
    )
    fetch_parser.add_argument(
        "--output",
        type=Path,
        default=None,
        help="Write payload JSON to file (default: stdout)",
    )

    # build
    build_parser = subparsers.add_parser("build", help="Build a dashboard snapshot")
    _add_build_arguments(build_parser)
    build_parser.add_argument(
        "--input",
        type=Path,
        default=None,
        help="Read payload from a saved export instead of the webhook",
    )
    build_parser.add_argument(
        "--previous",
        type=Path,
        default=None,
        help="Previous snapshot JSON; its team roles are carried over",
    )

    # watch
    watch_parser = subparsers.add_parser("watch", help="Rebuild the snapshot on an interval")
    _add_build_arguments(watch_parser)
    watch_parser.add_argument(
        "--interval",
        type=float,
        default=None,
        help="Seconds between refreshes (default: settings poll_interval_seconds)",
    )
    watch_parser.add_argument(
        "--iterations",
        type=int,
        default=None,
        help="Stop after N refreshes (default: run until interrupted)",
    )

    args = parser.parse_args(argv)

    if args.verbose:
        logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    try:
        if args.command == "fetch":
            _run_fetch(args)
        elif args.command == "build":
            _run_build(args)
        elif args.command == "watch":
            _run_watch(args)
        else:
            parser.print_help()
    except DashboardError as e:
        raise SystemExit(str(e))


def _add_build_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to settings YAML",
    )
    parser.add_argument(
        "--preset",
        type=str,
        default="month",
        choices=["today", "week", "month", "last_month", "all", "custom"],
        help="Date window preset (default: month)",
    )
    parser.add_argument(
        "--start",
        type=str,
        default=None,
        help="Window start (YYYY-MM-DD); overrides the preset unless it is 'all'",
    )
    parser.add_argument(
        "--end",
        type=str,
        default=None,
        help="Window end (YYYY-MM-DD); overrides the preset unless it is 'all'",
    )
    parser.add_argument(
        "--output",
        type=Path,
        default=None,
        help="Write snapshot JSON to file (default: stdout)",
    )


def _load_settings(args: argparse.Namespace):
    from crm_dashboard.models.settings import DashboardSettings

    settings = DashboardSettings.from_yaml(args.config) if args.config else DashboardSettings()
    return settings.with_env_overrides()


def _date_filter(args: argparse.Namespace):
    from datetime import datetime

    from crm_dashboard.models.filters import DateFilter, DatePreset

    for value in (args.start, args.end):
        if value:
            try:
                datetime.strptime(value, "%Y-%m-%d")
            except ValueError:
                raise SystemExit("Invalid --start/--end format. Use YYYY-MM-DD.")
    return DateFilter(preset=DatePreset(args.preset), start_date=args.start, end_date=args.end)


def _webhook(settings):
    from crm_dashboard.connectors.registry import ConnectorRegistry

    return ConnectorRegistry.webhook_for(settings)


def _write(output: Optional[Path], text: str, message: str) -> None:
    if output:
        output.write_text(text, encoding="utf-8")
        print(message, file=sys.stderr)
    else:
        print(text)


def _run_fetch(args: argparse.Namespace) -> None:
    """Run fetch command."""
    settings = _load_settings(args)
    connector = _webhook(settings)
    try:
        payload = connector.fetch_payload()
    finally:
        connector.close()
    if payload is None:
        print("Empty response; nothing written.", file=sys.stderr)
        raise SystemExit(1)

    output = json.dumps(
        {
            "data": [card.data for card in payload.cards],
            "steps": payload.steps,
            "tags": payload.tags,
        },
        indent=2,
        ensure_ascii=False,
        default=str,
    )
    _write(args.output, output, f"Wrote {len(payload.cards)} cards to {args.output}")


def _run_build(args: argparse.Namespace) -> None:
    """Run build command."""
    from crm_dashboard.connectors.registry import ConnectorRegistry
    from crm_dashboard.models.dashboard import DashboardSnapshot
    from crm_dashboard.pipeline import build_dashboard

    settings = _load_settings(args)
    date_filter = _date_filter(args)

    previous = None
    if args.previous and args.previous.exists():
        previous = DashboardSnapshot.model_validate(json.loads(args.previous.read_text(encoding="utf-8")))

    if args.input:
        connector = ConnectorRegistry.get("export", path=args.input)
        batch = connector.fetch_all(missing_dates=settings.missing_date_policy)
    else:
        connector = _webhook(settings)
        try:
            batch = connector.fetch_all(missing_dates=settings.missing_date_policy)
        finally:
            connector.close()
    if batch is None:
        print("Empty response; nothing to build.", file=sys.stderr)
        raise SystemExit(1)

    snapshot = build_dashboard(batch, date_filter, settings, previous=previous)
    output = json.dumps(snapshot.model_dump(mode="json"), indent=2, ensure_ascii=False)
    _write(
        args.output,
        output,
        f"Built snapshot from {len(batch.cards)} cards (wrote to {args.output})",
    )


def _run_watch(args: argparse.Namespace) -> None:
    """Run watch command. A failed refresh keeps the last written snapshot."""
    from crm_dashboard.pipeline import DashboardSession, SessionStatus

    settings = _load_settings(args)
    date_filter = _date_filter(args)
    interval = args.interval if args.interval is not None else settings.poll_interval_seconds
    connector = _webhook(settings)
    session = DashboardSession(connector, settings)

    count = 0
    try:
        while args.iterations is None or count < args.iterations:
            if count:
                time.sleep(interval)
            count += 1
            snapshot = session.refresh(date_filter)
            if session.status == SessionStatus.ERROR:
                print(f"Refresh failed: {session.last_error}", file=sys.stderr)
                continue
            if snapshot is None:
                continue
            output = json.dumps(snapshot.model_dump(mode="json"), indent=2, ensure_ascii=False)
            _write(args.output, output, f"[{snapshot.last_updated:%H:%M:%S}] snapshot updated")
    except KeyboardInterrupt:
        pass
    finally:
        connector.close()


if __name__ == "__main__":
    main()
