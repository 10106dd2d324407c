"""
ChannelHarvest command line.

Usage:
    channelharvest
    channelharvest --mode minimal --dry-run
    channelharvest --country GB --category news --skip-validation
    channelharvest --skip-online --seed-file stations.json --report report.json
"""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Optional

from channelharvest import __version__
from channelharvest.config import HarvestConfig, load_config
from channelharvest.pipeline.orchestrator import HarvestOrchestrator, RunMode
from channelharvest.pipeline.report import RunReport
from channelharvest.storage.sink import ChannelSink, MemorySink
from channelharvest.utils.logging_setup import setup_logging

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="channelharvest",
        description="Harvest radio and TV channels from public directories",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--config", "-c", help="Path to channelharvest.yaml")
    parser.add_argument("--mode", choices=[m.value for m in RunMode], help="Run mode")
    parser.add_argument("--limit", type=int, help="Per-source record limit in minimal mode")

    parser.add_argument("--country", help="Country filter (name or ISO code)")
    parser.add_argument("--category", help="Category/tag filter")
    parser.add_argument("--language", help="Language filter")

    parser.add_argument("--skip-online", action="store_true", help="Skip every online directory")
    parser.add_argument("--skip-validation", action="store_true", help="Do not probe stream URLs")
    parser.add_argument("--skip-enrichment", action="store_true", help="Do not resolve logos")
    parser.add_argument("--seed-file", help="Local JSON station list to include")

    parser.add_argument("--db-url", help="Database URL (overrides storage.url)")
    parser.add_argument("--dry-run", action="store_true", help="Keep results in memory, do not write the database")
    parser.add_argument("--report", help="Write the run report as JSON to this path")
    parser.add_argument("--log-level", choices=["DEBUG", "INFO", "WARNING", "ERROR"], help="Log level")
    parser.add_argument("--no-log-file", action="store_true", help="Log to the console only")
    return parser


def apply_arguments(config: HarvestConfig, args: argparse.Namespace) -> HarvestConfig:
    """Overlay command line flags on a loaded config."""
    run = config.run
    if args.mode:
        run.mode = args.mode
    if args.limit is not None:
        run.minimal_limit = args.limit
    if args.skip_online:
        run.skip_online_fetch = True
    if args.skip_validation:
        run.skip_validation = True
    if args.skip_enrichment:
        run.skip_enrichment = True
    if args.seed_file:
        run.seed_file = args.seed_file

    for name in ("country", "category", "language"):
        value = getattr(args, name)
        if value:
            setattr(config.filters, name, value)

    if args.db_url:
        config.storage.url = args.db_url
    if args.log_level:
        config.logging.level = args.log_level
    return config


def build_sink(config: HarvestConfig, dry_run: bool) -> ChannelSink:
    if dry_run:
        return MemorySink()
    from channelharvest.storage.database import DatabaseSink

    return DatabaseSink(config.storage.url, echo=config.storage.echo)


async def run_harvest(config: HarvestConfig, dry_run: bool = False) -> RunReport:
    sink = build_sink(config, dry_run)
    try:
        return await HarvestOrchestrator(config=config, sink=sink).run()
    finally:
        await sink.close()


def write_report(report: RunReport, path: str) -> None:
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(json.dumps(report.to_dict(), indent=2, default=str), encoding="utf-8")
    logger.info(f"Report written to {target}")


def main(argv: Optional[list[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        config = apply_arguments(load_config(args.config), args)
    except Exception as e:
        print(f"Invalid configuration: {e}", file=sys.stderr)
        return 2

    log_config = config.logging
    setup_logging(
        log_level=log_config.level,
        log_file=None if args.no_log_file else (log_config.file or None),
        max_bytes=log_config.max_bytes,
        backup_count=log_config.backup_count,
        log_format=log_config.format,
    )

    try:
        report = asyncio.run(run_harvest(config, dry_run=args.dry_run))
    except KeyboardInterrupt:
        logger.warning("Interrupted")
        return 130
    except Exception as e:
        logger.exception(f"Harvest failed: {e}")
        return 1

    if args.report:
        write_report(report, args.report)
    return 0


if __name__ == "__main__":
    sys.exit(main())
